from django import forms
from django.core.validators import RegexValidator
from django.utils.html import strip_tags

EQUIPMENT_TYPES = ["PC", "Notebook", "Netbook", "All-in-One", "Gaming PC", "Workstation", "Otro"]

name_validator = RegexValidator(
    r"^[a-zA-ZáéíóúüñÁÉÍÓÚÜÑ\s'-]+$",
    "Name may only contain letters, spaces, apostrophes and hyphens.",
)
phone_validator = RegexValidator(
    r"^[\d\s\-+()]+$",
    "Phone may only contain digits, spaces, hyphens, parentheses and +.",
)


class ContactForm(forms.Form):
    """
    Validasi + sanitasi isi form kontak. Pengecekan spam/abuse sudah
    dijalankan middleware; form ini hanya soal format dan panjang.
    """

    name = forms.CharField(min_length=2, max_length=100, validators=[name_validator])
    email = forms.EmailField(min_length=5, max_length=254)
    phone = forms.CharField(required=False, min_length=8, max_length=20, validators=[phone_validator])
    equipment_type = forms.ChoiceField(required=False, choices=[(t, t) for t in EQUIPMENT_TYPES])
    problem_description = forms.CharField(min_length=10, max_length=2000)

    @classmethod
    def from_payload(cls, payload, content_fields=("problem_description",)):
        """Bind the form, accepting the alternative names for the message field."""
        data = {key: "" if value is None else str(value) for key, value in (payload or {}).items()}
        if not data.get("problem_description"):
            for name in content_fields:
                if data.get(name):
                    data["problem_description"] = data[name]
                    break
        return cls(data)

    def clean_name(self):
        return strip_tags(self.cleaned_data["name"]).strip()

    def clean_email(self):
        return self.cleaned_data["email"].lower()

    def clean_problem_description(self):
        text = strip_tags(self.cleaned_data["problem_description"])
        return text.replace("<", "").replace(">", "").strip()

    def error_details(self):
        return [
            {"field": field, "message": str(message)}
            for field, messages in self.errors.items()
            for message in messages
        ]
