"""Tests for the contact form validation and sanitising."""

import pytest

from formshield.forms import ContactForm

VALID = {
    "name": "José O'Neil",
    "email": "jose@gmail.com",
    "problem_description": "Mi notebook no enciende desde ayer por la tarde.",
}


class TestContactForm:
    def test_valid_minimal(self):
        form = ContactForm.from_payload(VALID)

        assert form.is_valid(), form.errors
        assert form.cleaned_data["name"] == "José O'Neil"
        assert form.cleaned_data["phone"] == ""

    def test_markup_is_stripped_from_message(self):
        form = ContactForm.from_payload(dict(VALID, problem_description="<b>Pantalla</b> negra al arrancar <script>x</script>"))

        assert form.is_valid(), form.errors
        assert "<" not in form.cleaned_data["problem_description"]
        assert form.cleaned_data["problem_description"].startswith("Pantalla negra")

    def test_message_aliases(self):
        payload = {"name": "Ana", "email": "ana@gmail.com", "message": "La impresora no responde a nada."}

        form = ContactForm.from_payload(payload, ("problem_description", "problemDescription", "message"))

        assert form.is_valid(), form.errors
        assert form.cleaned_data["problem_description"] == "La impresora no responde a nada."

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"name": "A"}, "name"),
            ({"name": "<b>Ana</b>"}, "name"),
            ({"name": "x" * 101}, "name"),
            ({"email": "ana@"}, "email"),
            ({"phone": "123"}, "phone"),
            ({"phone": "600-abc-123"}, "phone"),
            ({"equipment_type": "Tablet"}, "equipment_type"),
            ({"problem_description": "corto"}, "problem_description"),
            ({"problem_description": "x" * 2001}, "problem_description"),
        ],
    )
    def test_invalid_values(self, overrides, field):
        form = ContactForm.from_payload(dict(VALID, **overrides))

        assert form.is_valid() is False
        assert field in form.errors
        assert field in {d["field"] for d in form.error_details()}

    def test_non_string_values_are_coerced(self):
        form = ContactForm.from_payload(dict(VALID, phone=600123456, equipment_type=None))

        assert form.is_valid(), form.errors
        assert form.cleaned_data["phone"] == "600123456"
