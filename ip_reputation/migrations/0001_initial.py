import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="BlockedIp",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("ip_address", models.GenericIPAddressField(unique=True)),
                ("reason", models.TextField(blank=True, default="")),
                ("blocked_until", models.DateTimeField(blank=True, null=True)),
                ("permanent", models.BooleanField(default=False)),
                ("blocked_count", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                "verbose_name": "blocked IP",
                "verbose_name_plural": "blocked IPs",
            },
        ),
    ]
