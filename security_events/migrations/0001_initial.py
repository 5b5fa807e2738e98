import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="SecurityLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("event_type", models.CharField(max_length=64)),
                ("ip_address", models.GenericIPAddressField(blank=True, null=True)),
                ("user_agent", models.TextField(blank=True, default="")),
                ("request_data", models.JSONField(blank=True, null=True)),
                ("blocked", models.BooleanField(default=False)),
                ("severity", models.CharField(
                    choices=[("info", "info"), ("warning", "warning"), ("error", "error")],
                    default="info",
                    max_length=10,
                )),
                ("details", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
            ],
        ),
        migrations.AddIndex(
            model_name="securitylog",
            index=models.Index(fields=["ip_address", "event_type", "created_at"], name="seclog_ip_type_created"),
        ),
        migrations.AddIndex(
            model_name="securitylog",
            index=models.Index(fields=["created_at"], name="seclog_created"),
        ),
    ]
