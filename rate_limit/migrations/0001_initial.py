import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="RateLimitWindow",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("ip_address", models.GenericIPAddressField()),
                ("endpoint", models.CharField(max_length=255)),
                ("window_start", models.DateTimeField(default=django.utils.timezone.now)),
                ("request_count", models.PositiveIntegerField(default=1)),
                ("last_request", models.DateTimeField(default=django.utils.timezone.now)),
            ],
        ),
        migrations.AddConstraint(
            model_name="ratelimitwindow",
            constraint=models.UniqueConstraint(fields=("ip_address", "endpoint"), name="unique_rate_window"),
        ),
    ]
