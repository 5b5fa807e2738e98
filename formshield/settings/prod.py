# formshield/settings/prod.py
from .base import *  # noqa
import os

from decision_engine.exceptions import ConfigurationError

# === Security ===
DEBUG = False
SECRET_KEY = os.getenv("SECRET_KEY")  # wajib ada di .env.prod
if not SECRET_KEY:
    raise ConfigurationError("SECRET_KEY must be set in production")
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "formshield.example.com").split(",")

# === Database (Postgres in Production) ===
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": os.getenv("POSTGRES_DB", "formshield"),
        "USER": os.getenv("POSTGRES_USER", "formshield"),
        "PASSWORD": os.getenv("POSTGRES_PASSWORD", ""),
        "HOST": os.getenv("POSTGRES_HOST", "127.0.0.1"),
        "PORT": os.getenv("POSTGRES_PORT", "5432"),
    }
}

# === Static & Media Files ===
STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# === Security Headers ===
SECURE_CONTENT_TYPE_NOSNIFF = True
SECURE_REFERRER_POLICY = "strict-origin-when-cross-origin"
X_FRAME_OPTIONS = "DENY"
# flag HTTPS lewat env
SECURE_SSL_REDIRECT = env.bool("SECURE_SSL_REDIRECT", default=False)  # noqa: F405
SESSION_COOKIE_SECURE = env.bool("SESSION_COOKIE_SECURE", default=True)  # noqa: F405
CSRF_COOKIE_SECURE = env.bool("CSRF_COOKIE_SECURE", default=True)  # noqa: F405
SECURE_HSTS_SECONDS = env.int("SECURE_HSTS_SECONDS", default=0)  # noqa: F405

# === Email (override untuk prod) ===
EMAIL_HOST = os.getenv("EMAIL_HOST", "smtp.gmail.com")
DEFAULT_FROM_EMAIL = os.getenv("DEFAULT_FROM_EMAIL", "alerts@formshield.example.com")

# === Logging: production lebih tenang di console ===
LOGGING["handlers"]["console"]["level"] = "WARNING"  # noqa: F405
