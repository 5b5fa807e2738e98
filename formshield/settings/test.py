from .base import *  # noqa

SECRET_KEY = "test-secret-key"
DEBUG = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

# tanpa Redis di test
REDIS_URL = ""

EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"

SHIELD_PER_REQUEST_DELAY_MS = 0
SHIELD_SWEEP_INTERVAL_SECONDS = 3600

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {"console": {"class": "logging.StreamHandler"}},
    "root": {"handlers": ["console"], "level": "WARNING"},
}
