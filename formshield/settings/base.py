from pathlib import Path
import environ
import os
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent.parent
load_dotenv(BASE_DIR / ".env")

env = environ.Env()

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
DEBUG = os.getenv("DEBUG", "1") == "1"
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "127.0.0.1,localhost").split(",")

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # Third-party
    "django_crontab",

    # custom apps
    "decision_engine",
    "ip_reputation",
    "rate_limit",
    "spam_filter",
    "suspicion",
    "escalation",
    "security_events",

    # ops
    "ops",
]

MIDDLEWARE = [
    "decision_engine.middleware.ShieldMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "formshield.urls"
TEMPLATES = [{
    "BACKEND": "django.template.backends.django.DjangoTemplates",
    "DIRS": [BASE_DIR / "templates"],
    "APP_DIRS": True,
    "OPTIONS": {"context_processors": [
        "django.template.context_processors.debug",
        "django.template.context_processors.request",
        "django.contrib.auth.context_processors.auth",
        "django.contrib.messages.context_processors.messages",
    ]},
}]
WSGI_APPLICATION = "formshield.wsgi.application"
ASGI_APPLICATION = "formshield.asgi.application"

# DB dev: sqlite; production: Postgres di prod.py
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.getenv("SQLITE_PATH", str(BASE_DIR / "db.sqlite3")),
    }
}

CRONJOBS = [
    ("*/30 * * * *", "django.core.management.call_command", ["refresh_exit_nodes"]),
    ("0 2 * * *", "django.core.management.call_command", ["cleanup_security_records"]),
]

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LOGIN_URL = "/admin/login/"

# Email Settings (alert blokir IP)
EMAIL_BACKEND = os.getenv("EMAIL_BACKEND", "django.core.mail.backends.smtp.EmailBackend")
EMAIL_HOST = os.getenv("EMAIL_HOST", "localhost")
EMAIL_PORT = int(os.getenv("EMAIL_PORT", 587))
EMAIL_HOST_USER = os.getenv("EMAIL_HOST_USER", "")
EMAIL_HOST_PASSWORD = os.getenv("EMAIL_HOST_PASSWORD", "")
EMAIL_USE_TLS = os.getenv("EMAIL_USE_TLS", "True") == "True"
EMAIL_USE_SSL = os.getenv("EMAIL_USE_SSL", "False") == "True"
DEFAULT_FROM_EMAIL = os.getenv("DEFAULT_FROM_EMAIL", "no-reply@formshield.local")

LOG_DIR = BASE_DIR / "logs"
LOG_DIR.mkdir(parents=True, exist_ok=True)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "detailed": {
            "format": "[%(asctime)s] [%(levelname)s] [%(name)s.%(funcName)s] %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "detailed",
        },
        "file_decision": {
            "class": "logging.FileHandler",
            "filename": str(LOG_DIR / "decision_engine.log"),
            "formatter": "detailed",
        },
        "file_security": {
            "class": "logging.FileHandler",
            "filename": str(LOG_DIR / "security_events.log"),
            "formatter": "detailed",
        },
        "file_escalation": {
            "class": "logging.FileHandler",
            "filename": str(LOG_DIR / "escalation.log"),
            "formatter": "detailed",
        },
    },
    "loggers": {
        "decision_engine": {
            "handlers": ["console", "file_decision"],
            "level": "INFO",
            "propagate": False,
        },
        "ip_reputation": {
            "handlers": ["console", "file_decision"],
            "level": "INFO",
            "propagate": False,
        },
        "rate_limit": {
            "handlers": ["console", "file_decision"],
            "level": "INFO",
            "propagate": False,
        },
        "suspicion": {
            "handlers": ["console", "file_decision"],
            "level": "INFO",
            "propagate": False,
        },
        "spam_filter": {
            "handlers": ["console", "file_decision"],
            "level": "INFO",
            "propagate": False,
        },
        "ops": {
            "handlers": ["console", "file_security"],
            "level": "INFO",
            "propagate": False,
        },
        "security_events": {
            "handlers": ["console", "file_security"],
            "level": "INFO",
            "propagate": False,
        },
        "escalation": {
            "handlers": ["console", "file_escalation"],
            "level": "INFO",
            "propagate": False,
        },
    },
}

# === Redis (cache daftar exit node, dipakai bersama antar proses) ===
REDIS_URL = os.getenv("REDIS_URL", "redis://127.0.0.1:6379/0")

# === FormShield defence pipeline ===
SHIELD_WINDOW_MS = env.int("SHIELD_WINDOW_MS", default=3600000)  # 1 jam
SHIELD_MAX_REQUESTS = env.int("SHIELD_MAX_REQUESTS", default=3)
SHIELD_GLOBAL_WINDOW_MS = env.int("SHIELD_GLOBAL_WINDOW_MS", default=60000)
SHIELD_GLOBAL_MAX_REQUESTS = env.int("SHIELD_GLOBAL_MAX_REQUESTS", default=100)

SHIELD_DELAY_AFTER = env.int("SHIELD_DELAY_AFTER", default=1)
SHIELD_PER_REQUEST_DELAY_MS = env.int("SHIELD_PER_REQUEST_DELAY_MS", default=500)
SHIELD_MAX_DELAY_MS = env.int("SHIELD_MAX_DELAY_MS", default=5000)

SHIELD_BLOCK_DURATION_HOURS = env.int("SHIELD_BLOCK_DURATION_HOURS", default=24)
SHIELD_PERMANENT_BLOCK_THRESHOLD = env.int("SHIELD_PERMANENT_BLOCK_THRESHOLD", default=10)
SHIELD_SUSPICIOUS_ACTIVITY_THRESHOLD = env.int("SHIELD_SUSPICIOUS_ACTIVITY_THRESHOLD", default=5)

SHIELD_SPAM_THRESHOLD = env.int("SHIELD_SPAM_THRESHOLD", default=50)
SHIELD_SUSPICION_THRESHOLD = env.int("SHIELD_SUSPICION_THRESHOLD", default=40)
SHIELD_MAX_URLS_ALLOWED = env.int("SHIELD_MAX_URLS_ALLOWED", default=0)
SHIELD_MAX_CAPITAL_PERCENTAGE = env.float("SHIELD_MAX_CAPITAL_PERCENTAGE", default=30.0)
SHIELD_PROFANITY_FILTER = env.bool("SHIELD_PROFANITY_FILTER", default=True)
SHIELD_SPAM_KEYWORDS_FILE = os.getenv("SHIELD_SPAM_KEYWORDS_FILE") or None

SHIELD_WHITELIST = env.list(
    "SHIELD_WHITELIST",
    default=["127.0.0.1", "::1", "192.168.0.0/16", "10.0.0.0/8", "172.16.0.0/12"],
)
SHIELD_PROTECTED_PATHS = env.list("SHIELD_PROTECTED_PATHS", default=["/api/contact"])

SHIELD_EXIT_NODE_FEED_URL = os.getenv(
    "SHIELD_EXIT_NODE_FEED_URL", "https://check.torproject.org/torbulkexitlist"
)
SHIELD_SWEEP_INTERVAL_SECONDS = env.int("SHIELD_SWEEP_INTERVAL_SECONDS", default=300)
SHIELD_ALERT_EMAIL = os.getenv("SHIELD_ALERT_EMAIL") or None
SHIELD_RETENTION_DAYS = env.int("SHIELD_RETENTION_DAYS", default=30)
