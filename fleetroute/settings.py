import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "insecure-dev-key-change-me")
DEBUG = os.getenv("DJANGO_DEBUG", "1") == "1"
ALLOWED_HOSTS = [host for host in os.getenv("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if host]

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "trips",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
]

ROOT_URLCONF = "fleetroute.urls"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
USE_TZ = True
TIME_ZONE = "UTC"

ROUTING_CONFIG = {
    "directions_url": os.getenv("ORS_DIRECTIONS_URL", "https://api.openrouteservice.org/v2/directions"),
    "api_key": os.getenv("ORS_API_KEY", ""),
    "profile": os.getenv("ORS_PROFILE", "driving-car"),
    "timeout_seconds": float(os.getenv("ROUTING_TIMEOUT_SECONDS", "10")),
    "rides_service_url": os.getenv("RIDES_SERVICE_URL", "http://localhost:8081"),
    "duplicate_offset_degrees": 0.0001,
    "bounds_padding": [50, 50],
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "loggers": {
        "trips": {
            "handlers": ["console"],
            "level": os.getenv("TRIPS_LOG_LEVEL", "INFO"),
        },
    },
}
