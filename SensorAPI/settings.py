import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "django-insecure-sensor-data-dev-key")
DEBUG = os.environ.get("DJANGO_DEBUG", "1") == "1"
ALLOWED_HOSTS = os.environ.get("DJANGO_ALLOWED_HOSTS", "*").split(",")

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "rest_framework",
    "sensor_api",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "SensorAPI.urls"
WSGI_APPLICATION = "SensorAPI.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

USE_TZ = True
TIME_ZONE = "UTC"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.AllowAny"],
    "UNAUTHENTICATED_USER": None,
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
    "EXCEPTION_HANDLER": "sensor_api.utils.custom_exception_handler.custom_exception_handler",
}

# Socket server that receives the sensor CSV stream
SENSOR_SERVER = {
    "HOST": os.environ.get("SENSOR_SERVER_HOST", "0.0.0.0"),
    "PORT": int(os.environ.get("SENSOR_SERVER_PORT", "9091")),
    # seconds
    "READ_TIMEOUT": float(os.environ.get("SENSOR_SERVER_READ_TIMEOUT", "10")),
    "POLL_INTERVAL": float(os.environ.get("SENSOR_SERVER_POLL_INTERVAL", "1")),
}

LOG_FILE = os.environ.get("SENSOR_LOG_FILE", str(BASE_DIR / "sensor_data.log"))
LOG_LEVEL = os.environ.get("SENSOR_LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "timestamped": {
            "format": "[{asctime}] {message}",
            "datefmt": "%Y-%m-%d %H:%M:%S",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "timestamped",
        },
        "file": {
            "class": "logging.FileHandler",
            "filename": LOG_FILE,
            "formatter": "timestamped",
            "delay": True,
        },
    },
    "loggers": {
        "sensor_server": {
            "handlers": ["console", "file"],
            "level": LOG_LEVEL,
            "propagate": True,
        },
    },
}
