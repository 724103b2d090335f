"""
Django settings for skiff project.

For more information on this file, see
https://docs.djangoproject.com/en/5.1/topics/settings/

For the full list of settings and their values, see
https://docs.djangoproject.com/en/5.1/ref/settings/
"""

import os
from pathlib import Path

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.getenv("SECRET_KEY", "insecure-skiff-dev-key")

DEBUG = os.getenv("DEBUG", "False").lower() == "true"

ALLOWED_HOSTS = [h for h in os.getenv("ALLOWED_HOSTS", "").split(",") if h]
CSRF_TRUSTED_ORIGINS = [
    o for o in os.getenv("CSRF_TRUSTED_ORIGINS", "").split(",") if o
]

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "skiff.core",
    "skiff.tasks",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "skiff.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "skiff.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.getenv("DB_NAME", str(BASE_DIR / "db.sqlite3")),
    }
}

LANGUAGE_CODE = "en-gb"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

STORAGES = {
    "default": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
    },
    "staticfiles": {
        "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage",
    },
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {name} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "django.request": {
            "handlers": ["console"],
            "level": "WARNING",
            "propagate": False,
        },
        "skiff": {
            "handlers": ["console"],
            "level": os.getenv("SKIFF_LOG_LEVEL", "INFO").upper(),
            "propagate": False,
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
}

# Google Cloud project. Cloud Run sets GOOGLE_CLOUD_PROJECT for us.
GCP_PROJECT_ID = os.getenv("GOOGLE_CLOUD_PROJECT", os.getenv("GCP_PROJECT_ID", ""))

# Cloud Tasks
# The queue region is configured separately from the region the app runs in:
# Cloud Tasks is not available in every region.
CLOUD_TASKS = {
    "project_id": GCP_PROJECT_ID,
    "location": os.getenv("CLOUD_TASKS_LOCATION", ""),
    "queue_name": os.getenv("CLOUD_TASKS_QUEUE", "default"),
    # Set for HTTP targets (Cloud Run); leave empty for App Engine targets
    "service_url": os.getenv("CLOUD_TASKS_SERVICE_URL", ""),
    "service_account_email": os.getenv("CLOUD_TASKS_SERVICE_ACCOUNT", ""),
    "app_engine_service": os.getenv("CLOUD_TASKS_APP_ENGINE_SERVICE", ""),
    # None means detect from the runtime environment (K_SERVICE / GAE_ENV)
    "managed": (
        os.getenv("CLOUD_TASKS_MANAGED").lower() == "true"
        if os.getenv("CLOUD_TASKS_MANAGED")
        else None
    ),
    "local_mode": os.getenv("CLOUD_TASKS_LOCAL_MODE", "inline"),
    "auto_create_queue": os.getenv("CLOUD_TASKS_AUTO_CREATE_QUEUE", "False").lower()
    == "true",
}
