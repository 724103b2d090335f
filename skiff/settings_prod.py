import os

from .settings import *  # noqa: F403
from .settings import GCP_PROJECT_ID, LOGGING, STORAGES

# Configure Django logging for production using StructuredLogHandler
# This writes JSON to stdout, which Cloud Run and App Engine capture and send
# to Cloud Logging. The project_id is required for trace correlation.
LOGGING["handlers"]["structured_console"] = {
    "class": "google.cloud.logging_v2.handlers.StructuredLogHandler",
    "project_id": GCP_PROJECT_ID,
}

# Update loggers to use structured logging with propagate: False to prevent duplicates
LOGGING["loggers"]["django.request"]["handlers"] = ["structured_console"]
LOGGING["loggers"]["django.request"]["propagate"] = False

LOGGING["loggers"]["skiff"]["handlers"] = ["structured_console"]
LOGGING["loggers"]["skiff"]["propagate"] = False

LOGGING["root"]["handlers"] = ["structured_console"]

DEBUG = False
CSRF_COOKIE_SECURE = True
SESSION_COOKIE_SECURE = True

# This is handled by the load balancer
SECURE_SSL_REDIRECT = False
SECURE_HSTS_SECONDS = 60
SECURE_HSTS_INCLUDE_SUBDOMAINS = False
SECURE_HSTS_PRELOAD = True

SECRET_KEY = os.environ["SECRET_KEY"]

STORAGES = {
    **STORAGES,
    "staticfiles": {
        "BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage",
    },
}
