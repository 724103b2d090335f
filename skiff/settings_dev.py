import logging
import os

from .settings import *  # noqa: F403
from .settings import BASE_DIR, CLOUD_TASKS
from .settings import LOGGING as BASE_LOGGING

logger = logging.getLogger(__name__)

DEBUG = True
WHITENOISE_AUTOREFRESH = True

# Disable secure cookies for local development
CSRF_COOKIE_SECURE = False

# Allow local hosts for development
ALLOWED_HOSTS = ["localhost", "127.0.0.1", "testserver"]

LOGGING = {
    **BASE_LOGGING,
    "loggers": {
        **BASE_LOGGING["loggers"],
        "skiff": {
            "handlers": ["console"],
            "level": os.getenv("SKIFF_LOG_LEVEL", "DEBUG").upper(),
            "propagate": True,
        },
    },
}

# Tasks run in-process unless CLOUD_TASKS_MANAGED=True points us at a real queue
USE_CLOUD_TASKS_IN_DEV = os.getenv("USE_CLOUD_TASKS_IN_DEV", "False") == "True"

CLOUD_TASKS = {
    **CLOUD_TASKS,
    "managed": USE_CLOUD_TASKS_IN_DEV,
}

if USE_CLOUD_TASKS_IN_DEV and not CLOUD_TASKS["service_url"]:
    # Cloud Tasks cannot reach localhost; a tunnel URL is needed for callbacks
    logger.warning(
        "USE_CLOUD_TASKS_IN_DEV is set without CLOUD_TASKS_SERVICE_URL; "
        "tasks will target App Engine"
    )

MEDIA_URL = "/media/"
MEDIA_ROOT = BASE_DIR / "media"
