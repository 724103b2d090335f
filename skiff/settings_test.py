"""Test-specific settings for CI/CD environments."""

from .settings_dev import *  # noqa: F403
from .settings_dev import CLOUD_TASKS

# Override database settings for testing
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

# Never talk to a real queue from tests; individual tests opt in with
# override_settings or an explicit QueueConfig.
CLOUD_TASKS = {
    **CLOUD_TASKS,
    "project_id": "test-project",
    "location": "europe-west1",
    "queue_name": "test-queue",
    "service_url": "",
    "service_account_email": "",
    "app_engine_service": "",
    "managed": False,
    "local_mode": "inline",
    "auto_create_queue": False,
}
