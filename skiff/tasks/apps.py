"""
Django app configuration for tasks.

On managed cloud startup, this can create the configured Cloud Tasks queue.
"""

import logging
import sys

from django.apps import AppConfig

logger = logging.getLogger(__name__)


class TasksConfig(AppConfig):
    """App configuration for deferred Cloud Tasks."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "skiff.tasks"
    verbose_name = "Cloud Tasks"

    def ready(self):
        """
        Connect signals and optionally create the queue.

        Queue creation only runs on managed cloud with auto_create_queue set.
        Skipped during migrations and tests.
        """
        from skiff.tasks import signals  # noqa: F401
        from skiff.tasks.config import QueueConfig

        config = QueueConfig.from_settings()
        if not config.managed or not config.auto_create_queue:
            logger.debug("Skipping Cloud Tasks queue provisioning")
            return

        if len(sys.argv) > 1 and sys.argv[1] in ("migrate", "makemigrations", "test"):
            logger.debug(f"Skipping provisioning during {sys.argv[1]}")
            return

        try:
            from skiff.tasks.provisioning import ensure_queue

            ensure_queue(config)
        except Exception as e:
            # Log but don't crash the app - tasks will fail loudly on submit
            logger.error(f"Failed to provision Cloud Tasks queue: {e}", exc_info=True)
