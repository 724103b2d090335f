"""
Cloud Tasks queue configuration.

Settings are read once into an explicit ``QueueConfig`` which is handed to
the submitter, rather than having the submitter reach into ``settings``
on every call.

Configuration in settings.py:
    CLOUD_TASKS = {
        "project_id": "my-gcp-project",
        "location": "europe-west1",
        "queue_name": "default",
    }
"""

import os
from dataclasses import dataclass, field, fields, replace

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from google.cloud import tasks_v2

LOCAL_MODES = ("inline", "skip", "error")


def detect_managed_environment() -> bool:
    """
    Return True when running on Cloud Run or App Engine standard.

    Cloud Run sets K_SERVICE; App Engine standard sets GAE_ENV=standard.
    """
    return bool(os.getenv("K_SERVICE")) or os.getenv("GAE_ENV", "") == "standard"


@dataclass(frozen=True)
class QueueConfig:
    """
    Where and how tasks are submitted.

    Args:
        project_id: GCP project owning the queue
        location: Queue region (need not match the app's region)
        queue_name: Default queue for submissions
        service_url: Base URL for HTTP-target tasks. Empty means App Engine
            tasks addressed by relative URI.
        service_account_email: Service account used to mint OIDC tokens for
            HTTP-target tasks
        app_engine_service: Optional App Engine service to route tasks to
        managed: Whether submissions go to Cloud Tasks at all
        local_mode: What submit() does when not managed: "inline", "skip"
            or "error"
        auto_create_queue: Create the queue on startup if it is missing
    """

    project_id: str = ""
    location: str = ""
    queue_name: str = "default"
    service_url: str = ""
    service_account_email: str = ""
    app_engine_service: str = ""
    managed: bool = field(default_factory=detect_managed_environment)
    local_mode: str = "inline"
    auto_create_queue: bool = False

    def __post_init__(self):
        if self.local_mode not in LOCAL_MODES:
            raise ImproperlyConfigured(
                f"Invalid Cloud Tasks local_mode: '{self.local_mode}'. "
                f"Expected one of: {', '.join(LOCAL_MODES)}"
            )

    @classmethod
    def from_settings(cls) -> "QueueConfig":
        """Build the config from the CLOUD_TASKS setting."""
        options = dict(getattr(settings, "CLOUD_TASKS", {}))
        if not options.get("project_id"):
            options["project_id"] = getattr(settings, "GCP_PROJECT_ID", "")
        # None (or absent) means detect from the environment
        if options.get("managed") is None:
            options.pop("managed", None)

        known = {f.name for f in fields(cls)}
        unknown = set(options) - known
        if unknown:
            raise ImproperlyConfigured(
                f"Unknown CLOUD_TASKS options: {', '.join(sorted(unknown))}"
            )
        return cls(**options)

    @property
    def uses_http_target(self) -> bool:
        return bool(self.service_url)

    @property
    def queue_path(self) -> str:
        """Fully-qualified path of the default queue."""
        return self.path_for_queue(self.queue_name)

    def path_for_queue(self, queue_name: str) -> str:
        self.validate()
        return tasks_v2.CloudTasksClient.queue_path(
            self.project_id, self.location, queue_name
        )

    def task_path(self, task_id: str, queue_name: str | None = None) -> str:
        """Full task name, used by Cloud Tasks for deduplication."""
        self.validate()
        return tasks_v2.CloudTasksClient.task_path(
            self.project_id, self.location, queue_name or self.queue_name, task_id
        )

    def location_path(self) -> str:
        self.validate()
        return tasks_v2.CloudTasksClient.common_location_path(
            self.project_id, self.location
        )

    def validate(self) -> None:
        """
        Raise ImproperlyConfigured if the queue cannot be addressed.

        Raises:
            ImproperlyConfigured: If project_id, location or queue_name is missing
        """
        missing = [
            name
            for name in ("project_id", "location", "queue_name")
            if not getattr(self, name)
        ]
        if missing:
            raise ImproperlyConfigured(
                f"Cloud Tasks is missing configuration: {', '.join(missing)}. "
                "Set GCP_PROJECT_ID, CLOUD_TASKS_LOCATION and CLOUD_TASKS_QUEUE."
            )

    def with_queue(self, queue_name: str) -> "QueueConfig":
        return replace(self, queue_name=queue_name)
