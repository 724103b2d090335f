"""
Task request value object.

A TaskRequest describes one HTTP callback for Cloud Tasks to make into this
application. It is built per submit() call, turned into the ``Task`` dict
accepted by ``CloudTasksClient.create_task`` and then discarded.
"""

import json
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from django.utils import timezone as django_timezone
from google.cloud import tasks_v2
from google.protobuf import timestamp_pb2

from skiff.tasks.config import QueueConfig

# Cloud Tasks rejects schedule times more than 30 days ahead
MAX_SCHEDULE_OFFSET = timedelta(days=30).total_seconds()

Payload = Mapping[str, Any] | str | bytes | None


def parse_http_method(method: str | tasks_v2.HttpMethod) -> tasks_v2.HttpMethod:
    """
    Convert a method name (e.g. 'post') to a Cloud Tasks HttpMethod.

    Raises:
        ValueError: If the method is not one Cloud Tasks supports
    """
    if isinstance(method, tasks_v2.HttpMethod):
        return method
    name = str(method).upper()
    if name == "HTTP_METHOD_UNSPECIFIED" or name not in tasks_v2.HttpMethod.__members__:
        supported = [
            m for m in tasks_v2.HttpMethod.__members__ if m != "HTTP_METHOD_UNSPECIFIED"
        ]
        raise ValueError(
            f"Unsupported HTTP method: '{method}'. Expected one of: {', '.join(supported)}"
        )
    return tasks_v2.HttpMethod[name]


def encode_payload(payload: Payload) -> tuple[bytes | None, str | None]:
    """
    Encode a payload into a request body and its content type.

    Mappings are serialized to JSON; strings are UTF-8 encoded; bytes are
    sent unchanged.

    Raises:
        ValueError: If a mapping payload is not JSON-serializable
    """
    if payload is None:
        return None, None
    if isinstance(payload, bytes):
        return payload, "application/octet-stream"
    if isinstance(payload, str):
        return payload.encode("utf-8"), "text/plain; charset=utf-8"
    if isinstance(payload, Mapping):
        try:
            return json.dumps(dict(payload)).encode("utf-8"), "application/json"
        except (TypeError, ValueError) as e:
            raise ValueError(
                "Task payload is not JSON-serializable. Ensure it contains only "
                "JSON-serializable types (dict, list, str, int, float, bool, None)."
            ) from e
    raise ValueError(
        f"Unsupported payload type: {type(payload).__name__}. "
        "Expected a mapping, str or bytes."
    )


def validate_schedule_offset(offset: float) -> None:
    """
    Check a schedule offset is a finite, non-negative number of seconds
    within the Cloud Tasks scheduling window.

    Raises:
        ValueError: If the offset is not usable
    """
    if not math.isfinite(offset):
        raise ValueError(f"schedule_offset must be a finite number, got {offset}")
    if offset < 0:
        raise ValueError(f"schedule_offset must be non-negative, got {offset}")
    if offset > MAX_SCHEDULE_OFFSET:
        raise ValueError(
            f"schedule_offset must be at most {MAX_SCHEDULE_OFFSET:g} seconds "
            f"(30 days), got {offset}"
        )


def schedule_timestamp(
    offset: float, now: datetime | None = None
) -> timestamp_pb2.Timestamp:
    """
    Absolute time ``offset`` seconds after ``now`` as a protobuf Timestamp.

    Args:
        offset: Delay in seconds, between 0 and 30 days
        now: Reference time (defaults to the current time; naive is UTC)

    Raises:
        ValueError: If offset is negative, non-finite or too far ahead
    """
    validate_schedule_offset(offset)
    now = now or django_timezone.now()

    timestamp = timestamp_pb2.Timestamp()
    timestamp.FromDatetime(now + timedelta(seconds=offset))
    return timestamp


@dataclass
class TaskRequest:
    """
    One deferred HTTP call into this application.

    Args:
        target_path: Relative URL Cloud Tasks will call (e.g. '/secret_url/')
        queue_name: Queue to submit to (None uses the configured default)
        http_method: HTTP method for the callback (default POST)
        payload: Mapping (sent as JSON), str or bytes body
        schedule_offset: Seconds to wait before the first attempt
        name: Task ID for deduplication; Cloud Tasks rejects duplicates
        headers: Extra headers for the callback
    """

    target_path: str
    queue_name: str | None = None
    http_method: str | tasks_v2.HttpMethod = "POST"
    payload: Payload = None
    schedule_offset: float | None = None
    name: str | None = None
    headers: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not self.target_path or not self.target_path.startswith("/"):
            raise ValueError(
                f"target_path must be a relative URL starting with '/', got '{self.target_path}'"
            )
        if self.schedule_offset is not None:
            validate_schedule_offset(self.schedule_offset)
        self.http_method = parse_http_method(self.http_method)
        # Encode eagerly so serialization errors surface before any network call
        self._body, self._content_type = encode_payload(self.payload)

    @property
    def body(self) -> bytes | None:
        return self._body

    @property
    def content_type(self) -> str | None:
        return self._content_type

    @property
    def method_name(self) -> str:
        return self.http_method.name

    def request_headers(self) -> dict[str, str]:
        headers = {}
        if self._content_type:
            headers["Content-Type"] = self._content_type
        headers.update(self.headers)
        return headers

    def schedule_time(self, now: datetime | None = None):
        """Timestamp for the first attempt, or None to run as soon as possible."""
        if self.schedule_offset is None:
            return None
        return schedule_timestamp(self.schedule_offset, now=now)

    def to_task(self, config: QueueConfig, now: datetime | None = None) -> dict:
        """
        Build the Task accepted by CloudTasksClient.create_task.

        HTTP-target tasks (Cloud Run) carry a full URL and optionally an OIDC
        token; App Engine tasks carry the relative URI.
        """
        queue_name = self.queue_name or config.queue_name
        http_request: dict[str, Any] = {
            "http_method": self.http_method,
            "headers": self.request_headers(),
        }
        if self._body is not None:
            http_request["body"] = self._body

        if config.uses_http_target:
            http_request["url"] = config.service_url.rstrip("/") + self.target_path
            if config.service_account_email:
                http_request["oidc_token"] = {
                    "service_account_email": config.service_account_email,
                    "audience": config.service_url,
                }
            task: dict[str, Any] = {"http_request": http_request}
        else:
            http_request["relative_uri"] = self.target_path
            if config.app_engine_service:
                http_request["app_engine_routing"] = {
                    "service": config.app_engine_service
                }
            task = {"app_engine_http_request": http_request}

        schedule_time = self.schedule_time(now=now)
        if schedule_time is not None:
            task["schedule_time"] = schedule_time

        if self.name:
            task["name"] = config.task_path(self.name, queue_name=queue_name)

        return task
