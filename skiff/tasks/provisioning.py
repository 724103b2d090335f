"""
Create and inspect Cloud Tasks queues.

Backs the ``manage queues create`` and ``manage queues describe`` commands,
and optionally creates the configured queue on startup.

Retry and rate limit settings passed here are stored on the queue; Cloud
Tasks applies them to every task in it. Nothing in this application retries.
"""

import logging
from dataclasses import dataclass

from google.api_core.exceptions import AlreadyExists
from google.cloud import tasks_v2
from google.protobuf import duration_pb2

from skiff.tasks.config import QueueConfig
from skiff.tracker import track

logger = logging.getLogger(__name__)


@dataclass
class QueueOptions:
    """
    Optional queue settings. None leaves the Cloud Tasks default in place.

    Args:
        max_attempts: Attempts per task including the first (-1 for unlimited)
        min_backoff: Minimum seconds between retries
        max_backoff: Maximum seconds between retries
        max_dispatches_per_second: Dispatch rate limit
        max_concurrent_dispatches: Concurrent dispatch limit
    """

    max_attempts: int | None = None
    min_backoff: int | None = None
    max_backoff: int | None = None
    max_dispatches_per_second: float | None = None
    max_concurrent_dispatches: int | None = None

    def __post_init__(self):
        if (
            self.min_backoff is not None
            and self.max_backoff is not None
            and self.min_backoff > self.max_backoff
        ):
            raise ValueError(
                f"min_backoff ({self.min_backoff}s) cannot exceed max_backoff ({self.max_backoff}s)"
            )

    def retry_config(self) -> tasks_v2.RetryConfig | None:
        fields = {}
        if self.max_attempts is not None:
            fields["max_attempts"] = self.max_attempts
        if self.min_backoff is not None:
            fields["min_backoff"] = duration_pb2.Duration(seconds=self.min_backoff)
        if self.max_backoff is not None:
            fields["max_backoff"] = duration_pb2.Duration(seconds=self.max_backoff)
        return tasks_v2.RetryConfig(**fields) if fields else None

    def rate_limits(self) -> tasks_v2.RateLimits | None:
        fields = {}
        if self.max_dispatches_per_second is not None:
            fields["max_dispatches_per_second"] = self.max_dispatches_per_second
        if self.max_concurrent_dispatches is not None:
            fields["max_concurrent_dispatches"] = self.max_concurrent_dispatches
        return tasks_v2.RateLimits(**fields) if fields else None


def build_queue(
    config: QueueConfig, queue_name: str, options: QueueOptions | None = None
) -> tasks_v2.Queue:
    """Build the Queue resource for create_queue."""
    options = options or QueueOptions()
    queue = tasks_v2.Queue(name=config.path_for_queue(queue_name))

    retry_config = options.retry_config()
    if retry_config is not None:
        queue.retry_config = retry_config

    rate_limits = options.rate_limits()
    if rate_limits is not None:
        queue.rate_limits = rate_limits

    if config.app_engine_service and not config.uses_http_target:
        queue.app_engine_routing_override = tasks_v2.AppEngineRouting(
            service=config.app_engine_service
        )

    return queue


def create_queue(
    client,
    config: QueueConfig,
    queue_name: str | None = None,
    options: QueueOptions | None = None,
) -> tuple[tasks_v2.Queue | None, bool]:
    """
    Create a queue if it does not exist.

    Returns:
        (queue, created): the created queue and True, or (None, False) if a
        queue with that name already exists.
    """
    queue_name = queue_name or config.queue_name
    queue = build_queue(config, queue_name, options)

    try:
        created = client.create_queue(
            request={"parent": config.location_path(), "queue": queue}
        )
    except AlreadyExists:
        logger.debug(f"Queue exists: {queue_name}")
        return None, False

    logger.info(f"Created queue: {queue_name}")
    track("queue_created", queue=queue_name, location=config.location)
    return created, True


def describe_queue(client, config: QueueConfig, queue_name: str | None = None):
    """
    Fetch a queue.

    Raises:
        google.api_core.exceptions.NotFound: If the queue does not exist
    """
    queue_name = queue_name or config.queue_name
    return client.get_queue(request={"name": config.path_for_queue(queue_name)})


def ensure_queue(config: QueueConfig | None = None, client=None) -> bool:
    """
    Create the configured queue on startup if it is missing.

    This is idempotent - safe to run on every Cloud Run startup.

    Returns:
        True if the queue was created, False if it already existed.
    """
    config = config or QueueConfig.from_settings()
    client = client or tasks_v2.CloudTasksClient()
    _, created = create_queue(client, config)
    return created
