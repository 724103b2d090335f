"""
Cloud Tasks submitter.

Submits deferred HTTP callbacks to a Cloud Tasks queue. Cloud Tasks owns
everything after submission: queueing, retries with backoff, rate limiting
and finally calling the target path in this application.

Outside managed cloud (local development, tests) nothing is sent to Cloud
Tasks; the configured local mode decides what happens instead.
"""

import logging
from datetime import datetime
from functools import lru_cache
from urllib.parse import urlsplit

from django.http import HttpResponse
from django.urls import resolve
from google.api_core import exceptions as gax_exceptions

from skiff.tasks.config import QueueConfig
from skiff.tasks.request import Payload, TaskRequest
from skiff.tracker import track

logger = logging.getLogger(__name__)

# Set on requests built for inline execution. Not an HTTP_* key, so it cannot
# be supplied by a client.
LOCAL_TASK_META_KEY = "skiff.local_task"


class TaskSubmissionError(RuntimeError):
    """Raised when a task cannot be submitted in the current environment."""


class TaskSubmitter:
    """
    Submits task requests to Cloud Tasks.

    Args:
        config: Queue configuration (defaults to QueueConfig.from_settings())
        client: Optional CloudTasksClient; created lazily when omitted
    """

    def __init__(self, config: QueueConfig | None = None, client=None):
        self.config = config or QueueConfig.from_settings()
        self._client = client

    @property
    def client(self):
        """Lazy initialization of the Cloud Tasks client."""
        if self._client is None:
            from google.cloud import tasks_v2

            self._client = tasks_v2.CloudTasksClient()
        return self._client

    def submit(
        self,
        target_path: str,
        queue_name: str | None = None,
        http_method: str = "POST",
        payload: Payload = None,
        schedule_offset: float | None = None,
        name: str | None = None,
        headers: dict[str, str] | None = None,
        ignore_already_exists: bool = False,
        now: datetime | None = None,
    ):
        """
        Submit a deferred HTTP call to ``target_path``.

        Args:
            target_path: Relative URL Cloud Tasks will call back
            queue_name: Queue to use (defaults to the configured queue)
            http_method: Method for the callback (default POST)
            payload: Mapping (sent as JSON), str or bytes
            schedule_offset: Seconds before the first attempt
            name: Task ID for deduplication
            headers: Extra callback headers
            ignore_already_exists: Return None instead of raising when a
                task with the same name was already submitted
            now: Reference time for schedule_offset (defaults to now)

        Returns:
            The created task's name when submitted to Cloud Tasks; the view's
            HttpResponse when run inline locally; None when skipped.

        Raises:
            ValueError: If the task request is invalid
            TaskSubmissionError: If not managed and local_mode is "error"
            google.api_core.exceptions.GoogleAPICallError: If Cloud Tasks
                rejects the task or cannot be reached
        """
        task_request = TaskRequest(
            target_path=target_path,
            queue_name=queue_name,
            http_method=http_method,
            payload=payload,
            schedule_offset=schedule_offset,
            name=name,
            headers=dict(headers or {}),
        )

        if not self.config.managed:
            return self._submit_locally(task_request)

        return self._submit_to_cloud(
            task_request, ignore_already_exists=ignore_already_exists, now=now
        )

    def _submit_to_cloud(
        self,
        task_request: TaskRequest,
        ignore_already_exists: bool,
        now: datetime | None,
    ) -> str | None:
        queue_name = task_request.queue_name or self.config.queue_name
        parent = self.config.path_for_queue(queue_name)
        task = task_request.to_task(self.config, now=now)

        failure_extra = {
            "queue": queue_name,
            "target_path": task_request.target_path,
            "task_id": task_request.name,
        }
        try:
            response = self.client.create_task(request={"parent": parent, "task": task})
        except gax_exceptions.AlreadyExists as e:
            if ignore_already_exists and task_request.name:
                logger.info(
                    "Task already exists, skipping",
                    extra={"task_name": task.get("name"), "queue": queue_name},
                )
                track("task_duplicate", queue=queue_name, task_id=task_request.name)
                return None
            logger.error(
                f"Failed to submit task, it already exists: {e}",
                extra=failure_extra,
                exc_info=True,
            )
            raise
        except Exception as e:
            logger.error(
                f"Failed to submit task: {e}", extra=failure_extra, exc_info=True
            )
            raise

        track(
            "task_submitted",
            queue=queue_name,
            target_path=task_request.target_path,
            method=task_request.method_name,
            task_name=response.name,
            scheduled=task_request.schedule_offset is not None,
        )
        return response.name

    def _submit_locally(self, task_request: TaskRequest):
        mode = self.config.local_mode

        if mode == "error":
            raise TaskSubmissionError(
                f"Cannot submit task to '{task_request.target_path}': "
                "not running on managed cloud and local_mode is 'error'"
            )

        if mode == "skip":
            logger.warning(
                f"Not running on managed cloud, skipping task for {task_request.target_path}"
            )
            track("task_skipped", target_path=task_request.target_path)
            return None

        return self._run_inline(task_request)

    def _run_inline(self, task_request: TaskRequest) -> HttpResponse:
        """
        Call the target view synchronously in this process.

        The request is built with Django's RequestFactory and handed straight
        to the resolved view, so no middleware runs: ``request.user``,
        ``request.session`` and anything else middleware sets are absent.
        Task handlers must rely only on the method, body and task headers,
        as they would when called by Cloud Tasks.
        """
        from django.test.client import RequestFactory

        if task_request.schedule_offset:
            logger.debug(
                f"Ignoring schedule_offset={task_request.schedule_offset} for inline task"
            )

        path = urlsplit(task_request.target_path).path
        match = resolve(path)

        request = RequestFactory().generic(
            task_request.method_name,
            task_request.target_path,
            data=task_request.body or b"",
            content_type=task_request.content_type or "application/octet-stream",
            headers={
                **task_request.headers,
                "X-CloudTasks-QueueName": task_request.queue_name
                or self.config.queue_name,
                "X-CloudTasks-TaskName": task_request.name or "local",
                "X-CloudTasks-TaskRetryCount": "0",
                "X-CloudTasks-TaskExecutionCount": "0",
            },
        )
        request.META[LOCAL_TASK_META_KEY] = True

        logger.info(
            f"Running task inline: {task_request.method_name} {task_request.target_path}",
            extra={"view": match.view_name},
        )
        response = match.func(request, *match.args, **match.kwargs)
        if hasattr(response, "render") and callable(response.render):
            response = response.render()

        track(
            "task_ran_inline",
            target_path=task_request.target_path,
            status_code=response.status_code,
        )
        return response


@lru_cache(maxsize=None)
def get_submitter() -> TaskSubmitter:
    """Process-wide submitter built from settings."""
    return TaskSubmitter()


def submit(target_path: str, **kwargs):
    """Submit a task with the process-wide submitter. See TaskSubmitter.submit."""
    return get_submitter().submit(target_path, **kwargs)
