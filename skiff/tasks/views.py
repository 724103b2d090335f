"""
Inbound Cloud Tasks callbacks.

Views that Cloud Tasks calls back are wrapped in ``cloud_task_handler``,
which rejects requests that did not come from our queue and exposes the
task metadata Cloud Tasks sends as headers.
"""

import logging
from dataclasses import dataclass
from functools import wraps

from django.conf import settings
from django.http import HttpResponseForbidden
from django.views.decorators.csrf import csrf_exempt

from skiff.tasks.config import QueueConfig
from skiff.tasks.submitter import LOCAL_TASK_META_KEY, get_submitter
from skiff.tracker import track

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskHeaders:
    """Task metadata sent by Cloud Tasks with each attempt."""

    queue_name: str
    task_name: str
    retry_count: int = 0
    execution_count: int = 0
    eta: float | None = None
    local: bool = False


def _header(request, name: str) -> str:
    # HTTP targets use X-CloudTasks-*, App Engine targets use X-AppEngine-*
    return request.headers.get(f"X-CloudTasks-{name}") or request.headers.get(
        f"X-AppEngine-{name}", ""
    )


def _int_header(request, name: str) -> int:
    try:
        return int(_header(request, name) or 0)
    except ValueError:
        return 0


def get_task_headers(request) -> TaskHeaders:
    """Parse Cloud Tasks headers from a request."""
    eta = _header(request, "TaskETA")
    try:
        eta_value = float(eta) if eta else None
    except ValueError:
        eta_value = None
    return TaskHeaders(
        queue_name=_header(request, "QueueName"),
        task_name=_header(request, "TaskName"),
        retry_count=_int_header(request, "TaskRetryCount"),
        execution_count=_int_header(request, "TaskExecutionCount"),
        eta=eta_value,
        local=bool(request.META.get(LOCAL_TASK_META_KEY)),
    )


def _verify_oidc_token(request, config: QueueConfig) -> bool:
    """
    Verify the OIDC token Cloud Tasks attaches to HTTP-target tasks.

    Cloud Tasks sends an Authorization header with a JWT signed by Google
    for the configured service account, with the service URL as audience.

    Returns:
        True if the token is valid, False otherwise.
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        logger.warning("Missing or invalid Authorization header")
        return False

    token = auth_header[7:]

    try:
        from google.auth.transport import requests as google_requests
        from google.oauth2 import id_token

        claim = id_token.verify_oauth2_token(
            token,
            google_requests.Request(),
            audience=config.service_url,
        )
    except Exception as e:
        logger.warning(f"OIDC token verification failed: {e}")
        return False

    if claim.get("email") != config.service_account_email:
        logger.warning(
            f"Token email mismatch: expected {config.service_account_email}, got {claim.get('email')}"
        )
        return False

    return True


def is_cloud_task_request(request, config: QueueConfig | None = None) -> bool:
    """
    Return True if the request may run a task handler.

    - Inline local tasks are always accepted.
    - In development (DEBUG=True) everything is accepted.
    - HTTP targets with a service account must carry a valid OIDC token.
    - Otherwise the queue name header must be present. App Engine strips
      X-AppEngine-* headers from external requests, so for App Engine
      targets its presence proves the request came from Cloud Tasks.
    """
    if request.META.get(LOCAL_TASK_META_KEY):
        return True

    if settings.DEBUG:
        return True

    config = config or get_submitter().config

    if config.uses_http_target:
        if config.service_account_email:
            return _verify_oidc_token(request, config)
        return bool(request.headers.get("X-CloudTasks-QueueName"))

    return bool(request.headers.get("X-AppEngine-QueueName"))


def cloud_task_handler(view_func):
    """
    Decorator for views called back by Cloud Tasks.

    Rejects unauthenticated requests with 403 and sets ``request.cloud_task``
    to the parsed TaskHeaders. Returning a non-2xx response makes Cloud Tasks
    retry the task according to the queue's retry config.

    Example:
        @cloud_task_handler
        @require_POST
        def send_report(request):
            payload = json.loads(request.body)
            ...
            return HttpResponse("OK")
    """

    @csrf_exempt
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not is_cloud_task_request(request):
            track("task_callback_rejected", path=request.path)
            return HttpResponseForbidden("Unauthorized")

        request.cloud_task = get_task_headers(request)
        logger.info(
            "Received task callback",
            extra={
                "path": request.path,
                "queue": request.cloud_task.queue_name,
                "task_name": request.cloud_task.task_name,
                "retry_count": request.cloud_task.retry_count,
            },
        )
        return view_func(request, *args, **kwargs)

    return wrapper
