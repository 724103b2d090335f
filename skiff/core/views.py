import json
import logging

from django.http import HttpResponse, HttpResponseBadRequest, JsonResponse
from django.urls import reverse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from skiff.tasks import CloudTaskMixin, cloud_task_handler

logger = logging.getLogger(__name__)


@method_decorator(csrf_exempt, name="dispatch")
class EnqueueView(CloudTaskMixin, View):
    """
    Hand work off to Cloud Tasks and respond immediately.

    The request body (JSON object) becomes the task payload. An optional
    ``delay`` query parameter schedules the task that many seconds ahead.

    This is a JSON endpoint for API clients, which carry no CSRF token.
    """

    def post(self, request):
        try:
            payload = json.loads(request.body or b"{}")
        except json.JSONDecodeError:
            return HttpResponseBadRequest("Invalid JSON")
        if not isinstance(payload, dict):
            return HttpResponseBadRequest("Payload must be a JSON object")

        delay = request.GET.get("delay")
        try:
            schedule_offset = float(delay) if delay else None
            result = self.enqueue_task(
                reverse("core:secret_url"),
                payload=payload,
                schedule_offset=schedule_offset,
            )
        except ValueError as e:
            return HttpResponseBadRequest(str(e))

        if isinstance(result, HttpResponse):
            # Ran inline (local development)
            return JsonResponse(
                {"ran_inline": True, "status_code": result.status_code}, status=202
            )
        return JsonResponse({"task_name": result}, status=202)


@cloud_task_handler
@require_POST
def secret_url(request):
    """Called back by Cloud Tasks with the payload submitted by EnqueueView."""
    try:
        payload = json.loads(request.body or b"{}")
    except json.JSONDecodeError:
        # Malformed bodies will never succeed; ack so Cloud Tasks stops retrying
        logger.error("Invalid JSON in task payload")
        return HttpResponse("Invalid JSON", status=200)

    logger.info(
        "Processing secret_url task",
        extra={
            "task_name": request.cloud_task.task_name,
            "retry_count": request.cloud_task.retry_count,
            "payload_keys": list(payload.keys()) if isinstance(payload, dict) else None,
        },
    )
    return HttpResponse("OK")
