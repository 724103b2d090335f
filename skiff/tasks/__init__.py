"""
Deferred HTTP tasks with Google Cloud Tasks.

Views hand work off to a Cloud Tasks queue, which calls back into this
application later, retrying on failure according to the queue's config.

Usage:
    1. Create the queue: manage queues create
    2. Write the handler and wrap it in @cloud_task_handler
    3. Submit from anywhere with submit(...) or CloudTaskMixin.enqueue_task(...)

Example:
    # In skiff/core/views.py
    from skiff.tasks import cloud_task_handler, submit

    @cloud_task_handler
    def send_welcome_email(request):
        data = json.loads(request.body)
        send_mail(...)
        return HttpResponse("OK")

    # Submit from a request handler
    submit("/emails/welcome/", payload={"user_id": user.id}, schedule_offset=60)
"""

from skiff.tasks.config import QueueConfig
from skiff.tasks.mixins import CloudTaskMixin
from skiff.tasks.request import TaskRequest
from skiff.tasks.submitter import (
    TaskSubmissionError,
    TaskSubmitter,
    get_submitter,
    submit,
)
from skiff.tasks.views import TaskHeaders, cloud_task_handler

__all__ = [
    "CloudTaskMixin",
    "QueueConfig",
    "TaskHeaders",
    "TaskRequest",
    "TaskSubmissionError",
    "TaskSubmitter",
    "cloud_task_handler",
    "get_submitter",
    "submit",
]
