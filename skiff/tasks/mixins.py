from skiff.tasks.submitter import TaskSubmitter, get_submitter


class CloudTaskMixin:
    """
    Give class-based views an ``enqueue_task`` method.

    Example:
        class ReportView(CloudTaskMixin, View):
            def post(self, request):
                self.enqueue_task("/reports/build/", payload={"id": 1})
                return HttpResponse("Queued", status=202)

    Set ``task_submitter`` on the view class to use a specific submitter.
    """

    task_submitter: TaskSubmitter | None = None

    def get_task_submitter(self) -> TaskSubmitter:
        return self.task_submitter or get_submitter()

    def enqueue_task(
        self,
        target_path: str,
        queue_name: str | None = None,
        http_method: str = "POST",
        payload=None,
        schedule_offset: float | None = None,
        name: str | None = None,
        **kwargs,
    ):
        """Submit a task; see TaskSubmitter.submit for arguments and return value."""
        return self.get_task_submitter().submit(
            target_path,
            queue_name=queue_name,
            http_method=http_method,
            payload=payload,
            schedule_offset=schedule_offset,
            name=name,
            **kwargs,
        )
