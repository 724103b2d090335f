"""
Create or inspect the Cloud Tasks queue.

Usage:
    manage queues create [QUEUE_ID] [--max-attempts N] [--min-backoff S]
                         [--max-backoff S] [--max-dispatches-per-second R]
                         [--max-concurrent-dispatches N]
    manage queues describe [QUEUE_ID]

QUEUE_ID defaults to CLOUD_TASKS_QUEUE. Requires GCP_PROJECT_ID and
CLOUD_TASKS_LOCATION.
"""

from datetime import timedelta

from django.core.exceptions import ImproperlyConfigured
from django.core.management.base import BaseCommand, CommandError
from google.api_core.exceptions import GoogleAPICallError, NotFound
from google.cloud import tasks_v2

from skiff.tasks.config import QueueConfig
from skiff.tasks.provisioning import QueueOptions, create_queue, describe_queue


def _format_duration(value) -> str:
    if isinstance(value, timedelta):
        return f"{value.total_seconds():g}s"
    return str(value)


class Command(BaseCommand):
    help = "Create or describe the Cloud Tasks queue"

    # Tests replace this with a mock client
    client_class = tasks_v2.CloudTasksClient

    def add_arguments(self, parser):
        subparsers = parser.add_subparsers(dest="action", required=True)

        create = subparsers.add_parser("create", help="Create a queue")
        create.add_argument("queue_id", nargs="?", help="Queue ID (default: configured queue)")
        create.add_argument("--max-attempts", type=int)
        create.add_argument("--min-backoff", type=int, help="Seconds")
        create.add_argument("--max-backoff", type=int, help="Seconds")
        create.add_argument("--max-dispatches-per-second", type=float)
        create.add_argument("--max-concurrent-dispatches", type=int)

        describe = subparsers.add_parser("describe", help="Show a queue's configuration")
        describe.add_argument("queue_id", nargs="?", help="Queue ID (default: configured queue)")

    def handle(self, *args, **options):
        try:
            config = QueueConfig.from_settings()
            config.validate()
        except ImproperlyConfigured as e:
            raise CommandError(str(e)) from e

        queue_id = options.get("queue_id") or config.queue_name
        client = self.client_class()

        if options["action"] == "create":
            self._create(client, config, queue_id, options)
        else:
            self._describe(client, config, queue_id)

    def _create(self, client, config, queue_id, options):
        try:
            queue_options = QueueOptions(
                max_attempts=options.get("max_attempts"),
                min_backoff=options.get("min_backoff"),
                max_backoff=options.get("max_backoff"),
                max_dispatches_per_second=options.get("max_dispatches_per_second"),
                max_concurrent_dispatches=options.get("max_concurrent_dispatches"),
            )
        except ValueError as e:
            raise CommandError(str(e)) from e

        try:
            queue, created = create_queue(client, config, queue_id, queue_options)
        except GoogleAPICallError as e:
            raise CommandError(f"Failed to create queue {queue_id}: {e}") from e

        if created:
            self.stdout.write(self.style.SUCCESS(f"Created queue {queue.name}"))
        else:
            self.stdout.write(
                self.style.WARNING(
                    f"Queue {config.path_for_queue(queue_id)} already exists"
                )
            )

    def _describe(self, client, config, queue_id):
        try:
            queue = describe_queue(client, config, queue_id)
        except NotFound as e:
            raise CommandError(
                f"Queue {queue_id} not found in {config.location}. "
                f"Create it with: manage queues create {queue_id}"
            ) from e
        except GoogleAPICallError as e:
            raise CommandError(f"Failed to describe queue {queue_id}: {e}") from e

        rate_limits = queue.rate_limits
        retry_config = queue.retry_config
        lines = [
            f"name: {queue.name}",
            f"state: {queue.state.name}",
            "rateLimits:",
            f"  maxDispatchesPerSecond: {rate_limits.max_dispatches_per_second:g}",
            f"  maxConcurrentDispatches: {rate_limits.max_concurrent_dispatches}",
            "retryConfig:",
            f"  maxAttempts: {retry_config.max_attempts}",
            f"  minBackoff: {_format_duration(retry_config.min_backoff)}",
            f"  maxBackoff: {_format_duration(retry_config.max_backoff)}",
        ]
        self.stdout.write("\n".join(lines))
