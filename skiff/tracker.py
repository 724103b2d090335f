import json
import logging
from typing import Any, Optional

logger = logging.getLogger("skiff.tracker")


def track(event: str, n: int = 1, value: Optional[float] = None, **labels: Any) -> None:
    """
    Emit a structured log event.

    In production, StructuredLogHandler formats this as JSON for Cloud Logging.
    In development, logs as JSON string to console.

    Args:
        event: Event name (e.g. 'task_submitted')
        n: Count increment (default=1)
        value: Optional numeric value (e.g. schedule delay in seconds)
        **labels: Arbitrary key=value metadata

    Example:
        track("task_submitted", queue="default", target_path="/secret_url/")
    """
    payload = {
        "event": event,
        "n": n,
    }
    if value is not None:
        payload["value"] = value

    if labels:
        filtered_labels = {}
        for key, val in labels.items():
            try:
                json.dumps(val)
                filtered_labels[key] = val
            except (TypeError, ValueError):
                # Enums, paths and protobuf values still make useful labels
                logger.debug(
                    f"Stringifying non-serializable label '{key}' with type {type(val).__name__} for event '{event}'"
                )
                filtered_labels[key] = str(val)
        payload["labels"] = filtered_labels

    logger.info(json.dumps(payload))
