"""
Tests for TaskRequest: payload encoding, schedule times and Task building.
"""

import json
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
from google.cloud import tasks_v2

from skiff.tasks.config import QueueConfig
from skiff.tasks.request import (
    MAX_SCHEDULE_OFFSET,
    TaskRequest,
    encode_payload,
    parse_http_method,
    schedule_timestamp,
)

NOW = datetime(2026, 3, 14, 15, 9, 26, 535897, tzinfo=timezone.utc)


def _reconstruct(timestamp) -> datetime:
    return datetime.fromtimestamp(timestamp.seconds, tz=timezone.utc) + timedelta(
        microseconds=timestamp.nanos // 1000
    )


# =============================================================================
# Payload Encoding Tests
# =============================================================================


@pytest.mark.parametrize(
    "payload",
    [
        {"a": 1},
        {},
        {"nested": {"list": [1, 2.5, None, True]}, "text": "héllo ✓"},
    ],
)
def test_mapping_payload_round_trips(payload):
    """Mapping payloads decode back to an equal mapping."""
    body, content_type = encode_payload(payload)

    assert isinstance(body, bytes)
    assert json.loads(body.decode("utf-8")) == payload
    assert content_type == "application/json"


def test_string_payload_is_utf8_encoded():
    """String payloads are sent as UTF-8 text."""
    body, content_type = encode_payload("héllo")
    assert body == "héllo".encode("utf-8")
    assert content_type.startswith("text/plain")


def test_bytes_payload_is_unchanged():
    """Bytes payloads are sent as-is."""
    body, content_type = encode_payload(b"\x00\x01")
    assert body == b"\x00\x01"
    assert content_type == "application/octet-stream"


def test_no_payload_has_no_body():
    assert encode_payload(None) == (None, None)


def test_non_serializable_payload_raises():
    """Non-JSON-serializable mappings raise ValueError chained from the JSON error."""
    with pytest.raises(ValueError, match="not JSON-serializable") as exc_info:
        encode_payload({"when": object()})
    assert isinstance(exc_info.value.__cause__, TypeError)


def test_unsupported_payload_type_raises():
    with pytest.raises(ValueError, match="Unsupported payload type"):
        encode_payload(42)


# =============================================================================
# Schedule Timestamp Tests
# =============================================================================


@pytest.mark.parametrize("offset", [0, 5, 0.25, 59.999999, 86400 * 3 + 0.5])
def test_schedule_timestamp_reconstructs_now_plus_offset(offset):
    """(seconds, nanos) reconstructs to now + offset at microsecond precision."""
    timestamp = schedule_timestamp(offset, now=NOW)

    expected = NOW + timedelta(seconds=offset)
    assert _reconstruct(timestamp) == expected
    assert 0 <= timestamp.nanos < 1_000_000_000


def test_schedule_timestamp_splits_seconds_and_nanos():
    """The sub-second part ends up in nanos."""
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    timestamp = schedule_timestamp(5.5, now=now)

    assert timestamp.seconds == int(now.timestamp()) + 5
    assert timestamp.nanos == 500_000_000


def test_schedule_timestamp_treats_naive_now_as_utc():
    naive = datetime(2026, 1, 1)
    timestamp = schedule_timestamp(1, now=naive)
    assert timestamp.seconds == int(naive.replace(tzinfo=timezone.utc).timestamp()) + 1


def test_schedule_timestamp_defaults_to_current_time():
    before = datetime.now(timezone.utc)
    timestamp = schedule_timestamp(10)
    after = datetime.now(timezone.utc)

    scheduled = _reconstruct(timestamp)
    assert before + timedelta(seconds=10) <= scheduled <= after + timedelta(seconds=10)


def test_schedule_timestamp_rejects_negative_offset():
    with pytest.raises(ValueError, match="non-negative"):
        schedule_timestamp(-1, now=NOW)


@pytest.mark.parametrize(
    "offset,message",
    [
        (float("inf"), "finite"),
        (float("nan"), "finite"),
        (1e12, "30 days"),
        (MAX_SCHEDULE_OFFSET + 1, "30 days"),
    ],
)
def test_schedule_timestamp_rejects_unschedulable_offsets(offset, message):
    with pytest.raises(ValueError, match=message):
        schedule_timestamp(offset, now=NOW)


def test_schedule_timestamp_accepts_thirty_days():
    timestamp = schedule_timestamp(MAX_SCHEDULE_OFFSET, now=NOW)
    assert _reconstruct(timestamp) == NOW + timedelta(days=30)


# =============================================================================
# HTTP Method Tests
# =============================================================================


@pytest.mark.parametrize("method", ["POST", "post", "Get", "DELETE", "patch"])
def test_parse_http_method_accepts_names(method):
    assert parse_http_method(method) == tasks_v2.HttpMethod[method.upper()]


def test_parse_http_method_accepts_enum():
    assert parse_http_method(tasks_v2.HttpMethod.PUT) == tasks_v2.HttpMethod.PUT


@pytest.mark.parametrize("method", ["FETCH", "", "HTTP_METHOD_UNSPECIFIED"])
def test_parse_http_method_rejects_unknown(method):
    with pytest.raises(ValueError, match="Unsupported HTTP method"):
        parse_http_method(method)


# =============================================================================
# TaskRequest Validation Tests
# =============================================================================


def test_task_request_defaults_to_post():
    assert TaskRequest("/x/").http_method == tasks_v2.HttpMethod.POST


@pytest.mark.parametrize("path", ["", "x/", "https://example.com/x/"])
def test_task_request_requires_relative_path(path):
    with pytest.raises(ValueError, match="relative URL"):
        TaskRequest(path)


def test_task_request_rejects_negative_offset():
    with pytest.raises(ValueError, match="non-negative"):
        TaskRequest("/x/", schedule_offset=-0.1)


@pytest.mark.parametrize("offset", [float("inf"), float("-inf"), float("nan"), 1e12])
def test_task_request_rejects_unschedulable_offsets(offset):
    """Offsets that cannot become a schedule time fail when the request is built."""
    with pytest.raises(ValueError, match="schedule_offset"):
        TaskRequest("/x/", schedule_offset=offset)


def test_task_request_encodes_payload_eagerly():
    """Serialization errors surface when the request is built."""
    with pytest.raises(ValueError):
        TaskRequest("/x/", payload={"bad": {1, 2}})


def test_task_request_headers_override_content_type():
    request = TaskRequest(
        "/x/", payload={"a": 1}, headers={"Content-Type": "application/vnd.x+json"}
    )
    assert request.request_headers() == {"Content-Type": "application/vnd.x+json"}


# =============================================================================
# Task Building Tests
# =============================================================================


@pytest.fixture
def app_engine_config():
    return QueueConfig(
        project_id="test-project",
        location="europe-west1",
        queue_name="test-queue",
        managed=True,
    )


@pytest.fixture
def http_config():
    return QueueConfig(
        project_id="test-project",
        location="europe-west1",
        queue_name="test-queue",
        service_url="https://skiff-abc123.a.run.app/",
        service_account_email="tasks@test-project.iam.gserviceaccount.com",
        managed=True,
    )


def test_to_task_app_engine_target(app_engine_config):
    """Without a service URL, tasks target App Engine by relative URI."""
    task = TaskRequest("/secret_url/", payload={"a": 1}).to_task(app_engine_config)

    http_request = task["app_engine_http_request"]
    assert http_request["relative_uri"] == "/secret_url/"
    assert http_request["http_method"] == tasks_v2.HttpMethod.POST
    assert http_request["headers"] == {"Content-Type": "application/json"}
    assert json.loads(http_request["body"]) == {"a": 1}
    assert "http_request" not in task
    assert "schedule_time" not in task
    assert "name" not in task


def test_to_task_app_engine_routing(app_engine_config):
    config = replace(app_engine_config, app_engine_service="worker")
    task = TaskRequest("/x/").to_task(config)
    assert task["app_engine_http_request"]["app_engine_routing"] == {
        "service": "worker"
    }


def test_to_task_http_target_with_oidc(http_config):
    """With a service URL, tasks carry the full URL and an OIDC token."""
    task = TaskRequest("/secret_url/", http_method="put").to_task(http_config)

    http_request = task["http_request"]
    assert http_request["url"] == "https://skiff-abc123.a.run.app/secret_url/"
    assert http_request["http_method"] == tasks_v2.HttpMethod.PUT
    assert http_request["oidc_token"] == {
        "service_account_email": "tasks@test-project.iam.gserviceaccount.com",
        "audience": "https://skiff-abc123.a.run.app/",
    }
    assert "body" not in http_request


def test_to_task_schedule_time(app_engine_config):
    task = TaskRequest("/x/", schedule_offset=5).to_task(app_engine_config, now=NOW)
    assert _reconstruct(task["schedule_time"]) == NOW + timedelta(seconds=5)


def test_to_task_name_uses_full_task_path(app_engine_config):
    """Task IDs are expanded to full task names for deduplication."""
    task = TaskRequest("/x/", name="report-42").to_task(app_engine_config)
    assert task["name"] == (
        "projects/test-project/locations/europe-west1/queues/test-queue/tasks/report-42"
    )


def test_to_task_name_uses_request_queue(app_engine_config):
    task = TaskRequest("/x/", queue_name="other", name="t1").to_task(app_engine_config)
    assert task["name"].endswith("/queues/other/tasks/t1")
