from unittest.mock import MagicMock

import pytest

from skiff.tasks.config import QueueConfig
from skiff.tasks.submitter import TaskSubmitter, get_submitter


@pytest.fixture(autouse=True)
def reset_shared_submitter():
    """Each test gets a submitter built from its own settings."""
    get_submitter.cache_clear()
    yield
    get_submitter.cache_clear()


@pytest.fixture
def managed_config():
    """Config for an App Engine deployment on managed cloud."""
    return QueueConfig(
        project_id="test-project",
        location="europe-west1",
        queue_name="test-queue",
        managed=True,
    )


@pytest.fixture
def mock_client():
    """Mock CloudTasksClient whose create_task echoes a task name."""
    client = MagicMock()
    client.create_task.return_value.name = (
        "projects/test-project/locations/europe-west1/queues/test-queue/tasks/123"
    )
    return client


@pytest.fixture
def submitter(managed_config, mock_client):
    return TaskSubmitter(managed_config, client=mock_client)
