"""Shared pytest fixtures for inboxsync tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from inboxsync.api.factory import create_app  # noqa: E402
from inboxsync.config import Settings  # noqa: E402
from inboxsync.domain.inbox import Inbox  # noqa: E402
from inboxsync.domain.status_simulator import StatusSimulator  # noqa: E402
from inboxsync.infra.store import InMemoryMessageStore  # noqa: E402
from inboxsync.tasks.client import TasksClient  # noqa: E402


@pytest.fixture
def store():
    """Fresh in-memory message store."""
    s = InMemoryMessageStore()
    yield s
    s.close()


@pytest.fixture
def tasks_client():
    """Inline tasks client: registers tasks, runs them only on run_scheduled()."""
    client = TasksClient("inline")
    yield client
    client.clear()


@pytest.fixture
def simulator(store, tasks_client):
    return StatusSimulator(store, tasks_client, delivered_after=2.0, read_after=4.0)


@pytest.fixture
def inbox(store, simulator):
    return Inbox(store, simulator=simulator)


@pytest.fixture
def client(inbox):
    """Test client over an app wired to the in-memory inbox."""
    app = create_app(settings=Settings(), inbox=inbox)
    return TestClient(app)
