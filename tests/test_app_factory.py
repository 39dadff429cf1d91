"""Tests for app factory wiring and middleware."""

from unittest.mock import patch

from fastapi.testclient import TestClient

from inboxsync.api.factory import build_inbox, build_store, create_app
from inboxsync.config import Settings
from inboxsync.infra.store import InMemoryMessageStore

from .helpers import cloud_payload, message_item


class TestLifespan:
    """App built without an injected inbox wires its own on startup."""

    def test_builds_memory_inbox_on_startup(self):
        app = create_app(settings=Settings(tasks_backend="inline"))

        with TestClient(app) as client:
            response = client.post("/webhook", json=cloud_payload([message_item("m1")]))
            assert response.json()["inserted"] == 1
            assert isinstance(app.state.inbox.store, InMemoryMessageStore)
            assert len(client.get("/conversations").json()) == 1

    def test_shutdown_closes_store_and_cancels_simulation(self):
        app = create_app(settings=Settings(tasks_backend="inline"))

        with TestClient(app) as client:
            client.post("/send/A", json={"body": "hi"})
            store = app.state.inbox.store
            assert len(store) == 1

        assert len(store) == 0

    def test_simulation_disabled(self):
        inbox, simulator = build_inbox(Settings(simulate_status=False), InMemoryMessageStore())

        assert simulator is None
        assert inbox.send("A", "hi").status == "sent"


class TestBuildStore:
    def test_memory_default(self):
        assert isinstance(build_store(Settings()), InMemoryMessageStore)

    def test_postgres_backend(self):
        settings = Settings(store_backend="postgres", database_url="dbname=inbox", db_pool_max=3)

        with patch(
            "inboxsync.infra.repositories.messages_repository.PostgresMessageStore.from_dsn"
        ) as from_dsn:
            build_store(settings)

        from_dsn.assert_called_once_with("dbname=inbox", maxconn=3, statement_timeout_ms=5000)


class TestCors:
    def test_allowed_origin_header(self, inbox):
        app = create_app(settings=Settings(allowed_origin="http://localhost:3000"), inbox=inbox)
        client = TestClient(app)

        response = client.get("/health", headers={"Origin": "http://localhost:3000"})

        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"


class TestCorrelationId:
    """Tests for correlation ID middleware."""

    def test_generates_correlation_id(self, client):
        response = client.get("/health")
        assert "X-Correlation-ID" in response.headers
        # UUID format check
        cid = response.headers["X-Correlation-ID"]
        assert len(cid) == 36

    def test_preserves_incoming_correlation_id(self, client):
        response = client.get("/health", headers={"X-Correlation-ID": "test-123"})
        assert response.headers["X-Correlation-ID"] == "test-123"
