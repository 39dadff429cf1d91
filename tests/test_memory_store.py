"""Tests for InMemoryMessageStore (MessageStore contract)."""

import dataclasses
from datetime import datetime, timedelta, timezone

from inboxsync.infra.store import InMemoryMessageStore
from inboxsync.whatsapp.models import Message

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _msg(message_id: str, conversation_id: str = "A", *, t: int = 0, **kwargs) -> Message:
    defaults = dict(
        id=message_id,
        conversation_id=conversation_id,
        from_addr=conversation_id,
        to_addr="",
        body=f"body {message_id}",
        kind="text",
        occurred_at=T0 + timedelta(seconds=t),
        created_at=T0,
        updated_at=T0,
    )
    defaults.update(kwargs)
    return Message(**defaults)


class TestUpsert:
    def test_reports_created_then_updated(self):
        store = InMemoryMessageStore()

        assert store.upsert_message(_msg("m1")) is True
        assert store.upsert_message(_msg("m1", body="again")) is False
        assert len(store) == 1
        assert store.find_by_message_id("m1").body == "again"

    def test_keeps_created_at_and_higher_status(self):
        store = InMemoryMessageStore()
        store.upsert_message(_msg("m1", status="read"))

        later = T0 + timedelta(hours=1)
        store.upsert_message(_msg("m1", status="sent", created_at=later, updated_at=later))

        msg = store.find_by_message_id("m1")
        assert msg.status == "read"
        assert msg.created_at == T0
        assert msg.updated_at == later

    def test_keep_occurred_at(self):
        store = InMemoryMessageStore()
        store.upsert_message(_msg("m1", t=0))

        store.upsert_message(_msg("m1", t=60), keep_occurred_at=True)
        assert store.find_by_message_id("m1").occurred_at == T0

        store.upsert_message(_msg("m1", t=60))
        assert store.find_by_message_id("m1").occurred_at == T0 + timedelta(seconds=60)

    def test_higher_status_in_upsert_applies(self):
        store = InMemoryMessageStore()
        store.upsert_message(_msg("m1"))

        store.upsert_message(_msg("m1", status="delivered"))

        assert store.find_by_message_id("m1").status == "delivered"


class TestUpdateStatus:
    def test_missing_message_not_applied(self):
        assert InMemoryMessageStore().update_status("nope", "read") is False

    def test_rank_rule(self):
        store = InMemoryMessageStore()
        store.upsert_message(_msg("m1"))

        assert store.update_status("m1", "delivered") is True
        assert store.update_status("m1", "delivered") is True
        assert store.update_status("m1", "sent") is False
        assert store.update_status("m1", "unknown") is False
        assert store.update_status("m1", "read") is True
        assert store.find_by_message_id("m1").status == "read"

    def test_only_status_changes(self):
        store = InMemoryMessageStore()
        original = _msg("m1")
        store.upsert_message(original)

        store.update_status("m1", "read")

        updated = store.find_by_message_id("m1")
        assert dataclasses.replace(updated, status="sent", updated_at=T0) == original
        assert updated.updated_at > T0


class TestQueries:
    def test_distinct_conversation_ids(self):
        store = InMemoryMessageStore()
        for mid, conv in [("1", "B"), ("2", "A"), ("3", "B")]:
            store.upsert_message(_msg(mid, conv))

        assert store.distinct_conversation_ids() == ["A", "B"]

    def test_latest_message_for(self):
        store = InMemoryMessageStore()
        store.upsert_message(_msg("old", t=1))
        store.upsert_message(_msg("new", t=3))
        store.upsert_message(_msg("mid", t=2))

        assert store.latest_message_for("A").id == "new"
        assert store.latest_message_for("nobody") is None

    def test_latest_tie_broken_by_created_at(self):
        store = InMemoryMessageStore()
        store.upsert_message(_msg("first", t=5, created_at=T0))
        store.upsert_message(_msg("second", t=5, created_at=T0 + timedelta(seconds=1)))

        assert store.latest_message_for("A").id == "second"

    def test_list_messages_ascending(self):
        store = InMemoryMessageStore()
        store.upsert_message(_msg("c", t=30))
        store.upsert_message(_msg("a", t=10))
        store.upsert_message(_msg("b", t=20))
        store.upsert_message(_msg("other", "B", t=0))

        assert [m.id for m in store.list_messages("A")] == ["a", "b", "c"]


class TestDelete:
    def test_delete(self):
        store = InMemoryMessageStore()
        store.upsert_message(_msg("m1"))

        assert store.delete_message("m1") is True
        assert store.delete_message("m1") is False
        assert store.find_by_message_id("m1") is None
