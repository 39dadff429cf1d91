"""Tests for the Inbox facade: ingest, send, delete, read paths."""

import pytest

from inboxsync.domain.inbox import OUTGOING_ID_PREFIX, Inbox, InvalidOutboundError

from .helpers import BASE_TS, cloud_payload, message_item, status_item


class TestIngest:
    def test_ingest_reports_counts(self, inbox, store):
        result = inbox.ingest(
            cloud_payload([message_item("m1")], [status_item("m1", "read")])
        )

        assert (result.inserted, result.updated, result.skipped) == (1, 1, 0)
        assert store.find_by_message_id("m1").status == "read"

    @pytest.mark.parametrize("payload", [None, [], {}, {"entry": 5}])
    def test_ingest_malformed_is_empty_result(self, inbox, payload):
        result = inbox.ingest(payload)

        assert result.to_dict() == {"inserted": 0, "updated": 0, "skipped": 0, "errors": []}

    def test_ingest_does_not_schedule_simulation(self, inbox, tasks_client):
        inbox.ingest(cloud_payload([message_item("m1")]))

        assert tasks_client.get_scheduled_tasks() == []


class TestSend:
    @pytest.mark.parametrize("body", ["", "   ", "\n\t"])
    def test_blank_body_rejected(self, inbox, store, tasks_client, body):
        with pytest.raises(InvalidOutboundError, match="Message body is required."):
            inbox.send("5511777777777", body)

        assert len(store) == 0
        assert tasks_client.get_scheduled_tasks() == []

    def test_blank_conversation_rejected(self, inbox, store):
        with pytest.raises(InvalidOutboundError, match="Conversation id is required."):
            inbox.send(" ", "hello")

        assert len(store) == 0

    def test_send_creates_outgoing_message(self, inbox, store):
        message = inbox.send("5511777777777", "Hello from the desk")

        assert message.id.startswith(OUTGOING_ID_PREFIX)
        assert message.from_addr == "me"
        assert message.to_addr == "5511777777777"
        assert message.conversation_id == "5511777777777"
        assert message.status == "sent"
        assert message.kind == "text"
        assert message.raw == {"source": "api"}
        assert store.find_by_message_id(message.id) == message

    def test_send_ids_are_unique(self, inbox):
        first = inbox.send("A", "one")
        second = inbox.send("A", "two")

        assert first.id != second.id

    def test_send_schedules_delivered_then_read(self, inbox, tasks_client):
        message = inbox.send("A", "hi")

        scheduled = tasks_client.get_scheduled_tasks()
        assert [(t["task_id"], t["delay_seconds"]) for t in scheduled] == [
            (f"simulate:{message.id}:delivered", 2.0),
            (f"simulate:{message.id}:read", 4.0),
        ]

    def test_simulated_progression_reaches_read(self, inbox, store, tasks_client):
        message = inbox.send("A", "hi")

        assert tasks_client.run_scheduled() == 2

        assert store.find_by_message_id(message.id).status == "read"

    def test_send_without_simulator(self, store):
        inbox = Inbox(store)

        message = inbox.send("A", "hi")

        assert store.find_by_message_id(message.id).status == "sent"


class TestDelete:
    def test_delete_existing(self, inbox, store):
        inbox.ingest(cloud_payload([message_item("m1")]))

        assert inbox.delete("m1") is True
        assert inbox.get_message("m1") is None

    def test_delete_missing(self, inbox):
        assert inbox.delete("nope") is False

    def test_delete_cancels_pending_simulation(self, inbox, store, tasks_client):
        message = inbox.send("A", "hi")

        inbox.delete(message.id)

        assert tasks_client.get_scheduled_tasks() == []
        assert tasks_client.run_scheduled() == 0
        assert store.find_by_message_id(message.id) is None


class TestReadPaths:
    def test_conversations_ordered_by_latest_message(self, inbox):
        inbox.ingest(
            cloud_payload(
                [
                    message_item("a1", sender="A", ts=BASE_TS + 1),
                    message_item("a2", sender="A", ts=BASE_TS + 3),
                    message_item("b1", sender="B", ts=BASE_TS + 5),
                ],
                contact_wa_id=None,
            )
        )

        summaries = inbox.list_conversations()

        assert [(s.conversation_id, s.last_message.id) for s in summaries] == [
            ("B", "b1"),
            ("A", "a2"),
        ]

    def test_conversations_empty(self, inbox):
        assert inbox.list_conversations() == []

    def test_messages_chronological(self, inbox):
        inbox.ingest(
            cloud_payload(
                [
                    message_item("late", sender="A", ts=BASE_TS + 9),
                    message_item("early", sender="A", ts=BASE_TS + 1),
                    message_item("other", sender="B", ts=BASE_TS + 5),
                ],
                contact_wa_id=None,
            )
        )

        assert [m.id for m in inbox.list_messages("A")] == ["early", "late"]
        assert inbox.list_messages("nobody") == []

    def test_sent_message_becomes_latest(self, inbox):
        inbox.ingest(cloud_payload([message_item("in-1", sender="A")], contact_wa_id=None))

        sent = inbox.send("A", "reply")

        summaries = inbox.list_conversations()
        assert summaries[0].last_message.id == sent.id
