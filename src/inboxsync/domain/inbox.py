"""Inbox - the entry points callers (HTTP, CLI) use.

- ingest(payload): normalize + reconcile a webhook payload
- send(conversation_id, body): create an outgoing message
- delete(message_id): operator delete
- list_conversations / list_messages / get_message: read paths
"""

import uuid
from typing import Any

from inboxsync.domain.reconciler import ReconcileResult, Reconciler
from inboxsync.domain.status_simulator import StatusSimulator
from inboxsync.infra.locks import KeyedLock
from inboxsync.infra.store import MessageStore
from inboxsync.infra.time import utc_now
from inboxsync.observability.logging import get_logger
from inboxsync.observability.redaction import address_hint, id_prefix, safe_log_context
from inboxsync.whatsapp.models import (
    STATUS_SENT,
    ConversationSummary,
    Message,
)
from inboxsync.whatsapp.normalizer import normalize

logger = get_logger(__name__)

# Prefix for locally generated ids; provider ids never start with it.
OUTGOING_ID_PREFIX = "out-"
OUTGOING_SENDER = "me"


class InvalidOutboundError(ValueError):
    """Raised when an outbound send request is invalid."""

    pass


class Inbox:
    """Conversation inbox over a MessageStore.

    The store (and simulator) are owned by the caller, which is
    responsible for closing them.
    """

    def __init__(
        self,
        store: MessageStore,
        *,
        simulator: StatusSimulator | None = None,
        locks: KeyedLock | None = None,
    ) -> None:
        self._store = store
        self._simulator = simulator
        self._reconciler = Reconciler(store, locks)

    @property
    def store(self) -> MessageStore:
        return self._store

    def ingest(self, payload: Any) -> ReconcileResult:
        """Normalize and reconcile one webhook payload. Never raises on bad shape."""
        batch = normalize(payload)
        result = self._reconciler.reconcile(batch.messages, batch.statuses)

        logger.info(
            "webhook processed",
            extra={
                "extra_fields": safe_log_context(
                    messages=len(batch.messages),
                    statuses=len(batch.statuses),
                    inserted=result.inserted,
                    updated=result.updated,
                    skipped=result.skipped,
                    errors=len(result.errors),
                )
            },
        )
        return result

    def send(self, conversation_id: str, body: str) -> Message:
        """Create an outgoing text message and start simulated progression.

        Raises:
            InvalidOutboundError: If body is empty/whitespace or the
                conversation id is empty. Nothing is persisted.
        """
        if not isinstance(body, str) or not body.strip():
            raise InvalidOutboundError("Message body is required.")
        if not isinstance(conversation_id, str) or not conversation_id.strip():
            raise InvalidOutboundError("Conversation id is required.")

        now = utc_now()
        message = Message(
            id=f"{OUTGOING_ID_PREFIX}{uuid.uuid4()}",
            conversation_id=conversation_id,
            from_addr=OUTGOING_SENDER,
            to_addr=conversation_id,
            body=body,
            kind="text",
            occurred_at=now,
            created_at=now,
            updated_at=now,
            status=STATUS_SENT,
            raw={"source": "api"},
        )
        self._reconciler.insert_outgoing(message)

        if self._simulator is not None:
            self._simulator.schedule(message)

        logger.info(
            "outgoing message created",
            extra={
                "extra_fields": safe_log_context(
                    message_id_prefix=id_prefix(message.id),
                    conversation=address_hint(conversation_id),
                )
            },
        )
        return message

    def delete(self, message_id: str) -> bool:
        """Delete a message by id. Pending simulated transitions are cancelled."""
        if self._simulator is not None:
            self._simulator.cancel(message_id)
        deleted = self._store.delete_message(message_id)
        logger.info(
            "message delete",
            extra={
                "extra_fields": safe_log_context(
                    message_id_prefix=id_prefix(message_id),
                    deleted=deleted,
                )
            },
        )
        return deleted

    def get_message(self, message_id: str) -> Message | None:
        return self._store.find_by_message_id(message_id)

    def list_conversations(self) -> list[ConversationSummary]:
        """Latest message per conversation, most recent conversation first."""
        summaries = []
        for conversation_id in self._store.distinct_conversation_ids():
            latest = self._store.latest_message_for(conversation_id)
            # deleted between the two queries
            if latest is None:
                continue
            summaries.append(ConversationSummary(conversation_id, latest))

        summaries.sort(
            key=lambda s: (s.last_message.occurred_at, s.last_message.created_at),
            reverse=True,
        )
        return summaries

    def list_messages(self, conversation_id: str) -> list[Message]:
        """Messages of one conversation in chronological order."""
        return self._store.list_messages(conversation_id)
