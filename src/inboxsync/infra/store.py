"""Message store contract and in-memory implementation.

The reconciler talks to persistence only through `MessageStore`.
`InMemoryMessageStore` backs local dev and tests; the Postgres
implementation lives in `infra.repositories.messages_repository`.
"""

import dataclasses
import threading
from typing import Protocol

from inboxsync.infra.time import utc_now
from inboxsync.whatsapp.models import Message, status_rank


class MessageStore(Protocol):
    """Persistence contract for messages keyed by provider message id."""

    def find_by_message_id(self, message_id: str) -> Message | None:
        """Point lookup by message id."""
        ...

    def upsert_message(self, message: Message, *, keep_occurred_at: bool = False) -> bool:
        """Insert or replace by id. Returns True if a new row was created.

        An existing row keeps its `created_at` and never regresses its
        status rank. With keep_occurred_at it also keeps its `occurred_at`.
        """
        ...

    def update_status(self, message_id: str, status: str) -> bool:
        """Set status if rank(status) >= rank(current). Returns True if applied."""
        ...

    def distinct_conversation_ids(self) -> list[str]:
        ...

    def latest_message_for(self, conversation_id: str) -> Message | None:
        """Message with the greatest occurred_at (then created_at)."""
        ...

    def list_messages(self, conversation_id: str) -> list[Message]:
        """Messages of a conversation, occurred_at ascending."""
        ...

    def delete_message(self, message_id: str) -> bool:
        """Delete by id. Returns True if a row was removed."""
        ...

    def close(self) -> None:
        """Release resources (connections, pools)."""
        ...


def _recency_key(message: Message) -> tuple:
    return (message.occurred_at, message.created_at, message.id)


class InMemoryMessageStore:
    """Thread-safe dict-backed store. Every method is atomic."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._messages: dict[str, Message] = {}

    def find_by_message_id(self, message_id: str) -> Message | None:
        with self._lock:
            return self._messages.get(message_id)

    def upsert_message(self, message: Message, *, keep_occurred_at: bool = False) -> bool:
        with self._lock:
            existing = self._messages.get(message.id)
            if existing is None:
                self._messages[message.id] = message
                return True

            status = message.status
            if status_rank(existing.status) > status_rank(status):
                status = existing.status
            self._messages[message.id] = dataclasses.replace(
                message,
                status=status,
                created_at=existing.created_at,
                occurred_at=existing.occurred_at if keep_occurred_at else message.occurred_at,
            )
            return False

    def update_status(self, message_id: str, status: str) -> bool:
        with self._lock:
            existing = self._messages.get(message_id)
            if existing is None:
                return False
            if status_rank(status) < status_rank(existing.status):
                return False
            self._messages[message_id] = dataclasses.replace(
                existing, status=status, updated_at=utc_now()
            )
            return True

    def distinct_conversation_ids(self) -> list[str]:
        with self._lock:
            return sorted({m.conversation_id for m in self._messages.values()})

    def latest_message_for(self, conversation_id: str) -> Message | None:
        with self._lock:
            candidates = [
                m for m in self._messages.values() if m.conversation_id == conversation_id
            ]
        if not candidates:
            return None
        return max(candidates, key=_recency_key)

    def list_messages(self, conversation_id: str) -> list[Message]:
        with self._lock:
            messages = [
                m for m in self._messages.values() if m.conversation_id == conversation_id
            ]
        return sorted(messages, key=_recency_key)

    def delete_message(self, message_id: str) -> bool:
        with self._lock:
            return self._messages.pop(message_id, None) is not None

    def close(self) -> None:
        with self._lock:
            self._messages.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)
