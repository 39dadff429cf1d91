"""WhatsApp message models.

Normalized records come out of the payload normalizer; `Message` is the
persisted entity owned by the store.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

STATUS_SENT = "sent"
STATUS_DELIVERED = "delivered"
STATUS_READ = "read"
STATUS_UNKNOWN = "unknown"

# Lifecycle rank. Anything not listed (including "unknown") ranks 0.
STATUS_RANK: dict[str, int] = {
    STATUS_SENT: 1,
    STATUS_DELIVERED: 2,
    STATUS_READ: 3,
}


def status_rank(status: str | None) -> int:
    """Return lifecycle rank for a status value (0 for unknown/unrecognized)."""
    return STATUS_RANK.get(status or "", 0)


@dataclass(frozen=True)
class NormalizedMessage:
    """A message observed in a webhook payload."""

    id: str
    conversation_id: str
    from_addr: str
    to_addr: str
    body: str
    kind: str
    occurred_at: datetime
    display_name: str = ""
    reply_to_id: str | None = None
    # True when the item had no usable timestamp and occurred_at is "now"
    occurred_at_defaulted: bool = False
    raw: dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class NormalizedStatus:
    """A status transition for a (possibly unknown) message."""

    message_id: str
    status: str
    conversation_id: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class NormalizedBatch:
    """Everything extracted from one payload, in source order."""

    messages: list[NormalizedMessage] = field(default_factory=list)
    statuses: list[NormalizedStatus] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.messages and not self.statuses


@dataclass(frozen=True)
class Message:
    """Persisted message.

    `id` is immutable once created. Status-only updates touch only
    `status` and `updated_at`.
    """

    id: str
    conversation_id: str
    from_addr: str
    to_addr: str
    body: str
    kind: str
    occurred_at: datetime
    created_at: datetime
    updated_at: datetime
    status: str = STATUS_SENT
    display_name: str = ""
    reply_to_id: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_normalized(
        cls,
        msg: NormalizedMessage,
        *,
        now: datetime,
        status: str = STATUS_SENT,
        created_at: datetime | None = None,
        occurred_at: datetime | None = None,
    ) -> "Message":
        """Build a persisted Message from a normalized one.

        `created_at` and `occurred_at` override the normalized values when
        merging into an existing record.
        """
        return cls(
            id=msg.id,
            conversation_id=msg.conversation_id,
            from_addr=msg.from_addr,
            to_addr=msg.to_addr,
            body=msg.body,
            kind=msg.kind,
            occurred_at=occurred_at or msg.occurred_at,
            created_at=created_at or now,
            updated_at=now,
            status=status,
            display_name=msg.display_name,
            reply_to_id=msg.reply_to_id,
            raw=msg.raw,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dict (API responses)."""
        return {
            "id": self.id,
            "conversation_id": self.conversation_id,
            "reply_to_id": self.reply_to_id,
            "from": self.from_addr,
            "to": self.to_addr,
            "display_name": self.display_name,
            "body": self.body,
            "kind": self.kind,
            "status": self.status,
            "occurred_at": self.occurred_at.isoformat(),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "raw": self.raw,
        }


@dataclass(frozen=True)
class ConversationSummary:
    """Latest message for one conversation (conversation list view)."""

    conversation_id: str
    last_message: Message

    def to_dict(self) -> dict[str, Any]:
        return {
            "conversation_id": self.conversation_id,
            "last_message": self.last_message.to_dict(),
        }
