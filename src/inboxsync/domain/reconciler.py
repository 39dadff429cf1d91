"""Reconciliation - merge normalized records into the message store.

Guarantees:
- One persisted Message per id, even under duplicate delivery
  (read-then-write per id runs under a per-key lock).
- Duplicate message envelopes refresh content (last write wins) but
  never move status backwards.
- Status updates apply only when rank(new) >= rank(current); a status
  for an unknown message is skipped, not an error.
- A store failure on one record is recorded and the loop continues.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Literal

from inboxsync.infra.locks import KeyedLock
from inboxsync.infra.store import MessageStore
from inboxsync.infra.time import utc_now
from inboxsync.observability.logging import get_logger
from inboxsync.observability.redaction import id_prefix, safe_log_context
from inboxsync.whatsapp.models import (
    STATUS_SENT,
    Message,
    NormalizedMessage,
    NormalizedStatus,
)

logger = get_logger(__name__)

RecordKind = Literal["message", "status"]


@dataclass(frozen=True)
class IngestError:
    """Non-fatal per-record failure."""

    kind: RecordKind
    message_id: str
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message_id": self.message_id, "error": self.error}


@dataclass
class ReconcileResult:
    """Aggregate counts for one reconcile call."""

    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[IngestError] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "inserted": self.inserted,
            "updated": self.updated,
            "skipped": self.skipped,
            "errors": [e.to_dict() for e in self.errors],
        }


class Reconciler:
    """Applies normalized records to a MessageStore."""

    def __init__(
        self,
        store: MessageStore,
        locks: KeyedLock | None = None,
        *,
        lock_timeout: float | None = 30.0,
    ) -> None:
        self._store = store
        self._locks = locks or KeyedLock()
        self._lock_timeout = lock_timeout

    def reconcile(
        self,
        messages: Iterable[NormalizedMessage],
        statuses: Iterable[NormalizedStatus],
    ) -> ReconcileResult:
        """Apply messages then statuses, each in input order."""
        result = ReconcileResult()

        for msg in messages:
            try:
                created = self.apply_message(msg)
            except Exception as e:
                self._record_failure(result, "message", msg.id, e)
                continue
            if created:
                result.inserted += 1
            else:
                result.updated += 1

        for st in statuses:
            try:
                applied = self.apply_status(st)
            except Exception as e:
                self._record_failure(result, "status", st.message_id, e)
                continue
            if applied:
                result.updated += 1
            else:
                result.skipped += 1

        return result

    def apply_message(self, msg: NormalizedMessage) -> bool:
        """Insert or merge one message. Returns True if newly created."""
        with self._locks.hold(msg.id, timeout=self._lock_timeout):
            now = utc_now()
            existing = self._store.find_by_message_id(msg.id)

            if existing is None:
                record = Message.from_normalized(msg, now=now, status=STATUS_SENT)
            else:
                # Duplicate delivery: content last-write-wins, status kept.
                # A defaulted timestamp never replaces the stored one.
                record = Message.from_normalized(
                    msg,
                    now=now,
                    status=existing.status,
                    created_at=existing.created_at,
                    occurred_at=existing.occurred_at if msg.occurred_at_defaulted else None,
                )

            created = self._store.upsert_message(
                record, keep_occurred_at=msg.occurred_at_defaulted
            )

        if not created:
            logger.debug(
                "duplicate message merged",
                extra={"extra_fields": safe_log_context(message_id_prefix=id_prefix(msg.id))},
            )
        return created

    def apply_status(self, st: NormalizedStatus) -> bool:
        """Apply one status transition. Returns True if applied."""
        with self._locks.hold(st.message_id, timeout=self._lock_timeout):
            existing = self._store.find_by_message_id(st.message_id)
            if existing is None:
                logger.info(
                    "status for unknown message skipped",
                    extra={
                        "extra_fields": safe_log_context(
                            message_id_prefix=id_prefix(st.message_id),
                            status=st.status,
                        )
                    },
                )
                return False

            applied = self._store.update_status(st.message_id, st.status)

        if not applied:
            logger.info(
                "stale status discarded",
                extra={
                    "extra_fields": safe_log_context(
                        message_id_prefix=id_prefix(st.message_id),
                        status=st.status,
                        current_status=existing.status,
                    )
                },
            )
        return applied

    def insert_outgoing(self, message: Message) -> bool:
        """Persist an already-canonical outgoing message."""
        with self._locks.hold(message.id, timeout=self._lock_timeout):
            return self._store.upsert_message(message)

    @staticmethod
    def _record_failure(
        result: ReconcileResult,
        kind: RecordKind,
        message_id: str,
        exc: Exception,
    ) -> None:
        logger.exception(
            "reconcile failed for record",
            extra={
                "extra_fields": safe_log_context(
                    kind=kind,
                    message_id_prefix=id_prefix(message_id),
                    error_type=type(exc).__name__,
                )
            },
        )
        result.errors.append(
            IngestError(kind=kind, message_id=message_id, error=f"{type(exc).__name__}: {exc}")
        )
