"""Local status progression for outgoing messages (demo affordance).

After a send, the message moves to "delivered" and then "read" on
delayed tasks grouped by message id. Tasks are cancelled when the
message is deleted; if the message is gone when a task fires, the
update is a no-op. Nothing here is required for correctness.
"""

from inboxsync.infra.store import MessageStore
from inboxsync.observability.logging import get_logger
from inboxsync.observability.redaction import id_prefix, safe_log_context
from inboxsync.tasks.client import TasksClient
from inboxsync.whatsapp.models import STATUS_DELIVERED, STATUS_READ, Message

logger = get_logger(__name__)


class StatusSimulator:
    """Schedules delivered/read transitions for a sent message."""

    def __init__(
        self,
        store: MessageStore,
        tasks: TasksClient,
        *,
        delivered_after: float = 2.0,
        read_after: float = 4.0,
    ) -> None:
        self._store = store
        self._tasks = tasks
        self._steps = ((STATUS_DELIVERED, delivered_after), (STATUS_READ, read_after))

    def schedule(self, message: Message) -> int:
        """Enqueue the transitions. Returns number of tasks newly scheduled."""
        scheduled = 0
        for status, delay in self._steps:
            if self._tasks.enqueue(
                f"simulate:{message.id}:{status}",
                self._apply,
                {"message_id": message.id, "status": status},
                delay_seconds=delay,
                group=message.id,
            ):
                scheduled += 1
        return scheduled

    def cancel(self, message_id: str) -> int:
        """Cancel pending transitions for a message."""
        return self._tasks.cancel_group(message_id)

    def shutdown(self) -> None:
        """Cancel everything still pending."""
        cancelled = self._tasks.cancel_all()
        if cancelled:
            logger.info(
                "pending status simulations cancelled",
                extra={"extra_fields": safe_log_context(count=cancelled)},
            )

    def _apply(self, payload: dict) -> None:
        message_id = payload["message_id"]
        status = payload["status"]
        applied = self._store.update_status(message_id, status)
        logger.debug(
            "simulated status transition",
            extra={
                "extra_fields": safe_log_context(
                    message_id_prefix=id_prefix(message_id),
                    status=status,
                    applied=applied,
                )
            },
        )
