"""Tasks client with idempotent, cancellable delayed enqueue.

Backends:
- thread (default): runs each task on a daemon threading.Timer
- inline: registers tasks without running them (for tests); call
  run_scheduled() to execute pending tasks in schedule order

Tasks can be grouped (e.g. by message id) and cancelled per group.
Pending tasks are in-process only and are lost on restart.
"""

import itertools
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Protocol

from inboxsync.observability.logging import get_logger
from inboxsync.observability.redaction import safe_log_context

logger = get_logger(__name__)

Backend = Literal["thread", "inline"]


class TaskHandler(Protocol):
    """Protocol for task handlers."""

    def __call__(self, payload: dict) -> None:
        """Execute task with given payload."""
        ...


@dataclass
class _PendingTask:
    task_id: str
    handler: Callable[[dict], None]
    payload: dict
    delay_seconds: float
    group: str | None
    seq: int
    timer: threading.Timer | None = field(default=None, repr=False)


class TasksClient:
    """Tasks client with idempotent enqueue by task_id."""

    def __init__(self, backend: Backend = "thread") -> None:
        if backend not in ("thread", "inline"):
            raise ValueError(f"Unknown tasks backend: {backend}")
        self._backend = backend
        self._lock = threading.Lock()
        self._seen_ids: set[str] = set()
        self._pending: dict[str, _PendingTask] = {}
        self._seq = itertools.count()

    @property
    def backend(self) -> Backend:
        return self._backend

    def enqueue(
        self,
        task_id: str,
        handler: Callable[[dict], None],
        payload: dict,
        *,
        delay_seconds: float = 0.0,
        group: str | None = None,
    ) -> bool:
        """Schedule handler(payload) after delay_seconds.

        Idempotent by task_id: a task_id seen before (even if it already
        ran or was cancelled) is a no-op.

        Returns:
            True if task was scheduled (new task_id).
            False if no-op (task_id already seen).
        """
        with self._lock:
            if task_id in self._seen_ids:
                return False
            self._seen_ids.add(task_id)

            task = _PendingTask(
                task_id=task_id,
                handler=handler,
                payload=payload,
                delay_seconds=max(delay_seconds, 0.0),
                group=group,
                seq=next(self._seq),
            )
            self._pending[task_id] = task

            if self._backend == "thread":
                timer = threading.Timer(task.delay_seconds, self._run, args=(task_id,))
                timer.daemon = True
                task.timer = timer
                timer.start()

        return True

    def _run(self, task_id: str) -> None:
        with self._lock:
            task = self._pending.pop(task_id, None)
        if task is None:
            # cancelled between timer firing and run
            return
        try:
            task.handler(task.payload)
        except Exception:
            logger.exception(
                "scheduled task failed",
                extra={"extra_fields": safe_log_context(task_id=task_id)},
            )

    def run_scheduled(self) -> int:
        """Run all pending tasks now, in schedule order. Returns count run."""
        with self._lock:
            ordered = sorted(
                self._pending.values(), key=lambda t: (t.delay_seconds, t.seq)
            )
        ran = 0
        for task in ordered:
            with self._lock:
                if self._pending.get(task.task_id) is not task:
                    continue
            if task.timer is not None:
                task.timer.cancel()
            self._run(task.task_id)
            ran += 1
        return ran

    def cancel(self, task_id: str) -> bool:
        """Cancel one pending task. Returns True if it was pending."""
        with self._lock:
            task = self._pending.pop(task_id, None)
        if task is None:
            return False
        if task.timer is not None:
            task.timer.cancel()
        return True

    def cancel_group(self, group: str) -> int:
        """Cancel all pending tasks in a group. Returns count cancelled."""
        with self._lock:
            ids = [t.task_id for t in self._pending.values() if t.group == group]
        return sum(1 for task_id in ids if self.cancel(task_id))

    def cancel_all(self) -> int:
        """Cancel every pending task (shutdown)."""
        with self._lock:
            ids = list(self._pending)
        return sum(1 for task_id in ids if self.cancel(task_id))

    def was_enqueued(self, task_id: str) -> bool:
        """Check if task_id was already seen."""
        with self._lock:
            return task_id in self._seen_ids

    def get_scheduled_tasks(self) -> list[dict[str, Any]]:
        """Pending tasks in schedule order (useful for testing)."""
        with self._lock:
            ordered = sorted(
                self._pending.values(), key=lambda t: (t.delay_seconds, t.seq)
            )
        return [
            {
                "task_id": t.task_id,
                "payload": t.payload,
                "delay_seconds": t.delay_seconds,
                "group": t.group,
            }
            for t in ordered
        ]

    def clear(self) -> None:
        """Cancel pending tasks and forget seen task_ids."""
        self.cancel_all()
        with self._lock:
            self._seen_ids.clear()
