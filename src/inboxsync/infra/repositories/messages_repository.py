"""Messages repository - Postgres implementation of MessageStore.

Uses raw SQL with psycopg2 (no ORM).

Every method runs in its own short transaction on a pooled connection.
The write paths are single conditional statements, so they stay
correct when several processes ingest the same message concurrently:

- upsert: INSERT ... ON CONFLICT DO UPDATE, status only moves forward,
  created-vs-updated reported via `xmax = 0`.
- update_status: UPDATE ... WHERE rank(new) >= rank(current).
"""

from datetime import datetime
from typing import Any

from psycopg2.extras import Json

from inboxsync.infra.db import (
    BoundedConnectionPool,
    create_pool,
    fetchall,
    fetchone,
    pooled_conn,
    txn,
)
from inboxsync.infra.time import utc_now
from inboxsync.whatsapp.models import STATUS_RANK, Message, status_rank


def _rank_sql(column: str) -> str:
    """SQL CASE expression mirroring models.STATUS_RANK."""
    whens = " ".join(
        f"WHEN '{status}' THEN {rank}" for status, rank in STATUS_RANK.items()
    )
    return f"(CASE {column} {whens} ELSE 0 END)"


_COLUMNS = (
    "message_id, reply_to_id, conversation_id, from_addr, to_addr, "
    "display_name, body, kind, status, occurred_at, raw, created_at, updated_at"
)

_UPSERT_SQL = f"""
    INSERT INTO messages ({_COLUMNS})
    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
    ON CONFLICT (message_id) DO UPDATE SET
        reply_to_id = EXCLUDED.reply_to_id,
        conversation_id = EXCLUDED.conversation_id,
        from_addr = EXCLUDED.from_addr,
        to_addr = EXCLUDED.to_addr,
        display_name = EXCLUDED.display_name,
        body = EXCLUDED.body,
        kind = EXCLUDED.kind,
        occurred_at = CASE WHEN %s THEN messages.occurred_at ELSE EXCLUDED.occurred_at END,
        raw = EXCLUDED.raw,
        updated_at = EXCLUDED.updated_at,
        status = CASE
            WHEN {_rank_sql("EXCLUDED.status")} >= {_rank_sql("messages.status")}
            THEN EXCLUDED.status
            ELSE messages.status
        END
    RETURNING (xmax = 0) AS inserted
"""

_UPDATE_STATUS_SQL = f"""
    UPDATE messages
    SET status = %s, updated_at = %s
    WHERE message_id = %s AND %s >= {_rank_sql("status")}
"""


def _row_to_message(row: tuple[Any, ...]) -> Message:
    return Message(
        id=row[0],
        reply_to_id=row[1],
        conversation_id=row[2],
        from_addr=row[3] or "",
        to_addr=row[4] or "",
        display_name=row[5] or "",
        body=row[6] or "",
        kind=row[7],
        status=row[8],
        occurred_at=row[9],
        raw=row[10] or {},
        created_at=row[11],
        updated_at=row[12],
    )


def _message_params(message: Message) -> tuple[Any, ...]:
    return (
        message.id,
        message.reply_to_id,
        message.conversation_id,
        message.from_addr,
        message.to_addr,
        message.display_name,
        message.body,
        message.kind,
        message.status,
        message.occurred_at,
        Json(message.raw),
        message.created_at,
        message.updated_at,
    )


class PostgresMessageStore:
    """MessageStore backed by the `messages` table."""

    def __init__(self, pool: BoundedConnectionPool) -> None:
        self._pool = pool

    @classmethod
    def from_dsn(
        cls,
        dsn: str | None = None,
        *,
        maxconn: int = 10,
        statement_timeout_ms: int | None = None,
    ) -> "PostgresMessageStore":
        """Build a store with its own pool (closed by close())."""
        return cls(
            create_pool(
                dsn,
                maxconn=maxconn,
                statement_timeout_ms=statement_timeout_ms,
            )
        )

    def find_by_message_id(self, message_id: str) -> Message | None:
        with pooled_conn(self._pool) as conn, txn(conn) as cur:
            row = fetchone(
                cur,
                f"SELECT {_COLUMNS} FROM messages WHERE message_id = %s",
                (message_id,),
            )
        return _row_to_message(row) if row else None

    def upsert_message(self, message: Message, *, keep_occurred_at: bool = False) -> bool:
        params = _message_params(message) + (keep_occurred_at,)
        with pooled_conn(self._pool) as conn, txn(conn) as cur:
            row = fetchone(cur, _UPSERT_SQL, params)
        return bool(row and row[0])

    def update_status(self, message_id: str, status: str) -> bool:
        now: datetime = utc_now()
        with pooled_conn(self._pool) as conn, txn(conn) as cur:
            cur.execute(
                _UPDATE_STATUS_SQL,
                (status, now, message_id, status_rank(status)),
            )
            return cur.rowcount > 0

    def distinct_conversation_ids(self) -> list[str]:
        with pooled_conn(self._pool) as conn, txn(conn) as cur:
            rows = fetchall(
                cur,
                "SELECT DISTINCT conversation_id FROM messages ORDER BY conversation_id",
            )
        return [row[0] for row in rows]

    def latest_message_for(self, conversation_id: str) -> Message | None:
        with pooled_conn(self._pool) as conn, txn(conn) as cur:
            row = fetchone(
                cur,
                f"""
                SELECT {_COLUMNS} FROM messages
                WHERE conversation_id = %s
                ORDER BY occurred_at DESC, created_at DESC, message_id DESC
                LIMIT 1
                """,
                (conversation_id,),
            )
        return _row_to_message(row) if row else None

    def list_messages(self, conversation_id: str) -> list[Message]:
        with pooled_conn(self._pool) as conn, txn(conn) as cur:
            rows = fetchall(
                cur,
                f"""
                SELECT {_COLUMNS} FROM messages
                WHERE conversation_id = %s
                ORDER BY occurred_at ASC, created_at ASC, message_id ASC
                """,
                (conversation_id,),
            )
        return [_row_to_message(row) for row in rows]

    def delete_message(self, message_id: str) -> bool:
        with pooled_conn(self._pool) as conn, txn(conn) as cur:
            cur.execute("DELETE FROM messages WHERE message_id = %s", (message_id,))
            return cur.rowcount > 0

    def close(self) -> None:
        self._pool.closeall()
