"""Replay saved webhook payloads through the ingestion pipeline.

Usage:
    STORE_BACKEND=postgres DATABASE_URL=... inboxsync-replay ./sample_payloads

Every *.json file in the directory is ingested once, in file name order.
Files with a "payload_type" other than "whatsapp_webhook" are ignored.
Replaying the same directory twice is safe (ingestion is idempotent).
"""

from __future__ import annotations

import argparse
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import psycopg2

from inboxsync.api.factory import build_store
from inboxsync.config import Settings
from inboxsync.domain.inbox import Inbox
from inboxsync.observability.correlation import correlation_scope
from inboxsync.observability.logging import configure_logging, get_logger
from inboxsync.observability.redaction import safe_log_context

logger = get_logger(__name__)

WEBHOOK_PAYLOAD_TYPE = "whatsapp_webhook"


@dataclass
class ReplaySummary:
    files: int = 0
    ignored: int = 0
    failed: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    record_errors: int = 0


def _is_webhook_payload(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    payload_type = payload.get("payload_type")
    return payload_type is None or payload_type == WEBHOOK_PAYLOAD_TYPE


def replay_directory(inbox: Inbox, directory: Path) -> ReplaySummary:
    """Ingest every JSON file in `directory`.

    Raises:
        OSError: If the directory cannot be listed.
    """
    summary = ReplaySummary()
    files = sorted(p for p in directory.iterdir() if p.suffix == ".json" and p.is_file())

    for path in files:
        summary.files += 1
        with correlation_scope(f"replay:{path.name}"):
            try:
                payload = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                summary.failed += 1
                logger.error(
                    "could not read payload file",
                    extra={
                        "extra_fields": safe_log_context(
                            file=path.name, error_type=type(e).__name__
                        )
                    },
                )
                continue

            if not _is_webhook_payload(payload):
                summary.ignored += 1
                continue

            result = inbox.ingest(payload)
            summary.inserted += result.inserted
            summary.updated += result.updated
            summary.skipped += result.skipped
            summary.record_errors += len(result.errors)

            logger.info(
                "payload file replayed",
                extra={
                    "extra_fields": safe_log_context(
                        file=path.name,
                        inserted=result.inserted,
                        updated=result.updated,
                        skipped=result.skipped,
                        errors=len(result.errors),
                    )
                },
            )

    return summary


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Replay saved webhook payload files.")
    parser.add_argument(
        "directory",
        nargs="?",
        default="./sample_payloads",
        help="Directory with *.json payload files (default: ./sample_payloads)",
    )
    args = parser.parse_args(argv)

    try:
        settings = Settings.from_env()
    except RuntimeError as e:
        print(f"ERROR: {e}")
        return 1
    configure_logging(settings.log_level)

    try:
        store = build_store(settings)
    except psycopg2.Error as e:
        logger.error(
            "could not open message store",
            extra={"extra_fields": safe_log_context(error_type=type(e).__name__)},
        )
        print("ERROR: could not connect to the database")
        return 1

    try:
        inbox = Inbox(store)
        try:
            summary = replay_directory(inbox, Path(args.directory))
        except OSError as e:
            logger.error(
                "could not read payload directory",
                extra={"extra_fields": safe_log_context(error_type=type(e).__name__)},
            )
            return 1
    finally:
        store.close()

    print(
        f"files={summary.files} ignored={summary.ignored} failed={summary.failed} "
        f"inserted={summary.inserted} updated={summary.updated} "
        f"skipped={summary.skipped} record_errors={summary.record_errors}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
