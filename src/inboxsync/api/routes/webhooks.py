"""Webhook ingestion route.

Ingestion problems never fail the request: malformed envelopes fall back
to defaults, unknown references are skipped, and store failures are
reported per record in "errors". Only a body that is not JSON at all is
rejected.
"""

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from inboxsync.api.dependencies import get_inbox
from inboxsync.domain.inbox import Inbox
from inboxsync.observability.correlation import get_correlation_id
from inboxsync.observability.logging import get_logger
from inboxsync.observability.redaction import safe_log_context

router = APIRouter(tags=["webhooks"])

logger = get_logger(__name__)


@router.post("/webhook")
async def receive_webhook(
    request: Request,
    inbox: Inbox = Depends(get_inbox),
) -> JSONResponse:
    """Receive a provider webhook and reconcile it into the inbox.

    Returns:
        200 with {"ok": true, inserted, updated, skipped, errors}.
        400 if the body is not valid JSON.
    """
    correlation_id = get_correlation_id()

    try:
        payload: Any = await request.json()
    except ValueError:
        logger.warning(
            "invalid json body",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return JSONResponse(
            status_code=400,
            content={"ok": False, "error": "Request body must be valid JSON."},
        )

    # Store calls block; keep them off the event loop
    result = await run_in_threadpool(inbox.ingest, payload)

    if result.errors:
        logger.warning(
            "webhook processed with record errors",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=correlation_id,
                    errors=len(result.errors),
                )
            },
        )

    return JSONResponse(status_code=200, content={"ok": True, **result.to_dict()})
