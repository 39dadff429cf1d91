"""Outbound send and operator delete endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, Path
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from inboxsync.api.dependencies import get_inbox
from inboxsync.domain.inbox import Inbox, InvalidOutboundError
from inboxsync.observability.correlation import get_correlation_id
from inboxsync.observability.logging import get_logger
from inboxsync.observability.redaction import safe_log_context

router = APIRouter(tags=["messages"])

logger = get_logger(__name__)


class SendMessageRequest(BaseModel):
    """Request body for sending a message."""

    # Type-checked by Inbox.send (400, not 422)
    body: Any = None


@router.post("/send/{conversation_id}")
def send_message(
    conversation_id: str = Path(..., description="Remote party address"),
    payload: SendMessageRequest | None = None,
    inbox: Inbox = Depends(get_inbox),
) -> JSONResponse:
    """Create an outgoing message (status progression is simulated locally)."""
    body = payload.body if payload is not None else None
    try:
        message = inbox.send(conversation_id, body or "")
    except InvalidOutboundError as e:
        logger.info(
            "send rejected",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=get_correlation_id(),
                    reason=str(e),
                )
            },
        )
        return JSONResponse(status_code=400, content={"ok": False, "error": str(e)})

    return JSONResponse(status_code=200, content={"ok": True, "message": message.to_dict()})


@router.delete("/messages/{message_id}")
def delete_message(
    message_id: str = Path(..., description="Message id"),
    inbox: Inbox = Depends(get_inbox),
) -> JSONResponse:
    """Delete a message by id."""
    if not inbox.delete(message_id):
        return JSONResponse(status_code=404, content={"ok": False, "error": "Message not found."})
    return JSONResponse(status_code=200, content={"ok": True, "message": "Message deleted"})
