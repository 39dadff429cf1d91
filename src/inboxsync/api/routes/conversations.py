"""Conversation read endpoints (inbox list + history)."""

from fastapi import APIRouter, Depends, Path

from inboxsync.api.dependencies import get_inbox
from inboxsync.domain.inbox import Inbox

router = APIRouter(prefix="/conversations", tags=["conversations"])


@router.get("")
def list_conversations(inbox: Inbox = Depends(get_inbox)) -> list[dict]:
    """Latest message of each conversation, most recent first."""
    return [summary.to_dict() for summary in inbox.list_conversations()]


@router.get("/{conversation_id}/messages")
def list_conversation_messages(
    conversation_id: str = Path(..., description="Remote party address"),
    inbox: Inbox = Depends(get_inbox),
) -> list[dict]:
    """Messages of a conversation in chronological order."""
    return [message.to_dict() for message in inbox.list_messages(conversation_id)]
