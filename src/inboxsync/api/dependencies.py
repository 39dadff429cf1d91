"""Request-scoped access to objects owned by the app (no module globals)."""

from fastapi import Request

from inboxsync.domain.inbox import Inbox


def get_inbox(request: Request) -> Inbox:
    """Inbox attached to the running app (set by create_app)."""
    return request.app.state.inbox
