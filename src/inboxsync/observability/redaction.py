"""Redaction helpers for safe logging. All external data must pass through these.

Message text is never logged. Addresses (WhatsApp ids are phone
numbers) are reduced to a short suffix, and provider message ids to a
prefix.
"""

import re
from typing import Any

# Patterns that should never appear in logs
_PHONE_PATTERN = re.compile(r"\+?\d[\d\s\-()]{8,}\d")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

_REDACTED = "[REDACTED]"
_OMITTED = "[OMITTED]"

# Context keys whose values are message content
_CONTENT_KEYS = frozenset({"body", "text", "caption", "display_name"})

ID_PREFIX_LEN = 12
ADDRESS_SUFFIX_LEN = 4


def redact_string(value: str) -> str:
    """Redact phone numbers and e-mails from a string."""
    result = _PHONE_PATTERN.sub(_REDACTED, value)
    return _EMAIL_PATTERN.sub(_REDACTED, result)


def id_prefix(message_id: str | None, length: int = ID_PREFIX_LEN) -> str:
    """Short, log-safe prefix of a provider message id."""
    if not message_id:
        return ""
    return message_id[:length]


def address_hint(address: str | None) -> str:
    """Last digits of a conversation address, e.g. '***8888'."""
    if not address:
        return ""
    if len(address) <= ADDRESS_SUFFIX_LEN:
        return "***"
    return "***" + address[-ADDRESS_SUFFIX_LEN:]


def redact_value(value: Any) -> str:
    """Redact any value for safe logging. Returns string representation."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        # Payload fragments: structure only
        return f"dict(keys={list(value.keys())})"
    if isinstance(value, (list, tuple)):
        return f"list(len={len(value)})"
    return f"<{type(value).__name__}>"


def safe_log_context(**kwargs: Any) -> dict[str, str]:
    """Build a context dict safe for logging.

    Content keys (body, text, ...) are omitted outright; every other
    value is redacted.
    """
    return {
        k: _OMITTED if k in _CONTENT_KEYS else redact_value(v)
        for k, v in kwargs.items()
    }
