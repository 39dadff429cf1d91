"""Webhook payload normalizer - shape-tolerant extraction.

Provider payloads arrive under several envelope shapes:

    {"entry": [{"changes": [{"value": {...}}]}]}                (Cloud API)
    {"metaData": {"entry": [{"changes": [{"value": {...}}]}]}}  (wrapped)
    {"messages": [...], "statuses": [...]}                      (flat)

Shapes are not mutually exclusive. Each shape is a separate extractor,
run in the fixed order of `SHAPES`, and every match contributes records.
Inside a "value" object, `messages[]` and `statuses[]` are read in
source order.

Pure functions: no I/O, never raises on malformed input.
"""

from datetime import datetime
from typing import Any, Callable, Iterator

from inboxsync.infra.time import from_epoch_seconds, utc_now

from .models import (
    STATUS_UNKNOWN,
    NormalizedBatch,
    NormalizedMessage,
    NormalizedStatus,
)

# Content types whose body lives under item["text"]["body"]
TEXT_KINDS = frozenset({"text"})

DEFAULT_KIND = "text"


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _as_str(value: Any) -> str | None:
    """Return value as non-empty str, or None.

    Numbers are accepted (some fixtures carry ids/phones as ints).
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    if isinstance(value, str) and value:
        return value
    return None


def _entry_values(entries: Any) -> Iterator[dict[str, Any]]:
    for entry in _as_list(entries):
        for change in _as_list(_as_dict(entry).get("changes")):
            yield _as_dict(_as_dict(change).get("value"))


def _cloud_api_values(payload: dict[str, Any]) -> Iterator[dict[str, Any]]:
    """Standard envelope: entry[].changes[].value."""
    return _entry_values(payload.get("entry"))


def _wrapped_values(payload: dict[str, Any]) -> Iterator[dict[str, Any]]:
    """Proprietary wrapper: metaData.entry[].changes[].value."""
    return _entry_values(_as_dict(payload.get("metaData")).get("entry"))


def _flat_values(payload: dict[str, Any]) -> Iterator[dict[str, Any]]:
    """Flat messages/statuses arrays; the payload itself is the context."""
    if isinstance(payload.get("messages"), list) or isinstance(
        payload.get("statuses"), list
    ):
        yield payload


# Priority order matters: records are emitted shape by shape.
SHAPES: tuple[tuple[str, Callable[[dict[str, Any]], Iterator[dict[str, Any]]]], ...] = (
    ("cloud_api", _cloud_api_values),
    ("wrapped", _wrapped_values),
    ("flat", _flat_values),
)


def _pick_contact(value: dict[str, Any], sender: str | None) -> dict[str, Any]:
    """Contact matching the sender, else the first one."""
    contacts = [c for c in _as_list(value.get("contacts")) if isinstance(c, dict)]
    if not contacts:
        return {}
    if sender:
        for contact in contacts:
            if _as_str(contact.get("wa_id")) == sender:
                return contact
    return contacts[0]


def _extract_body(item: dict[str, Any], kind: str) -> str:
    if kind not in TEXT_KINDS:
        return ""
    text = item.get("text")
    if isinstance(text, dict):
        body = text.get("body")
        if isinstance(body, str):
            return body
    # Flat fixtures sometimes carry the text directly
    body = item.get("body")
    return body if isinstance(body, str) else ""


def map_message(
    item: dict[str, Any],
    value: dict[str, Any],
    now: datetime,
) -> NormalizedMessage | None:
    """Map one message item to NormalizedMessage.

    Returns None when no message id can be derived.
    """
    message_id = _as_str(item.get("id")) or _as_str(item.get("message_id"))
    if message_id is None:
        return None

    sender = _as_str(item.get("from"))
    recipient = _as_str(item.get("to"))
    contact = _pick_contact(value, sender)
    kind = _as_str(item.get("type")) or DEFAULT_KIND

    display_name = _as_str(_as_dict(contact.get("profile")).get("name")) or ""
    # Inbound Cloud API items carry no "to"; the business number is in metadata
    business_number = _as_str(_as_dict(value.get("metadata")).get("display_phone_number"))
    occurred_at = from_epoch_seconds(item.get("timestamp"))

    return NormalizedMessage(
        id=message_id,
        reply_to_id=_as_str(_as_dict(item.get("context")).get("id")),
        conversation_id=_as_str(contact.get("wa_id")) or sender or recipient or "",
        from_addr=sender or "",
        to_addr=recipient or business_number or "",
        display_name=display_name,
        body=_extract_body(item, kind),
        kind=kind,
        occurred_at=occurred_at or now,
        occurred_at_defaulted=occurred_at is None,
        raw=item,
    )


def map_status(item: dict[str, Any]) -> NormalizedStatus | None:
    """Map one status item to NormalizedStatus.

    Unrecognized status values are kept verbatim. Returns None when no
    message id can be derived.
    """
    message_id = _as_str(item.get("id")) or _as_str(item.get("message_id"))
    if message_id is None:
        return None

    return NormalizedStatus(
        message_id=message_id,
        conversation_id=_as_str(item.get("recipient_id")),
        status=_as_str(item.get("status")) or STATUS_UNKNOWN,
        raw=item,
    )


def normalize(payload: Any, *, now: datetime | None = None) -> NormalizedBatch:
    """Extract all messages and statuses from a webhook payload.

    Args:
        payload: Parsed JSON document (any shape).
        now: Fallback timestamp for items without a usable timestamp.
            Defaults to the current UTC time.

    Returns:
        NormalizedBatch with records from every matching shape.
    """
    batch = NormalizedBatch()
    if not isinstance(payload, dict):
        return batch

    now = now or utc_now()

    for _shape, values in SHAPES:
        for value in values(payload):
            for item in _as_list(value.get("messages")):
                if not isinstance(item, dict):
                    continue
                msg = map_message(item, value, now)
                if msg is not None:
                    batch.messages.append(msg)

            for item in _as_list(value.get("statuses")):
                if not isinstance(item, dict):
                    continue
                status = map_status(item)
                if status is not None:
                    batch.statuses.append(status)

    return batch
