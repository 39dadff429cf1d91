"""Payload builders shared by tests.

These are NOT fixtures - plain functions importable from any test module.
"""

from __future__ import annotations

from typing import Any

CONTACT_WA_ID = "5511888888888"
BUSINESS_NUMBER = "5511999999999"

# 2024-01-01T00:00:00Z
BASE_TS = 1704067200


def message_item(
    message_id: str,
    *,
    sender: str = CONTACT_WA_ID,
    text: str = "hello",
    ts: int | str | None = BASE_TS,
    kind: str | None = "text",
    **extra: Any,
) -> dict[str, Any]:
    item: dict[str, Any] = {"from": sender, "id": message_id}
    if ts is not None:
        item["timestamp"] = str(ts)
    if kind is not None:
        item["type"] = kind
    if kind == "text":
        item["text"] = {"body": text}
    item.update(extra)
    return item


def status_item(
    message_id: str,
    status: str | None,
    *,
    recipient: str = CONTACT_WA_ID,
    ts: int = BASE_TS,
) -> dict[str, Any]:
    item: dict[str, Any] = {
        "id": message_id,
        "recipient_id": recipient,
        "timestamp": str(ts),
    }
    if status is not None:
        item["status"] = status
    return item


def change_value(
    messages: list[dict] | None = None,
    statuses: list[dict] | None = None,
    *,
    contact_wa_id: str | None = CONTACT_WA_ID,
    contact_name: str = "Test User",
) -> dict[str, Any]:
    value: dict[str, Any] = {
        "messaging_product": "whatsapp",
        "metadata": {
            "display_phone_number": BUSINESS_NUMBER,
            "phone_number_id": "123456789",
        },
    }
    if contact_wa_id is not None:
        value["contacts"] = [{"profile": {"name": contact_name}, "wa_id": contact_wa_id}]
    if messages is not None:
        value["messages"] = messages
    if statuses is not None:
        value["statuses"] = statuses
    return value


def cloud_payload(
    messages: list[dict] | None = None,
    statuses: list[dict] | None = None,
    **value_kwargs: Any,
) -> dict[str, Any]:
    """Standard Cloud API envelope: entry[].changes[].value."""
    return {
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "WHATSAPP_BUSINESS_ACCOUNT_ID",
                "changes": [
                    {
                        "value": change_value(messages, statuses, **value_kwargs),
                        "field": "messages",
                    }
                ],
            }
        ],
    }


def wrapped_payload(
    messages: list[dict] | None = None,
    statuses: list[dict] | None = None,
    **value_kwargs: Any,
) -> dict[str, Any]:
    """Proprietary wrapper: metaData.entry[].changes[].value."""
    return {
        "payload_type": "whatsapp_webhook",
        "_id": "conv1-msg1-aditi",
        "metaData": cloud_payload(messages, statuses, **value_kwargs),
    }
