"""Raw broker messages and their decoding into cacheable payloads.

A payload is cacheable when it is a JSON object carrying a `date` field in
YYYY-MM-DD form. Anything else raises DecodeError, which callers log and
skip without stopping consumption.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from pmp.cache.base import is_valid_date
from pmp.common.exceptions import DecodeError


@dataclass(frozen=True)
class RawMessage:
    """Message as delivered by the broker; value is opaque bytes."""

    topic: str
    value: bytes | None
    partition: int = 0
    offset: int = -1


@dataclass(frozen=True)
class DecodedMessage:
    """Message ready to be upserted under (topic, date)."""

    topic: str
    date: str
    payload: dict[str, Any]


def decode_message(raw: RawMessage) -> DecodedMessage:
    """Parse a raw message into a DecodedMessage.

    Raises:
        DecodeError: empty value, invalid UTF-8/JSON, non-object document,
            or missing/malformed date field
    """
    if not raw.value:
        raise DecodeError("Empty message value", topic=raw.topic)

    try:
        payload = json.loads(raw.value.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as err:
        raise DecodeError(f"Invalid JSON: {err}", topic=raw.topic) from err

    if not isinstance(payload, dict):
        raise DecodeError("Message is not a JSON object", topic=raw.topic)

    date = payload.get("date")
    if not date:
        raise DecodeError("Message has no date field", topic=raw.topic)
    if not is_valid_date(date):
        raise DecodeError(f"Message date {date!r} is not YYYY-MM-DD", topic=raw.topic)

    return DecodedMessage(topic=raw.topic, date=date, payload=payload)
