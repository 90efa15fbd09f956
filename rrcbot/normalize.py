"""Validation of inbound hub event payloads.

Payloads arrive from the transport as plain mappings. Each event type has a
small fixed schema; anything that does not match raises
MalformedPayloadError instead of leaking untyped data further in.
"""

from __future__ import annotations

import html
from collections.abc import Mapping
from typing import Any

from .errors import MalformedPayloadError
from .models import ChatMessage


def _field(obj: Any, key: str) -> Any:
    if not isinstance(obj, Mapping):
        raise MalformedPayloadError(f"expected a mapping, got {type(obj).__name__}")
    for k in (key, key.capitalize()):
        if k in obj:
            return obj[k]
    raise MalformedPayloadError(f"missing field {key!r}")


def _text(value: Any, what: str, *, allow_empty: bool = False) -> str:
    if not isinstance(value, str):
        raise MalformedPayloadError(f"{what} must be a string")
    if not allow_empty and not value.strip():
        raise MalformedPayloadError(f"{what} must not be empty")
    return value


def parse_user(payload: Any) -> str:
    """Return the user name from an addUser/leave payload."""
    return _text(_field(payload, "name"), "user name")


def normalize(payload: Any, room: Any) -> ChatMessage:
    content = _text(_field(payload, "content"), "content", allow_empty=True)
    sender = parse_user(_field(payload, "user"))
    room_name = _text(room, "room")
    return ChatMessage(content=html.unescape(content), sender=sender, room=room_name)


def parse_room_list(payload: Any) -> list[str]:
    if isinstance(payload, (str, bytes)) or not isinstance(payload, (list, tuple)):
        raise MalformedPayloadError("room list must be a sequence of names")
    return [_text(r, "room") for r in payload]
