from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ChatMessage:
    """A chat line received in a room, with HTML entities already decoded."""

    content: str
    sender: str
    room: str


@dataclass(frozen=True)
class BotIdentity:
    name: str
    secret: str = field(default="", repr=False)


class ConnectionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    JOINING = "joining"
    ACTIVE = "active"
    FAULTED = "faulted"


# Inbound hub events. The transport delivers untyped payloads; these records
# carry them to the dispatch engine, which validates them before use.


@dataclass(frozen=True)
class MessageEvent:
    payload: Any
    room: Any


@dataclass(frozen=True)
class UserJoinedEvent:
    user: Any


@dataclass(frozen=True)
class UserLeftEvent:
    user: Any


@dataclass(frozen=True)
class RoomListEvent:
    rooms: Any


@dataclass(frozen=True)
class ClosedEvent:
    pass


HubEvent = MessageEvent | UserJoinedEvent | UserLeftEvent | RoomListEvent | ClosedEvent
