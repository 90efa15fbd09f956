"""The connection a Bot talks to a hub through."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

# Hub event names delivered through subscribe().
EV_MESSAGE = "addMessage"
EV_LEAVE = "leave"
EV_USER_JOINED = "addUser"
EV_LOGON = "logOn"
# Raised by the transport itself when the connection goes away.
EV_CLOSED = "closed"

# Remote procedures.
PROC_JOIN = "Join"
PROC_SEND = "send"


class Transport(Protocol):
    """
    Connection to a hub.

    connect() and invoke() block until the hub has answered and raise
    TransportError on failure. Subscribed callbacks are called one event at a
    time, in arrival order. active_room is the room plain chat text goes to.
    """

    active_room: str | None

    def connect(self, url: str, credentials: Any = None) -> None: ...

    def invoke(self, procedure: str, *args: Any) -> Any: ...

    def subscribe(self, event_name: str, callback: Callable[..., None]) -> None: ...

    def is_active(self) -> bool: ...

    def close(self) -> None: ...
