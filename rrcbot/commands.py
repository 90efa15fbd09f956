"""Outbound commands: turns bot intents into hub text commands."""

from __future__ import annotations

import contextlib
import logging
import threading
from collections.abc import Iterator
from typing import Any

from .errors import ArgumentError, ForbiddenCommandError
from .rooms import RoomRegistry
from .transport import PROC_SEND, Transport

COMMAND_PREFIX = "/"


def _require(value: Any, name: str) -> str:
    if value is None:
        raise ArgumentError(name)
    return str(value)


def _require_room(room: Any) -> str:
    if not isinstance(room, str) or not room.strip():
        raise ArgumentError("room")
    return room


class CommandEncoder:
    """
    Sends chat text and protocol commands through a transport.

    Every call blocks until the transport has completed the remote invocation.
    The transport's active room is shared state: it is only ever set while
    holding the room lock, and always reset before the lock is released.
    """

    def __init__(self, transport: Transport, rooms: RoomRegistry) -> None:
        self.transport = transport
        self.rooms = rooms
        self.log = logging.getLogger("rrcbot.commands")
        self._room_lock = threading.Lock()

    def send(self, command: str) -> None:
        if self.log.isEnabledFor(logging.DEBUG):
            self.log.debug("TX %r room=%r", command, self.transport.active_room)
        self.transport.invoke(PROC_SEND, command)

    @contextlib.contextmanager
    def active_room(self, room: str) -> Iterator[None]:
        with self._room_lock:
            self.transport.active_room = room
            try:
                yield
            finally:
                self.transport.active_room = None

    def create_room(self, room: str) -> None:
        room = _require_room(room)
        self.send(f"/create {room}")
        self.rooms.add(room)

    def join(self, room: str) -> None:
        room = _require_room(room)
        self.send(f"/join {room}")
        self.rooms.add(room)

    def leave(self, room: str) -> None:
        room = _require_room(room)
        self.send(f"/leave {room}")

    def register(self, name: str, secret: str) -> None:
        self.send(f"/nick {_require(name, 'name')} {_require(secret, 'secret')}")

    def say(self, text: str, room: str | None = None) -> None:
        text = _require(text, "what")
        if text.startswith(COMMAND_PREFIX):
            raise ForbiddenCommandError("Commands are not allowed")

        if room is None:
            self.send(text)
            return

        room = _require_room(room)
        with self.active_room(room):
            self.send(text)

    def reply(self, who: str, what: str, room: str) -> None:
        who = _require(who, "who")
        what = _require(what, "what")
        room = _require_room(room)
        self.say(f"@{who} {what}", room)

    def private_reply(self, who: str, what: str) -> None:
        who = _require(who, "who")
        what = _require(what, "what")
        self.send(f"/msg {who} {what}")
