"""Registry of the rooms the bot has joined."""

from __future__ import annotations

import threading
from collections.abc import Iterator

from .errors import ArgumentError


def room_key(room: str) -> str:
    return room.casefold()


class RoomRegistry:
    """Case-insensitive set of room names.

    The first spelling seen for a room is the one reported back. Enumeration
    follows insertion order. The registry outlives reconnects and is only
    cleared when the bot shuts down.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._rooms: dict[str, str] = {}

    def add(self, room: str) -> bool:
        """Add a room. Returns True if it was not already present."""
        if not isinstance(room, str) or not room.strip():
            raise ArgumentError("room")
        key = room_key(room)
        with self._lock:
            if key in self._rooms:
                return False
            self._rooms[key] = room
            return True

    def discard(self, room: str) -> None:
        with self._lock:
            self._rooms.pop(room_key(room), None)

    def clear(self) -> None:
        with self._lock:
            self._rooms.clear()

    def names(self) -> list[str]:
        with self._lock:
            return list(self._rooms.values())

    def __contains__(self, room: object) -> bool:
        if not isinstance(room, str):
            return False
        with self._lock:
            return room_key(room) in self._rooms

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)
