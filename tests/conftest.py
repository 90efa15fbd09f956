from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from rrcbot.bot import Bot
from rrcbot.errors import TransportError
from rrcbot.models import BotIdentity


class FakeTransport:
    """Records every call; events are fired synchronously with fire()."""

    def __init__(self, *, join_result: bool = True) -> None:
        self.active_room: str | None = None
        self.join_result = join_result
        self.connected = False
        self.connect_calls: list[tuple[str, Any]] = []
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.sent: list[tuple[str, str | None]] = []
        self.subscribers: dict[str, list[Callable[..., None]]] = {}
        self.closed = 0
        self.fail_send: set[str] = set()
        self.connect_error: Exception | None = None
        # Events to fire right after a given command has been sent.
        self.after_send: dict[str, list[tuple[str, tuple[Any, ...]]]] = {}

    def connect(self, url: str, credentials: Any = None) -> None:
        self.connect_calls.append((url, credentials))
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    def invoke(self, procedure: str, *args: Any) -> Any:
        self.calls.append((procedure, args))
        if procedure == "Join":
            return self.join_result
        text = args[0]
        if text in self.fail_send or "*" in self.fail_send:
            raise TransportError(f"send failed: {text}")
        self.sent.append((text, self.active_room))
        for name, ev_args in self.after_send.get(text, ()):
            self.fire(name, *ev_args)
        return None

    def subscribe(self, event_name: str, callback: Callable[..., None]) -> None:
        self.subscribers.setdefault(event_name, []).append(callback)

    def is_active(self) -> bool:
        return self.connected

    def close(self) -> None:
        self.closed += 1
        self.connected = False

    def fire(self, event_name: str, *args: Any) -> None:
        for cb in list(self.subscribers.get(event_name, ())):
            cb(*args)

    @property
    def texts(self) -> list[str]:
        return [text for text, _room in self.sent]


class RecordingHandler:
    def __init__(self, result: bool = False, *, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.seen: list[Any] = []

    def handle(self, message, bot) -> bool:
        self.seen.append(message)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def bot(transport: FakeTransport) -> Bot:
    return Bot(transport, "hub-url", BotIdentity("bot", "s3cret"), credentials="creds")


@pytest.fixture
def active_bot(bot: Bot) -> Bot:
    bot.power_up()
    return bot


def message_payload(content: str, sender: str) -> dict:
    return {"content": content, "user": {"Name": sender}}
