"""Message handlers and the ordered chain that runs them."""

from __future__ import annotations

import importlib
import logging
import threading
from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from .errors import HandlerLoadError
from .models import ChatMessage

if TYPE_CHECKING:
    from .bot import Bot


@runtime_checkable
class Handler(Protocol):
    def handle(self, message: ChatMessage, bot: Bot) -> bool:
        """Try to handle a message. Return True if it was consumed."""
        ...


class FunctionHandler:
    """Adapts a plain callable ``func(message, bot) -> bool`` to a Handler."""

    def __init__(self, func: Callable[[ChatMessage, Bot], bool]) -> None:
        self.func = func

    def handle(self, message: ChatMessage, bot: Bot) -> bool:
        return bool(self.func(message, bot))

    def __repr__(self) -> str:
        name = getattr(self.func, "__qualname__", repr(self.func))
        return f"FunctionHandler({name})"


class PingHandler:
    """Replies ``pong`` to ``!ping``."""

    trigger = "!ping"

    def handle(self, message: ChatMessage, bot: Bot) -> bool:
        if message.content.strip().lower() != self.trigger:
            return False
        bot.reply(message.sender, "pong", message.room)
        return True


class HandlerChain:
    """
    Ordered list of handlers. Registration order is priority order.

    Dispatch stops at the first handler that reports the message consumed. A
    handler that raises is logged and counted as not consuming, so one broken
    handler never keeps the rest of the chain from seeing a message.
    """

    def __init__(self) -> None:
        self.log = logging.getLogger("rrcbot.handlers")
        self._lock = threading.Lock()
        self._handlers: list[Handler] = []

    def add(self, handler: Handler) -> None:
        if not callable(getattr(handler, "handle", None)):
            raise TypeError(f"{handler!r} has no handle() method")
        with self._lock:
            self._handlers.append(handler)

    def remove(self, handler: Handler) -> bool:
        """Remove the first occurrence of handler. Returns False if absent."""
        with self._lock:
            try:
                self._handlers.remove(handler)
            except ValueError:
                return False
            return True

    def clear(self) -> None:
        with self._lock:
            self._handlers.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._handlers)

    def __iter__(self) -> Iterator[Handler]:
        with self._lock:
            return iter(list(self._handlers))

    def dispatch(self, message: ChatMessage, bot: Bot) -> Handler | None:
        """Run the chain. Returns the handler that consumed the message, if any."""
        for handler in self:
            try:
                consumed = handler.handle(message, bot)
            except Exception:
                self.log.exception(
                    "Handler failed handler=%r room=%r sender=%r",
                    handler,
                    message.room,
                    message.sender,
                )
                continue

            if consumed:
                if self.log.isEnabledFor(logging.DEBUG):
                    self.log.debug(
                        "Handled room=%r sender=%r handler=%r",
                        message.room,
                        message.sender,
                        handler,
                    )
                return handler

        return None


def load_handler(ref: str) -> Handler:
    """Build a handler from a ``package.module:Name`` reference.

    Classes are instantiated with no arguments. Plain functions are wrapped in
    FunctionHandler. Objects that already have ``handle`` are used as is.
    """
    text = str(ref).strip()
    module_name, sep, attr = text.partition(":")
    if not sep or not module_name or not attr:
        raise HandlerLoadError(f"bad handler reference {text!r} (expected module:Name)")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise HandlerLoadError(f"cannot import {module_name!r}: {e}") from e

    obj = module
    for part in attr.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError as e:
            raise HandlerLoadError(f"{module_name!r} has no attribute {attr!r}") from e

    if isinstance(obj, type):
        try:
            obj = obj()
        except Exception as e:
            raise HandlerLoadError(f"cannot construct {text!r}: {e}") from e

    if callable(getattr(obj, "handle", None)):
        return obj
    if callable(obj):
        return FunctionHandler(obj)
    raise HandlerLoadError(f"{text!r} is not a handler")
