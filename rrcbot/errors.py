"""Exception types raised by rrcbot."""

from __future__ import annotations


class BotError(Exception):
    """Base class for rrcbot errors."""


class ArgumentError(BotError, ValueError):
    """A required argument (who, what, room) was missing or empty."""

    def __init__(self, name: str) -> None:
        super().__init__(f"{name} is required")
        self.name = name


class ForbiddenCommandError(BotError):
    """A chat message began with the command prefix."""


class MalformedPayloadError(BotError, ValueError):
    """An inbound hub event is missing required fields."""


class TransportError(BotError):
    """The hub transport failed to connect or to complete an invocation."""


class HandlerLoadError(BotError):
    """A handler reference could not be imported or constructed."""
