"""rrcbot: a chat-room bot client for RRC hubs."""

from __future__ import annotations

__version__ = "0.1.0"

from .bot import Bot
from .errors import (
    ArgumentError,
    BotError,
    ForbiddenCommandError,
    HandlerLoadError,
    MalformedPayloadError,
    TransportError,
)
from .handlers import FunctionHandler, Handler, HandlerChain
from .models import BotIdentity, ChatMessage, ConnectionState

__all__ = [
    "ArgumentError",
    "Bot",
    "BotError",
    "BotIdentity",
    "ChatMessage",
    "ConnectionState",
    "ForbiddenCommandError",
    "FunctionHandler",
    "Handler",
    "HandlerChain",
    "HandlerLoadError",
    "MalformedPayloadError",
    "TransportError",
    "__version__",
]
