from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from .commands import CommandEncoder
from .errors import MalformedPayloadError
from .handlers import Handler, HandlerChain
from .models import (
    BotIdentity,
    ChatMessage,
    ClosedEvent,
    ConnectionState,
    HubEvent,
    MessageEvent,
    RoomListEvent,
    UserJoinedEvent,
    UserLeftEvent,
)
from .normalize import normalize, parse_room_list, parse_user
from .rooms import RoomRegistry
from .transport import (
    EV_CLOSED,
    EV_LEAVE,
    EV_LOGON,
    EV_MESSAGE,
    EV_USER_JOINED,
    PROC_JOIN,
    Transport,
)


class Bot:
    """
    A chat bot connected to a hub through a Transport.

    Owns the connection state machine, the room registry and the handler
    chain. Inbound events are funneled through dispatch(), one at a time, in
    the order the transport delivers them.
    """

    def __init__(
        self,
        transport: Transport,
        url: str,
        identity: BotIdentity,
        *,
        credentials: Any = None,
    ) -> None:
        self.transport = transport
        self.url = url
        self.identity = identity
        self.credentials = credentials
        self.log = logging.getLogger("rrcbot.bot")

        # power_up/shut_down and state transitions driven by events.
        self._lifecycle_lock = threading.RLock()
        # Serializes inbound events.
        self._dispatch_lock = threading.Lock()

        self._state = ConnectionState.DISCONNECTED
        self._subscribed = False

        self._rooms = RoomRegistry()
        self.handlers = HandlerChain()
        self.commands = CommandEncoder(transport, self._rooms)

        self._disconnected_callbacks: list[Callable[[], None]] = []
        self._message_callbacks: list[Callable[[ChatMessage], None]] = []
        self._user_callbacks: list[Callable[[str, bool], None]] = []

    @property
    def name(self) -> str:
        return self.identity.name

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def rooms(self) -> list[str]:
        """Rooms the bot is in, in the order they were joined."""
        return self._rooms.names()

    def _set_state(self, state: ConnectionState) -> None:
        with self._lifecycle_lock:
            if state is self._state:
                return
            self.log.info("State %s -> %s", self._state.value, state.value)
            self._state = state

    # Handlers

    def add_handler(self, handler: Handler) -> None:
        self.handlers.add(handler)

    def remove_handler(self, handler: Handler) -> bool:
        return self.handlers.remove(handler)

    def clear_handlers(self) -> None:
        self.handlers.clear()

    # Notifications

    def add_disconnected_callback(self, callback: Callable[[], None]) -> None:
        self._disconnected_callbacks.append(callback)

    def remove_disconnected_callback(self, callback: Callable[[], None]) -> None:
        if callback in self._disconnected_callbacks:
            self._disconnected_callbacks.remove(callback)

    def add_message_received_callback(self, callback: Callable[[ChatMessage], None]) -> None:
        self._message_callbacks.append(callback)

    def remove_message_received_callback(
        self, callback: Callable[[ChatMessage], None]
    ) -> None:
        if callback in self._message_callbacks:
            self._message_callbacks.remove(callback)

    def add_user_callback(self, callback: Callable[[str, bool], None]) -> None:
        """Called with (user, joined) when a user joins (True) or leaves (False)."""
        self._user_callbacks.append(callback)

    def remove_user_callback(self, callback: Callable[[str, bool], None]) -> None:
        if callback in self._user_callbacks:
            self._user_callbacks.remove(callback)

    def _notify(self, callbacks: list[Callable[..., None]], *args: Any) -> None:
        for cb in list(callbacks):
            try:
                cb(*args)
            except Exception:
                self.log.exception("Callback failed callback=%r", cb)

    # Lifecycle

    def power_up(self) -> None:
        """Connect, subscribe to hub events and join.

        Does nothing if the bot is already connected or connecting.
        """
        with self._lifecycle_lock:
            if self.transport.is_active() or self._state is not ConnectionState.DISCONNECTED:
                self.log.debug("power_up ignored state=%s", self._state.value)
                return

            self._set_state(ConnectionState.CONNECTING)
            self.log.info("Connecting url=%s name=%s", self.url, self.name)
            try:
                self.transport.connect(self.url, self.credentials)
            except Exception:
                self.log.exception("Connect failed url=%s", self.url)
                self._set_state(ConnectionState.DISCONNECTED)
                raise

            # Subscribe before joining so nothing the hub sends in reply is lost.
            self._subscribe()
            self._set_state(ConnectionState.JOINING)

            try:
                joined = self.transport.invoke(PROC_JOIN)
            except Exception:
                self.log.exception("Join failed url=%s", self.url)
                self._set_state(ConnectionState.FAULTED)
                raise

            if joined:
                self._set_state(ConnectionState.ACTIVE)
                return

            # Unknown to the hub: register our nick. The hub answers with a
            # logOn, which completes the join.
            self.log.info("Join refused; registering name=%s", self.name)
            try:
                self.commands.register(self.identity.name, self.identity.secret)
            except Exception:
                self.log.exception("Registration failed name=%s", self.name)
                self._set_state(ConnectionState.FAULTED)
                raise

    def shut_down(self) -> None:
        """Leave every room, then close the transport."""
        with self._lifecycle_lock:
            if self.transport.is_active():
                for room in self._rooms:
                    try:
                        self.commands.leave(room)
                    except Exception as e:
                        self.log.warning("Leave failed room=%r err=%s", room, e)

            try:
                self.transport.close()
            except Exception:
                self.log.exception("Transport close failed")

            self._rooms.clear()
            self._set_state(ConnectionState.DISCONNECTED)

    def _subscribe(self) -> None:
        if self._subscribed:
            return
        self.transport.subscribe(
            EV_MESSAGE, lambda payload, room: self.dispatch(MessageEvent(payload, room))
        )
        self.transport.subscribe(EV_LEAVE, lambda user: self.dispatch(UserLeftEvent(user)))
        self.transport.subscribe(
            EV_USER_JOINED, lambda user: self.dispatch(UserJoinedEvent(user))
        )
        self.transport.subscribe(EV_LOGON, lambda rooms: self.dispatch(RoomListEvent(rooms)))
        self.transport.subscribe(EV_CLOSED, lambda *_: self.dispatch(ClosedEvent()))
        self._subscribed = True

    # Inbound

    def dispatch(self, event: HubEvent) -> None:
        with self._dispatch_lock:
            try:
                if isinstance(event, MessageEvent):
                    self._on_message(event)
                elif isinstance(event, RoomListEvent):
                    self._on_log_on(event)
                elif isinstance(event, UserJoinedEvent):
                    self._on_user(event.user, True)
                elif isinstance(event, UserLeftEvent):
                    self._on_user(event.user, False)
                elif isinstance(event, ClosedEvent):
                    self._on_closed()
                else:
                    self.log.warning("Unknown event %r", event)
            except MalformedPayloadError as e:
                self.log.warning("Dropped malformed %s: %s", type(event).__name__, e)

    def _on_message(self, event: MessageEvent) -> None:
        message = normalize(event.payload, event.room)

        # Never answer ourselves.
        if message.sender.casefold() == self.name.casefold():
            return

        self._notify(self._message_callbacks, message)
        self.handlers.dispatch(message, self)

    def _on_log_on(self, event: RoomListEvent) -> None:
        rooms = parse_room_list(event.rooms)
        for room in rooms:
            self._rooms.add(room)
        self.log.info("Logged on rooms=%s", rooms)

        with self._lifecycle_lock:
            if self._state is ConnectionState.JOINING:
                self._set_state(ConnectionState.ACTIVE)

    def _on_user(self, payload: Any, joined: bool) -> None:
        user = parse_user(payload)
        self.log.debug("User %s user=%r", "joined" if joined else "left", user)
        self._notify(self._user_callbacks, user, joined)

    def _on_closed(self) -> None:
        self.log.info("Disconnected url=%s", self.url)
        self._set_state(ConnectionState.DISCONNECTED)
        self._notify(self._disconnected_callbacks)

    # Outbound

    def create_room(self, room: str) -> None:
        self.commands.create_room(room)

    def join(self, room: str) -> None:
        self.commands.join(room)

    def say(self, text: str, room: str | None = None) -> None:
        self.commands.say(text, room)

    def reply(self, who: str, what: str, room: str) -> None:
        self.commands.reply(who, what, room)

    def private_reply(self, who: str, what: str) -> None:
        self.commands.private_reply(who, what)
