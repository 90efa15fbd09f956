"""Hub transport over a Reticulum link to an RRC hub."""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Callable
from typing import Any

import RNS

from .codec import encode
from .constants import (
    DEFAULT_DEST_NAME,
    K_BODY,
    K_NICK,
    K_ROOM,
    K_T,
    T_ERROR,
    T_HELLO,
    T_JOINED,
    T_NOTICE,
    T_PART,
    T_PARTED,
    T_PING,
    T_PONG,
    T_WELCOME,
)
from .envelope import decode_envelope, make_envelope
from .errors import TransportError
from .rooms import RoomRegistry
from .transport import EV_CLOSED, PROC_JOIN, PROC_SEND
from .util import expand_path, normalize_nick
from .wire import command_to_envelope, envelope_to_events, hello_envelope

_STOP = object()


class RRCTransport:
    """
    Transport for a bot talking to an RRC hub.

    ``url`` passed to connect() is the hub destination hash in hex.
    ``credentials`` is an RNS.Identity, a path to an identity file, or None
    for a throwaway identity.

    Packets arrive on Reticulum's threads; hub events are handed to
    subscribers from a single delivery thread so they are seen one at a time
    and in arrival order.
    """

    def __init__(
        self,
        nick: str,
        *,
        configdir: str | None = None,
        dest_name: str = DEFAULT_DEST_NAME,
        connect_timeout_s: float = 30.0,
        join_timeout_s: float = 15.0,
    ) -> None:
        self.nick = normalize_nick(nick)
        self.configdir = configdir
        self.dest_name = dest_name
        self.connect_timeout_s = connect_timeout_s
        self.join_timeout_s = join_timeout_s
        self.log = logging.getLogger("rrcbot.rrc")

        self.active_room: str | None = None

        self._reticulum: RNS.Reticulum | None = None
        self._identity: RNS.Identity | None = None
        self._link: RNS.Link | None = None
        self._established = threading.Event()
        self._welcome = threading.Event()
        self._join_error: str | None = None

        self._rooms = RoomRegistry()
        self._parting = RoomRegistry()
        self._subscribers: dict[str, list[Callable[..., None]]] = {}
        self._events: queue.Queue = queue.Queue()
        self._delivery_thread: threading.Thread | None = None

    # Transport

    def is_active(self) -> bool:
        link = self._link
        return link is not None and link.status == RNS.Link.ACTIVE

    def subscribe(self, event_name: str, callback: Callable[..., None]) -> None:
        self._subscribers.setdefault(event_name, []).append(callback)

    def connect(self, url: str, credentials: Any = None) -> None:
        try:
            dest_hash = bytes.fromhex(str(url).strip())
        except ValueError as e:
            raise TransportError(f"bad hub hash {url!r}") from e

        if self._reticulum is None:
            self.log.info("Starting Reticulum")
            self._reticulum = RNS.Reticulum(configdir=self.configdir)

        self._identity = self._load_identity(credentials)
        destination = self._resolve(dest_hash)

        self._established.clear()
        self._welcome.clear()
        self._parting.clear()
        self._join_error = None

        link = RNS.Link(
            destination,
            established_callback=lambda _link: self._established.set(),
            closed_callback=self._on_closed,
        )
        link.set_packet_callback(lambda data, _pkt: self._on_packet(data))
        self._link = link

        if not self._established.wait(self.connect_timeout_s):
            self._link = None
            link.teardown()
            raise TransportError(f"link to {url} not established")

        link.identify(self._identity)
        self._start_delivery()
        self.log.info("Link established hub=%s", RNS.prettyhexrep(dest_hash))

    def invoke(self, procedure: str, *args: Any) -> Any:
        if procedure == PROC_JOIN:
            return self._join()
        if procedure == PROC_SEND:
            if len(args) != 1 or not isinstance(args[0], str):
                raise TransportError("send takes one text argument")
            self._send_command(args[0])
            return None
        raise TransportError(f"unknown procedure {procedure!r}")

    def close(self) -> None:
        link = self._link
        if link is not None:
            try:
                link.teardown()
            except Exception:
                self.log.debug("Link teardown failed", exc_info=True)
        self._link = None
        self._parting.clear()

        # The old loop drains up to the stop marker on its own queue; the
        # next connect() gets a fresh queue and thread.
        thread = self._delivery_thread
        if thread is not None:
            self._events.put(_STOP)
            self._events = queue.Queue()
            self._delivery_thread = None
            if thread is not threading.current_thread():
                thread.join(timeout=1.0)

    # Internals

    def _load_identity(self, credentials: Any) -> RNS.Identity:
        if isinstance(credentials, RNS.Identity):
            return credentials
        if credentials is None:
            return RNS.Identity()
        path = expand_path(str(credentials))
        ident = RNS.Identity.from_file(path)
        if ident is None:
            raise TransportError(f"failed to load identity from {path}")
        return ident

    def _resolve(self, dest_hash: bytes) -> RNS.Destination:
        if not RNS.Transport.has_path(dest_hash):
            RNS.Transport.request_path(dest_hash)
            deadline = time.monotonic() + self.connect_timeout_s
            while not RNS.Transport.has_path(dest_hash):
                if time.monotonic() > deadline:
                    raise TransportError(f"no path to {RNS.prettyhexrep(dest_hash)}")
                time.sleep(0.1)

        hub_identity = RNS.Identity.recall(dest_hash)
        if hub_identity is None:
            raise TransportError(f"hub identity unknown for {RNS.prettyhexrep(dest_hash)}")

        parts = [p for p in str(self.dest_name).split(".") if p]
        if not parts:
            raise TransportError("dest_name must not be empty")
        return RNS.Destination(
            hub_identity,
            RNS.Destination.OUT,
            RNS.Destination.SINGLE,
            parts[0],
            *parts[1:],
        )

    def _join(self) -> bool:
        self._welcome.clear()
        self._join_error = None
        self._send_env(hello_envelope(src=self._src(), nick=self.nick))

        if not self._welcome.wait(self.join_timeout_s):
            raise TransportError("no WELCOME from hub")
        if self._join_error is not None:
            self.log.warning("Join refused: %s", self._join_error)
            return False
        return True

    def _send_command(self, text: str) -> None:
        env = command_to_envelope(
            text, src=self._src(), room=self.active_room, nick=self.nick
        )
        if env[K_T] == T_PART:
            # Registered before sending; the PARTED may beat us back.
            self._parting.add(env[K_ROOM])
        try:
            self._send_env(env)
        except TransportError:
            if env[K_T] == T_PART:
                self._parting.discard(env[K_ROOM])
            raise
        if env[K_T] == T_HELLO:
            self.nick = env.get(K_NICK, self.nick)

    def _src(self) -> bytes:
        if self._identity is None:
            raise TransportError("not connected")
        return self._identity.hash

    def _send_env(self, env: dict) -> None:
        link = self._link
        if link is None or link.status != RNS.Link.ACTIVE:
            raise TransportError("link is not active")
        payload = encode(env)
        try:
            receipt = RNS.Packet(link, payload).send()
        except Exception as e:
            raise TransportError(f"send failed: {e}") from e
        if receipt is False:
            raise TransportError(f"send failed bytes={len(payload)}")

    def _on_packet(self, data: bytes) -> None:
        try:
            env = decode_envelope(data)
        except (TypeError, ValueError) as e:
            self.log.debug("Bad packet bytes=%s err=%s", len(data), e)
            return

        t = env.get(K_T)
        room = env.get(K_ROOM)
        body = env.get(K_BODY)

        if t == T_PING:
            try:
                self._send_env(make_envelope(T_PONG, src=self._src(), body=body))
            except TransportError as e:
                self.log.debug("PONG failed: %s", e)
            return

        if t == T_ERROR:
            self.log.warning("Hub error room=%r: %s", room, body)
            if not self._welcome.is_set():
                self._join_error = str(body)
                self._welcome.set()
            return

        if t == T_NOTICE:
            self.log.info("Hub notice room=%r: %s", room, body)
            return

        # PARTED either acknowledges our own PART or reports another member's
        # link closing; only a room we asked to leave is dropped.
        own_part = False
        if t == T_JOINED and isinstance(room, str):
            self._rooms.add(room)
        elif t == T_PARTED and isinstance(room, str) and room in self._parting:
            own_part = True
            self._parting.discard(room)
            self._rooms.discard(room)

        events = envelope_to_events(
            env, nick=self.nick, rooms=self._rooms.names(), own_part=own_part
        )
        for event in events:
            self._events.put(event)

        if t == T_WELCOME:
            self._welcome.set()

    def _on_closed(self, link: RNS.Link) -> None:
        if link is not self._link:
            self.log.debug("Stale link closed")
            return
        self.log.info("Link closed")
        self._events.put((EV_CLOSED, ()))

    def _start_delivery(self) -> None:
        if self._delivery_thread is not None and self._delivery_thread.is_alive():
            return
        self._delivery_thread = threading.Thread(
            target=self._deliver_loop, args=(self._events,), name="rrcbot-events", daemon=True
        )
        self._delivery_thread.start()

    def _deliver_loop(self, events: queue.Queue) -> None:
        while True:
            item = events.get()
            if item is _STOP:
                break
            name, args = item
            for cb in list(self._subscribers.get(name, ())):
                try:
                    cb(*args)
                except Exception:
                    self.log.exception("Event callback failed event=%s", name)
