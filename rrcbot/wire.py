"""Mapping between bot text commands / hub events and RRC envelopes.

Kept free of any Reticulum objects so it can be exercised on its own.
"""

from __future__ import annotations

from typing import Any

from .constants import (
    B_HELLO_NAME,
    B_HELLO_VER,
    K_BODY,
    K_NICK,
    K_ROOM,
    K_SRC,
    K_T,
    RRC_VERSION,
    T_HELLO,
    T_JOIN,
    T_JOINED,
    T_MSG,
    T_PART,
    T_PARTED,
    T_WELCOME,
)
from .envelope import make_envelope
from .errors import TransportError
from .transport import EV_LEAVE, EV_LOGON, EV_MESSAGE, EV_USER_JOINED

HubEventTuple = tuple[str, tuple[Any, ...]]


def hello_envelope(*, src: bytes, nick: str | None) -> dict:
    body = {B_HELLO_NAME: "rrcbot", B_HELLO_VER: RRC_VERSION}
    return make_envelope(T_HELLO, src=src, body=body, nick=nick)


def command_to_envelope(
    text: str,
    *,
    src: bytes,
    room: str | None,
    nick: str | None,
) -> dict:
    """Translate one line of bot output into the envelope that carries it.

    /join, /create, /leave and /nick have protocol-level equivalents. RRC
    hubs only carry room traffic, so /msg is refused. Any other line,
    commands included, is chat text for the active room and is left for the
    hub to interpret.
    """
    parts = text.split()
    cmd = parts[0].lower() if parts and text.startswith("/") else None

    if cmd in ("/join", "/create", "/leave"):
        if len(parts) < 2:
            raise TransportError(f"{cmd} requires a room")
        msg_type = T_PART if cmd == "/leave" else T_JOIN
        return make_envelope(msg_type, src=src, room=parts[1])

    if cmd == "/nick":
        if len(parts) < 2:
            raise TransportError("/nick requires a name")
        # The hub authenticates by link identity; the secret stays local.
        return hello_envelope(src=src, nick=parts[1])

    if cmd == "/msg":
        raise TransportError("private messages are not supported by RRC hubs")

    if not room:
        raise TransportError("no active room")
    return make_envelope(T_MSG, src=src, room=room, body=text, nick=nick)


def _sender_name(env: dict) -> str:
    nick = env.get(K_NICK)
    if isinstance(nick, str) and nick.strip():
        return nick
    src = env.get(K_SRC)
    return bytes(src).hex() if isinstance(src, (bytes, bytearray)) else ""


def envelope_to_events(
    env: dict,
    *,
    nick: str | None,
    rooms: list[str],
    own_part: bool = False,
) -> list[HubEventTuple]:
    """Translate a validated hub envelope into zero or more hub events.

    ``nick`` is our own nickname and ``rooms`` the rooms the hub has
    confirmed, used for acknowledgements that carry no names of their own.
    ``own_part`` marks a PARTED that acknowledges our own PART; its body
    lists the members still in the room. Any other PARTED reports members
    whose links closed.
    """
    t = env.get(K_T)
    room = env.get(K_ROOM)
    body = env.get(K_BODY)

    if t == T_MSG:
        payload = {"content": body, "user": {"name": _sender_name(env)}}
        return [(EV_MESSAGE, (payload, room))]

    if t == T_WELCOME:
        return [(EV_LOGON, (list(rooms),))]

    if t == T_JOINED:
        return [(EV_USER_JOINED, ({"name": nick or "", "room": room},))]

    if t == T_PARTED:
        if own_part:
            return [(EV_LEAVE, ({"name": nick or "", "room": room},))]
        if isinstance(body, list):
            return [
                (EV_LEAVE, ({"name": bytes(ph).hex(), "room": room},))
                for ph in body
                if isinstance(ph, (bytes, bytearray))
            ]
        return []

    return []
