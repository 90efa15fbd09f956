import threading

import pytest
import RNS

from rrcbot import rrc
from rrcbot.codec import decode, encode
from rrcbot.constants import K_ROOM, K_T, T_ERROR, T_JOINED, T_MSG, T_PART, T_PARTED, T_WELCOME
from rrcbot.envelope import make_envelope
from rrcbot.errors import TransportError
from rrcbot.rrc import RRCTransport

HUB = b"\x09" * 16


def _drain(transport: RRCTransport) -> list:
    events = []
    while not transport._events.empty():
        events.append(transport._events.get_nowait())
    return events


def test_unconnected_transport_is_inactive() -> None:
    transport = RRCTransport("bot")
    assert transport.is_active() is False
    assert transport.active_room is None


def test_invoke_rejects_unknown_procedures() -> None:
    with pytest.raises(TransportError):
        RRCTransport("bot").invoke("Frobnicate")


def test_send_without_link_fails() -> None:
    with pytest.raises(TransportError):
        RRCTransport("bot").invoke("send", "hello")


def test_connect_rejects_bad_hub_hash() -> None:
    with pytest.raises(TransportError):
        RRCTransport("bot").connect("not-hex")


def test_inbound_packets_become_events_in_order() -> None:
    transport = RRCTransport("bot")
    transport._on_packet(encode(make_envelope(T_JOINED, src=HUB, room="dev")))
    transport._on_packet(encode(make_envelope(T_MSG, src=HUB, room="dev", body="hi", nick="alice")))
    transport._on_packet(b"\xff\x00garbage")
    transport._on_packet(encode(make_envelope(T_WELCOME, src=HUB)))

    assert _drain(transport) == [
        ("addUser", ({"name": "bot", "room": "dev"},)),
        ("addMessage", ({"content": "hi", "user": {"name": "alice"}}, "dev")),
        ("logOn", (["dev"],)),
    ]


def test_error_before_welcome_refuses_join() -> None:
    transport = RRCTransport("bot")
    transport._on_packet(encode(make_envelope(T_ERROR, src=HUB, body="nick in use")))
    assert transport._welcome.is_set()
    assert transport._join_error == "nick in use"
    assert _drain(transport) == []


class _Link:
    status = RNS.Link.ACTIVE

    def __init__(self) -> None:
        self.torn_down = False

    def teardown(self) -> None:
        self.torn_down = True


class _Identity:
    hash = b"\x01" * 16


@pytest.fixture
def linked(monkeypatch) -> tuple[RRCTransport, list]:
    """A transport with a stand-in link; sent envelopes are decoded into a list."""
    sent = []

    class _Packet:
        def __init__(self, link, payload) -> None:
            self.payload = payload

        def send(self) -> bool:
            sent.append(decode(self.payload))
            return True

    monkeypatch.setattr(rrc.RNS, "Packet", _Packet)
    transport = RRCTransport("bot")
    transport._identity = _Identity()
    transport._link = _Link()
    return transport, sent


def test_own_part_drops_the_room(linked) -> None:
    transport, sent = linked
    transport._on_packet(encode(make_envelope(T_JOINED, src=HUB, room="dev")))
    transport.invoke("send", "/leave dev")
    assert sent[-1][K_T] == T_PART and sent[-1][K_ROOM] == "dev"

    transport._on_packet(encode(make_envelope(T_PARTED, src=HUB, room="dev", body=[b"\x02" * 16])))
    transport._on_packet(encode(make_envelope(T_WELCOME, src=HUB)))

    assert _drain(transport) == [
        ("addUser", ({"name": "bot", "room": "dev"},)),
        ("leave", ({"name": "bot", "room": "dev"},)),
        ("logOn", ([],)),
    ]


def test_another_member_parting_keeps_the_room(linked) -> None:
    transport, _sent = linked
    gone = b"\x03" * 16
    transport._on_packet(encode(make_envelope(T_JOINED, src=HUB, room="dev")))
    transport._on_packet(encode(make_envelope(T_PARTED, src=HUB, room="dev", body=[gone])))
    transport._on_packet(encode(make_envelope(T_WELCOME, src=HUB)))

    assert _drain(transport) == [
        ("addUser", ({"name": "bot", "room": "dev"},)),
        ("leave", ({"name": gone.hex(), "room": "dev"},)),
        ("logOn", (["dev"],)),
    ]


def test_private_reply_is_refused_without_sending(linked) -> None:
    transport, sent = linked
    with pytest.raises(TransportError, match="private messages"):
        transport.invoke("send", "/msg alice psst")
    assert sent == []


def test_close_then_restart_delivers_on_a_fresh_thread(linked) -> None:
    transport, _sent = linked
    seen = []
    delivered = threading.Event()

    def on_log_on(rooms) -> None:
        seen.append(rooms)
        delivered.set()

    transport.subscribe("logOn", on_log_on)
    transport._start_delivery()
    first = transport._delivery_thread

    transport.close()
    assert not first.is_alive()
    assert transport._link is None

    transport._start_delivery()
    second = transport._delivery_thread
    assert second is not first and second.is_alive()

    transport._on_packet(encode(make_envelope(T_WELCOME, src=HUB)))
    assert delivered.wait(2.0)
    assert seen == [[]]
    transport.close()


def test_closure_of_a_released_link_is_not_reported(linked) -> None:
    transport, _sent = linked
    old = transport._link
    transport.close()
    transport._on_closed(old)
    assert _drain(transport) == []
