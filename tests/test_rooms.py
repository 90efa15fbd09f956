import pytest

from rrcbot.errors import ArgumentError
from rrcbot.rooms import RoomRegistry


def test_rooms_differing_in_case_are_one_entry() -> None:
    reg = RoomRegistry()
    assert reg.add("Lobby") is True
    assert reg.add("lobby") is False
    assert reg.add("LOBBY") is False
    assert len(reg) == 1
    assert reg.names() == ["Lobby"]


def test_contains_is_case_insensitive() -> None:
    reg = RoomRegistry()
    reg.add("Dev")
    assert "dev" in reg
    assert "DEV" in reg
    assert "random" not in reg
    assert 5 not in reg


def test_enumeration_follows_insertion_order() -> None:
    reg = RoomRegistry()
    for room in ("random", "dev", "alpha"):
        reg.add(room)
    assert list(reg) == ["random", "dev", "alpha"]


def test_discard_and_clear() -> None:
    reg = RoomRegistry()
    reg.add("dev")
    reg.add("random")
    reg.discard("DEV")
    assert reg.names() == ["random"]
    reg.discard("missing")
    reg.clear()
    assert len(reg) == 0


@pytest.mark.parametrize("room", [None, "", "   ", 7])
def test_add_rejects_empty_names(room) -> None:
    with pytest.raises(ArgumentError):
        RoomRegistry().add(room)
