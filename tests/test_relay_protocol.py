import pytest

from relay.interface import RelayIdError, RelayProtocolError
from relay.protocol import (
    all_off_command,
    check_relay_id,
    parse_state_reply,
    set_command,
)


def test_state_reply_mask():
    states = parse_state_reply("RELAY-STATE-255,0,5,OK")
    assert [i for i, on in states.items() if on] == [1, 3]
    assert len(states) == 16


def test_state_reply_high_byte_maps_to_upper_relays():
    states = parse_state_reply("RELAY-STATE-255,128,0,OK\r\n")
    assert [i for i, on in states.items() if on] == [16]


@pytest.mark.parametrize(
    "reply",
    [
        "RELAY-STATE-255,0,5",
        "RELAY-STATE-255,0,5,OK,EXTRA",
        "RELAY-STATE-1,0,5,OK",
        "RELAY-STATE-255,0,5,ERR",
        "RELAY-STATE-255,x,5,OK",
        "RELAY-STATE-255,0,256,OK",
        "",
    ],
)
def test_state_reply_shape_mismatch_raises(reply):
    with pytest.raises(RelayProtocolError):
        parse_state_reply(reply)


def test_set_and_all_off_commands():
    assert set_command(3, True) == ("RELAY-SET-255,3,1", "RELAY-SET-255,3,1,OK")
    assert set_command(16, False) == ("RELAY-SET-255,16,0", "RELAY-SET-255,16,0,OK")
    assert all_off_command() == ("RELAY-AOF-255,1,1", "RELAY-AOF-255,1,1,OK")
    assert all_off_command("set_all") == ("RELAY-SET_ALL-255,0,0", "RELAY-SET_ALL-255,0,0,OK")
    with pytest.raises(ValueError):
        all_off_command("nope")


@pytest.mark.parametrize("relay_id", [0, 17, -1, True, "3", 2.0])
def test_relay_id_outside_range_rejected(relay_id):
    with pytest.raises(RelayIdError):
        check_relay_id(relay_id)
