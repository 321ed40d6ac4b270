# relay/protocol.py
# Text commands understood by the UDP relay controller (board address 255).

from typing import Dict, Tuple

from relay.interface import RelayIdError, RelayProtocolError

RELAY_COUNT = 16
BOARD = 255

STATE_QUERY = f"RELAY-STATE-{BOARD}"

# Two firmware revisions disagree on the "all off" verb.
ALL_OFF_COMMANDS: Dict[str, str] = {
    "aof": f"RELAY-AOF-{BOARD},1,1",
    "set_all": f"RELAY-SET_ALL-{BOARD},0,0",
}
DEFAULT_ALL_OFF = "aof"


def check_relay_id(relay_id: int) -> int:
    if isinstance(relay_id, bool) or not isinstance(relay_id, int):
        raise RelayIdError(f"Relay id must be an integer, got {relay_id!r}")
    if not 1 <= relay_id <= RELAY_COUNT:
        raise RelayIdError(f"Relay id {relay_id} outside 1..{RELAY_COUNT}")
    return relay_id


def ok_reply(command: str) -> str:
    return f"{command},OK"


def all_off_command(style: str = DEFAULT_ALL_OFF) -> Tuple[str, str]:
    """Return (command, expected reply) for the configured all-off variant."""
    try:
        command = ALL_OFF_COMMANDS[style]
    except KeyError:
        raise ValueError(
            f"Unknown all_off_command '{style}'. Valid: {', '.join(ALL_OFF_COMMANDS)}"
        ) from None
    return command, ok_reply(command)


def set_command(relay_id: int, on: bool) -> Tuple[str, str]:
    """Return (command, expected reply) for switching one relay."""
    check_relay_id(relay_id)
    command = f"RELAY-SET-{BOARD},{relay_id},{1 if on else 0}"
    return command, ok_reply(command)


def parse_state_reply(reply: str) -> Dict[int, bool]:
    """
    Decode 'RELAY-STATE-255,<high>,<low>,OK' into {relay_id: on}.

    The two bytes form a 16-bit mask (high << 8 | low); bit i-1 is relay i.
    """
    parts = [p.strip() for p in (reply or "").strip().split(",")]
    if len(parts) != 4 or parts[0] != STATE_QUERY or parts[3] != "OK":
        raise RelayProtocolError(f"Unexpected response format: {reply!r}")
    try:
        high = int(parts[1])
        low = int(parts[2])
    except ValueError:
        raise RelayProtocolError(f"Invalid state values in response: {reply!r}") from None
    if not (0 <= high <= 255 and 0 <= low <= 255):
        raise RelayProtocolError(f"State bytes out of range in response: {reply!r}")

    mask = (high << 8) | low
    return {i: bool(mask & (1 << (i - 1))) for i in range(1, RELAY_COUNT + 1)}
