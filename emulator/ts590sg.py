# emulator/ts590sg.py
"""
Kenwood TS-590SG CAT responses built from the last known RadioState.

Only the read commands a logging program polls are answered; every other
command (including all set commands) gets the radio's '?;' error reply.
"""

from typing import Optional

from events import EventBus, RadioStateUpdated
from loghandler import get_logger
from radio_state import RadioState

logger = None

ERROR_REPLY = "?;"
FREQ_DIGITS = 11

# Identity and fixed-status replies of a TS-590SG.
STATIC_REPLIES = {
    "AI;": "AI0;",
    ";": ERROR_REPLY,
    "ID;": "ID023;",
    "FV;": "FV1.04;",
    "TY;": "TYK 00;",
    "PS;": "PS1;",
    "DA;": "DA1;",
    "KS;": "KS030;",
    "SA;": "SA000;",
}


def pad_frequency(frequency: Optional[str]) -> str:
    """Left-pad to 11 digits; longer values are returned whole."""
    if not frequency:
        return "0" * FREQ_DIGITS
    return frequency.rjust(FREQ_DIGITS, "0")


class Ts590sgProtocol:
    """Formats cached radio state into TS-590SG wire replies."""

    def __init__(self, bus: Optional[EventBus] = None, state: Optional[RadioState] = None):
        global logger
        if logger is None:
            logger = get_logger()

        self._state = state or RadioState()
        self._token = None
        if bus is not None:
            self._token = bus.subscribe(RadioStateUpdated, self._on_state)
        self._bus = bus

    @property
    def state(self) -> RadioState:
        return self._state

    def update_state(self, state: RadioState):
        # Single reference swap; readers never see a half-updated snapshot.
        self._state = state

    def _on_state(self, event: RadioStateUpdated):
        self.update_state(event.state)

    def detach(self):
        if self._bus is not None and self._token is not None:
            self._bus.unsubscribe(self._token)
            self._token = None

    def process_command(self, command: str) -> str:
        reply = STATIC_REPLIES.get(command)
        if reply is not None:
            return reply

        s = self._state
        if command == "FA;":
            return f"FA{pad_frequency(s.rx_frequency)};"
        if command == "FB;":
            return f"FB{pad_frequency(s.tx_frequency)};"
        if command == "MD;":
            return f"MD{s.mode.ts590_code};"
        if command == "TX;":
            return f"TX{1 if s.is_transmitting else 0};"
        if command == "SP;":
            return f"SP{1 if s.is_split else 0};"
        if command == "IF;":
            return self.if_response()
        return ERROR_REPLY

    def if_response(self) -> str:
        """
        IF; status sentence, fixed width (38 chars):
          IF + P1 freq(11) + 5 spaces + P3 RIT/XIT offset(5) + P4 RIT + P5 XIT
          + P6 memory channel(3) + P7 RX/TX + P8 mode + P9 function + P10 scan
          + P11 split + P12 tone + P13 tone number(2) + P14 '0' + ';'
        """
        s = self._state
        freq = pad_frequency(s.rx_frequency)
        if len(freq) > FREQ_DIGITS:
            # IF is fixed width; keep the low-order digits.
            logger.warning(f"[CAT] Frequency {freq} does not fit the IF field, clipped")
            freq = freq[-FREQ_DIGITS:]
        return "".join((
            "IF",
            freq,
            " " * 5,
            "00000",                          # RIT/XIT offset, not tracked
            "0",                              # RIT off
            "0",                              # XIT off
            "000",                            # memory channel
            "1" if s.is_transmitting else "0",
            s.mode.ts590_code,
            "0",                              # function
            "0",                              # scan
            "1" if s.is_split else "0",
            "0",                              # CTCSS off
            "00",                             # CTCSS frequency
            "0",
            ";",
        ))
