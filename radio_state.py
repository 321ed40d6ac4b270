# radio_state.py
"""
Snapshot of the radio as last reported by the logging software.

A RadioState is replaced wholesale on every update; nothing merges fields
from an older snapshot. Consumers hold a reference and read it without locks.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from band_decoder import decode_band, parse_frequency_hz


class Mode(Enum):
    UNKNOWN = "UNKNOWN"
    LSB = "LSB"
    USB = "USB"
    CW = "CW"
    FM = "FM"
    AM = "AM"

    @classmethod
    def parse(cls, text: Optional[str]) -> "Mode":
        if not text:
            return cls.UNKNOWN
        try:
            return cls(text.strip().upper())
        except ValueError:
            return cls.UNKNOWN

    @property
    def ts590_code(self) -> str:
        return _TS590_MODE_CODES[self]


_TS590_MODE_CODES = {
    Mode.UNKNOWN: "0",
    Mode.LSB: "1",
    Mode.USB: "2",
    Mode.CW: "3",
    Mode.FM: "4",
    Mode.AM: "5",
}


def _normalize_frequency(value: Any) -> Optional[str]:
    hz = parse_frequency_hz(value)
    if hz is None or hz < 0:
        return None
    return str(hz)


@dataclass(frozen=True)
class RadioState:
    rx_frequency: Optional[str] = None
    tx_frequency: Optional[str] = None
    mode: Mode = Mode.UNKNOWN
    is_split: bool = False
    is_transmitting: bool = False
    active_radio: Optional[int] = None
    updated_at: float = field(default_factory=time.time)

    def __post_init__(self):
        # Frequencies are kept as plain digit strings (Hz) or None.
        object.__setattr__(self, "rx_frequency", _normalize_frequency(self.rx_frequency))
        object.__setattr__(self, "tx_frequency", _normalize_frequency(self.tx_frequency))
        if not isinstance(self.mode, Mode):
            object.__setattr__(self, "mode", Mode.parse(self.mode))

    @classmethod
    def from_feed(
        cls,
        rx_frequency: Any = None,
        tx_frequency: Any = None,
        mode: Optional[str] = None,
        is_split: bool = False,
        is_transmitting: bool = False,
        active_radio: Optional[int] = None,
    ) -> "RadioState":
        """Build a snapshot from feed values; tx follows rx unless the radio is split."""
        return cls(
            rx_frequency=rx_frequency,
            tx_frequency=tx_frequency if is_split else rx_frequency,
            mode=Mode.parse(mode),
            is_split=bool(is_split),
            is_transmitting=bool(is_transmitting),
            active_radio=active_radio,
        )

    @property
    def rx_hz(self) -> Optional[int]:
        return int(self.rx_frequency) if self.rx_frequency is not None else None

    @property
    def tx_hz(self) -> Optional[int]:
        return int(self.tx_frequency) if self.tx_frequency is not None else None

    @property
    def band(self) -> int:
        return decode_band(self.rx_frequency)
