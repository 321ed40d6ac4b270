# utils.py
# Small parsing and formatting helpers shared by the feeds and the console.

from __future__ import annotations

from typing import Any, Optional


def parse_bool(value: Any, default: bool = False) -> bool:
    """'True'/'false'/'1'/'0'/bool -> bool; anything unrecognised -> default."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if value is None:
        return default
    text = str(value).strip().lower()
    if text in ("true", "1", "yes", "on"):
        return True
    if text in ("false", "0", "no", "off"):
        return False
    return default


def parse_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def fmt_freq(hz: Optional[int]) -> str:
    """14195000 -> '14.195.000'; None -> '-'."""
    if hz is None:
        return "-"
    mhz = hz // 1_000_000
    rem = hz % 1_000_000
    khz = rem // 1_000
    h = rem % 1_000
    return f"{mhz}.{khz:03d}.{h:03d}"


def pretty_duration(seconds: float) -> str:
    """Format duration as '1h 02m 05s' / '22m 03s' / '3.40 s' / '850 ms'."""
    if seconds < 0:
        seconds = 0.0
    if seconds < 0.001:
        return "0 ms"
    if seconds < 1.0:
        return f"{seconds * 1000:.0f} ms"
    if seconds < 60.0:
        return f"{seconds:.2f} s"

    total = int(round(seconds))
    h = total // 3600
    m = (total % 3600) // 60
    s = total % 60

    if h > 0:
        return f"{h}h {m:02d}m {s:02d}s"
    return f"{m}m {s:02d}s"
