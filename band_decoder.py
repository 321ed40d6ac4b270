# band_decoder.py
# Maps an operating frequency to one of the ten HF/6m amateur bands.

from typing import Any, List, Optional, Tuple

# (band number, key, low Hz, high Hz), both ends inclusive
_BAND_RANGES: List[Tuple[int, str, int, int]] = [
    (1, "160m", 1_810_000, 2_000_000),
    (2, "80m", 3_500_000, 3_800_000),
    (3, "40m", 7_000_000, 7_200_000),
    (4, "30m", 10_100_000, 10_150_000),
    (5, "20m", 14_000_000, 14_350_000),
    (6, "17m", 18_068_000, 18_168_000),
    (7, "15m", 21_000_000, 21_450_000),
    (8, "12m", 24_890_000, 24_990_000),
    (9, "10m", 28_000_000, 29_700_000),
    (10, "6m", 50_000_000, 54_000_000),
]

UNKNOWN_BAND = 0
BAND_COUNT = len(_BAND_RANGES)

# Band keys in band-number order; index 0 is band 1 (160m).
BAND_KEYS: List[str] = [key for _, key, _, _ in _BAND_RANGES]

BAND_NAMES = {0: "None"}
BAND_NAMES.update({number: key for number, key, _, _ in _BAND_RANGES})


def parse_frequency_hz(frequency: Any) -> Optional[int]:
    """
    Coerce a feed value to integer Hz.

    Accepts ints and digit strings; decimal strings are truncated
    ("14195000.7" -> 14195000). Returns None for empty or non-numeric input.
    """
    if frequency is None or isinstance(frequency, bool):
        return None
    if isinstance(frequency, int):
        return frequency
    text = str(frequency).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return int(float(text))
    except (ValueError, OverflowError):
        return None


def decode_band(frequency: Any) -> int:
    """Return the band number (1..10) for a frequency in Hz, or 0 if outside every band."""
    hz = parse_frequency_hz(frequency)
    if hz is None:
        return UNKNOWN_BAND
    for number, _, low, high in _BAND_RANGES:
        if low <= hz <= high:
            return number
    return UNKNOWN_BAND


def band_name(band_number: int) -> str:
    if band_number not in BAND_NAMES:
        raise ValueError(f"Unknown band number: {band_number}")
    return BAND_NAMES[band_number]


def band_number_for_key(key: str) -> int:
    """'20m' / '20M' / '20' -> 5. Raises ValueError for unknown keys."""
    k = (key or "").strip().lower()
    if k.isdigit():
        k = f"{k}m"
    if k not in BAND_KEYS:
        raise ValueError(f"Unknown band '{key}'. Valid bands: {', '.join(BAND_KEYS)}")
    return BAND_KEYS.index(k) + 1
