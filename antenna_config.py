# antenna_config.py
"""
Per-port antenna band capabilities.

Each relay port carries a 10-bit band mask (bit 0 = 160m ... bit 9 = 6m).
Display fields (name, description) never influence switching.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from band_decoder import BAND_COUNT, BAND_KEYS, band_number_for_key
from events import EventBus, PortConfigChanged

DEFAULT_PORT_COUNT = 6


@dataclass(frozen=True)
class AntennaPortConfig:
    port: int
    band_mask: int = 0
    name: str = ""
    description: str = ""

    def supports_band(self, band_number: int) -> bool:
        if not 1 <= band_number <= BAND_COUNT:
            return False
        return bool(self.band_mask & (1 << (band_number - 1)))

    @property
    def bands(self) -> List[str]:
        return [key for i, key in enumerate(BAND_KEYS) if self.band_mask & (1 << i)]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AntennaPortConfig":
        """
        Build from a settings.yml 'ports' entry:
          {port: 1, name: "Vertical", bands: [160m, 80m]}
        """
        mask = 0
        for key in data.get("bands") or []:
            mask |= 1 << (band_number_for_key(str(key)) - 1)
        return cls(
            port=int(data["port"]),
            band_mask=mask,
            name=str(data.get("name") or ""),
            description=str(data.get("description") or ""),
        )


def load_port_configs(antennas: Optional[Dict[str, Any]]) -> List[AntennaPortConfig]:
    """
    Turn the 'antennas' settings section into one config per port 1..port_count.
    Ports missing from the file get an empty (no band) config.
    """
    antennas = antennas or {}
    port_count = int(antennas.get("port_count") or DEFAULT_PORT_COUNT)
    by_port = {}
    for entry in antennas.get("ports") or []:
        cfg = AntennaPortConfig.from_dict(entry)
        by_port[cfg.port] = cfg
    return [by_port.get(i, AntennaPortConfig(port=i)) for i in range(1, port_count + 1)]


class PortConfigStore:
    """Holds the current port-config snapshot and announces replacements."""

    def __init__(self, bus: EventBus, configs: Iterable[AntennaPortConfig] = ()):
        self._bus = bus
        self._lock = threading.Lock()
        self._configs: Tuple[AntennaPortConfig, ...] = tuple(configs)
        self._version = 1

    @property
    def configs(self) -> List[AntennaPortConfig]:
        return list(self._configs)

    @property
    def version(self) -> int:
        return self._version

    def replace(self, configs: Iterable[AntennaPortConfig]) -> int:
        with self._lock:
            self._configs = tuple(configs)
            self._version += 1
            event = PortConfigChanged(configs=self._configs, version=self._version)
        self._bus.publish(event)
        return event.version

    def is_band_configured(self, band_number: int) -> bool:
        return any(c.supports_band(band_number) for c in self._configs)
