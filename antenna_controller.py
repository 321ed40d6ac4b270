# antenna_controller.py
# Follows the radio's band and keeps the matching antenna relay selected.

from __future__ import annotations

import queue
import threading
from datetime import datetime
from typing import List, Optional

from antenna_config import PortConfigStore
from band_decoder import UNKNOWN_BAND, band_name, decode_band
from events import EventBus, RadioStateUpdated
from loghandler import get_logger, get_switch_logger
from radio_state import RadioState
from relay import RelayError, RelayManager
from ui_status import BG_GREEN, BG_RED, status_show
from utils import fmt_freq

logger = None


class AntennaController:
    """
    Bridges radio state to relay selection.

    For each RadioState (coalesced to the latest one on a worker thread):
      1. decode the band from the rx frequency
      2. skip if the band is unchanged and its remembered relay is already on
      3. list the relays configured for the band
      4. prefer the band's last selected relay, else the first one listed
      5. ask the RelayManager to make it the only relay on

    Hardware work never runs on the listener threads that publish states.
    """

    def __init__(
        self,
        bus: EventBus,
        relays: RelayManager,
        port_configs: PortConfigStore,
        *,
        show_status: bool = False,
    ):
        global logger
        if logger is None:
            logger = get_logger()

        self.bus = bus
        self.relays = relays
        self.port_configs = port_configs
        self.show_status = show_status

        self.band: int = UNKNOWN_BAND
        self.available_antennas: List[int] = []
        self.selected_port: int = 0
        self.state: Optional[RadioState] = None

        self._queue: "queue.Queue[RadioState]" = queue.Queue()
        self._worker: Optional[threading.Thread] = None
        self._stop_evt = threading.Event()
        self._token = None

    @property
    def current_relay(self) -> int:
        return self.relays.current_relay

    # ---------- Lifecycle ----------

    def start(self):
        self._stop_evt.clear()
        self._token = self.bus.subscribe(RadioStateUpdated, self._on_state)
        self._worker = threading.Thread(target=self._worker_loop, name="antenna-controller", daemon=True)
        self._worker.start()

    def stop(self, grace: float = 5.0):
        if self._token is not None:
            self.bus.unsubscribe(self._token)
            self._token = None
        self._stop_evt.set()
        if self._worker is not None:
            self._worker.join(timeout=grace)
            if self._worker.is_alive():
                logger.warning(f"[ANT] Controller did not stop within {grace:.0f} seconds.")
        self._worker = None

    def _on_state(self, event: RadioStateUpdated):
        self._queue.put(event.state)

    def _worker_loop(self):
        while not self._stop_evt.is_set():
            try:
                state = self._queue.get(timeout=0.25)
            except queue.Empty:
                continue
            # Only the newest state matters.
            while True:
                try:
                    state = self._queue.get_nowait()
                except queue.Empty:
                    break
            try:
                self.handle_radio_state(state)
            except RelayError as e:
                logger.error(f"[ANT] Antenna change failed: {e}")
            except Exception:
                logger.exception("[ANT] Unexpected error while following the radio")

    # ---------- Selection ----------

    def handle_radio_state(self, state: RadioState) -> int:
        """Apply one radio update synchronously; returns the relay now selected (0 = none)."""
        self.state = state
        band = decode_band(state.rx_frequency)
        band_changed = band != self.band
        self.band = band

        if band_changed or not self.relays.is_correct_relay_set(band):
            self._select_for_band(band)

        self._render_status()
        return self.relays.current_relay

    def _select_for_band(self, band: int):
        self.available_antennas = self.relays.get_relays_for_band(band, self.port_configs.configs)
        last = self.relays.get_last_selected_relay_for_band(band)

        if not self.available_antennas:
            self.selected_port = 0
            if band != UNKNOWN_BAND:
                logger.info(f"[ANT] No antenna configured for band {band_name(band)}")
            return

        self.selected_port = last if last in self.available_antennas else self.available_antennas[0]
        if self.relays.set_relay_for_antenna(self.selected_port, band):
            self._journal(band, self.selected_port)

    def select_antenna(self, relay_id: int) -> bool:
        """Manual choice among the antennas available for the current band."""
        if relay_id not in self.available_antennas:
            logger.warning(
                f"[ANT] Relay {relay_id} is not configured for band {band_name(self.band)} "
                f"(available: {self.available_antennas or 'none'})"
            )
            return False
        self.selected_port = relay_id
        changed = self.relays.set_relay_for_antenna(relay_id, self.band)
        if changed:
            self._journal(self.band, relay_id)
        self._render_status()
        return True

    # ---------- Output ----------

    def _journal(self, band: int, relay: int):
        s = self.state
        rx = s.rx_frequency if s and s.rx_frequency else ""
        mode = s.mode.value if s else ""
        ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        get_switch_logger().info(f"{ts},{band_name(band)},{relay},{rx},{mode}")

    def _render_status(self):
        if not self.show_status:
            return
        s = self.state
        relay = self.relays.current_relay
        text = (
            f"{band_name(self.band):>4}  ANT {relay or '-'}  "
            f"RX {fmt_freq(s.rx_hz if s else None)}  {s.mode.value if s else ''}"
        )
        status_show(text, BG_RED if s and s.is_transmitting else BG_GREEN)
