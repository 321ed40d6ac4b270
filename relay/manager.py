import threading
import time
from typing import Callable, Dict, Iterable, List, Optional

from loghandler import get_logger
from events import EventBus, PortConfigChanged, RelayChanged
from relay.interface import BaseRelaySender, RelayProtocolError
from relay.protocol import (
    DEFAULT_ALL_OFF,
    RELAY_COUNT,
    STATE_QUERY,
    all_off_command,
    check_relay_id,
    parse_state_reply,
    set_command,
)

logger = None


class RelayManager:
    """
    Relay selection state machine: Idle (no relay on) or RelayOn(id).

    Invariants:
      - At most one relay is on in the committed state.
      - current_relay is 0 exactly when no relay is on.
      - Relay ids outside 1..16 are rejected before any hardware command.

    Every mutating operation runs under one lock. The _locked_* helpers assume
    the lock is held and are the only code that touches _relay_states,
    _current_relay and the two per-band caches. Readers get plain snapshots
    and may observe a state mid-transition.

    A relay sequence works on a copy of the relay states and commits it only
    when the controller has confirmed the target relay. A failed sequence
    leaves the committed state untouched but marks it unsynced: the hardware
    may be partly switched, so the next operation re-reads RELAY-STATE before
    deciding anything, including whether a request is a no-op.
    """

    def __init__(
        self,
        sender: BaseRelaySender,
        *,
        bus: Optional[EventBus] = None,
        cooldown: float = 0.1,
        all_off_style: str = DEFAULT_ALL_OFF,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        global logger
        if logger is None:
            logger = get_logger()

        self.sender = sender
        self.bus = bus
        self.cooldown = float(cooldown)
        self._all_off = all_off_command(all_off_style)
        self._clock = clock
        self._sleep = sleep

        self._lock = threading.Lock()
        self._relay_states: Dict[int, bool] = {i: False for i in range(1, RELAY_COUNT + 1)}
        self._states_synced = False
        self._current_relay = 0
        self._band_to_relays: Dict[int, List[int]] = {}
        self._published_configs: Optional[tuple] = None
        self._last_selected_for_band: Dict[int, int] = {}
        self._last_change: Optional[float] = None

        self._config_token = None
        if bus is not None:
            self._config_token = bus.subscribe(PortConfigChanged, self._on_port_config_changed)

    # ---------- Snapshot reads ----------

    @property
    def current_relay(self) -> int:
        return self._current_relay

    def get_relay_state(self, relay_id: int) -> bool:
        return self._relay_states.get(relay_id, False)

    def get_all_relay_states(self) -> Dict[int, bool]:
        return dict(self._relay_states)

    def get_last_selected_relay_for_band(self, band_number: int) -> int:
        return self._last_selected_for_band.get(band_number, 0)

    def is_correct_relay_set(self, band_number: int) -> bool:
        last = self.get_last_selected_relay_for_band(band_number)
        return last != 0 and self._current_relay == last

    # ---------- Band -> relay lookup ----------

    def get_relays_for_band(self, band_number: int, port_configs: Iterable) -> List[int]:
        """
        Ports whose band mask includes band_number, in config order.

        Cached per band until invalidate_band_cache() (called on every config
        snapshot published on the bus). A list computed from a config that is
        no longer the published snapshot is returned but never cached.
        """
        configs = tuple(port_configs)
        with self._lock:
            cached = self._band_to_relays.get(band_number)
            if cached is not None:
                return list(cached)
            relays = [int(cfg.port) for cfg in configs if cfg.supports_band(band_number)]
            if self._published_configs is None or configs == self._published_configs:
                self._band_to_relays[band_number] = relays
            else:
                logger.debug(f"[RELAY] Relays for band {band_number} computed from a stale config, not cached")
        return list(relays)

    def invalidate_band_cache(self):
        with self._lock:
            self._band_to_relays.clear()

    def _on_port_config_changed(self, event: PortConfigChanged):
        with self._lock:
            self._published_configs = tuple(event.configs)
            self._band_to_relays.clear()
        logger.info(f"[RELAY] Antenna configuration v{event.version} loaded, band cache cleared")

    # ---------- Mutating operations ----------

    def set_relay_for_antenna(self, relay_id: int, band_number: int) -> bool:
        """
        Make relay_id the only relay on and remember it for band_number.

        Returns False when no relay had to be switched (already selected), True
        after a confirmed change. Transport/protocol failures propagate and
        leave the cache unsynced, so the next call re-reads the controller.
        """
        check_relay_id(relay_id)
        if self._is_sole_relay_on(relay_id):
            logger.debug(f"[RELAY] Relay {relay_id} already on, no change needed")
            return False

        with self._lock:
            try:
                # Re-reads the controller when an earlier failure left the cache unsynced.
                self._locked_current_states()
                # Another caller may have selected it while we waited for the lock.
                if self._is_sole_relay_on(relay_id):
                    self._last_selected_for_band[band_number] = relay_id
                    return False

                self._locked_wait_cooldown()
                self._locked_turn_off_all_except(relay_id)
            except Exception as e:
                self._states_synced = False
                logger.error(f"[RELAY] Failed to select relay {relay_id} for band {band_number}: {e}")
                raise

            self._last_selected_for_band[band_number] = relay_id
            self._last_change = self._clock()

        logger.info(f"[RELAY] Relay {relay_id} selected for band {band_number}")
        if self.bus is not None:
            self.bus.publish(RelayChanged(relay=relay_id, band=band_number))
        return True

    def turn_off_all_except(self, relay_to_keep_on: int) -> None:
        check_relay_id(relay_to_keep_on)
        with self._lock:
            self._locked_turn_off_all_except(relay_to_keep_on)

    def turn_off_all(self) -> None:
        command, expected = self._all_off
        with self._lock:
            # Until the reply confirms it, the hardware state is unknown.
            self._states_synced = False
            if not self.sender.send_and_validate(command, expected):
                raise RelayProtocolError("Failed to turn off all relays")
            self._relay_states = {i: False for i in range(1, RELAY_COUNT + 1)}
            self._states_synced = True
            self._current_relay = 0
        logger.info("[RELAY] All relays off")

    def set_relay(self, relay_id: int, on: bool) -> None:
        """
        Switch one relay directly. Turning a relay on switches every other
        relay off first so the one-relay-on invariant holds.
        """
        check_relay_id(relay_id)
        with self._lock:
            if on:
                self._locked_turn_off_all_except(relay_id)
                return
            states = dict(self._locked_current_states())
            self._locked_switch(states, relay_id, False)
            self._relay_states = states
            if self._current_relay == relay_id:
                self._current_relay = 0

    def refresh_states(self) -> Dict[int, bool]:
        """Re-read relay states from the controller."""
        with self._lock:
            self._states_synced = False
            return dict(self._locked_current_states())

    def close(self):
        if self.bus is not None and self._config_token is not None:
            self.bus.unsubscribe(self._config_token)
            self._config_token = None
        self.sender.close()

    # ---------- Internals (lock held) ----------

    def _is_sole_relay_on(self, relay_id: int) -> bool:
        # Only trusted while the cache matches the hardware.
        return (
            self._states_synced
            and self._current_relay == relay_id
            and self._relay_states.get(relay_id, False)
        )

    def _locked_wait_cooldown(self):
        if self._last_change is None:
            return
        remaining = self.cooldown - (self._clock() - self._last_change)
        if remaining > 0:
            logger.debug(f"[RELAY] Cooldown, waiting {remaining * 1000:.0f} ms")
            self._sleep(remaining)

    def _locked_current_states(self) -> Dict[int, bool]:
        if not self._states_synced:
            reply = self.sender.send_and_receive(STATE_QUERY)
            self._relay_states = parse_state_reply(reply)
            self._states_synced = True
            on = [i for i, v in self._relay_states.items() if v]
            self._current_relay = on[0] if len(on) == 1 else 0
            logger.debug(f"[RELAY] Controller reports relays on: {on or 'none'}")
        return self._relay_states

    def _locked_switch(self, states: Dict[int, bool], relay_id: int, on: bool):
        command, expected = set_command(relay_id, on)
        try:
            confirmed = self.sender.send_and_validate(command, expected)
        except Exception:
            self._states_synced = False
            raise
        if not confirmed:
            self._states_synced = False
            raise RelayProtocolError(f"Failed to set relay {relay_id} to {'on' if on else 'off'}")
        states[relay_id] = on

    def _locked_turn_off_all_except(self, relay_to_keep_on: int):
        states = dict(self._locked_current_states())

        for relay_id, on in sorted(states.items()):
            if relay_id != relay_to_keep_on and on:
                self._locked_switch(states, relay_id, False)

        if not states.get(relay_to_keep_on, False):
            self._locked_switch(states, relay_to_keep_on, True)

        self._relay_states = states
        self._current_relay = relay_to_keep_on
