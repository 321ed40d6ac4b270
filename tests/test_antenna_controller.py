import time

import pytest

from antenna_config import AntennaPortConfig, PortConfigStore
from antenna_controller import AntennaController
from events import EventBus, RadioStateUpdated
from loghandler import get_switch_logger
from radio_state import Mode, RadioState
from relay import BaseRelaySender, RelayManager, RelayTransportError


class FakeSender(BaseRelaySender):
    def __init__(self):
        self.sent = []
        self.down = False

    def send_and_receive(self, message, timeout=None):
        if self.down:
            raise RelayTransportError("controller unreachable", attempts=3, last_status="timeout")
        self.sent.append(message)
        if message == "RELAY-STATE-255":
            return "RELAY-STATE-255,0,0,OK"
        return f"{message},OK"

    def send_and_validate(self, command, expected, timeout=None):
        return self.send_and_receive(command, timeout) == expected


# 1: 160/80, 2: 40, 3: 20/15/10, 4: 40/20
CONFIGS = [
    AntennaPortConfig(port=1, band_mask=0b11, name="Inverted L"),
    AntennaPortConfig(port=2, band_mask=0b100, name="Dipole"),
    AntennaPortConfig(port=3, band_mask=0b101010000, name="Hexbeam"),
    AntennaPortConfig(port=4, band_mask=0b10100, name="Vertical"),
]


@pytest.fixture()
def parts():
    bus = EventBus()
    sender = FakeSender()
    relays = RelayManager(sender, bus=bus, cooldown=0)
    store = PortConfigStore(bus, CONFIGS)
    controller = AntennaController(bus, relays, store)
    return bus, sender, relays, store, controller


def state(freq, **kw):
    return RadioState(rx_frequency=freq, mode=kw.pop("mode", Mode.USB), **kw)


def test_band_change_selects_first_antenna(parts):
    _, _, relays, _, controller = parts
    assert controller.handle_radio_state(state("7074000")) == 2
    assert controller.band == 3
    assert controller.available_antennas == [2, 4]
    assert controller.selected_port == 2
    assert relays.get_last_selected_relay_for_band(3) == 2


def test_same_band_does_not_resend(parts):
    _, sender, _, _, controller = parts
    controller.handle_radio_state(state("14074000"))
    count = len(sender.sent)
    controller.handle_radio_state(state("14195000"))
    assert len(sender.sent) == count
    assert controller.current_relay == 3


def test_remembers_manual_choice_per_band(parts):
    _, _, _, _, controller = parts
    controller.handle_radio_state(state("14074000"))
    assert controller.select_antenna(4) is True
    assert controller.current_relay == 4

    controller.handle_radio_state(state("3573000"))
    assert controller.current_relay == 1

    controller.handle_radio_state(state("14074000"))
    assert controller.current_relay == 4


def test_manual_choice_outside_band_rejected(parts):
    _, _, _, _, controller = parts
    controller.handle_radio_state(state("14074000"))
    assert controller.select_antenna(2) is False
    assert controller.current_relay == 3


def test_no_antenna_for_band_leaves_relays(parts):
    _, sender, relays, _, controller = parts
    controller.handle_radio_state(state("7074000"))
    before = relays.get_all_relay_states()
    sent = len(sender.sent)

    # 30m has no antenna configured
    controller.handle_radio_state(state("10136000"))
    assert controller.available_antennas == []
    assert controller.selected_port == 0
    assert relays.get_all_relay_states() == before
    assert len(sender.sent) == sent


def test_config_replacement_is_honoured(parts):
    _, _, _, store, controller = parts
    controller.handle_radio_state(state("14074000"))
    assert controller.current_relay == 3

    store.replace([AntennaPortConfig(port=5, band_mask=0b10000)])
    controller.handle_radio_state(state("7074000"))
    controller.handle_radio_state(state("14074000"))
    assert controller.available_antennas == [5]
    assert controller.current_relay == 5


def test_switch_journal_row(parts, _logging):
    _, _, _, _, controller = parts
    controller.handle_radio_state(state("21074000", mode=Mode.CW))
    for handler in get_switch_logger().handlers:
        handler.flush()

    journal = sorted(_logging.glob("switch-journal_*.csv"))[-1]
    lines = journal.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "timestamp,band,relay,rx_hz,mode"
    assert lines[-1].endswith(",15m,3,21074000,CW")


def test_worker_follows_bus_and_survives_failures(parts):
    bus, sender, _, _, controller = parts
    controller.start()
    try:
        sender.down = True
        bus.publish(RadioStateUpdated(state("7074000")))
        time.sleep(0.3)
        assert controller.current_relay == 0

        sender.down = False
        bus.publish(RadioStateUpdated(state("28074000")))
        deadline = time.time() + 2
        while controller.current_relay != 3 and time.time() < deadline:
            time.sleep(0.02)
        assert controller.current_relay == 3
    finally:
        controller.stop(grace=2.0)
