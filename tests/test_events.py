from antenna_config import AntennaPortConfig, PortConfigStore
from events import EventBus, PortConfigChanged, RadioStateUpdated, RelayChanged
from radio_state import RadioState


def test_delivery_in_subscription_order_by_exact_type():
    bus = EventBus()
    seen = []
    bus.subscribe(RelayChanged, lambda e: seen.append(("a", e.relay)))
    bus.subscribe(RelayChanged, lambda e: seen.append(("b", e.relay)))
    bus.subscribe(RadioStateUpdated, lambda e: seen.append(("state", e)))

    bus.publish(RelayChanged(relay=3, band=5))
    assert seen == [("a", 3), ("b", 3)]


def test_unsubscribe():
    bus = EventBus()
    seen = []
    token = bus.subscribe(RelayChanged, seen.append)
    assert bus.unsubscribe(token) is True
    assert bus.unsubscribe(token) is False
    bus.publish(RelayChanged(relay=1, band=1))
    assert seen == []


def test_failing_subscriber_is_isolated():
    bus = EventBus()
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe(RadioStateUpdated, broken)
    bus.subscribe(RadioStateUpdated, seen.append)
    event = RadioStateUpdated(RadioState(rx_frequency="7074000"))
    bus.publish(event)
    assert seen == [event]


def test_config_store_versions_snapshots():
    bus = EventBus()
    events = []
    bus.subscribe(PortConfigChanged, events.append)
    store = PortConfigStore(bus, [AntennaPortConfig(port=1, band_mask=0b1)])
    assert store.version == 1
    assert store.is_band_configured(1)
    assert not store.is_band_configured(2)

    new = [AntennaPortConfig(port=1, band_mask=0b10)]
    assert store.replace(new) == 2
    assert events[0].version == 2
    assert events[0].configs == tuple(new)
    assert store.is_band_configured(2)
