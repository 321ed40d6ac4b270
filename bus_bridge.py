# bus_bridge.py
"""
OmniRig MQTT bridge.

An OmniRig-to-MQTT publisher announces radio state as JSON on
'omnirig/<frequent|sporadic>/radio_info', e.g.

  {"Freq": 14195000, "TxFreq": 14195000, "Mode": "USB",
   "IsSplit": false, "ActiveRadioNr": 1, "IsTransmitting": false}

Each message becomes a RadioState on the event bus, exactly like a UDP
broadcast. Keys are matched case-insensitively; malformed payloads are
logged and dropped.
"""

import json
import threading
from typing import Any, Dict, Optional

import paho.mqtt.client as mqtt

from events import EventBus, RadioStateUpdated
from loghandler import get_logger
from radio_state import RadioState
from utils import parse_bool, parse_int

logger = None

TOPICS = ("frequent", "sporadic")


class BusBridgeError(Exception):
    pass


def topic_for(update_rate: str) -> str:
    rate = (update_rate or TOPICS[0]).lower()
    if rate not in TOPICS:
        raise ValueError(f"Unknown MQTT topic '{update_rate}'. Valid: {', '.join(TOPICS)}")
    return f"omnirig/{rate}/radio_info"


def decode_radio_info(payload: bytes) -> RadioState:
    """JSON radio_info payload -> RadioState. Raises ValueError on bad JSON/shape."""
    data = json.loads(payload.decode("utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"radio_info payload is not an object: {data!r}")
    fields: Dict[str, Any] = {str(k).lower(): v for k, v in data.items()}
    return RadioState.from_feed(
        rx_frequency=fields.get("freq"),
        tx_frequency=fields.get("txfreq"),
        mode=fields.get("mode"),
        is_split=parse_bool(fields.get("issplit")),
        is_transmitting=parse_bool(fields.get("istransmitting")),
        active_radio=parse_int(fields.get("activeradionr")),
    )


class OmniRigBridge:
    def __init__(
        self,
        bus: EventBus,
        host: str,
        port: int = 1883,
        *,
        username: str = "",
        password: str = "",
        update_rate: str = "frequent",
        client_id: str = "antenna-switch",
    ):
        global logger
        if logger is None:
            logger = get_logger()

        self.bus = bus
        self.host = host
        self.port = int(port)
        self.topic = topic_for(update_rate)
        self.connected = threading.Event()

        self.client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            protocol=mqtt.MQTTv311,
        )
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message
        if username:
            self.client.username_pw_set(username, password or None)
        self.client.reconnect_delay_set(min_delay=1, max_delay=30)

    def start(self):
        try:
            self.client.connect_async(self.host, self.port, keepalive=30)
        except (OSError, ValueError) as e:
            logger.error(f"[MQTT] Cannot connect to {self.host}:{self.port}: {e}")
            raise BusBridgeError(f"Cannot connect to MQTT broker {self.host}:{self.port}: {e}") from e
        self.client.loop_start()
        logger.info(f"[MQTT] Bridge started, broker {self.host}:{self.port}, topic {self.topic}")

    def stop(self):
        try:
            self.client.disconnect()
        finally:
            self.client.loop_stop()
        self.connected.clear()
        logger.info("[MQTT] Bridge stopped")

    # ---------- paho callbacks ----------

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        if reason_code == 0:
            logger.info(f"[MQTT] Connected to {self.host}:{self.port}")
            client.subscribe(self.topic, qos=0)
            self.connected.set()
        else:
            logger.error(f"[MQTT] Connection refused by broker: reason_code={reason_code}")
            self.connected.clear()

    def _on_disconnect(self, client, userdata, flags, reason_code, properties):
        if reason_code == 0:
            logger.info("[MQTT] Disconnected cleanly")
        else:
            logger.warning(f"[MQTT] Lost connection (reason_code={reason_code}), reconnecting...")
        self.connected.clear()

    def _on_message(self, client, userdata, msg):
        state = self.handle_payload(msg.topic, msg.payload)
        if state is not None:
            self.bus.publish(RadioStateUpdated(state))

    def handle_payload(self, topic: str, payload: bytes) -> Optional[RadioState]:
        if not payload or not topic.endswith("/radio_info"):
            return None
        try:
            return decode_radio_info(payload)
        except (ValueError, UnicodeDecodeError) as e:
            logger.error(f"[MQTT] Dropping malformed radio_info on {topic}: {e}")
            return None
