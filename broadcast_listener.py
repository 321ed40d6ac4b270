# broadcast_listener.py
"""
Listener for the logging software's UDP radio broadcast (N1MM style).

One datagram per station update, a small XML fragment such as:

  <RadioInfo><Freq>14195000</Freq><TXFreq>14195000</TXFreq><Mode>USB</Mode>
  <IsSplit>False</IsSplit><ActiveRadioNr>1</ActiveRadioNr>
  <IsTransmitting>False</IsTransmitting></RadioInfo>

Fields are pulled out one by one with tolerant regexes instead of a strict
XML parse, so a single broken element never costs the others. Unknown
elements are ignored; missing ones fall back to None/False.
"""

import errno
import ipaddress
import re
import socket
import threading
from typing import Callable, Optional

from events import EventBus, RadioStateUpdated
from loghandler import get_logger
from radio_state import RadioState
from utils import parse_bool, parse_int

logger = None

STOP_GRACE_S = 5.0


class BroadcastListenerError(Exception):
    """Raised when the listener cannot resolve or bind its endpoint."""
    pass


def extract_value(xml: str, element: str) -> Optional[str]:
    m = re.search(rf"<{element}>([^<]*)</{element}>", xml)
    return m.group(1).strip() if m else None


def parse_broadcast(message: str) -> RadioState:
    return RadioState.from_feed(
        rx_frequency=extract_value(message, "Freq"),
        tx_frequency=extract_value(message, "TXFreq"),
        mode=extract_value(message, "Mode"),
        is_split=parse_bool(extract_value(message, "IsSplit")),
        is_transmitting=parse_bool(extract_value(message, "IsTransmitting")),
        active_radio=parse_int(extract_value(message, "ActiveRadioNr")),
    )


def resolve_bind_address(address_or_hostname: str) -> str:
    try:
        return str(ipaddress.ip_address(address_or_hostname))
    except ValueError:
        pass
    try:
        infos = socket.getaddrinfo(address_or_hostname, None, socket.AF_INET, socket.SOCK_DGRAM)
    except socket.gaierror as e:
        raise BroadcastListenerError(f"Unable to resolve hostname: {address_or_hostname} ({e})") from e
    if not infos:
        raise BroadcastListenerError(f"Unable to resolve hostname: {address_or_hostname}")
    return infos[0][4][0]


class BroadcastListener:
    """
    Background UDP receive loop publishing RadioStateUpdated events.

    The last parsed state is also kept on the listener (`state`) for
    collaborators that prefer polling over subscribing.
    """

    def __init__(
        self,
        bus: Optional[EventBus] = None,
        on_state: Optional[Callable[[RadioState], None]] = None,
        recv_timeout: float = 0.5,
        error_backoff: float = 1.0,
        debug: bool = False,
    ):
        global logger
        if logger is None:
            logger = get_logger()

        self.bus = bus
        self._on_state = on_state
        self.recv_timeout = float(recv_timeout)
        self.error_backoff = float(error_backoff)
        self.debug = debug

        self.state: Optional[RadioState] = None
        self.address: Optional[str] = None
        self.port: Optional[int] = None

        self._sock: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_evt = threading.Event()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def bound_port(self) -> Optional[int]:
        """Actual local port (useful when started with port 0)."""
        return self._sock.getsockname()[1] if self._sock else None

    def start(self, address_or_hostname: str, port: int):
        if self.running:
            self.stop()

        address = resolve_bind_address(address_or_hostname)
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.bind((address, int(port)))
        except OSError as e:
            sock.close()
            reason = {
                errno.EADDRINUSE: "The address is already in use.",
                errno.EADDRNOTAVAIL: "The address is not available on this machine.",
            }.get(e.errno, f"Socket error: {e}")
            msg = f"Error binding to {address}:{port}. {reason}"
            logger.error(f"[UDP] {msg}")
            raise BroadcastListenerError(msg) from e

        sock.settimeout(self.recv_timeout)
        self._sock = sock
        self.address, self.port = address, int(port)
        self._stop_evt.clear()
        self._thread = threading.Thread(target=self._listen_loop, name="broadcast-listener", daemon=True)
        self._thread.start()
        logger.info(f"[UDP] Listening for radio broadcasts on {address}:{self.bound_port}")

    def stop(self, grace: float = STOP_GRACE_S) -> bool:
        """Stop the loop and release the socket. Returns False if the loop outlived the grace period."""
        self._stop_evt.set()
        sock, self._sock = self._sock, None
        if sock:
            try:
                sock.close()
            except OSError:
                pass

        finished = True
        if self._thread is not None:
            self._thread.join(timeout=grace)
            finished = not self._thread.is_alive()
            if not finished:
                logger.warning(f"[UDP] Listener did not stop within {grace:.0f} seconds.")
        self._thread = None
        return finished

    def _listen_loop(self):
        while not self._stop_evt.is_set():
            sock = self._sock
            if sock is None:
                return
            try:
                data, addr = sock.recvfrom(8192)
            except socket.timeout:
                continue
            except OSError as e:
                if self._stop_evt.is_set():
                    break
                logger.error(f"[UDP] Error receiving broadcast: {e}")
                self._stop_evt.wait(self.error_backoff)
                continue

            self._handle_datagram(data, addr)

    def _handle_datagram(self, data: bytes, addr=None):
        try:
            message = data.decode("utf-8", errors="replace")
            state = parse_broadcast(message)
        except Exception as e:
            logger.error(f"[UDP] Dropping unparsable broadcast from {addr}: {e}")
            return

        self.state = state
        if self.debug:
            logger.debug(
                f"[UDP] RX: {state.rx_frequency}  TX: {state.tx_frequency}  Mode: {state.mode.value}  "
                f"Split: {state.is_split}  Active Radio: {state.active_radio}  Transmit: {state.is_transmitting}"
            )

        if self._on_state:
            try:
                self._on_state(state)
            except Exception as e:
                logger.error(f"[UDP] on_state callback failed: {e}")
        if self.bus is not None:
            self.bus.publish(RadioStateUpdated(state))
