import socket
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from loghandler import get_logger
from relay.interface import (
    BaseRelaySender,
    Expected,
    RelayCancelledError,
    RelayTransportError,
)


class ExchangeStatus(Enum):
    OK = "ok"
    TIMEOUT = "timeout"
    SOCKET_ERROR = "socket-error"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ExchangeResult:
    status: ExchangeStatus
    response: str = ""
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is ExchangeStatus.OK


class RelayTransport(BaseRelaySender):
    """
    UDP request/reply transport for the relay controller's text protocol.

    Responsibilities:
      - One local UDP socket, bound to an ephemeral port, reused for every exchange.
      - A single gate so request/reply pairs never interleave on the wire.
      - Per-attempt outcomes are ExchangeResult values; only the final outcome
        of the retry schedule is raised (RelayTransportError).
      - Exponential backoff between attempts: backoff_base, 2x, 4x, ...
      - stop_event aborts waits and backoff immediately (RelayCancelledError).

    Stale datagrams left over from an earlier timed-out exchange are drained
    before each send so a late reply is never taken for the current one.
    """

    def __init__(
        self,
        host: str,
        port: int,
        *,
        timeout: float = 1.0,
        max_retries: int = 3,
        backoff_base: float = 0.1,
        poll_interval: float = 0.1,
        stop_event: Optional[threading.Event] = None,
        debug: bool = False,
        sock: Optional[socket.socket] = None,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")

        self.host = host
        self.port = int(port)
        self.timeout = float(timeout)
        self.max_retries = int(max_retries)
        self.backoff_base = float(backoff_base)
        self.poll_interval = float(poll_interval)
        self.debug = debug

        self._logger = get_logger()
        self._stop_evt = stop_event or threading.Event()
        self._gate = threading.Lock()

        if sock is None:
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(("", 0))
        self._sock = sock

    @property
    def endpoint(self) -> str:
        return f"{self.host}:{self.port}"

    def backoff_delay(self, attempt: int) -> float:
        """Delay after failed attempt number `attempt` (1-based)."""
        return self.backoff_base * (2 ** (attempt - 1))

    # ---------- Public API ----------

    def send_and_receive(self, message: str, timeout: Optional[float] = None) -> str:
        timeout = self.timeout if timeout is None else float(timeout)

        with self._gate:
            last: Optional[ExchangeResult] = None
            for attempt in range(1, self.max_retries + 1):
                if self._stop_evt.is_set():
                    raise RelayCancelledError(f"Exchange '{message}' cancelled", attempt - 1, "cancelled")

                t0 = time.monotonic()
                result = self._exchange_once(message, timeout)
                if result.ok:
                    if self.debug:
                        rtt_ms = int((time.monotonic() - t0) * 1000)
                        self._logger.debug(f"[RELAY] '{message}' -> '{result.response}' in {rtt_ms} ms")
                    return result.response

                if result.status is ExchangeStatus.CANCELLED:
                    raise RelayCancelledError(f"Exchange '{message}' cancelled", attempt, result.status.value)

                last = result
                detail = f": {result.error}" if result.error else ""
                self._logger.warning(
                    f"[RELAY] Attempt {attempt}/{self.max_retries} for '{message}' "
                    f"to {self.endpoint} failed ({result.status.value}{detail})"
                )

                if attempt < self.max_retries:
                    if self._stop_evt.wait(self.backoff_delay(attempt)):
                        raise RelayCancelledError(f"Exchange '{message}' cancelled", attempt, "cancelled")

            status = last.status.value if last else None
            self._logger.error(
                f"[RELAY] Giving up on '{message}' after {self.max_retries} attempts (last: {status})"
            )
            raise RelayTransportError(
                f"No reply from relay controller at {self.endpoint} for '{message}' "
                f"after {self.max_retries} attempts ({status})",
                attempts=self.max_retries,
                last_status=status,
            )

    def send_and_validate(self, command: str, expected: Expected,
                          timeout: Optional[float] = None) -> bool:
        response = self.send_and_receive(command, timeout)
        if isinstance(expected, str):
            matched = response == expected
        else:
            matched = expected.search(response) is not None
        if not matched:
            self._logger.warning(f"[RELAY] '{command}' answered '{response}', expected '{getattr(expected, 'pattern', expected)}'")
        return matched

    def close(self):
        try:
            self._sock.close()
        except OSError:
            pass

    # ---------- Single exchange ----------

    def _drain(self):
        try:
            self._sock.setblocking(False)
            while True:
                try:
                    data, _ = self._sock.recvfrom(1024)
                except (BlockingIOError, InterruptedError):
                    break
                self._logger.debug(f"[RELAY] Discarded stale datagram: {data!r}")
        except OSError as e:
            self._logger.debug(f"[RELAY] Drain failed (ignored): {e}")

    def _exchange_once(self, message: str, timeout: float) -> ExchangeResult:
        self._drain()
        try:
            if self.debug:
                self._logger.debug(f"[SEND] {message}")
            self._sock.sendto(message.encode("ascii"), (self.host, self.port))
        except OSError as e:
            return ExchangeResult(ExchangeStatus.SOCKET_ERROR, error=str(e))

        deadline = time.monotonic() + timeout
        while True:
            if self._stop_evt.is_set():
                return ExchangeResult(ExchangeStatus.CANCELLED)
            left = deadline - time.monotonic()
            if left <= 0:
                return ExchangeResult(ExchangeStatus.TIMEOUT)
            try:
                self._sock.settimeout(min(self.poll_interval, left))
                data, _ = self._sock.recvfrom(1024)
            except socket.timeout:
                continue
            except OSError as e:
                return ExchangeResult(ExchangeStatus.SOCKET_ERROR, error=str(e))
            return ExchangeResult(ExchangeStatus.OK, data.decode("ascii", errors="replace").strip())
