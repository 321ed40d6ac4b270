# relay/interface.py

"""
Relay controller sender contract and error taxonomy.

The relay manager never touches sockets itself; it talks to the hardware
through an object implementing BaseRelaySender. The UDP implementation lives
in relay.transport; tests substitute an in-memory fake.

Error taxonomy
--------------
RelayError                base class for everything raised by this package
 ├─ RelayTransportError   no usable reply after the full retry schedule
 │   └─ RelayCancelledError  exchange aborted by the shutdown signal
 ├─ RelayProtocolError    a reply arrived but had the wrong shape/content
 └─ RelayIdError          relay id outside 1..16, rejected before any I/O

Contract for send_and_receive(message, timeout)
-----------------------------------------------
• Exactly one request/reply exchange is on the wire at any time.
• Returns the reply text (ASCII, surrounding whitespace stripped).
• Raises RelayTransportError only after all retries are spent, and
  RelayCancelledError as soon as cancellation is observed.

Contract for send_and_validate(command, expected)
-------------------------------------------------
• Same exchange as above, then compares the reply with `expected`:
  a str is compared literally, a compiled re.Pattern is searched.
• Returns the boolean result; transport failures still raise.
"""

from abc import ABC, abstractmethod
from typing import Optional, Pattern, Union

Expected = Union[str, Pattern[str]]


class RelayError(Exception):
    """Generic relay controller error (superclass for all relay errors)."""
    pass


class RelayTransportError(RelayError):
    """Raised when every attempt of an exchange failed."""

    def __init__(self, message: str, attempts: int = 0, last_status: Optional[str] = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_status = last_status


class RelayCancelledError(RelayTransportError):
    """Raised when an exchange is aborted by the cancellation signal."""
    pass


class RelayProtocolError(RelayError):
    """Raised when the controller replied with something we do not understand."""
    pass


class RelayIdError(RelayError, ValueError):
    """Raised for relay ids outside the controller's 1..16 range."""
    pass


class BaseRelaySender(ABC):
    @abstractmethod
    def send_and_receive(self, message: str, timeout: Optional[float] = None) -> str: ...

    @abstractmethod
    def send_and_validate(self, command: str, expected: Expected,
                          timeout: Optional[float] = None) -> bool: ...

    def close(self):
        """Optional cleanup for sockets."""
        pass
