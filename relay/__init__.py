# relay/__init__.py
"""
UDP relay controller package.

Exports:
- RelayManager   (one-relay-on state machine with cooldown)
- RelayTransport (UDP request/reply with retry and backoff)
- error classes  (RelayError and subclasses)
"""

from .interface import (
    BaseRelaySender,
    RelayCancelledError,
    RelayError,
    RelayIdError,
    RelayProtocolError,
    RelayTransportError,
)
from .manager import RelayManager
from .transport import ExchangeResult, ExchangeStatus, RelayTransport

DEFAULT_RELAY_CONTROLLER_PORT: int = 12090

__all__ = [
    "BaseRelaySender",
    "ExchangeResult",
    "ExchangeStatus",
    "RelayCancelledError",
    "RelayError",
    "RelayIdError",
    "RelayManager",
    "RelayProtocolError",
    "RelayTransport",
    "RelayTransportError",
    "DEFAULT_RELAY_CONTROLLER_PORT",
]
