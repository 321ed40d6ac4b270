# events.py
"""
Typed in-process event bus.

Components publish small event objects; interested parties subscribe by
event class. Delivery is synchronous on the publishing thread and in
subscription order. A failing subscriber is logged and skipped so it cannot
break delivery to the others or kill the publisher's loop.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Tuple, Type

from loghandler import get_logger
from radio_state import RadioState

logger = None


@dataclass(frozen=True)
class RadioStateUpdated:
    state: RadioState


@dataclass(frozen=True)
class RelayChanged:
    relay: int
    band: int


@dataclass(frozen=True)
class PortConfigChanged:
    configs: Tuple[Any, ...]
    version: int


class EventBus:
    def __init__(self):
        global logger
        if logger is None:
            logger = get_logger()

        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._subscribers: Dict[type, List[Tuple[int, Callable[[Any], None]]]] = {}

    def subscribe(self, event_type: Type, callback: Callable[[Any], None]) -> int:
        """Register callback for event_type; returns a token for unsubscribe()."""
        token = next(self._ids)
        with self._lock:
            self._subscribers.setdefault(event_type, []).append((token, callback))
        return token

    def unsubscribe(self, token: int) -> bool:
        with self._lock:
            for subs in self._subscribers.values():
                for i, (t, _) in enumerate(subs):
                    if t == token:
                        del subs[i]
                        return True
        return False

    def publish(self, event: Any) -> None:
        with self._lock:
            subs = list(self._subscribers.get(type(event), ()))
        for _, callback in subs:
            try:
                callback(event)
            except Exception as e:
                logger.error(f"[EVENT] {type(event).__name__} subscriber failed: {e}")
