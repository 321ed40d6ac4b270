# app_context.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional

from typing import Protocol
class LoggerLike(Protocol):
    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def info(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def error(self, msg: str, *args: Any, **kwargs: Any) -> None: ...
    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None: ...


@dataclass
class AppContext:
    """Resolved settings plus the running components, shared by main and shutdown."""
    logger: LoggerLike
    config: Dict[str, Any]
    debug_mode: bool
    broadcast_settings: Dict[str, Any]
    relay_settings: Dict[str, Any]
    emulator_settings: Dict[str, Any]
    mqtt_settings: Dict[str, Any]
    release_on_exit: bool = False
    show_status: bool = True
    bus: Optional[Any] = None
    port_configs: Optional[Any] = None
    relays: Optional[Any] = None
    listener: Optional[Any] = None
    cat_server: Optional[Any] = None
    bridge: Optional[Any] = None
    controller: Optional[Any] = None
    stop_event: Optional[Any] = None
