"""Configuration validation helpers for the antenna switch."""
from typing import Any, Dict

from band_decoder import band_number_for_key
from bus_bridge import TOPICS
from relay.protocol import ALL_OFF_COMMANDS, RELAY_COUNT


class ConfigValidationError(Exception):
    pass


def _section(settings: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = settings.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigValidationError(f"Configuration error: '{name}' must be a mapping.")
    return value


def _check_port(value: Any, where: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 65535:
        raise ConfigValidationError(
            f"Configuration error: '{where}' must be a port number 1..65535, got {value!r}."
        )


def validate_settings(settings: Dict[str, Any], logger) -> None:
    """Validate settings.yml early and loudly; raises ConfigValidationError."""
    try:
        _validate(settings if isinstance(settings, dict) else {})
    except ConfigValidationError as e:
        logger.error(str(e))
        raise


def _validate(settings: Dict[str, Any]) -> None:
    broadcast = _section(settings, "broadcast")
    if "port" in broadcast:
        _check_port(broadcast["port"], "broadcast.port")

    relay = _section(settings, "relay_controller")
    if not relay.get("host"):
        raise ConfigValidationError(
            "Configuration error: 'relay_controller.host' is required.\n"
            "→ Set it in your settings.yml, e.g. host: 10.0.0.12"
        )
    _check_port(relay.get("port", 12090), "relay_controller.port")
    style = relay.get("all_off_command", "aof")
    if style not in ALL_OFF_COMMANDS:
        raise ConfigValidationError(
            f"Configuration error: 'relay_controller.all_off_command' must be one of "
            f"{', '.join(ALL_OFF_COMMANDS)}, got {style!r}."
        )
    retries = relay.get("max_retries", 3)
    if isinstance(retries, bool) or not isinstance(retries, int) or retries < 1:
        raise ConfigValidationError("Configuration error: 'relay_controller.max_retries' must be >= 1.")
    for key in ("timeout", "backoff_ms"):
        value = relay.get(key)
        if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0):
            raise ConfigValidationError(f"Configuration error: 'relay_controller.{key}' must be > 0.")

    cooldown = _section(settings, "switching").get("cooldown_ms", 100)
    if isinstance(cooldown, bool) or not isinstance(cooldown, (int, float)) or cooldown < 0:
        raise ConfigValidationError("Configuration error: 'switching.cooldown_ms' must be >= 0.")

    emulator = _section(settings, "emulator")
    if emulator.get("enabled", True):
        _check_port(emulator.get("port", 4532), "emulator.port")

    mqtt = _section(settings, "mqtt")
    if mqtt.get("enabled", False):
        if not mqtt.get("host"):
            raise ConfigValidationError("Configuration error: 'mqtt.host' is required when mqtt is enabled.")
        _check_port(mqtt.get("port", 1883), "mqtt.port")
        if str(mqtt.get("topic", "frequent")).lower() not in TOPICS:
            raise ConfigValidationError(
                f"Configuration error: 'mqtt.topic' must be one of {', '.join(TOPICS)}."
            )

    _validate_antennas(_section(settings, "antennas"))


def _validate_antennas(antennas: Dict[str, Any]) -> None:
    port_count = antennas.get("port_count", 6)
    if isinstance(port_count, bool) or not isinstance(port_count, int) or not 1 <= port_count <= RELAY_COUNT:
        raise ConfigValidationError(
            f"Configuration error: 'antennas.port_count' must be 1..{RELAY_COUNT}, got {port_count!r}."
        )

    seen = set()
    for entry in antennas.get("ports") or []:
        if not isinstance(entry, dict):
            raise ConfigValidationError(f"Configuration error: antenna entry {entry!r} must be a mapping.")
        port = entry.get("port")
        if isinstance(port, bool) or not isinstance(port, int) or not 1 <= port <= port_count:
            raise ConfigValidationError(
                f"Configuration error: antenna port {port!r} must be an integer 1..{port_count}."
            )
        if port in seen:
            raise ConfigValidationError(f"Configuration error: antenna port {port} is listed twice.")
        seen.add(port)
        for band in entry.get("bands") or []:
            try:
                band_number_for_key(str(band))
            except ValueError as e:
                raise ConfigValidationError(f"Configuration error: port {port}: {e}") from None
