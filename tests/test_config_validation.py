import logging
from pathlib import Path

import pytest

pytest.importorskip("yaml")

import main
from antenna_config import load_port_configs
from config_validation import ConfigValidationError, validate_settings

ROOT = Path(__file__).resolve().parents[1]

LOG = logging.getLogger("test-config")


def base_settings():
    return {
        "broadcast": {"host": "0.0.0.0", "port": 12060},
        "relay_controller": {"host": "10.0.0.12", "port": 12090, "all_off_command": "aof"},
        "emulator": {"enabled": True, "port": 4532},
        "antennas": {
            "port_count": 6,
            "ports": [
                {"port": 1, "name": "Vertical", "bands": ["160m", "80m"]},
                {"port": 3, "name": "Beam", "bands": ["20m", "15m", "10"]},
            ],
        },
    }


def test_shipped_settings_file_is_valid():
    settings = main.load_yaml_file(str(ROOT / "settings.yml"))
    validate_settings(settings, LOG)


def test_minimal_settings_are_valid():
    validate_settings(base_settings(), LOG)


@pytest.mark.parametrize(
    "mutate, message",
    [
        (lambda s: s["relay_controller"].pop("host"), "relay_controller.host"),
        (lambda s: s["relay_controller"].update(port=70000), "relay_controller.port"),
        (lambda s: s["relay_controller"].update(all_off_command="off"), "all_off_command"),
        (lambda s: s["relay_controller"].update(max_retries=0), "max_retries"),
        (lambda s: s["relay_controller"].update(backoff_ms=-5), "backoff_ms"),
        (lambda s: s.update(switching={"cooldown_ms": -1}), "cooldown_ms"),
        (lambda s: s["broadcast"].update(port="12060"), "broadcast.port"),
        (lambda s: s["emulator"].update(port=0), "emulator.port"),
        (lambda s: s.update(mqtt={"enabled": True}), "mqtt.host"),
        (lambda s: s.update(mqtt={"enabled": True, "host": "h", "topic": "hourly"}), "mqtt.topic"),
        (lambda s: s["antennas"].update(port_count=17), "port_count"),
        (lambda s: s["antennas"]["ports"].append({"port": 7, "bands": []}), "1..6"),
        (lambda s: s["antennas"]["ports"].append({"port": 1, "bands": []}), "listed twice"),
        (lambda s: s["antennas"]["ports"][0].update(bands=["2m"]), "Unknown band"),
        (lambda s: s.update(antennas=["not", "a", "mapping"]), "must be a mapping"),
    ],
)
def test_invalid_settings_rejected(mutate, message):
    settings = base_settings()
    mutate(settings)
    with pytest.raises(ConfigValidationError, match=message):
        validate_settings(settings, LOG)


def test_disabled_sections_are_not_checked():
    settings = base_settings()
    settings["emulator"] = {"enabled": False, "port": "nope"}
    settings["mqtt"] = {"enabled": False, "topic": "whatever"}
    validate_settings(settings, LOG)


def test_missing_ports_filled_with_empty_configs():
    configs = load_port_configs(base_settings()["antennas"])
    assert [c.port for c in configs] == [1, 2, 3, 4, 5, 6]
    assert configs[0].bands == ["160m", "80m"]
    assert configs[1].band_mask == 0
    assert configs[2].bands == ["20m", "15m", "10m"]
    assert configs[2].name == "Beam"


def test_load_yaml_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        main.load_yaml_file(str(tmp_path / "missing.yml"))

    bad = tmp_path / "bad.yml"
    bad.write_text("broadcast: [unclosed\n", encoding="utf-8")
    with pytest.raises(main.ConfigurationError):
        main.load_yaml_file(str(bad))

    scalar = tmp_path / "scalar.yml"
    scalar.write_text("just a string\n", encoding="utf-8")
    with pytest.raises(main.ConfigurationError):
        main.load_yaml_file(str(scalar))

    empty = tmp_path / "empty.yml"
    empty.write_text("", encoding="utf-8")
    assert main.load_yaml_file(str(empty)) == {}


def test_context_defaults():
    ctx = main.create_context(base_settings(), LOG, False)
    assert ctx.release_on_exit is False
    assert ctx.show_status is True
    assert ctx.relay_settings["host"] == "10.0.0.12"
    assert ctx.mqtt_settings == {}
