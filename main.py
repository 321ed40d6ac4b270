# main.py
import argparse
import os
import sys
import threading
import time
import yaml
from pyfiglet import Figlet

from typing import Any, Dict, Optional

from antenna_config import PortConfigStore, load_port_configs
from antenna_controller import AntennaController
from app_context import AppContext
from broadcast_listener import BroadcastListener, BroadcastListenerError
from bus_bridge import BusBridgeError, OmniRigBridge
from config_validation import ConfigValidationError, validate_settings
from emulator import DEFAULT_CAT_PORT, CatServer, CatServerError, Ts590sgProtocol
from events import EventBus
from relay import DEFAULT_RELAY_CONTROLLER_PORT, RelayError, RelayManager, RelayTransport
from ui_status import status_clear
from utils import pretty_duration

# On Windows terminals, force UTF-8 so icons and accents render OK.
if os.name == "nt":
    try:
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        sys.stderr.reconfigure(encoding="utf-8", errors="replace")
    except Exception:
        pass

PROGRAM_NAME = "Antenna-Switch"
CURRENT_VERSION = "1.0.0"
DEFAULT_CONFIG = "settings.yml"

COLOR_CYAN = "\033[96m"
COLOR_YELLOW = "\033[93m"
COLOR_RESET = "\033[0m"

logger = None
debug_mode = False


class ConfigurationError(Exception):
    """Raised when the configuration is invalid or unsafe."""
    pass


def print_banner_safe(title: str = "ANTENNA SWITCH"):
    """Print a banner, but never crash if a figlet font is missing."""
    if os.getenv("NO_FIGLET") == "1":
        print("\n" + title + "\n")
        return
    for font in ("slant", "standard"):
        try:
            print(Figlet(font=font, width=120).renderText(title))
            return
        except Exception:
            continue
    print("\n" + title + "\n")


# -------------------------
# Config loading
# -------------------------
def load_yaml_file(file_path: str) -> Dict[str, Any]:
    """Load a small YAML file into a dict; raise if not found."""
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"Configuration file not found: {file_path}")
    with open(file_path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"{file_path} is not valid YAML: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{file_path} must contain a mapping at the top level.")
    return data


def create_context(config: Dict[str, Any], logger_in, debug_mode_in: bool) -> AppContext:
    """Build a run context from the validated configuration."""
    defaults = config.get("defaults") or {}
    return AppContext(
        logger=logger_in,
        config=config,
        debug_mode=debug_mode_in,
        broadcast_settings=config.get("broadcast") or {},
        relay_settings=config.get("relay_controller") or {},
        emulator_settings=config.get("emulator") or {},
        mqtt_settings=config.get("mqtt") or {},
        release_on_exit=bool(defaults.get("release_on_exit", False)),
        show_status=bool(defaults.get("show_status", True)),
    )


# -------------------------
# Component wiring
# -------------------------
def build_components(ctx: AppContext) -> None:
    """Create bus, relay manager, listeners and controller (nothing started yet)."""
    ctx.bus = EventBus()
    ctx.port_configs = PortConfigStore(ctx.bus, load_port_configs(ctx.config.get("antennas")))

    rs = ctx.relay_settings
    ctx.stop_event = threading.Event()
    transport = RelayTransport(
        rs["host"],
        rs.get("port", DEFAULT_RELAY_CONTROLLER_PORT),
        timeout=float(rs.get("timeout", 1.0)),
        max_retries=int(rs.get("max_retries", 3)),
        backoff_base=float(rs.get("backoff_ms", 100)) / 1000.0,
        stop_event=ctx.stop_event,
        debug=ctx.debug_mode,
    )
    cooldown_ms = (ctx.config.get("switching") or {}).get("cooldown_ms", 100)
    ctx.relays = RelayManager(
        transport,
        bus=ctx.bus,
        cooldown=float(cooldown_ms) / 1000.0,
        all_off_style=rs.get("all_off_command", "aof"),
    )

    ctx.listener = BroadcastListener(bus=ctx.bus, debug=ctx.debug_mode)

    es = ctx.emulator_settings
    if es.get("enabled", True):
        ctx.cat_server = CatServer(
            Ts590sgProtocol(bus=ctx.bus),
            host=es.get("host", "0.0.0.0"),
            port=es.get("port", DEFAULT_CAT_PORT),
            debug=ctx.debug_mode,
        )

    ms = ctx.mqtt_settings
    if ms.get("enabled", False):
        ctx.bridge = OmniRigBridge(
            ctx.bus,
            ms["host"],
            ms.get("port", 1883),
            username=ms.get("username") or "",
            password=ms.get("password") or "",
            update_rate=ms.get("topic", "frequent"),
        )

    ctx.controller = AntennaController(
        ctx.bus, ctx.relays, ctx.port_configs, show_status=ctx.show_status
    )


def start_components(ctx: AppContext) -> None:
    ctx.controller.start()
    if ctx.cat_server:
        ctx.cat_server.start()
    if ctx.bridge:
        ctx.bridge.start()

    bs = ctx.broadcast_settings
    if bs.get("host") and bs.get("port"):
        ctx.listener.start(bs["host"], bs["port"])
    else:
        logger.warning("[UDP] No broadcast host/port configured, UDP radio feed disabled.")

    try:
        states = ctx.relays.refresh_states()
        on = [i for i, v in states.items() if v]
        logger.info(f"[RELAY] Controller at {ctx.relay_settings['host']} reachable, relays on: {on or 'none'}")
    except RelayError as e:
        logger.warning(f"[RELAY] Initial relay state query failed: {e}")


def graceful_exit(ctx: Optional[AppContext], started: float, exit_code: int = 0, show_banner: bool = True) -> None:
    """
    Stop every component, optionally release the relays, and exit.

    Each stop is best effort; a component that fails to stop is logged and
    the rest still shut down.
    """
    status_clear()
    if ctx is not None:
        # Abort in-flight relay exchanges first.
        if ctx.stop_event is not None:
            ctx.stop_event.set()
        for name in ("listener", "bridge", "cat_server", "controller"):
            component = getattr(ctx, name, None)
            if component is None:
                continue
            try:
                component.stop()
            except Exception as e:
                logger and logger.debug(f"{name} stop raised: {e}")

        if ctx.relays is not None:
            if ctx.release_on_exit:
                ctx.stop_event.clear()
                try:
                    ctx.relays.turn_off_all()
                except RelayError as e:
                    logger and logger.warning(f"[RELAY] Could not release relays on exit: {e}")
            ctx.relays.close()

    if show_banner:
        print("\n" + "=" * 80)
        print(f"{COLOR_YELLOW}📡  {PROGRAM_NAME} stopped after {pretty_duration(time.time() - started)}.{COLOR_RESET}")
        print(f"{COLOR_CYAN}🎙️  73 and good DX{COLOR_RESET}")
        print("=" * 80 + "\n")

    sys.exit(exit_code)


def main() -> None:
    global logger, debug_mode

    parser = argparse.ArgumentParser(
        description=f"{PROGRAM_NAME}: band-following antenna relay switch with TS-590SG CAT emulation"
    )
    parser.add_argument("--config", default=DEFAULT_CONFIG, help="Path to settings.yml")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--clear-logs", action="store_true", help="Delete old log files and exit")
    parser.add_argument("--no-banner", action="store_true", help="Skip the start/stop banners")
    args = parser.parse_args()
    debug_mode = args.debug

    if args.clear_logs:
        from loghandler import clear_old_logs
        clear_old_logs("logs")
        sys.exit(0)

    if not args.no_banner:
        print_banner_safe("ANTENNA SWITCH")

    from loghandler import setup_logging
    logger, _ = setup_logging(log_dir="logs", debug=debug_mode)

    config = load_yaml_file(args.config)
    validate_settings(config, logger)
    ctx = create_context(config, logger, debug_mode)

    logger.info(f"{PROGRAM_NAME} - v{CURRENT_VERSION} starting (config: {args.config})")
    started = time.time()
    build_components(ctx)
    exit_code = 1
    try:
        start_components(ctx)
        logger.info("Running. Press Ctrl-C to stop.")
        while True:
            time.sleep(0.5)
    except KeyboardInterrupt:
        logger.info("Ctrl-C received, shutting down")
        exit_code = 0
    except (BroadcastListenerError, CatServerError, BusBridgeError) as e:
        logger.error(f"[FATAL] Network setup failed: {e}")
    except RelayError as e:
        logger.error(f"[FATAL] Relay controller communication failed: {e}")
    except Exception:
        logger.exception("[FATAL] Unexpected error occurred")
    finally:
        # Always stop threads and sockets before leaving.
        graceful_exit(ctx, started, exit_code=exit_code, show_banner=not args.no_banner)


def cli() -> None:
    try:
        main()
    except (ConfigValidationError, ConfigurationError, FileNotFoundError) as e:
        if logger:
            logger.error(f"[CONFIG ERROR] {e}")
        else:
            print(f"[CONFIG ERROR] {e}")
        sys.exit(1)
    except Exception as e:
        if logger:
            logger.exception("[FATAL] Unexpected error occurred")
        else:
            print(f"[FATAL] Unexpected error occurred: {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli()
