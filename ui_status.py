# ui_status.py
# One-line console status for the current band/antenna, redrawn in place.
# Green while receiving, red while transmitting, plain text when not a TTY.

import os
import re
import sys

RESET = "\033[0m"
BOLD = "\033[1m"
BG_RED = "\033[41m"
BG_GREEN = "\033[42m"

__all__ = ["status_show", "status_clear", "BG_RED", "BG_GREEN"]

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")

_last_line = ""
_width = 0


def _visible_len(s: str) -> int:
    return len(_ANSI_RE.sub("", s))


def _use_color() -> bool:
    if os.getenv("NO_ANSI") == "1":
        return False
    return sys.stdout.isatty()


def status_show(text: str, bg_color: str) -> None:
    """
    Redraw the status line unless it is unchanged, e.g.
        status_show(" 20m  ANT 3  RX 14.195.000  USB", BG_GREEN)
    """
    global _last_line, _width
    line = f"{bg_color}{BOLD} {text} {RESET}" if _use_color() else f" {text} "
    if line == _last_line:
        return
    _width = max(_width, _visible_len(line))
    print("\r" + line + " " * (_width - _visible_len(line)), end="", flush=True)
    _last_line = line


def status_clear() -> None:
    global _last_line
    if _last_line:
        print("\r" + " " * _width + "\r", end="", flush=True)
        _last_line = ""
