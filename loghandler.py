import os
import glob
import logging
from datetime import datetime

_logger = None
_switch_logger = None
switch_journal_file = None

LOG_PREFIX = "antenna-switch"
JOURNAL_PREFIX = "switch-journal"
SWITCH_JOURNAL_HEADER = "timestamp,band,relay,rx_hz,mode"


def setup_logging(log_dir="logs", clear_old=False, debug=False):
    """
    Configure the application log and the switch journal.

    Returns (logger, switch_journal_path). The journal is a CSV file with one
    row per confirmed antenna change and no formatter timestamps of its own.
    """
    global _logger, _switch_logger, switch_journal_file

    os.makedirs(log_dir, exist_ok=True)
    if clear_old:
        clear_old_logs(log_dir)

    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    app_log = os.path.join(log_dir, f"{LOG_PREFIX}_{stamp}.log")
    switch_journal_file = os.path.join(log_dir, f"{JOURNAL_PREFIX}_{stamp}.csv")

    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.FileHandler(app_log, encoding="utf-8"),
            logging.StreamHandler(),
        ],
    )
    _logger = logging.getLogger()
    _logger.debug(f"Application log: {app_log}")
    _logger.debug(f"Switch journal: {switch_journal_file}")
    _logger.debug(f"Log level: {logging.getLevelName(level)}")

    _switch_logger = logging.getLogger("switch")
    _switch_logger.setLevel(logging.INFO)
    _switch_logger.propagate = False
    for old in list(_switch_logger.handlers):
        _switch_logger.removeHandler(old)
        old.close()
    journal = logging.FileHandler(switch_journal_file, encoding="utf-8")
    journal.setFormatter(logging.Formatter("%(message)s"))
    _switch_logger.addHandler(journal)
    _switch_logger.info(SWITCH_JOURNAL_HEADER)

    return _logger, switch_journal_file


def get_logger():
    if _logger is None:
        raise RuntimeError("Logging is not set up yet; call setup_logging() first.")
    return _logger


def get_switch_logger():
    if _switch_logger is None:
        raise RuntimeError("Switch journal is not set up yet; call setup_logging() first.")
    return _switch_logger


def clear_old_logs(log_dir: str) -> int:
    """Delete earlier application logs and switch journals; returns how many went."""
    if not os.path.isdir(log_dir):
        return 0

    removed = 0
    for pattern in (f"{LOG_PREFIX}_*.log", f"{JOURNAL_PREFIX}_*.csv"):
        for path in glob.glob(os.path.join(log_dir, pattern)):
            try:
                os.remove(path)
                removed += 1
            except OSError as e:
                print(f"Could not delete {path}: {e}")

    print(f"Removed {removed} old log file(s) from {log_dir}.")
    return removed
