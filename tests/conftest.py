from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

from loghandler import setup_logging


@pytest.fixture(scope="session", autouse=True)
def _logging(tmp_path_factory):
    log_dir = tmp_path_factory.mktemp("logs")
    setup_logging(log_dir=str(log_dir), debug=True)
    yield log_dir
