# src/config/logging_config.py

"""Per-run logging for realtime_search.

Every launch (API server or CLI) writes its own ``logs/run_<stamp>.log``
at DEBUG, while stderr only carries WARNING and above unless
``LOG_LEVEL`` says otherwise.  Proxy attempts, strategy fall-through
and per-source failures are DEBUG/WARNING records, so a source that
quietly contributes zero items is diagnosed from the run file.

uvicorn's own error logger is attached to the same file so server
start-up and shutdown land next to the request logs.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from src.config.settings import Settings

ROOT_LOGGER = "realtime_search"
SERVER_LOGGERS = ("uvicorn.error",)

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | "
    "%(module)s:%(funcName)s:%(lineno)d | %(message)s"
)
_STDERR_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _run_file(logs_dir: Path) -> Path:
    logs_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return logs_dir / f"run_{stamp}.log"


def _file_handler(path: Path) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATEFMT))
    return handler


def _stderr_handler(level: int) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(_STDERR_FORMAT, datefmt=_DATEFMT)
    )
    return handler


def _console_level() -> int:
    """Resolve ``LOG_LEVEL`` to a level number; unknown names give WARNING."""
    level = logging.getLevelName(Settings.LOG_LEVEL.upper())
    return level if isinstance(level, int) else logging.WARNING


def setup_logging() -> Path:
    """Attach the per-run file and stderr handlers to ``realtime_search``.

    Safe to call more than once: when the project logger already has
    handlers nothing is added and a fresh path is returned unused.

    Returns:
        Path of the log file for this run.
    """
    log_file = _run_file(Settings.LOGS_DIR)

    project = logging.getLogger(ROOT_LOGGER)
    project.setLevel(logging.DEBUG)
    if project.handlers:
        return log_file

    file_handler = _file_handler(log_file)
    project.addHandler(file_handler)
    project.addHandler(_stderr_handler(_console_level()))

    for name in SERVER_LOGGERS:
        logging.getLogger(name).addHandler(file_handler)

    project.info("Logging initialised, log file: %s", log_file)
    return log_file
