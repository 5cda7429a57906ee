"""Aqua Manager: a delivery and dues ledger for a water-jar business.

Importing the package configures the shared ``log`` object used by every
layer. Log files go to ``$AQUA_MANAGER_LOG_DIR`` when it is set, to
``.logs/`` in a source checkout, and to ``~/.aqua_manager/logs`` otherwise.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Mapping, Optional


LOG_DIR_VARIABLE = "AQUA_MANAGER_LOG_DIR"
LOG_FILE_NAME = "aqua_manager.log"
CHECKOUT_ROOT = Path(__file__).resolve().parents[2]


def resolve_log_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Pick the directory that receives the rotating log file."""
    environ = os.environ if environ is None else environ
    override = environ.get(LOG_DIR_VARIABLE)
    if override:
        return Path(override).expanduser()
    # An installed package lives under site-packages, which has no pyproject.
    if (CHECKOUT_ROOT / "pyproject.toml").is_file():
        return CHECKOUT_ROOT / ".logs"
    return Path.home() / ".aqua_manager" / "logs"


def _configure_logging() -> logging.Logger:
    logger = logging.getLogger(__name__)
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    log_file = resolve_log_dir() / LOG_FILE_NAME
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=5, encoding="utf-8")
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    except OSError as exc:
        print(f"Warning: unable to initialize log file at '{log_file}': {exc}", file=sys.stderr)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


log = _configure_logging()
log.info("Logger initialized for the 'aqua_manager' package.")
