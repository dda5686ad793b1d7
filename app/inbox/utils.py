from __future__ import annotations

import logging
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from . import config

LOGGER = logging.getLogger("inbox")
_LOG_FORMAT = logging.Formatter(fmt="[%(asctime)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
_active_log_path: Optional[Path] = None


def _handlers_for(log_path: Path) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(log_path, encoding="utf-8"),
    ]
    for handler in handlers:
        handler.setFormatter(_LOG_FORMAT)
    return handlers


def _configure_logger(log_path: Path) -> None:
    """Point the shared harvester logger at ``log_path`` (plus stdout)."""

    global _active_log_path

    while LOGGER.handlers:
        stale = LOGGER.handlers[0]
        LOGGER.removeHandler(stale)
        stale.close()

    unusable: Optional[OSError] = None
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers = _handlers_for(log_path)
    except OSError as exc:
        unusable = exc
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(_LOG_FORMAT)
        handlers = [console]

    for handler in handlers:
        LOGGER.addHandler(handler)
    level = logging.getLevelName(config.LOG_LEVEL)
    LOGGER.setLevel(level if isinstance(level, int) else logging.INFO)
    LOGGER.propagate = False
    _active_log_path = log_path
    if unusable is not None:
        LOGGER.warning("Cannot write log file %s (%s); logging to stdout only.", log_path, unusable)


def setup_run_logger(label: str = "inbox") -> Path:
    """Start a fresh timestamped log file for one harvester run."""

    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    log_path = config.LOG_DIR / f"{sanitize_filename(label)}_{stamp}.log"
    _configure_logger(log_path)
    LOGGER.info("Run log: %s", log_path)
    return log_path


def ensure_dirs() -> None:
    """Create the data, log, runs and exports directories when missing."""

    for directory in (config.DATA_DIR, config.LOG_DIR, config.RUNS_DIR, config.EXPORTS_DIR):
        directory.mkdir(parents=True, exist_ok=True)


def log_line(message: str, level: int = logging.INFO) -> None:
    """Log ``message`` to stdout and the active run log."""

    if _active_log_path is None:
        _configure_logger(config.LOG_FILE)
    LOGGER.log(level, message)


def sanitize_filename(name: str) -> str:
    """
    Return a filesystem-safe filename derived from *name*.
    Keeps only alphanumerics, dot, underscore, dash.
    """
    cleaned = "".join(
        ch if ch.isalnum() or ch in {".", "_", "-"} else "_"
        for ch in name.strip()
    ).strip("._")

    return cleaned or "file"


def normalize_text(value: str | None) -> str:
    """Collapse runs of whitespace (including non-breaking spaces) in cell text."""

    if not value:
        return ""
    return re.sub(r"\s+", " ", value.replace("\xa0", " ")).strip()


def short_error_message(exc: BaseException, max_length: int = 200) -> str:
    """Return a single-line, bounded description of ``exc`` for logs and details."""

    text = " ".join(str(exc).split()) or exc.__class__.__name__
    if len(text) > max_length:
        return text[: max_length - 3] + "..."
    return text


__all__ = [
    "ensure_dirs",
    "setup_run_logger",
    "log_line",
    "sanitize_filename",
    "normalize_text",
    "short_error_message",
]
