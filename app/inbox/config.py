"""Configuration constants for the notification inbox harvester."""
from __future__ import annotations

import os
from pathlib import Path

DATA_DIR: Path = Path(os.getenv("INBOX_DATA_DIR", "/app/data"))
LOG_DIR: Path = DATA_DIR / "logs"
LOG_FILE: Path = LOG_DIR / "latest.log"
RUNS_DIR: Path = Path(os.getenv("RUNS_DIR", str(DATA_DIR / "runs")))
EXPORTS_DIR: Path = Path(os.getenv("EXPORTS_DIR", str(DATA_DIR / "exports")))
MAX_EXPORTS: int = int(os.getenv("EXPORTS_KEEP_MAX", "5"))
LOG_LEVEL: str = os.getenv("INBOX_LOG_LEVEL", "INFO").strip().upper()

INBOX_URL: str = os.getenv(
    "INBOX_URL",
    "https://casillas.pj.gob.pe/sinoe/pages/casillas/notificacion/notificacion-bandeja.xhtml",
)
# DevTools endpoint of an already-authenticated browser used by the CLI.
BROWSER_CDP_URL: str = os.getenv("INBOX_BROWSER_CDP_URL", "http://localhost:9222")

# Fragments that identify the inbox page (and its parent section) in a URL.
INBOX_URL_MARKERS: tuple[str, ...] = ("notificacion-bandeja", "casillas")
# Fragments that identify a redirect to the login screen.
LOGIN_URL_MARKERS: tuple[str, ...] = ("login", "iniciarSesion", "autenticacion")


def _parse_timeout_seconds(env_var: str, default: int, *, minimum: int = 1) -> int:
    """Parse a timeout value in seconds from the environment with bounds."""

    try:
        value = int(os.getenv(env_var, str(default)))
    except ValueError:
        return default
    return max(minimum, value)


def _parse_seconds(env_var: str, default: float) -> float:
    """Parse a non-negative delay in (fractional) seconds from the environment."""

    try:
        value = float(os.getenv(env_var, str(default)))
    except ValueError:
        return default
    return max(0.0, value)


# Table detector
TABLE_LOAD_TIMEOUT_SECONDS: int = _parse_timeout_seconds("INBOX_TABLE_TIMEOUT_SECONDS", 25)
TABLE_POLL_INTERVAL_SECONDS: float = _parse_seconds("INBOX_TABLE_POLL_SECONDS", 1.0)
# Delay between the first "loaded" read and the confirming re-read.
TABLE_SETTLE_SECONDS: float = _parse_seconds("INBOX_TABLE_SETTLE_SECONDS", 1.5)

# Modal controller
MODAL_OPEN_TIMEOUT_SECONDS: int = _parse_timeout_seconds("INBOX_MODAL_TIMEOUT_SECONDS", 15)
MODAL_POLL_INTERVAL_SECONDS: float = _parse_seconds("INBOX_MODAL_POLL_SECONDS", 0.5)
MODAL_READY_SETTLE_SECONDS: float = _parse_seconds("INBOX_MODAL_SETTLE_SECONDS", 0.8)
MODAL_MAX_CONSECUTIVE_NULLS: int = int(os.getenv("INBOX_MODAL_MAX_NULLS", "3"))
MODAL_CLOSE_TIMEOUT_SECONDS: int = _parse_timeout_seconds("INBOX_MODAL_CLOSE_TIMEOUT_SECONDS", 10)
MODAL_CLOSE_POLL_SECONDS: float = _parse_seconds("INBOX_MODAL_CLOSE_POLL_SECONDS", 0.3)

# Download interceptor
PDF_CAPTURE_TIMEOUT_SECONDS: int = _parse_timeout_seconds("INBOX_PDF_TIMEOUT_SECONDS", 60)
PDF_PRE_CLICK_SECONDS: float = _parse_seconds("INBOX_PDF_PRE_CLICK_SECONDS", 0.5)
MIN_PDF_BYTES: int = int(os.getenv("INBOX_MIN_PDF_BYTES", "1024"))

# Recovery controller
RECOVERY_NAV_TIMEOUT_SECONDS: int = _parse_timeout_seconds("INBOX_NAV_TIMEOUT_SECONDS", 45)
RECOVERY_PRE_CHECK_SECONDS: float = _parse_seconds("INBOX_RECOVERY_PRE_CHECK_SECONDS", 2.0)
RECOVERY_SETTLE_SECONDS: float = _parse_seconds("INBOX_RECOVERY_SETTLE_SECONDS", 3.0)
RECOVERY_RETRY_WAIT_SECONDS: float = _parse_seconds("INBOX_RECOVERY_RETRY_WAIT_SECONDS", 5.0)

# Processor pacing
POST_CLOSE_SETTLE_SECONDS: float = _parse_seconds("INBOX_POST_CLOSE_SETTLE_SECONDS", 5.0)
TABLE_RETRY_WAIT_SECONDS: float = _parse_seconds("INBOX_TABLE_RETRY_WAIT_SECONDS", 3.0)
BETWEEN_ITEMS_SECONDS: float = _parse_seconds("INBOX_BETWEEN_ITEMS_SECONDS", 1.5)
HEALTH_URL_RETRIES: int = int(os.getenv("INBOX_HEALTH_URL_RETRIES", "3"))
HEALTH_URL_RETRY_SECONDS: float = _parse_seconds("INBOX_HEALTH_URL_RETRY_SECONDS", 1.0)

# Failure thresholds
MAX_CONSECUTIVE_FAILURES: int = int(os.getenv("INBOX_MAX_CONSECUTIVE_FAILURES", "2"))
MAX_RECOVERIES: int = int(os.getenv("INBOX_MAX_RECOVERIES", "2"))
MAX_PAGES: int = int(os.getenv("INBOX_MAX_PAGES", "20"))

# Date filter window (days back from today).
DATE_FILTER_DAYS: int = int(os.getenv("INBOX_DATE_FILTER_DAYS", "7"))
APPLY_DATE_FILTER: bool = os.getenv("INBOX_APPLY_DATE_FILTER", "true").strip().lower() not in {
    "0",
    "false",
}
SAVE_DEBUG_SCREENSHOTS: bool = os.getenv("INBOX_DEBUG_SCREENSHOTS", "0").strip().lower() not in {
    "0",
    "false",
}


def ms(seconds: float) -> int:
    """Convert seconds to the millisecond integers Playwright expects."""

    return int(seconds * 1000)
