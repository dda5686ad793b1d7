from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Optional

from playwright.sync_api import Page

from . import config
from .config_validation import validate_runtime_config
from .logging_utils import _scraper_event
from .page_bridge import is_page_closed, safe_evaluate, safe_url, wait_seconds
from .selectors import INBOX_SELECTORS
from .utils import ensure_dirs, log_line

HEALTH_PROBE_JS = """
(s) => {
  const rows = document.querySelectorAll(s.table_body + ' ' + s.row);
  return { rows: rows.length, ready: document.readyState };
}
"""


@dataclass
class SessionHealth:
    alive: bool
    on_expected_page: bool
    context_responsive: bool
    row_count: int = 0
    url: Optional[str] = None

    @property
    def healthy(self) -> bool:
        return self.alive and self.context_responsive and self.row_count > 0


def is_inbox_url(url: Optional[str]) -> bool:
    return bool(url) and any(marker in url for marker in config.INBOX_URL_MARKERS)


def is_login_url(url: Optional[str]) -> bool:
    if not url:
        return False
    lowered = url.lower()
    return any(marker.lower() in lowered for marker in config.LOGIN_URL_MARKERS)


def _read_url(page: Page) -> Optional[str]:
    attempts = max(1, config.HEALTH_URL_RETRIES)
    for attempt in range(1, attempts + 1):
        url = safe_url(page)
        if url is not None:
            return url
        if attempt < attempts:
            wait_seconds(page, config.HEALTH_URL_RETRY_SECONDS)
    return None


def check_health(page: Optional[Page]) -> SessionHealth:
    """Take a fresh reading of the browsing session; never cached."""

    if is_page_closed(page):
        health = SessionHealth(alive=False, on_expected_page=False, context_responsive=False)
        _scraper_event("health", step="checked", alive=False, reason="page_closed")
        return health

    url = _read_url(page)
    if url is None:
        health = SessionHealth(alive=False, on_expected_page=False, context_responsive=False)
        _scraper_event("health", step="checked", alive=False, reason="url_unreadable")
        return health

    # The URL is still meaningful when the JS context is dead.
    on_expected_page = is_inbox_url(url) and not is_login_url(url)
    probe: Any = safe_evaluate(page, HEALTH_PROBE_JS, INBOX_SELECTORS.to_js())
    if not isinstance(probe, dict):
        health = SessionHealth(
            alive=True,
            on_expected_page=on_expected_page,
            context_responsive=False,
            url=url,
        )
    else:
        try:
            row_count = int(probe.get("rows") or 0)
        except (TypeError, ValueError):
            row_count = 0
        health = SessionHealth(
            alive=True,
            on_expected_page=on_expected_page,
            context_responsive=True,
            row_count=row_count,
            url=url,
        )

    _scraper_event(
        "health",
        step="checked",
        alive=health.alive,
        on_expected_page=health.on_expected_page,
        context_responsive=health.context_responsive,
        row_count=health.row_count,
        healthy=health.healthy,
    )
    return health


@dataclass
class PreflightResult:
    ok: bool
    checks: dict[str, dict[str, Any]]


def run_preflight_checks(entrypoint: str = "cli") -> PreflightResult:
    """Validate configuration and storage before a harvesting run starts."""

    checks: dict[str, dict[str, Any]] = {}

    try:
        validate_runtime_config(entrypoint or "cli")
        checks["config"] = {"ok": True}
    except ValueError as exc:
        checks["config"] = {"ok": False, "error": str(exc)}

    try:
        ensure_dirs()
        writable = all(
            os.access(path, os.W_OK)
            for path in (config.DATA_DIR, config.LOG_DIR, config.RUNS_DIR, config.EXPORTS_DIR)
        )
        checks["filesystem"] = {"ok": writable, "data_dir": str(config.DATA_DIR)}
    except OSError as exc:
        checks["filesystem"] = {"ok": False, "error": str(exc)}

    overall_ok = all(check.get("ok", False) for check in checks.values())
    _scraper_event(
        "state" if overall_ok else "error",
        phase="health",
        context="preflight",
        ok=overall_ok,
        checks=checks,
    )
    return PreflightResult(ok=overall_ok, checks=checks)


__all__ = [
    "HEALTH_PROBE_JS",
    "SessionHealth",
    "is_inbox_url",
    "is_login_url",
    "check_health",
    "PreflightResult",
    "run_preflight_checks",
]


if __name__ == "__main__":  # pragma: no cover
    result = run_preflight_checks(entrypoint="cli")
    for name, info in result.checks.items():
        status = "OK" if info.get("ok") else "FAIL"
        log_line(f"[HEALTH] {name}: {status} {info}")
    raise SystemExit(0 if result.ok else 1)
