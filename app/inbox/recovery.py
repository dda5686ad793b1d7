from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from playwright.sync_api import Error as PWError, Page, TimeoutError as PWTimeout

from . import config, health, table_state
from .logging_utils import _scraper_event
from .page_bridge import is_context_lost_error, is_page_closed, safe_evaluate, safe_url, wait_seconds
from .selectors import INBOX_SELECTORS
from .utils import log_line

# Only buttons inside dialog-like containers are clicked, never page controls.
DISMISS_DIALOGS_JS = """
(s) => {
  let clicked = 0;
  for (const container of document.querySelectorAll(s.dismiss_containers)) {
    const style = window.getComputedStyle(container);
    if (style.display === 'none' || style.visibility === 'hidden') continue;
    for (const btn of container.querySelectorAll('button, a.ui-commandlink, .ui-button')) {
      const text = (btn.textContent || '').trim().toLowerCase();
      if (!text || btn.disabled) continue;
      if (s.dismiss_labels.some((label) => text === label || text.startsWith(label + ' '))) {
        btn.click();
        clicked += 1;
        break;
      }
    }
  }
  return clicked;
}
"""


@dataclass
class RecoveryResult:
    recovered: bool
    row_count: int = 0
    session_expired: bool = False
    strategy: str = ""
    error: str = ""


def dismiss_dialogs(page: Page) -> int:
    """Click the acknowledge/close button of any visible confirmation dialog."""

    clicked = safe_evaluate(page, DISMISS_DIALOGS_JS, INBOX_SELECTORS.to_js())
    count = clicked if isinstance(clicked, int) else 0
    if count:
        _scraper_event("recovery", step="dialogs_dismissed", count=count)
    return count


def _safe_goto(page: Page, url: str, *, label: str, wait_until: str = "domcontentloaded") -> bool:
    """Navigate to ``url`` with bounded timeouts and structured logging."""

    try:
        _scraper_event("nav", step="goto", target=label, url=url)
        page.goto(url, wait_until=wait_until, timeout=config.ms(config.RECOVERY_NAV_TIMEOUT_SECONDS))
        return True
    except PWTimeout as exc:
        log_line(f"[SCRAPER][ERROR][NAV] goto({url!r}) timed out: {exc}")
        _scraper_event("error", phase="nav", step="goto_timeout", target=label, url=url, error=str(exc))
        return False
    except PWError as exc:
        step = "goto_target_closed" if is_context_lost_error(exc) else "goto_error"
        log_line(f"[SCRAPER][ERROR][NAV] goto({url!r}) failed: {exc}")
        _scraper_event("error", phase="nav", step=step, target=label, url=url, error=str(exc))
        return False


def _safe_reload(page: Page, *, label: str, wait_until: str = "domcontentloaded") -> bool:
    try:
        _scraper_event("nav", step="reload", target=label, url=safe_url(page))
        page.reload(wait_until=wait_until, timeout=config.ms(config.RECOVERY_NAV_TIMEOUT_SECONDS))
        return True
    except PWTimeout as exc:
        log_line(f"[SCRAPER][ERROR][NAV] reload timed out: {exc}")
        _scraper_event("error", phase="nav", step="reload_timeout", target=label, error=str(exc))
        return False
    except PWError as exc:
        log_line(f"[SCRAPER][ERROR][NAV] reload failed: {exc}")
        _scraper_event("error", phase="nav", step="reload_error", target=label, error=str(exc))
        return False


def _settle_and_verify(page: Page, strategy: str) -> Optional[RecoveryResult]:
    """Check where a reload/navigation landed; ``None`` means "not recovered yet"."""

    wait_seconds(page, config.RECOVERY_SETTLE_SECONDS)
    url = safe_url(page)
    if health.is_login_url(url):
        log_line(f"[RECOVERY] Redirected to login after {strategy}; session expired.")
        _scraper_event("error", phase="recovery", step="session_expired", strategy=strategy, url=url)
        return RecoveryResult(recovered=False, session_expired=True, strategy=strategy, error="session expired")

    dismiss_dialogs(page)
    result = table_state.await_table_loaded(page)
    if result.loaded:
        log_line(f"[RECOVERY] Inbox restored via {strategy} ({result.row_count} rows).")
        _scraper_event("recovery", step="recovered", strategy=strategy, row_count=result.row_count)
        return RecoveryResult(recovered=True, row_count=result.row_count, strategy=strategy)
    _scraper_event("recovery", step="table_missing", strategy=strategy, message=result.message)
    return None


def recover(page: Page) -> RecoveryResult:
    """Bring the session back to a loaded inbox table.

    Reloads when the page is (near) the inbox or its JS context is dead,
    otherwise, or when the reload does not help, navigates to the inbox URL
    directly. A login redirect ends recovery immediately.
    """

    if is_page_closed(page):
        _scraper_event("error", phase="recovery", step="page_closed")
        return RecoveryResult(recovered=False, strategy="none", error="page closed")

    wait_seconds(page, config.RECOVERY_PRE_CHECK_SECONDS)
    state = health.check_health(page)
    if health.is_login_url(state.url):
        _scraper_event("error", phase="recovery", step="session_expired", strategy="precheck", url=state.url)
        return RecoveryResult(recovered=False, session_expired=True, strategy="precheck", error="session expired")

    if state.on_expected_page or not state.context_responsive:
        if _safe_reload(page, label="recovery"):
            result = _settle_and_verify(page, "reload")
            if result is not None:
                return result

    if is_page_closed(page):
        return RecoveryResult(recovered=False, strategy="reload", error="page closed")

    if _safe_goto(page, config.INBOX_URL, label="recovery"):
        result = _settle_and_verify(page, "navigate")
        if result is not None:
            return result

    wait_seconds(page, config.RECOVERY_RETRY_WAIT_SECONDS)
    late = table_state.await_table_loaded(page)
    if late.loaded:
        _scraper_event("recovery", step="recovered", strategy="late_table", row_count=late.row_count)
        return RecoveryResult(recovered=True, row_count=late.row_count, strategy="late_table")

    log_line("[RECOVERY] Inbox could not be restored.")
    _scraper_event("error", phase="recovery", step="exhausted")
    return RecoveryResult(recovered=False, strategy="exhausted", error="inbox table did not load")


__all__ = ["DISMISS_DIALOGS_JS", "RecoveryResult", "dismiss_dialogs", "recover"]
