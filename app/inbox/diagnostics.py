"""Best-effort page summaries attached to extraction failures."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from playwright.sync_api import Page

from . import config
from .logging_utils import _scraper_event
from .page_bridge import is_page_closed, safe_evaluate, safe_url
from .utils import log_line, sanitize_filename

PAGE_SUMMARY_JS = """
() => {
  const text = (el, n) => ((el && el.textContent) || '').replace(/\\s+/g, ' ').trim().substring(0, n);
  const tables = Array.from(document.querySelectorAll('table')).slice(0, 10).map((t) => ({
    id: t.id || '',
    rows: t.querySelectorAll('tr').length,
    columns: (t.querySelector('tr') && t.querySelector('tr').querySelectorAll('th, td').length) || 0,
    hasRowKeys: !!t.querySelector('tr[data-ri]'),
    firstCell: text(t.querySelector('td'), 50),
  }));
  const dialogs = Array.from(document.querySelectorAll('.ui-dialog')).map((d) => ({
    id: d.id || '',
    visible: d.getAttribute('aria-hidden') === 'false',
    title: text(d.querySelector('.ui-dialog-title'), 80),
  }));
  const messages = Array.from(document.querySelectorAll(
    '.ui-messages, .ui-message, .ui-growl-message, .alert, .error'))
    .map((m) => text(m, 200))
    .filter((m) => m);
  return {
    title: document.title,
    datatables: document.querySelectorAll('.ui-datatable').length,
    forms: document.querySelectorAll('form').length,
    tables,
    dialogs,
    messages,
  };
}
"""


def save_screenshot(page: Optional[Page], name: str) -> Optional[str]:
    """Save a full-page screenshot under ``LOG_DIR`` for debugging."""

    if is_page_closed(page):
        return None
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    path = config.LOG_DIR / f"{sanitize_filename(name)}_{stamp}.png"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        page.screenshot(path=str(path), full_page=True)
        log_line(f"Saved debug screenshot -> {path}")
        return str(path)
    except Exception as exc:  # noqa: BLE001
        log_line(f"Failed to save debug screenshot: {exc}")
        return None


def diagnose_inbox_page(page: Optional[Page], *, reason: str = "") -> Dict[str, Any]:
    """Summarise what the page currently shows when the inbox table is missing."""

    summary: Dict[str, Any] = {"reason": reason, "url": safe_url(page)}
    raw = safe_evaluate(page, PAGE_SUMMARY_JS)
    if isinstance(raw, dict):
        summary.update(raw)
    else:
        summary["unreadable"] = True

    if config.SAVE_DEBUG_SCREENSHOTS:
        summary["screenshot"] = save_screenshot(page, reason or "inbox")

    log_line(
        f"[DIAG] url={summary.get('url')} datatables={summary.get('datatables')} "
        f"dialogs={len(summary.get('dialogs') or [])} messages={summary.get('messages') or []}"
    )
    _scraper_event("diag", step="page_summary", **{k: v for k, v in summary.items() if k != "tables"})
    return summary


__all__ = ["PAGE_SUMMARY_JS", "save_screenshot", "diagnose_inbox_page"]
