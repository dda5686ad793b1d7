from __future__ import annotations

from typing import Iterable, Optional

from playwright.sync_api import Error as PWError, Locator, Page

from . import config
from .date_utils import default_date_range, parse_portal_date
from .logging_utils import _scraper_event
from .page_bridge import is_page_closed, safe_evaluate, wait_seconds
from .selectors import INBOX_SELECTORS
from .table_state import await_table_loaded
from .utils import log_line

HIDE_DATEPICKER_JS = """
(selector) => {
  const popup = document.querySelector(selector);
  if (popup) { popup.style.display = 'none'; }
  if (document.activeElement && document.activeElement.blur) {
    document.activeElement.blur();
  }
  return !!popup;
}
"""

_FIELD_CLICK_TIMEOUT_MS = 3000
_TYPE_DELAY_MS = 50


def _first_present(page: Page, selectors: Iterable[str]) -> Optional[Locator]:
    for selector in selectors:
        try:
            locator = page.locator(selector).first
            if locator.count():
                return locator
        except PWError:
            continue
    return None


def _fill_date_field(page: Page, locator: Locator, value: str, *, field: str) -> bool:
    """Type *value* into a calendar input one character at a time.

    PrimeFaces calendar inputs ignore programmatic ``value`` assignment, so the
    field is focused, cleared with select-all/delete, typed into, then blurred.
    """

    try:
        locator.click(timeout=_FIELD_CLICK_TIMEOUT_MS)
        page.keyboard.press("Control+A")
        page.keyboard.press("Backspace")
        page.keyboard.type(value, delay=_TYPE_DELAY_MS)
        locator.evaluate("(el) => el.blur()")
    except PWError as exc:
        log_line(f"[FILTER] Could not fill {field} date: {exc}")
        _scraper_event("error", phase="filter", step="fill_failed", field=field, error=str(exc))
        return False

    try:
        current = locator.input_value()
    except PWError:
        current = None
    # The calendar may re-render the value ("1/2/2024" as "01/02/2024").
    if current is not None and parse_portal_date(current) != parse_portal_date(value):
        _scraper_event("filter", step="value_mismatch", field=field, expected=value, actual=current)
    return True


def _click_search(page: Page) -> bool:
    sel = INBOX_SELECTORS
    candidates = [f'[id="{sel.search_button_id}"]', *sel.search_button_fallbacks]
    candidates.extend(f"button:has-text('{label}')" for label in sel.search_button_labels)
    for selector in candidates:
        try:
            locator = page.locator(selector).first
            if not locator.count():
                continue
            locator.click(timeout=_FIELD_CLICK_TIMEOUT_MS)
            _scraper_event("filter", step="search_clicked", selector=selector)
            return True
        except PWError as exc:
            _scraper_event("filter", step="search_click_failed", selector=selector, error=str(exc))
            continue
    return False


def apply_date_filter(page: Page, start: Optional[str] = None, end: Optional[str] = None) -> bool:
    """Filter the inbox to ``start``..``end`` (``DD/MM/YYYY``) and wait for results.

    Returns ``False`` when the form is missing or the table does not reload;
    callers then work with the unfiltered table.
    """

    if is_page_closed(page):
        return False

    if not start or not end:
        default_start, default_end = default_date_range(days=config.DATE_FILTER_DAYS)
        start = start or default_start
        end = end or default_end

    start_day, end_day = parse_portal_date(start), parse_portal_date(end)
    if start_day is None or end_day is None or start_day > end_day:
        log_line(f"[FILTER] Invalid date range {start!r} - {end!r}; using the unfiltered table.")
        _scraper_event("filter", step="invalid_range", start=start, end=end)
        return False

    sel = INBOX_SELECTORS
    start_input = _first_present(page, [f'[id="{sel.date_start_id}"]', *sel.date_start_fallbacks])
    end_input = _first_present(page, [f'[id="{sel.date_end_id}"]', *sel.date_end_fallbacks])
    if start_input is None or end_input is None:
        log_line("[FILTER] Date inputs not found; using the unfiltered table.")
        _scraper_event("filter", step="inputs_missing", start_found=start_input is not None)
        return False

    log_line(f"[FILTER] Applying date range {start} - {end}")
    if not _fill_date_field(page, start_input, start, field="start"):
        return False
    if not _fill_date_field(page, end_input, end, field="end"):
        return False

    safe_evaluate(page, HIDE_DATEPICKER_JS, sel.datepicker_popup)

    if not _click_search(page):
        log_line("[FILTER] Search control not found; using the unfiltered table.")
        _scraper_event("filter", step="search_missing")
        return False

    wait_seconds(page, config.TABLE_POLL_INTERVAL_SECONDS)
    result = await_table_loaded(page)
    _scraper_event(
        "filter",
        step="applied",
        start=start,
        end=end,
        loaded=result.loaded,
        row_count=result.row_count,
    )
    return result.loaded


__all__ = ["HIDE_DATEPICKER_JS", "apply_date_filter"]
