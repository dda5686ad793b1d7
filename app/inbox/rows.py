"""Extraction of notification rows from the inbox table."""

from __future__ import annotations

from typing import List

from bs4 import BeautifulSoup
from playwright.sync_api import Page

from .error_codes import ErrorCode
from .logging_utils import _scraper_event
from .models import NotificationRecord
from .page_bridge import safe_evaluate
from .selectors import INBOX_SELECTORS, InboxSelectors
from .utils import log_line, normalize_text

# The body is wrapped in a <table> because html5lib drops a bare <tbody>.
ROWS_HTML_JS = """
(s) => {
  let body = document.querySelector(s.table_body);
  if (!body) {
    for (const sel of s.table_body_fallbacks) {
      body = document.querySelector(sel);
      if (body) break;
    }
  }
  if (!body) return null;
  return '<table>' + body.outerHTML + '</table>';
}
"""


def _cell_text(cells, index: int) -> str:
    if index < 0 or index >= len(cells):
        return ""
    return normalize_text(cells[index].get_text(" ", strip=True))


def _has_actionable(cell) -> bool:
    if cell is None:
        return False
    if cell.find(["button", "a"]):
        return True
    return cell.find(attrs={"onclick": True}) is not None


def parse_rows_html(
    html: str, page_number: int, *, selectors: InboxSelectors = INBOX_SELECTORS
) -> List[NotificationRecord]:
    """Parse the table body HTML into records using the fixed column mapping."""

    soup = BeautifulSoup(html, "html5lib")
    body = soup.find("tbody")
    if body is None:
        return []

    records: List[NotificationRecord] = []
    for tr in body.find_all("tr", recursive=False):
        if selectors.empty_row_class in (tr.get("class") or []):
            continue
        if tr.find("td", attrs={"colspan": True}):
            continue

        cells = tr.find_all("td", recursive=False)
        if len(cells) < selectors.extract_min_cells:
            continue

        record = NotificationRecord(
            row_key=tr.get("data-ri"),
            secondary_key=_cell_text(cells, selectors.col_secondary_key),
            case_number=_cell_text(cells, selectors.col_case_number),
            summary=_cell_text(cells, selectors.col_summary),
            court=_cell_text(cells, selectors.col_court),
            timestamp=_cell_text(cells, selectors.col_timestamp),
            has_attachment_button=_has_actionable(cells[-1]),
            page_number=page_number,
        )
        if not record.case_number and not record.secondary_key:
            continue
        records.append(record)

    return records


def extract_visible_rows(page: Page, page_number: int = 1) -> List[NotificationRecord]:
    """Read every data row currently rendered in the inbox table.

    Always returns a list; structural failures are logged and yield ``[]``.
    """

    html = safe_evaluate(page, ROWS_HTML_JS, INBOX_SELECTORS.to_js())
    if not isinstance(html, str) or not html:
        log_line(f"[ROWS] Inbox table body not found on page {page_number}.")
        _scraper_event(
            "error",
            phase="rows",
            step="table_missing",
            page_number=page_number,
            error_code=ErrorCode.STRUCTURAL_MISMATCH,
        )
        return []

    try:
        records = parse_rows_html(html, page_number)
    except Exception as exc:  # noqa: BLE001
        log_line(f"[ROWS] Failed to parse inbox rows on page {page_number}: {exc}")
        _scraper_event(
            "error",
            phase="rows",
            step="parse_failed",
            page_number=page_number,
            error_code=ErrorCode.STRUCTURAL_MISMATCH,
            error=str(exc),
        )
        return []

    _scraper_event(
        "rows",
        step="extracted",
        page_number=page_number,
        count=len(records),
        with_attachments=sum(1 for r in records if r.has_attachment_button),
    )
    return records


__all__ = ["ROWS_HTML_JS", "parse_rows_html", "extract_visible_rows"]
