"""Harvest notifications from an already-authenticated inbox page.

Workflow:

- Peek at the inbox table; when it already shows rows the date filter is
  skipped, otherwise the last ``DATE_FILTER_DAYS`` days are filtered in.
- Wait for the table, then extract every page (bounded by ``MAX_PAGES``),
  de-duplicating by notification number, and return to page 1.
- Process each notification (dialog, PDF capture, recovery) in order.
- Write run telemetry and, optionally, an Excel export.

The caller owns the browser: this module never logs in, creates or closes
the page.
"""

from __future__ import annotations

import argparse
import json
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from playwright.sync_api import Browser, Error as PWError, Page, sync_playwright

from . import config, date_filter, health, pagination, processor, rows, table_state
from .date_utils import sortable_date
from .diagnostics import diagnose_inbox_page
from .export_excel import export_latest_run_to_excel
from .logging_utils import _scraper_event
from .models import NotificationRecord, ProcessingOutcome
from .telemetry import RunTelemetry
from .utils import log_line, setup_run_logger, short_error_message


@dataclass
class InboxRunResult:
    ok: bool
    records: List[NotificationRecord] = field(default_factory=list)
    outcome: Optional[ProcessingOutcome] = None
    telemetry_path: Optional[str] = None
    export_path: Optional[str] = None
    error: str = ""


def _dedupe_key(record: NotificationRecord) -> str:
    return record.secondary_key or f"{record.case_number}|{record.timestamp}|{record.court}"


def collect_notifications(
    page: Page,
    *,
    apply_filter: Optional[bool] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
) -> List[NotificationRecord]:
    """Return every notification in the (optionally date-filtered) inbox."""

    use_filter = config.APPLY_DATE_FILTER if apply_filter is None else apply_filter
    initial = table_state.peek_table_state(page)
    if initial.has_rows:
        log_line(f"[RUN] Table already shows {initial.row_count} rows; skipping the date filter.")
        _scraper_event("run", step="filter_skipped", row_count=initial.row_count)
    elif use_filter:
        if not date_filter.apply_date_filter(page, start, end):
            log_line("[RUN] Date filter not applied; continuing with the unfiltered table.")

    loaded = table_state.await_table_loaded(page)
    if not loaded.loaded:
        diagnose_inbox_page(page, reason="table_not_loaded")
        return []
    if not loaded.has_rows:
        log_line(f"[RUN] Inbox has no notifications ({loaded.message}).")
        return []

    records: List[NotificationRecord] = []
    seen: set[str] = set()
    page_number = pagination.current_page_number(page) or 1
    for _ in range(config.MAX_PAGES):
        extracted = rows.extract_visible_rows(page, page_number)
        if not extracted and page_number == 1:
            diagnose_inbox_page(page, reason="no_rows_extracted")
        for record in extracted:
            key = _dedupe_key(record)
            if key in seen:
                continue
            seen.add(key)
            records.append(record)

        if not pagination.has_next_page(page):
            break
        if not pagination.go_to_next_page(page):
            log_line(f"[RUN] Could not advance past page {page_number}; stopping extraction.")
            break
        page_number = pagination.current_page_number(page) or page_number + 1

    if page_number > 1 and not pagination.go_to_page(page, 1):
        log_line("[RUN] Could not return to page 1 after extraction.")

    log_line(f"[RUN] Collected {len(records)} notifications across {page_number} page(s).")
    _scraper_event("run", step="collected", count=len(records), pages=page_number)
    return records


def _record_telemetry(
    telemetry: RunTelemetry, records: Sequence[NotificationRecord], outcome: ProcessingOutcome
) -> None:
    for detail in outcome.details:
        record = records[detail.index] if 0 <= detail.index < len(records) else None
        meta = record.to_dict() if record is not None else {}
        meta.update(
            {
                "index": detail.index,
                "error": detail.error,
                "filename": detail.filename,
                "size": detail.size,
                "notified_on": sortable_date(record.timestamp) if record is not None else "",
            }
        )
        telemetry.add(detail.status, detail.error_code or "", meta)


def run_inbox(
    page: Page,
    notifications: Optional[Sequence[NotificationRecord]] = None,
    *,
    apply_filter: Optional[bool] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    export: bool = False,
) -> InboxRunResult:
    """Collect (unless *notifications* is given) and process the inbox.

    Never raises; failures are reported through ``InboxRunResult``.
    """

    try:
        setup_run_logger()
        preflight = health.run_preflight_checks(entrypoint="run")
        if not preflight.ok:
            log_line(f"[RUN] Preflight checks failed: {preflight.checks}")
            return InboxRunResult(ok=False, error="preflight failed")

        telemetry = RunTelemetry(mode="inbox")
        if notifications is None:
            records = collect_notifications(page, apply_filter=apply_filter, start=start, end=end)
        else:
            records = list(notifications)

        outcome = processor.process_notifications(page, records)
        _record_telemetry(telemetry, records, outcome)
        telemetry_path = telemetry.finalize(
            extra={
                "abort_reason": outcome.abort_reason,
                "recoveries": outcome.recoveries,
                "totals": {
                    "succeeded": outcome.succeeded,
                    "partial": outcome.partial,
                    "failed": outcome.failed,
                },
            }
        )
    except Exception as exc:  # noqa: BLE001
        log_line(f"[RUN] Inbox run failed: {exc}")
        _scraper_event("error", phase="run", error=short_error_message(exc))
        return InboxRunResult(ok=False, error=short_error_message(exc))

    export_path: Optional[str] = None
    if export:
        try:
            export_path = export_latest_run_to_excel()
        except (OSError, ValueError) as exc:
            log_line(f"[RUN] Excel export failed: {exc}")

    return InboxRunResult(
        ok=not outcome.aborted,
        records=records,
        outcome=outcome,
        telemetry_path=telemetry_path,
        export_path=export_path,
    )


def _load_notifications(path: str) -> List[NotificationRecord]:
    with open(path, "r", encoding="utf-8") as handle:
        payload = json.load(handle)
    items = payload.get("notifications", []) if isinstance(payload, dict) else payload
    return [NotificationRecord.from_mapping(item) for item in items]


def _inbox_page(browser: Browser) -> Page:
    """Return the open inbox tab of *browser*, opening one when none exists."""

    pages = [p for context in browser.contexts for p in context.pages]
    for candidate in pages:
        if health.is_inbox_url(candidate.url):
            return candidate
    if not browser.contexts:
        raise RuntimeError("Browser has no context with an authenticated session")
    page = browser.contexts[0].new_page()
    page.goto(
        config.INBOX_URL,
        wait_until="domcontentloaded",
        timeout=config.ms(config.RECOVERY_NAV_TIMEOUT_SECONDS),
    )
    return page


def _cli_entrypoint(argv: Optional[List[str]] = None) -> int:  # pragma: no cover
    parser = argparse.ArgumentParser(description="Harvest the notification inbox of a logged-in browser")
    parser.add_argument("--cdp-url", default=config.BROWSER_CDP_URL)
    parser.add_argument("--start", default=None, help="Filter start date (DD/MM/YYYY)")
    parser.add_argument("--end", default=None, help="Filter end date (DD/MM/YYYY)")
    parser.add_argument("--no-filter", action="store_true", help="Never apply the date filter")
    parser.add_argument(
        "--notifications",
        default=None,
        help="JSON file with pre-extracted notifications; skips extraction",
    )
    parser.add_argument("--export", action="store_true", help="Write an Excel export of the run")
    args = parser.parse_args(argv)

    notifications = _load_notifications(args.notifications) if args.notifications else None

    with sync_playwright() as pw:
        try:
            browser = pw.chromium.connect_over_cdp(args.cdp_url)
        except PWError as exc:
            log_line(f"[RUN] Cannot attach to browser at {args.cdp_url}: {exc}")
            return 1
        page = _inbox_page(browser)
        result = run_inbox(
            page,
            notifications,
            apply_filter=False if args.no_filter else None,
            start=args.start,
            end=args.end,
            export=args.export,
        )

    if result.outcome is not None:
        log_line(
            f"[RUN] {result.outcome.succeeded} succeeded, {result.outcome.partial} partial, "
            f"{result.outcome.failed} failed; telemetry={result.telemetry_path}"
        )
    return 0 if result.ok else 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(_cli_entrypoint())

__all__ = ["InboxRunResult", "collect_notifications", "run_inbox", "_cli_entrypoint"]
