"""Sequential processing of extracted notifications.

For every record: make sure the session is still usable (escalating to a
recovery once the consecutive-failure streak reaches the threshold), bring
the table to the record's page, open its attachments dialog, capture the
consolidated PDF, then close the dialog and wait for the table to settle.

Every record ends up in the outcome exactly once, whatever happens.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from playwright.sync_api import Page

from . import config, download, health, modal, pagination, recovery, retry_policy, table_state
from .error_codes import ABORT_PAGE_UNRECOVERABLE, ABORT_SESSION_EXPIRED, ErrorCode
from .logging_utils import _scraper_event
from .models import (
    STATUS_FAILED,
    STATUS_PARTIAL,
    STATUS_SUCCEEDED,
    ItemDetail,
    NotificationRecord,
    ProcessingOutcome,
)
from .page_bridge import wait_seconds
from .utils import log_line, short_error_message


@dataclass
class LoopState:
    """Counters owned by a single processing run."""

    failure_streak: int = 0
    recoveries_used: int = 0
    current_page: int = 1
    halted: bool = False
    halt_reason: str = ""
    halt_code: Optional[str] = None
    last_error_code: Optional[str] = None

    def fail(self, error_code: Optional[str] = None) -> None:
        self.failure_streak += 1
        self.last_error_code = error_code

    def force_recovery(self) -> None:
        self.failure_streak = max(self.failure_streak, config.MAX_CONSECUTIVE_FAILURES)

    def halt(self, reason: str, code: str) -> None:
        self.halted = True
        self.halt_reason = reason
        self.halt_code = code


def _detail(
    index: int,
    record: NotificationRecord,
    status: str,
    *,
    error: str = "",
    error_code: Optional[str] = None,
) -> ItemDetail:
    return ItemDetail(
        index=index,
        row_key=record.row_key,
        secondary_key=record.secondary_key,
        case_number=record.case_number,
        page_number=record.page_number,
        status=status,
        error=error,
        error_code=error_code,
        filename=record.attachment_filename,
        size=record.attachment_size,
    )


def _escalate(page: Page, state: LoopState, outcome: ProcessingOutcome) -> bool:
    """Check the session after repeated failures; recover it if needed.

    Returns ``False`` when the run has to stop (``state`` is then halted).
    """

    reading = health.check_health(page)
    if reading.healthy:
        log_line(f"[PROC] Session healthy after {state.failure_streak} failures; continuing.")
        state.failure_streak = 0
        return True

    # A login page cannot be reloaded back into an authenticated inbox.
    error_code = ErrorCode.SESSION_EXPIRED if health.is_login_url(reading.url) else state.last_error_code

    log_line(
        f"[PROC] Session unhealthy (alive={reading.alive}, "
        f"responsive={reading.context_responsive}, rows={reading.row_count}); recovering."
    )
    attempt = 0
    while True:
        if not retry_policy.decide_recovery(
            state.recoveries_used,
            config.MAX_RECOVERIES,
            error_code=error_code,
            failure_streak=state.failure_streak,
        ):
            if error_code == ErrorCode.SESSION_EXPIRED:
                state.halt(ABORT_SESSION_EXPIRED, ErrorCode.SESSION_EXPIRED)
            else:
                state.halt(ABORT_PAGE_UNRECOVERABLE, ErrorCode.CONTEXT_LOST)
            return False

        attempt += 1
        if attempt > 1:
            wait_seconds(
                page,
                retry_policy.compute_backoff_seconds(attempt - 1, base=config.RECOVERY_RETRY_WAIT_SECONDS),
            )
        state.recoveries_used += 1
        outcome.recoveries += 1
        result = recovery.recover(page)
        if result.session_expired:
            state.halt(ABORT_SESSION_EXPIRED, ErrorCode.SESSION_EXPIRED)
            return False
        if result.recovered:
            state.failure_streak = 0
            # A reload or navigation always lands on the first page.
            state.current_page = 1
            return True


def _after_item(page: Page, controller: modal.ModalController, state: LoopState) -> None:
    """Close the dialog and make sure the table is back before the next item."""

    controller.close()
    wait_seconds(page, config.POST_CLOSE_SETTLE_SECONDS)

    reading = health.check_health(page)
    if not (reading.alive and reading.context_responsive):
        log_line("[PROC] Session unresponsive after closing the dialog; forcing a recovery.")
        state.force_recovery()
        return

    if table_state.await_table_loaded(page).loaded:
        return
    wait_seconds(page, config.TABLE_RETRY_WAIT_SECONDS)
    if table_state.await_table_loaded(page).loaded:
        return
    log_line("[PROC] Inbox table did not come back after closing the dialog; forcing a recovery.")
    state.force_recovery()


def _process_one(
    page: Page,
    index: int,
    record: NotificationRecord,
    controller: modal.ModalController,
    state: LoopState,
) -> Tuple[ItemDetail, bool]:
    """Handle one record; the flag tells whether its dialog was opened."""

    if not record.has_attachment_button:
        return _detail(
            index, record, STATUS_FAILED,
            error="row has no attachments control",
            error_code=ErrorCode.NOT_FOUND,
        ), False

    if record.page_number != state.current_page:
        if pagination.go_to_page(page, record.page_number):
            state.current_page = record.page_number
        else:
            # The row is re-located by its notification number, so the open
            # is still attempted on whatever page is showing.
            log_line(f"[PROC] Could not reach page {record.page_number} for {record.label}; trying anyway.")
            actual = pagination.current_page_number(page)
            if actual is not None:
                state.current_page = actual

    opened = controller.open(record.row_key, record.secondary_key, record.case_number)
    if not opened.ok:
        state.fail(opened.error_code)
        controller.close()
        wait_seconds(page, config.POST_CLOSE_SETTLE_SECONDS)
        if not table_state.await_table_loaded(page).loaded:
            log_line(f"[PROC] Inbox table not back after the failed open of {record.label}.")
        return _detail(index, record, STATUS_FAILED, error=opened.error, error_code=opened.error_code), False

    captured = download.capture_consolidated_pdf(
        page, notification_number=record.secondary_key or record.case_number
    )
    if not captured.ok:
        state.fail(captured.error_code)
        detail = _detail(index, record, STATUS_FAILED, error=captured.error, error_code=captured.error_code)
    elif captured.has_bytes:
        state.failure_streak = 0
        record.attachment_pdf = captured.pdf_base64
        record.attachment_filename = captured.filename
        record.attachment_size = captured.size
        record.downloaded = True
        detail = _detail(index, record, STATUS_SUCCEEDED)
    else:
        state.failure_streak = 0
        detail = _detail(index, record, STATUS_PARTIAL, error="download clicked but no PDF captured")
    return detail, True


def process_notifications(
    page: Page,
    notifications: Sequence[NotificationRecord],
    *,
    start_page: int = 1,
) -> ProcessingOutcome:
    """Process *notifications* in order and return the aggregated outcome.

    Never raises: per-item errors become failed details, and a run that
    cannot continue marks every remaining item failed with the abort reason.
    """

    outcome = ProcessingOutcome()
    state = LoopState(current_page=max(1, start_page))
    controller = modal.ModalController(page)
    total = len(notifications)

    log_line(f"[PROC] Processing {total} notifications.")
    for index, record in enumerate(notifications):
        if not state.halted and state.failure_streak >= config.MAX_CONSECUTIVE_FAILURES:
            _escalate(page, state, outcome)
            if state.halted:
                outcome.aborted = True
                outcome.abort_reason = state.halt_reason
                log_line(f"[PROC] Stopping: {state.halt_reason}.")

        if state.halted:
            outcome.record(
                _detail(index, record, STATUS_FAILED, error=state.halt_reason, error_code=state.halt_code)
            )
            continue

        log_line(f"[PROC] {index + 1}/{total} {record.label} (page {record.page_number})")
        try:
            detail, dialog_opened = _process_one(page, index, record, controller, state)
        except Exception as exc:  # noqa: BLE001
            log_line(f"[PROC] Unexpected error on {record.label}: {exc}")
            state.fail(ErrorCode.INTERNAL)
            detail = _detail(
                index, record, STATUS_FAILED,
                error=short_error_message(exc),
                error_code=ErrorCode.INTERNAL,
            )
            dialog_opened = False
            controller.close()
        outcome.record(detail)
        _scraper_event(
            "proc",
            step="item",
            index=index,
            key=record.label,
            status=detail.status,
            error_code=detail.error_code,
            failure_streak=state.failure_streak,
        )

        # The outcome is already recorded; cleanup can only move the streak.
        if dialog_opened:
            try:
                _after_item(page, controller, state)
            except Exception as exc:  # noqa: BLE001
                log_line(f"[PROC] Cleanup after {record.label} failed: {exc}")
                state.force_recovery()

        if index < total - 1:
            wait_seconds(page, config.BETWEEN_ITEMS_SECONDS)

    log_line(
        f"[PROC] Done: {outcome.succeeded} succeeded, {outcome.partial} partial, "
        f"{outcome.failed} failed, {outcome.recoveries} recoveries."
    )
    _scraper_event(
        "proc",
        step="summary",
        succeeded=outcome.succeeded,
        partial=outcome.partial,
        failed=outcome.failed,
        recoveries=outcome.recoveries,
        aborted=outcome.aborted,
        abort_reason=outcome.abort_reason,
    )
    return outcome


__all__ = ["LoopState", "process_notifications"]
