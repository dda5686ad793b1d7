"""Opening and closing the per-notification attachments dialog.

Lifecycle::

    closed -> opening -> open -> closing -> closed
                 \\         \\
                  +-> error <-+

The row whose attachments are wanted is re-located on every call: its
``data-ri`` index is only a fast-path hint, validated against the
notification number before it is trusted.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from playwright.sync_api import Page

from . import config
from .error_codes import ErrorCode
from .logging_utils import _scraper_event
from .page_bridge import is_page_closed, press_key, safe_evaluate, wait_seconds
from .polling import poll_until
from .selectors import INBOX_SELECTORS
from .utils import log_line

# Shared helpers for the dialog scripts below.
_DIALOG_HELPERS = """
  const isOpen = (el) => {
    if (!el) return false;
    if (el.getAttribute('aria-hidden') === 'false') return true;
    if (!el.classList.contains('ui-dialog')) return false;
    const style = window.getComputedStyle(el);
    return style.display !== 'none' && style.visibility !== 'hidden' && el.offsetParent !== null;
  };
  const titleOf = (el) => {
    const node = el.querySelector(s.modal_title);
    return node ? (node.textContent || '').trim() : '';
  };
  const isErrorTitle = (title) => {
    const lower = title.toLowerCase();
    return s.modal_error_keywords.some((k) => lower.includes(k));
  };
  const findDialog = (allowErrors) => {
    let fallback = null;
    for (const sel of s.modal_containers) {
      for (const el of document.querySelectorAll(sel)) {
        if (!isOpen(el)) continue;
        if (isErrorTitle(titleOf(el))) {
          if (!fallback) fallback = el;
          continue;
        }
        return { dialog: el, errorTitle: '' };
      }
    }
    if (fallback && allowErrors) return { dialog: fallback, errorTitle: titleOf(fallback) };
    return { dialog: null, errorTitle: fallback ? titleOf(fallback) : '' };
  };
"""

MODAL_PROBE_JS = (
    "(s) => {"
    + _DIALOG_HELPERS
    + """
  const found = findDialog(false);
  const modal = found.dialog;
  if (!modal) return { visible: false, errorTitle: found.errorTitle };
  const loading = s.modal_loading.some((sel) => {
    const el = modal.querySelector(sel);
    return !!el && el.offsetParent !== null;
  });
  const rows = Array.from(modal.querySelectorAll(s.modal_rows))
    .filter((tr) => !tr.classList.contains(s.empty_row_class) && !tr.querySelector('td[colspan]'));
  let control = null;
  for (const id of s.download_all_ids) {
    control = modal.querySelector('[id*="' + id + '" i]');
    if (control) break;
  }
  if (!control) {
    for (const el of modal.querySelectorAll('button, a')) {
      const text = (el.textContent || '').trim().toLowerCase();
      if (s.download_all_labels.some((label) => text.includes(label))) { control = el; break; }
    }
  }
  const disabled = !!control && (control.disabled ||
    control.classList.contains(s.disabled_class) ||
    control.getAttribute('aria-disabled') === 'true');
  return {
    visible: true,
    errorTitle: '',
    title: titleOf(modal),
    loading,
    attachments: rows.length,
    downloadAll: !!control,
    downloadAllEnabled: !!control && !disabled,
  };
}
"""
)

_ROW_HELPERS = """
  let body = document.querySelector(s.table_body);
  if (!body) {
    for (const sel of s.table_body_fallbacks) {
      body = document.querySelector(sel);
      if (body) break;
    }
  }
  const norm = (v) => (v || '').replace(/\\s+/g, ' ').trim();
  const cellText = (tr, idx) => {
    const cells = tr.querySelectorAll(':scope > td');
    return cells[idx] ? norm(cells[idx].textContent) : '';
  };
  const rows = body ? Array.from(body.querySelectorAll(':scope > tr[data-ri]')) : [];
"""

ROW_INDEX_JS = (
    "(s) => {"
    + _ROW_HELPERS
    + """
  if (!body) return null;
  return rows.map((tr) => ({
    rowKey: tr.getAttribute('data-ri'),
    secondaryKey: cellText(tr, s.col_secondary_key),
    caseNumber: cellText(tr, s.col_case_number),
  }));
}
"""
)

# The row is re-checked against its notification number right before the
# click, since the table can be rebuilt between the index read and the click.
CLICK_TRIGGER_JS = (
    "(args) => { const s = args.s;"
    + _ROW_HELPERS
    + """
  if (!body) return { found: false, reason: 'table' };
  const row = rows.find((tr) => tr.getAttribute('data-ri') === String(args.rowKey));
  if (!row) return { found: false, reason: 'row' };
  if (args.secondaryKey && cellText(row, s.col_secondary_key) !== args.secondaryKey) {
    return { found: false, reason: 'moved' };
  }

  const actionable = (el) => (el ? (el.closest('button, a') || el) : null);
  const cells = row.querySelectorAll(':scope > td');
  const last = cells[cells.length - 1];
  let trigger = null;
  let strategy = '';
  for (const sel of s.trigger_icon) {
    const icon = row.querySelector(sel);
    if (icon) { trigger = actionable(icon); strategy = 'icon'; break; }
  }
  if (!trigger && last) {
    const el = last.querySelector(s.trigger_any);
    if (el) { trigger = el; strategy = 'last_cell'; }
  }
  if (!trigger) {
    for (const sel of s.trigger_dynamic_id) {
      const el = row.querySelector(sel);
      if (el) { trigger = actionable(el); strategy = 'dynamic_id'; break; }
    }
  }
  if (!trigger) {
    const el = row.querySelector(s.trigger_any);
    if (el) { trigger = el; strategy = 'any'; }
  }
  if (!trigger) return { found: true, clicked: false, reason: 'trigger' };
  trigger.scrollIntoView({ block: 'center' });
  trigger.click();
  return { found: true, clicked: true, strategy };
}
"""
)

CLOSE_CLICK_JS = (
    "(args) => { const s = args.s;"
    + _DIALOG_HELPERS
    + """
  const modal = findDialog(true).dialog;
  if (!modal) return 'absent';
  const usable = (el) => !!el && !el.disabled && el.offsetParent !== null;
  if (args.strategy === 'icon') {
    const icon = modal.querySelector(s.close_icon);
    if (usable(icon)) { icon.click(); return 'clicked'; }
    return 'missing';
  }
  const candidates = Array.from(modal.querySelectorAll(
    '.ui-dialog-footer button, .ui-dialog-buttonpane button, button, a'));
  for (const el of candidates) {
    const text = (el.textContent || '').trim().toLowerCase();
    const byId = (el.id || '').includes(s.close_id_fragment);
    if ((byId || s.close_labels.some((label) => text === label || text.includes(label))) && usable(el)) {
      el.click();
      return 'clicked';
    }
  }
  return 'missing';
}
"""
)


class ModalState(str, Enum):
    CLOSED = "closed"
    OPENING = "opening"
    OPEN = "open"
    CLOSING = "closing"
    ERROR = "error"


@dataclass
class ModalResult:
    ok: bool
    error_code: Optional[str] = None
    error: str = ""
    strategy: str = ""
    located_by: str = ""
    row_key: Optional[str] = None
    title: str = ""
    attachments: int = 0
    download_all: bool = False


def locate_row(
    rows: Sequence[Mapping[str, Any]],
    row_key: Optional[str],
    secondary_key: str = "",
    case_number: str = "",
) -> Optional[Tuple[str, str]]:
    """Pick the row to open from a row index; ``(row_key, located_by)``.

    The hinted row key is only trusted while the row still carries the
    expected notification number (or case number when that is all we have).
    Otherwise the rows are scanned by the stable key.
    """

    def _matches(row: Mapping[str, Any]) -> bool:
        if secondary_key:
            return row.get("secondaryKey") == secondary_key
        if case_number:
            return row.get("caseNumber") == case_number
        return True

    if row_key is not None:
        for row in rows:
            if str(row.get("rowKey")) == str(row_key) and _matches(row):
                return str(row_key), "row_key"

    if secondary_key:
        for row in rows:
            if row.get("secondaryKey") == secondary_key:
                return str(row.get("rowKey")), "secondary_key"
        return None

    if case_number:
        for row in rows:
            if row.get("caseNumber") == case_number:
                return str(row.get("rowKey")), "case_number"
    return None


def _dialog_showing(probe: Mapping[str, Any]) -> bool:
    # Error and confirmation popups count: closing must dismiss them too.
    return bool(probe.get("visible") or probe.get("errorTitle"))


class ModalController:
    """Drives the attachments dialog for one browsing session."""

    def __init__(self, page: Page) -> None:
        self.page = page
        self.state = ModalState.CLOSED
        self.last_strategy: Optional[str] = None

    def probe(self) -> Optional[Dict[str, Any]]:
        raw = safe_evaluate(self.page, MODAL_PROBE_JS, INBOX_SELECTORS.to_js())
        return raw if isinstance(raw, dict) else None

    def is_open(self) -> Optional[bool]:
        """``True``/``False`` for a genuine attachments dialog; ``None`` if unknown."""

        raw = self.probe()
        if raw is None:
            return None
        return bool(raw.get("visible"))

    def _fail(self, code: str, message: str, **extra: Any) -> ModalResult:
        self.state = ModalState.ERROR
        log_line(f"[MODAL] {message}")
        _scraper_event("error", phase="modal", error_code=code, error=message, **extra)
        return ModalResult(ok=False, error_code=code, error=message, **extra)

    def _read_row_index(self) -> Optional[List[Dict[str, Any]]]:
        for _ in range(max(1, config.MODAL_MAX_CONSECUTIVE_NULLS)):
            raw = safe_evaluate(self.page, ROW_INDEX_JS, INBOX_SELECTORS.to_js())
            if isinstance(raw, list):
                return raw
            wait_seconds(self.page, config.MODAL_POLL_INTERVAL_SECONDS)
        return None

    def open(
        self, row_key: Optional[str], secondary_key: str = "", case_number: str = ""
    ) -> ModalResult:
        """Open the attachments dialog for the row identified by the keys."""

        if is_page_closed(self.page):
            return self._fail(ErrorCode.CONTEXT_LOST, "Page closed before opening the dialog.")

        self.state = ModalState.OPENING
        target = secondary_key or case_number or f"row {row_key}"
        index = self._read_row_index()
        if index is None:
            return self._fail(ErrorCode.CONTEXT_LOST, f"Page did not answer while locating {target}.")

        located = locate_row(index, row_key, secondary_key, case_number)
        if located is None:
            return self._fail(ErrorCode.NOT_FOUND, f"Row {target} not found in the inbox table.")
        found_key, located_by = located

        clicked = safe_evaluate(
            self.page,
            CLICK_TRIGGER_JS,
            {"s": INBOX_SELECTORS.to_js(), "rowKey": found_key, "secondaryKey": secondary_key or ""},
        )
        if not isinstance(clicked, dict):
            return self._fail(ErrorCode.CONTEXT_LOST, f"Page did not answer while clicking {target}.")
        if not clicked.get("found"):
            return self._fail(
                ErrorCode.NOT_FOUND,
                f"Row {target} disappeared before its trigger was clicked ({clicked.get('reason')}).",
                row_key=found_key,
                located_by=located_by,
            )
        if not clicked.get("clicked"):
            return self._fail(
                ErrorCode.NOT_FOUND,
                f"Attachment trigger not found in row {target}.",
                row_key=found_key,
                located_by=located_by,
            )

        strategy = str(clicked.get("strategy") or "")
        self.last_strategy = strategy
        _scraper_event(
            "modal",
            step="trigger_clicked",
            target=target,
            strategy=strategy,
            located_by=located_by,
            hinted_row_key=row_key,
            row_key=found_key,
        )

        nulls = {"consecutive": 0}

        def _probe() -> Optional[Dict[str, Any]]:
            raw = self.probe()
            if raw is None:
                nulls["consecutive"] += 1
                if nulls["consecutive"] >= config.MODAL_MAX_CONSECUTIVE_NULLS:
                    return {"aborted": True}
                return None
            nulls["consecutive"] = 0
            return raw

        outcome = poll_until(
            self.page,
            _probe,
            ready=lambda v: bool(v.get("aborted")) or (bool(v.get("visible")) and not v.get("loading")),
            interval=config.MODAL_POLL_INTERVAL_SECONDS,
            ceiling=config.MODAL_OPEN_TIMEOUT_SECONDS,
            label="modal_open",
        )

        if outcome.page_closed or (outcome.value or {}).get("aborted"):
            return self._fail(
                ErrorCode.CONTEXT_LOST,
                f"Page context lost while waiting for the dialog of {target}.",
                strategy=strategy,
            )
        if not outcome.ok:
            last = outcome.last_value or {}
            detail = f" (blocked by '{last['errorTitle']}')" if last.get("errorTitle") else ""
            return self._fail(
                ErrorCode.TIMEOUT,
                f"Attachments dialog for {target} did not appear{detail}.",
                strategy=strategy,
            )

        wait_seconds(self.page, config.MODAL_READY_SETTLE_SECONDS)
        info = outcome.value
        self.state = ModalState.OPEN
        log_line(
            f"[MODAL] Open for {target} via {strategy} "
            f"({info.get('attachments', 0)} attachments, title={info.get('title', '')!r})"
        )
        return ModalResult(
            ok=True,
            strategy=strategy,
            located_by=located_by,
            row_key=found_key,
            title=str(info.get("title") or ""),
            attachments=int(info.get("attachments") or 0),
            download_all=bool(info.get("downloadAllEnabled")),
        )

    def _await_hidden(self, ceiling: float) -> bool:
        outcome = poll_until(
            self.page,
            self.probe,
            ready=lambda v: not _dialog_showing(v),
            interval=config.MODAL_CLOSE_POLL_SECONDS,
            ceiling=ceiling,
            label="modal_close",
        )
        return outcome.ok or outcome.page_closed

    def close(self) -> bool:
        """Close any open attachments dialog. Idempotent and never raises."""

        try:
            return self._close()
        except Exception as exc:  # noqa: BLE001
            log_line(f"[MODAL] Unexpected error while closing the dialog: {exc}")
            self.state = ModalState.ERROR
            return is_page_closed(self.page)

    def _close(self) -> bool:
        if is_page_closed(self.page):
            self.state = ModalState.CLOSED
            return True

        current = self.probe()
        if current is not None and not _dialog_showing(current):
            self.state = ModalState.CLOSED
            return True

        self.state = ModalState.CLOSING
        per_attempt = max(config.MODAL_CLOSE_POLL_SECONDS, config.MODAL_CLOSE_TIMEOUT_SECONDS / 3)
        args = {"s": INBOX_SELECTORS.to_js()}

        for strategy in ("icon", "footer"):
            clicked = safe_evaluate(self.page, CLOSE_CLICK_JS, {**args, "strategy": strategy})
            if clicked == "absent":
                self.state = ModalState.CLOSED
                return True
            if clicked == "clicked" and self._await_hidden(per_attempt):
                self.state = ModalState.CLOSED
                _scraper_event("modal", step="closed", strategy=strategy)
                return True

        press_key(self.page, "Escape")
        if self._await_hidden(per_attempt):
            self.state = ModalState.CLOSED
            _scraper_event("modal", step="closed", strategy="escape")
            return True

        self.state = ModalState.ERROR
        log_line("[MODAL] Dialog still visible after every close strategy.")
        _scraper_event("error", phase="modal", step="close_failed")
        return False


__all__ = [
    "MODAL_PROBE_JS",
    "ROW_INDEX_JS",
    "CLICK_TRIGGER_JS",
    "locate_row",
    "CLOSE_CLICK_JS",
    "ModalState",
    "ModalResult",
    "ModalController",
]
