"""Detection of the inbox DataTable load state.

PrimeFaces swaps the table body out during every AJAX request and frequently
renders it empty for a moment before the rows arrive, so a single "loaded"
read is never trusted: it is confirmed by a second read after a settle
delay.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from playwright.sync_api import Page

from . import config
from .logging_utils import _scraper_event
from .page_bridge import safe_evaluate
from .polling import poll_until
from .selectors import INBOX_SELECTORS
from .utils import log_line

TABLE_STATE_JS = """
(s) => {
  const visible = (el) => {
    if (!el) return false;
    const style = window.getComputedStyle(el);
    if (style.display === 'none' || style.visibility === 'hidden') return false;
    if (parseFloat(style.opacity || '1') <= 0) return false;
    return el.offsetParent !== null || style.position === 'fixed';
  };
  for (const sel of s.loading_indicators) {
    for (const el of document.querySelectorAll(sel)) {
      if (visible(el)) return { kind: 'loading', rowCount: 0, noResults: false };
    }
  }
  let body = document.querySelector(s.table_body);
  if (!body) {
    for (const sel of s.table_body_fallbacks) {
      body = document.querySelector(sel);
      if (body) break;
    }
  }
  if (!body) return { kind: 'absent', rowCount: 0, noResults: false };
  let rowCount = 0;
  for (const tr of body.querySelectorAll('tr')) {
    if (tr.classList.contains(s.empty_row_class)) continue;
    if (tr.querySelectorAll('td').length > s.table_min_cells) rowCount += 1;
  }
  if (rowCount > 0) return { kind: 'rows', rowCount, noResults: false };
  const text = (body.textContent || '').toLowerCase();
  const noResults = !!body.querySelector('.' + s.empty_row_class) ||
    s.empty_phrases.some((p) => text.includes(p));
  return { kind: 'empty', rowCount: 0, noResults };
}
"""


class TableKind(str, Enum):
    LOADING = "loading"
    ABSENT = "absent"
    EMPTY = "loaded-empty"
    ROWS = "loaded-with-rows"


_KIND_BY_PROBE = {
    "loading": TableKind.LOADING,
    "absent": TableKind.ABSENT,
    "empty": TableKind.EMPTY,
    "rows": TableKind.ROWS,
}


@dataclass(frozen=True)
class TableState:
    kind: TableKind
    row_count: int = 0
    no_results: bool = False

    @property
    def loaded(self) -> bool:
        return self.kind in (TableKind.EMPTY, TableKind.ROWS)

    @property
    def has_rows(self) -> bool:
        return self.kind is TableKind.ROWS and self.row_count > 0

    @classmethod
    def from_probe(cls, raw: Any) -> Optional["TableState"]:
        if not isinstance(raw, dict):
            return None
        kind = _KIND_BY_PROBE.get(str(raw.get("kind") or ""))
        if kind is None:
            return None
        try:
            row_count = int(raw.get("rowCount") or 0)
        except (TypeError, ValueError):
            row_count = 0
        if kind is TableKind.ROWS and row_count <= 0:
            kind = TableKind.EMPTY
        return cls(kind=kind, row_count=row_count, no_results=bool(raw.get("noResults")))


@dataclass
class TableLoadResult:
    loaded: bool
    has_rows: bool
    row_count: int
    message: str = ""


def read_table_state(page: Page) -> Optional[TableState]:
    """Single read of the table state; ``None`` when the page could not answer."""

    return TableState.from_probe(safe_evaluate(page, TABLE_STATE_JS, INBOX_SELECTORS.to_js()))


def peek_table_state(page: Page) -> TableState:
    """Single-shot read used by callers that must not wait.

    An unreadable page is reported as ``loading``: the context is most likely
    mid-rebuild.
    """

    return read_table_state(page) or TableState(kind=TableKind.LOADING)


def _same_state(first: TableState, second: TableState) -> bool:
    if first.kind is not second.kind:
        return False
    if first.kind is TableKind.ROWS:
        return first.row_count == second.row_count
    return True


def await_table_loaded(page: Page, max_wait: Optional[float] = None) -> TableLoadResult:
    """Poll until the table is loaded (with or without rows) and stays that way."""

    ceiling = float(max_wait if max_wait is not None else config.TABLE_LOAD_TIMEOUT_SECONDS)
    outcome = poll_until(
        page,
        lambda: read_table_state(page),
        ready=lambda state: state.loaded,
        interval=config.TABLE_POLL_INTERVAL_SECONDS,
        ceiling=ceiling,
        confirmations=1,
        settle=config.TABLE_SETTLE_SECONDS,
        stable=_same_state,
        label="table",
    )

    if outcome.page_closed:
        log_line("[TABLE] Page closed while waiting for the inbox table.")
        return TableLoadResult(loaded=False, has_rows=False, row_count=0, message="page closed")

    if not outcome.ok:
        last: Optional[TableState] = outcome.last_value
        log_line(
            f"[TABLE] Table not loaded after {outcome.elapsed:.1f}s "
            f"({outcome.attempts} reads, last={last.kind.value if last else 'none'})."
        )
        _scraper_event(
            "error",
            phase="table",
            step="wait_timeout",
            attempts=outcome.attempts,
            last_kind=last.kind.value if last else None,
        )
        return TableLoadResult(loaded=False, has_rows=False, row_count=0, message="timeout")

    state: TableState = outcome.value
    _scraper_event(
        "table",
        step="loaded",
        kind=state.kind.value,
        row_count=state.row_count,
        no_results=state.no_results,
        attempts=outcome.attempts,
    )
    if state.has_rows:
        return TableLoadResult(loaded=True, has_rows=True, row_count=state.row_count, message="rows")
    message = "no results" if state.no_results else "empty"
    return TableLoadResult(loaded=True, has_rows=False, row_count=0, message=message)


__all__ = [
    "TABLE_STATE_JS",
    "TableKind",
    "TableState",
    "TableLoadResult",
    "read_table_state",
    "peek_table_state",
    "await_table_loaded",
]
