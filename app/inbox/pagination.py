from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from playwright.sync_api import Page

from . import config
from .logging_utils import _scraper_event
from .page_bridge import safe_evaluate, wait_seconds
from .selectors import INBOX_SELECTORS
from .table_state import await_table_loaded
from .utils import log_line

PAGER_INFO_JS = """
(s) => {
  const current = document.querySelector(s.paginator_current);
  const next = document.querySelector(s.paginator_next);
  const prev = document.querySelector(s.paginator_prev);
  const active = document.querySelector(s.paginator_page + '.' + s.active_class);
  const pages = Array.from(document.querySelectorAll(s.paginator_page))
    .map((el) => (el.textContent || '').trim());
  return {
    text: current ? (current.textContent || '').trim() : '',
    hasNext: !!next,
    nextDisabled: next ? next.classList.contains(s.disabled_class) : true,
    hasPrev: !!prev,
    prevDisabled: prev ? prev.classList.contains(s.disabled_class) : true,
    active: active ? (active.textContent || '').trim() : '',
    pages,
  };
}
"""

PAGER_CLICK_JS = """
(args) => {
  const s = args.s;
  let el = null;
  if (args.kind === 'next') {
    el = document.querySelector(s.paginator_next);
  } else if (args.kind === 'prev') {
    el = document.querySelector(s.paginator_prev);
  } else {
    for (const link of document.querySelectorAll(s.paginator_page)) {
      if ((link.textContent || '').trim() === String(args.number)) { el = link; break; }
    }
  }
  if (!el || el.classList.contains(s.disabled_class)) return false;
  el.click();
  return true;
}
"""

_INDICATOR_PATTERNS = (
    re.compile(r"(?:p[aá]gina|page)\s*(\d+)\s*(?:/|of|de)\s*(\d+)", re.IGNORECASE),
    re.compile(r"\(\s*(\d+)\s*(?:/|of|de)\s*(\d+)\s*\)", re.IGNORECASE),
    # A bare "N de M" only counts when it is the whole label; "1 - 10 de 45"
    # in a record-range label is not a page position.
    re.compile(r"^\s*(\d+)\s*(?:/|of|de)\s*(\d+)\s*$", re.IGNORECASE),
)


def parse_page_indicator(text: str) -> Optional[Tuple[int, int]]:
    """Return ``(current, total)`` parsed from a paginator label, if any."""

    candidate = (text or "").strip()
    if not candidate:
        return None
    for pattern in _INDICATOR_PATTERNS:
        match = pattern.search(candidate)
        if not match:
            continue
        current, total = int(match.group(1)), int(match.group(2))
        if total >= 1 and 1 <= current <= total:
            return current, total
    return None


@dataclass
class PageInfo:
    current: Optional[int] = None
    total: Optional[int] = None
    next_enabled: bool = False
    prev_enabled: bool = False
    has_paginator: bool = False
    page_links: List[int] = field(default_factory=list)


def read_page_info(page: Page) -> Optional[PageInfo]:
    raw = safe_evaluate(page, PAGER_INFO_JS, INBOX_SELECTORS.to_js())
    if not isinstance(raw, dict):
        return None

    info = PageInfo(
        next_enabled=bool(raw.get("hasNext")) and not raw.get("nextDisabled", True),
        prev_enabled=bool(raw.get("hasPrev")) and not raw.get("prevDisabled", True),
        has_paginator=bool(raw.get("hasNext") or raw.get("hasPrev") or raw.get("text")),
        page_links=[int(p) for p in raw.get("pages") or [] if str(p).isdigit()],
    )
    parsed = parse_page_indicator(str(raw.get("text") or ""))
    if parsed:
        info.current, info.total = parsed
    elif str(raw.get("active") or "").isdigit():
        info.current = int(raw["active"])
    return info


def current_page_number(page: Page) -> Optional[int]:
    """Return the page the table currently shows; ``None`` when unreadable."""

    info = read_page_info(page)
    if info is None:
        return None
    if info.current is not None:
        return info.current
    if not info.has_paginator:
        return 1
    return None


def has_next_page(page: Page) -> bool:
    info = read_page_info(page)
    if info is None:
        return False
    if info.current is not None and info.total is not None:
        return info.current < info.total
    return info.next_enabled


def _click_pager(page: Page, kind: str, number: int = 0) -> bool:
    clicked = safe_evaluate(
        page,
        PAGER_CLICK_JS,
        {"s": INBOX_SELECTORS.to_js(), "kind": kind, "number": number},
    )
    return clicked is True


def _click_and_confirm(page: Page, kind: str, number: int = 0) -> bool:
    if not _click_pager(page, kind, number):
        _scraper_event("pager", step="click_unavailable", kind=kind, number=number)
        return False
    # Give PrimeFaces time to start the request before the table is re-read.
    wait_seconds(page, config.TABLE_POLL_INTERVAL_SECONDS)
    result = await_table_loaded(page)
    if not result.loaded:
        log_line(f"[PAGER] Table did not reload after '{kind}' click.")
        _scraper_event("error", phase="pager", step="reload_failed", kind=kind, number=number)
        return False
    return True


def go_to_next_page(page: Page) -> bool:
    return _click_and_confirm(page, "next")


def go_to_previous_page(page: Page) -> bool:
    return _click_and_confirm(page, "prev")


def go_to_page(page: Page, target: int) -> bool:
    """Bring the table to page *target* (1-based).

    Uses the numbered page link when it is rendered, otherwise steps with
    next/previous. Every step is confirmed through the table detector.
    """

    if target < 1:
        return False

    current = current_page_number(page)
    if current == target:
        return True

    _scraper_event("pager", step="goto", current=current, target=target)

    if _click_and_confirm(page, "page", target):
        current = current_page_number(page)
        if current == target:
            return True

    steps = 0
    while current != target and steps < config.MAX_PAGES:
        if current is None:
            log_line(f"[PAGER] Cannot read the current page while moving to page {target}.")
            return False
        moved = go_to_next_page(page) if current < target else go_to_previous_page(page)
        if not moved:
            log_line(f"[PAGER] Stepping from page {current} towards {target} failed.")
            return False
        current = current_page_number(page)
        steps += 1

    if current != target:
        _scraper_event("error", phase="pager", step="goto_failed", current=current, target=target)
        return False
    return True


__all__ = [
    "PAGER_INFO_JS",
    "PAGER_CLICK_JS",
    "PageInfo",
    "parse_page_indicator",
    "read_page_info",
    "current_page_number",
    "has_next_page",
    "go_to_next_page",
    "go_to_previous_page",
    "go_to_page",
]
