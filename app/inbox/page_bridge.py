"""Guarded access to the browser page.

The portal rebuilds its DOM (and frequently its whole JS execution context)
on every AJAX round-trip, so most page reads can fail transiently. Everything
in this module converts those automation-layer failures into ``None`` or
``False`` so callers can treat them as "busy, try again".
"""

from __future__ import annotations

from typing import Any, Optional

from playwright.sync_api import Error as PWError, Page

from .logging_utils import _scraper_event

# Substrings of Playwright/CDP error messages that mean the page context went
# away underneath the call rather than the script itself being wrong.
CONTEXT_LOST_MARKERS: tuple[str, ...] = (
    "Execution context was destroyed",
    "frame was detached",
    "Frame was detached",
    "Target closed",
    "Target crashed",
    "Session closed",
    "has been closed",
    "Protocol error",
    "Cannot find context",
    "Node is detached from document",
    "Navigation failed because page",
    "Most likely the page has been closed",
)


def is_context_lost_error(exc: BaseException) -> bool:
    """Return ``True`` if *exc* indicates the page or its context is gone."""

    message = str(exc)
    return any(marker in message for marker in CONTEXT_LOST_MARKERS)


def is_page_closed(page: Optional[Page]) -> bool:
    if page is None:
        return True
    try:
        return bool(page.is_closed())
    except PWError:
        return True


def safe_evaluate(page: Optional[Page], script: str, arg: Any = None) -> Any:
    """Run *script* in the page and return its result, or ``None`` on failure.

    ``None`` is returned when the page is closed, the execution context was
    destroyed mid-call, or Playwright raised any other automation error.
    Programming errors in Python (bad arguments and the like) still raise.
    """

    if is_page_closed(page):
        return None
    try:
        if arg is None:
            return page.evaluate(script)
        return page.evaluate(script, arg)
    except PWError as exc:
        _scraper_event(
            "bridge",
            step="evaluate_failed",
            context_lost=is_context_lost_error(exc),
            error=str(exc)[:200],
        )
        return None


def safe_url(page: Optional[Page]) -> Optional[str]:
    """Return the page URL, or ``None`` when it cannot be read."""

    if is_page_closed(page):
        return None
    try:
        return page.url
    except PWError:
        return None


def wait_seconds(page: Optional[Page], seconds: float) -> None:
    """Wait safely for ``seconds`` only if *page* remains open.

    ``page.wait_for_timeout`` is used rather than ``time.sleep`` so Playwright
    keeps dispatching events (CDP interception callbacks included) while we
    wait.
    """

    if page is None:
        return

    if seconds is None or seconds <= 0:
        return

    if is_page_closed(page):
        return
    try:
        page.wait_for_timeout(max(1.0, round(seconds * 1000, 3)))
    except PWError:
        return


def press_key(page: Optional[Page], key: str) -> bool:
    """Press *key* on the page keyboard; ``False`` when the page is gone."""

    if is_page_closed(page):
        return False
    try:
        page.keyboard.press(key)
        return True
    except PWError:
        return False


__all__ = [
    "CONTEXT_LOST_MARKERS",
    "is_context_lost_error",
    "is_page_closed",
    "safe_evaluate",
    "safe_url",
    "wait_seconds",
    "press_key",
]
