from __future__ import annotations

from dataclasses import dataclass
from time import monotonic
from typing import Any, Callable, Optional

from playwright.sync_api import Page

from .logging_utils import _scraper_event
from .page_bridge import is_page_closed, wait_seconds

# Floor for every pause so the clock always advances towards the ceiling.
_MIN_PAUSE_SECONDS = 0.05


@dataclass
class PollOutcome:
    """Result of a bounded poll.

    ``value`` is the accepted (and, when requested, confirmed) probe value, or
    ``None`` when the ceiling was reached or the page closed. ``last_value``
    always carries the most recent non-``None`` probe result for diagnostics.
    """

    value: Any
    attempts: int
    elapsed: float
    timed_out: bool
    page_closed: bool = False
    last_value: Any = None

    @property
    def ok(self) -> bool:
        return not self.timed_out and not self.page_closed and self.value is not None


def _same(previous: Any, current: Any) -> bool:
    return previous == current


def poll_until(
    page: Optional[Page],
    probe: Callable[[], Any],
    *,
    ready: Callable[[Any], bool],
    interval: float,
    ceiling: float,
    confirmations: int = 0,
    settle: float = 0.0,
    stable: Callable[[Any, Any], bool] = _same,
    backoff: float = 1.0,
    max_interval: Optional[float] = None,
    label: str = "poll",
) -> PollOutcome:
    """Call *probe* until *ready* accepts its value or *ceiling* seconds pass.

    A ``None`` probe result is treated as "busy" and never accepted. When
    ``confirmations`` is positive, an accepted value is re-read that many
    times, ``settle`` seconds apart; the value is only returned if every
    re-read is itself ready and ``stable`` against the first read. A failed
    confirmation resumes polling instead of returning.
    """

    started = monotonic()
    attempts = 0
    delay = max(0.0, interval)
    last_value: Any = None

    while True:
        if is_page_closed(page):
            return PollOutcome(
                value=None,
                attempts=attempts,
                elapsed=monotonic() - started,
                timed_out=False,
                page_closed=True,
                last_value=last_value,
            )

        attempts += 1
        value = probe()
        if value is not None:
            last_value = value

        if value is not None and ready(value):
            confirmed = True
            for _ in range(confirmations):
                wait_seconds(page, settle)
                again = probe()
                if again is None or not ready(again) or not stable(value, again):
                    _scraper_event(
                        "poll",
                        step="unconfirmed",
                        poll=label,
                        first=repr(value)[:120],
                        again=repr(again)[:120],
                    )
                    if again is not None:
                        last_value = again
                    confirmed = False
                    break
                value = again
            if confirmed:
                return PollOutcome(
                    value=value,
                    attempts=attempts,
                    elapsed=monotonic() - started,
                    timed_out=False,
                    last_value=value,
                )

        elapsed = monotonic() - started
        if elapsed >= ceiling:
            _scraper_event(
                "poll",
                step="timeout",
                poll=label,
                attempts=attempts,
                ceiling=ceiling,
            )
            return PollOutcome(
                value=None,
                attempts=attempts,
                elapsed=elapsed,
                timed_out=True,
                last_value=last_value,
            )

        wait_seconds(page, max(_MIN_PAUSE_SECONDS, min(delay, ceiling - elapsed)))
        if backoff > 1.0:
            delay = delay * backoff
            if max_interval is not None:
                delay = min(delay, max_interval)


__all__ = ["PollOutcome", "poll_until"]
