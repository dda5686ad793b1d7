from __future__ import annotations

from typing import Optional

from .error_codes import ErrorCode
from .logging_utils import _scraper_event

# Failures that make further recovery attempts pointless for this run.
NON_RECOVERABLE_ERROR_CODES = {
    ErrorCode.SESSION_EXPIRED,
}

# Failures that count towards the consecutive-failure streak and may be
# cured by reloading the inbox.
RECOVERABLE_ERROR_CODES = {
    ErrorCode.CONTEXT_LOST,
    ErrorCode.TIMEOUT,
    ErrorCode.NOT_FOUND,
    ErrorCode.STRUCTURAL_MISMATCH,
}


def compute_backoff_seconds(attempt_index: int, *, base: float = 1.0, cap: float = 30.0) -> float:
    """Return a capped exponential backoff for the given attempt (1-based)."""

    return float(min(base * 2 ** max(0, attempt_index - 1), cap))


def decide_recovery(
    recoveries_used: int,
    max_recoveries: int,
    *,
    error_code: Optional[str] = None,
    failure_streak: Optional[int] = None,
) -> bool:
    """Decide whether another recovery attempt is allowed for the run."""

    code = (error_code or "").strip()
    if code in NON_RECOVERABLE_ERROR_CODES:
        _scraper_event(
            "state",
            phase="retry_decision",
            kind="non_recoverable",
            error_code=code,
            recoveries_used=recoveries_used,
            max_recoveries=max_recoveries,
            failure_streak=failure_streak,
            will_recover=False,
        )
        return False

    if recoveries_used >= max_recoveries:
        _scraper_event(
            "state",
            phase="retry_decision",
            kind="capped",
            error_code=code or None,
            recoveries_used=recoveries_used,
            max_recoveries=max_recoveries,
            failure_streak=failure_streak,
            will_recover=False,
        )
        return False

    _scraper_event(
        "state",
        phase="retry_decision",
        kind="recoverable" if code in RECOVERABLE_ERROR_CODES else "unhealthy",
        error_code=code or None,
        recoveries_used=recoveries_used,
        max_recoveries=max_recoveries,
        failure_streak=failure_streak,
        will_recover=True,
    )
    return True


__all__ = [
    "compute_backoff_seconds",
    "decide_recovery",
    "NON_RECOVERABLE_ERROR_CODES",
    "RECOVERABLE_ERROR_CODES",
]
