from __future__ import annotations

"""Error code taxonomy for inbox harvesting failures.

These codes are attached to per-item outcome details, run telemetry and
structured logs so that a failed notification can be explained after the
run. Keep the values stable; the run summary CLI groups by them.
"""


class ErrorCode:
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    INVALID_FORMAT = "invalid_format"
    CONTEXT_LOST = "context_lost"
    SESSION_EXPIRED = "session_expired"
    STRUCTURAL_MISMATCH = "structural_mismatch"
    INTERNAL = "internal_error"


# Abort reasons recorded for items that were never attempted.
ABORT_PAGE_UNRECOVERABLE = "page unrecoverable"
ABORT_SESSION_EXPIRED = "session expired"


__all__ = ["ErrorCode", "ABORT_PAGE_UNRECOVERABLE", "ABORT_SESSION_EXPIRED"]
