from __future__ import annotations

from typing import Literal

from . import config
from .logging_utils import _scraper_event
from .utils import log_line

Entrypoint = Literal["cli", "run", "tests"]


def _raise_config_error(message: str, *, entrypoint: str, error: str) -> None:
    _scraper_event(
        "error",
        phase="config",
        context="runtime_validation",
        error=error,
        entrypoint=entrypoint,
    )
    log_line(f"[CONFIG] {message} (entrypoint={entrypoint})")
    raise ValueError(message)


def _clamp(field_name: str, value: float, adjusted: float, *, entrypoint: str) -> None:
    _scraper_event(
        "state",
        phase="config",
        context="runtime_validation",
        kind="config_adjustment",
        field=field_name,
        value=value,
        adjusted=adjusted,
        entrypoint=entrypoint,
    )
    log_line(f"[CONFIG] {field_name}={value} is out of range; clamping to {adjusted}.")
    setattr(config, field_name, adjusted)


def validate_runtime_config(entrypoint: Entrypoint) -> None:
    """Validate runtime configuration for the given entrypoint.

    Raises ``ValueError`` when a blocking misconfiguration is detected.
    Non-fatal adjustments (e.g. clamping poll intervals) are logged but do not
    raise.
    """

    if not config.INBOX_URL.startswith(("http://", "https://")):
        _raise_config_error(
            "INBOX_URL must be an absolute http(s) URL.",
            entrypoint=entrypoint,
            error="invalid_inbox_url",
        )

    timeout_fields = [
        ("TABLE_LOAD_TIMEOUT_SECONDS", config.TABLE_LOAD_TIMEOUT_SECONDS),
        ("MODAL_OPEN_TIMEOUT_SECONDS", config.MODAL_OPEN_TIMEOUT_SECONDS),
        ("MODAL_CLOSE_TIMEOUT_SECONDS", config.MODAL_CLOSE_TIMEOUT_SECONDS),
        ("PDF_CAPTURE_TIMEOUT_SECONDS", config.PDF_CAPTURE_TIMEOUT_SECONDS),
        ("RECOVERY_NAV_TIMEOUT_SECONDS", config.RECOVERY_NAV_TIMEOUT_SECONDS),
    ]
    for field_name, value in timeout_fields:
        if value <= 0:
            _raise_config_error(
                f"{field_name} must be greater than zero.",
                entrypoint=entrypoint,
                error="invalid_timeout",
            )

    threshold_fields = [
        ("MAX_CONSECUTIVE_FAILURES", config.MAX_CONSECUTIVE_FAILURES),
        ("MAX_PAGES", config.MAX_PAGES),
    ]
    for field_name, value in threshold_fields:
        if value < 1:
            _raise_config_error(
                f"{field_name} must be at least 1.",
                entrypoint=entrypoint,
                error="invalid_threshold",
            )

    if config.MAX_RECOVERIES < 0:
        _raise_config_error(
            "MAX_RECOVERIES must be non-negative.",
            entrypoint=entrypoint,
            error="invalid_threshold",
        )

    # A zero poll interval would spin against the page without yielding.
    for field_name in (
        "TABLE_POLL_INTERVAL_SECONDS",
        "MODAL_POLL_INTERVAL_SECONDS",
        "MODAL_CLOSE_POLL_SECONDS",
    ):
        value = getattr(config, field_name)
        if value <= 0:
            _clamp(field_name, value, 0.1, entrypoint=entrypoint)

    if config.MIN_PDF_BYTES < 0:
        _clamp("MIN_PDF_BYTES", config.MIN_PDF_BYTES, 0, entrypoint=entrypoint)


__all__ = ["validate_runtime_config", "Entrypoint"]
