from __future__ import annotations

from typing import Any, Dict

from .utils import log_line


def _render(fields: Dict[str, Any]) -> str:
    return ", ".join(f"{key}={value!r}" for key, value in sorted(fields.items()))


def _scraper_event(label: str = "", *, phase: str | None = None, **fields: Any) -> None:
    """Emit one structured ``[SCRAPER][LABEL] key='value'`` line.

    With only ``phase`` given it becomes the label; with both, ``phase`` is
    kept in the payload.
    """

    if label and phase:
        fields.setdefault("phase", phase)
    tag = (label or phase or "").upper()
    try:
        log_line(f"[SCRAPER][{tag}] {_render(fields)}")
    except Exception:  # noqa: BLE001
        # A broken log sink must not interrupt the harvest.
        return


__all__ = ["_scraper_event"]
