"""Excel export helpers for run telemetry."""

from __future__ import annotations

import os
from typing import Optional

import pandas as pd

from . import config
from .telemetry import latest_run_path, load_run, prune_old_exports


def _safe_pivot(frame: pd.DataFrame, by: list[str]) -> pd.DataFrame:
    if frame.empty or any(column not in frame.columns for column in by):
        return pd.DataFrame()
    return frame.groupby(by).size().reset_index(name="count").sort_values("count", ascending=False)


def export_latest_run_to_excel(dest_path: Optional[str] = None) -> str:
    """Create an Excel workbook from the most recent telemetry payload."""

    run_path = latest_run_path()
    if not run_path:
        raise FileNotFoundError("No run telemetry available to export")

    payload = load_run(run_path)

    df = pd.DataFrame(payload.get("entries", []))
    if df.empty:
        df = pd.DataFrame([{"status": "", "info": "No entries in latest run"}])
    elif "notified_on" in df.columns:
        # Newest notifications first; undated rows ("") sink to the bottom.
        df = df.sort_values("notified_on", ascending=False, kind="stable").reset_index(drop=True)

    succeeded = df[df["status"] == "succeeded"].copy()
    partial = df[df["status"] == "partial"].copy()
    failed = df[df["status"] == "failed"].copy()

    summary_status = _safe_pivot(df, ["status"])
    summary_reason = _safe_pivot(failed, ["reason"])
    summary_court = _safe_pivot(df, ["court", "status"])

    os.makedirs(config.EXPORTS_DIR, exist_ok=True)
    if not dest_path:
        basename = f"notifications_{payload['run_id']}.xlsx"
        dest_path = os.path.join(config.EXPORTS_DIR, basename)

    with pd.ExcelWriter(dest_path, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="All")
        succeeded.to_excel(writer, index=False, sheet_name="Succeeded")
        partial.to_excel(writer, index=False, sheet_name="Partial")
        failed.to_excel(writer, index=False, sheet_name="Failed")
        summary_status.to_excel(writer, index=False, sheet_name="Summary_Status")
        if not summary_reason.empty:
            summary_reason.to_excel(writer, index=False, sheet_name="Summary_Reason")
        if not summary_court.empty:
            summary_court.to_excel(writer, index=False, sheet_name="Summary_Court")

    prune_old_exports()
    return dest_path


__all__ = ["export_latest_run_to_excel"]
