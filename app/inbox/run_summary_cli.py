from __future__ import annotations

"""CLI helper for printing run-level processing summaries."""

import argparse
from collections import Counter
from typing import Sequence

from . import telemetry


def _build_parser() -> argparse.ArgumentParser:
    """Return an argument parser for the run summary CLI."""

    parser = argparse.ArgumentParser(
        description="Show the processing summary for an inbox run.",
    )
    parser.add_argument(
        "--run-file",
        help="Run telemetry JSON file to summarise.",
    )
    parser.add_argument(
        "--latest",
        action="store_true",
        help="Summarise the most recent run.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the run summary CLI."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    run_file = args.run_file
    if args.latest and run_file is None:
        run_file = telemetry.latest_run_path()
    if run_file is None:
        parser.error("You must provide --run-file or --latest")

    try:
        payload = telemetry.load_run(run_file)
    except (OSError, ValueError) as exc:
        parser.error(f"Cannot read run file {run_file}: {exc}")

    entries = payload.get("entries", [])
    status_counts = Counter(entry.get("status", "unknown") for entry in entries)
    fail_reasons = Counter(
        entry.get("reason") or "unknown" for entry in entries if entry.get("status") == "failed"
    )

    print(f"Run {payload.get('run_id')}")
    for status, count in sorted(status_counts.items()):
        print(f"  {status}: {count}")

    if payload.get("abort_reason"):
        print(f"\nAborted: {payload['abort_reason']}")

    if fail_reasons:
        print("\nFail reasons:")
        for code, count in sorted(fail_reasons.items()):
            print(f"  {code}: {count}")

    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
