"""CLI helper for printing operation-level ingest summaries."""
from __future__ import annotations

import argparse
from typing import Sequence

from . import reporting


def _build_parser() -> argparse.ArgumentParser:
    """Return an argument parser for the operation summary CLI."""

    parser = argparse.ArgumentParser(
        description="Show the ingest summary for a crawl operation.",
    )
    parser.add_argument(
        "--operation-id",
        help="Operation ID to summarise.",
    )
    parser.add_argument(
        "--latest",
        action="store_true",
        help="Summarise the most recent operation.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the operation summary CLI."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    operation_id = args.operation_id
    if args.latest and operation_id is None:
        operation_id = reporting.get_latest_operation_id()
    if operation_id is None:
        parser.error("You must provide --operation-id or --latest")

    try:
        details = reporting.get_operation_details(operation_id)
    except reporting.OperationNotFoundError as exc:
        parser.error(str(exc))

    print(f"Operation {details['operation_id']} ({details['status']})")
    print(f"  inserted: {details['inserted']}")
    print(f"  updated: {details['updated']}")
    print(f"  errored: {details['errored']}")
    print(f"  skipped: {len(details['skipped_keys'])}")
    if details["duration_ms"] is not None:
        print(f"  duration_ms: {details['duration_ms']}")

    if details["errors"]:
        print("\nErrored records:")
        for entry in details["errors"]:
            print(f"  {entry.get('natural_key')}: {entry.get('code')} {entry.get('error_message')}")

    failure = details["details"].get("failure")
    if failure:
        print(f"\nFailure: {failure.get('code')} {failure.get('message')}")

    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
