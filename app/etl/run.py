"""Run orchestration for the SEACE crawl-and-ingest pipeline.

``start_run`` registers an operation and hands the work to a detached daemon
thread; ``perform_run`` is the worker body and the only place run-level
failures are caught. Outcomes are written to the operation row, never raised
to the caller.
"""
from __future__ import annotations

import argparse
import json
import threading
import time
import uuid
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from . import config, db, reporting
from .config_validation import Entrypoint, validate_runtime_config
from .crawler import CrawlResult, crawl
from .date_utils import utc_now_iso
from .export import ExportResult, export_batch
from .failures import classify_failure
from .ingest import IngestResult, UpsertEngine
from .logging_utils import _scraper_event
from .models import SearchRequest
from .normalizer import normalize_row
from .overscan import OverscanController
from .portal import SearchPortal
from .portal_playwright import PlaywrightSeacePortal
from .portal_selenium import SeleniumSeacePortal
from .progress import ProgressTracker
from .utils import ensure_dirs, log_line, setup_run_logger

OPERATION_TYPE = "scraping"

PortalFactory = Callable[[], SearchPortal]


def _build_portal(driver: Optional[str] = None) -> SearchPortal:
    """Return the configured portal adapter."""

    selected = (driver or config.PORTAL_DRIVER).strip().lower()
    if selected == "selenium":
        return SeleniumSeacePortal()
    return PlaywrightSeacePortal()


def _coerce_request(payload: SearchRequest | Mapping[str, Any] | None) -> SearchRequest:
    if isinstance(payload, SearchRequest):
        return payload
    return SearchRequest.from_payload(payload)


def create_operation(request: SearchRequest, *, trigger: Entrypoint) -> str:
    """Validate configuration and register a ``running`` operation."""

    validate_runtime_config(trigger, mode=OPERATION_TYPE)
    ensure_dirs()
    db.initialize_schema()

    operation_id = uuid.uuid4().hex
    db.create_operation(
        operation_id,
        operation_type=OPERATION_TYPE,
        trigger=trigger,
        search_params=request.to_json(),
        target_new=request.target_new,
    )
    _scraper_event(
        "state",
        phase="operation",
        operation_id=operation_id,
        status="started",
        trigger=trigger,
        target_new=request.target_new,
    )
    return operation_id


def perform_run(
    operation_id: str,
    request: SearchRequest,
    *,
    portal_factory: Optional[PortalFactory] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Dict[str, Any]:
    """Execute one run end to end and finalize its operation exactly once.

    Returns the final progress snapshot of the operation.
    """

    log_path = setup_run_logger()
    log_line(f"[RUN] Operation {operation_id} started with {request.to_json()}")

    tracker = ProgressTracker(operation_id)
    controller = OverscanController.for_request(request.target_new, request.overscan_factor)
    crawl_result: Optional[CrawlResult] = None
    export_result: Optional[ExportResult] = None
    ingest_result: Optional[IngestResult] = None

    def _scrape_progress(step: int, total: Optional[int], message: str) -> None:
        tracker.scrape(step, total, message)

    def _persist_progress(index: int, total: int, result: IngestResult) -> None:
        if tracker.should_report(index, total):
            tracker.persist(
                index,
                total,
                f"Processed {index}/{total} records",
                inserted=result.inserted_count,
                updated=result.updated_count,
                errors=result.error_count,
            )
            db.merge_operation_details(operation_id, result.details())

    try:
        tracker.start("Opening search portal")
        portal = (portal_factory or _build_portal)()
        with portal:
            crawl_result = crawl(
                portal,
                request,
                controller,
                on_progress=_scrape_progress,
                sleep=sleep,
            )

        scraped_at = utc_now_iso()
        records = [normalize_row(raw, scraped_at=scraped_at) for raw in crawl_result.rows]

        export_result = export_batch(
            records,
            operation_id,
            extra_metadata={
                "search_params": request.to_params(),
                "crawl": crawl_result.summary(),
            },
        )

        tracker.persist(
            0,
            len(records),
            f"Persisting {len(records)} records",
            inserted=0,
            updated=0,
            errors=0,
        )
        engine = UpsertEngine(request.target_new, operation_id)
        ingest_result = IngestResult()
        engine.ingest(records, _persist_progress, result=ingest_result)

        details = ingest_result.details()
        details.update(
            {
                "counters": ingest_result.counters(),
                "crawl": crawl_result.summary(),
                "export": export_result.as_dict(),
                "log_file": str(log_path),
            }
        )
        tracker.complete(
            message=(
                f"Scraping completed: {ingest_result.inserted_count} new, "
                f"{ingest_result.updated_count} updated, {ingest_result.error_count} errors"
            ),
            processed=ingest_result.attempted,
            inserted=ingest_result.inserted_count,
            updated=ingest_result.updated_count,
            errors=ingest_result.error_count,
            details=details,
        )
    except Exception as exc:  # noqa: BLE001
        info = classify_failure(exc)
        log_line(f"[RUN] Operation {operation_id} failed ({info.code}): {info.message}")
        if tracker.finalized:
            return reporting.get_operation_progress(operation_id)

        failure_details: Dict[str, Any] = {"failure": info.as_dict(), "log_file": str(log_path)}
        if crawl_result is not None:
            failure_details["crawl"] = crawl_result.summary()
        if export_result is not None:
            failure_details["export"] = export_result.as_dict()
        if ingest_result is not None:
            failure_details.update(ingest_result.details())
        try:
            tracker.fail(
                message=f"Scraping failed: {info.message}",
                processed=ingest_result.attempted if ingest_result else 0,
                inserted=ingest_result.inserted_count if ingest_result else 0,
                updated=ingest_result.updated_count if ingest_result else 0,
                errors=ingest_result.error_count if ingest_result else 0,
                details=failure_details,
            )
        except Exception as finalize_exc:  # noqa: BLE001
            log_line(f"[RUN] Could not finalize operation {operation_id}: {finalize_exc}")

    return reporting.get_operation_progress(operation_id)


def start_run(
    payload: SearchRequest | Mapping[str, Any] | None,
    *,
    trigger: Entrypoint = "api",
    portal_factory: Optional[PortalFactory] = None,
) -> Dict[str, str]:
    """Register an operation and run it on a detached daemon thread.

    Raises ``ValueError`` for an invalid payload or configuration; every
    later failure is recorded on the operation instead.
    """

    request = _coerce_request(payload)
    operation_id = create_operation(request, trigger=trigger)

    def _run() -> None:
        try:
            perform_run(operation_id, request, portal_factory=portal_factory)
        except Exception as exc:  # noqa: BLE001
            log_line(f"Run thread failed: {exc}")

    threading.Thread(target=_run, daemon=True).start()
    return {"operation_id": operation_id, "status": "started"}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Crawl the SEACE search portal and ingest the results.",
    )
    parser.add_argument("--keywords", help="Comma-separated description keywords.")
    parser.add_argument(
        "--object-type",
        choices=sorted(config.OBJECT_TYPE_LABELS),
        help="Contract object filter.",
    )
    parser.add_argument("--year", help="Convocation year (defaults to the current year).")
    parser.add_argument("--date-from", help="Publication date from (dd/mm/yyyy or yyyy-mm-dd).")
    parser.add_argument("--date-to", help="Publication date to (dd/mm/yyyy or yyyy-mm-dd).")
    parser.add_argument("--entity", help="Entity name filter.")
    parser.add_argument("--process-type", help="Selection process type filter.")
    parser.add_argument("--target-new", type=int, help="Maximum number of new records to insert.")
    parser.add_argument("--overscan-factor", type=float, help="Raw rows to pull per new record.")
    parser.add_argument(
        "--driver",
        choices=sorted(config.SUPPORTED_DRIVERS),
        help="Browser driver (defaults to SEACE_PORTAL_DRIVER).",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run a crawl in the foreground and print its final progress."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        request = SearchRequest.from_payload(
            {
                "keywords": args.keywords,
                "object_type": args.object_type,
                "year": args.year,
                "date_from": args.date_from,
                "date_to": args.date_to,
                "entity": args.entity,
                "process_type": args.process_type,
                "target_new": args.target_new,
                "overscan_factor": args.overscan_factor,
            }
        )
        operation_id = create_operation(request, trigger="cli")
    except ValueError as exc:
        parser.error(str(exc))

    progress = perform_run(
        operation_id,
        request,
        portal_factory=lambda: _build_portal(args.driver),
    )
    print(json.dumps(progress, ensure_ascii=False, indent=2))
    return 0 if progress.get("status") == "completed" else 1


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())
