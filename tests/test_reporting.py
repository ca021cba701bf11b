import pytest

from app.etl import db, reporting
from app.etl.progress import ProgressTracker


def _operation(operation_id: str, *, operation_type: str = "scraping") -> str:
    return db.create_operation(
        operation_id,
        operation_type=operation_type,
        trigger="tests",
        search_params='{"year": "2024"}',
        target_new=5,
    )


def test_progress_reflects_latest_write() -> None:
    db.initialize_schema()
    _operation("op-a")
    tracker = ProgressTracker("op-a", every=1)

    tracker.scrape(10, 20, "page 1")
    snapshot = reporting.get_operation_progress("op-a")
    assert snapshot["status"] == "running"
    assert snapshot["phase"] == "scrape"
    assert snapshot["percent"] == 25
    assert snapshot["current_message"] == "page 1"

    tracker.persist(4, 8, "persisting", inserted=3, updated=1, errors=0)
    snapshot = reporting.get_operation_progress("op-a")
    assert snapshot["percent"] == 75
    assert snapshot["inserted"] == 3
    assert snapshot["updated"] == 1


def test_details_available_while_running() -> None:
    db.initialize_schema()
    _operation("op-b")

    details = reporting.get_operation_details("op-b")

    assert details["status"] == "running"
    assert details["inserted_keys"] == []
    assert details["search_params"] == {"year": "2024"}


def test_missing_operation_raises() -> None:
    db.initialize_schema()

    with pytest.raises(reporting.OperationNotFoundError):
        reporting.get_operation_progress("nope")
    with pytest.raises(reporting.OperationNotFoundError):
        reporting.get_operation_details("nope")


def test_list_operations_filters_by_type_and_clamps_size() -> None:
    db.initialize_schema()
    _operation("op-1")
    _operation("op-2", operation_type="import")

    imports = reporting.list_operations(1, 500, operation_type="import")

    assert imports["size"] == reporting.MAX_PAGE_SIZE
    assert [item["operation_id"] for item in imports["items"]] == ["op-2"]
    assert reporting.list_operations(page=0, size=0)["page"] == 1


def test_stats_empty_database() -> None:
    db.initialize_schema()

    stats = reporting.get_operation_stats()

    assert stats["total"] == 0
    assert stats["avg_duration_ms"] is None
