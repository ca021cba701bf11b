import pytest

from app.etl import db
from app.etl.progress import (
    PHASE_PERSIST,
    PHASE_SCRAPE,
    OperationAlreadyFinalizedError,
    ProgressTracker,
    phase_percent,
)


def _operation(operation_id: str = "op-progress") -> str:
    db.initialize_schema()
    return db.create_operation(
        operation_id,
        operation_type="scraping",
        trigger="tests",
        search_params="{}",
        target_new=20,
    )


def test_phase_percent_bounds() -> None:
    assert phase_percent(PHASE_SCRAPE, 0, 50) == 0
    assert phase_percent(PHASE_SCRAPE, 25, 50) == 25
    assert phase_percent(PHASE_SCRAPE, 60, 50) == 50
    assert phase_percent(PHASE_SCRAPE, 5, None) == 0
    assert phase_percent(PHASE_PERSIST, 0, 60) == 50
    assert phase_percent(PHASE_PERSIST, 30, 60) == 75
    assert phase_percent(PHASE_PERSIST, 60, 60) == 100
    assert phase_percent(PHASE_PERSIST, 0, 0) == 100
    assert phase_percent(PHASE_PERSIST, 1, 8) == 56


def test_should_report_every_n_and_last() -> None:
    tracker = ProgressTracker("unused", every=5)

    reported = [index for index in range(1, 13) if tracker.should_report(index, 12)]

    assert reported == [5, 10, 12]


def test_percent_is_monotonic_within_a_phase() -> None:
    operation_id = _operation()
    tracker = ProgressTracker(operation_id)

    assert tracker.scrape(30, 50, "page 2") == 30
    assert tracker.scrape(10, 50, "late callback") == 30
    assert tracker.persist(5, 10, "persisting", inserted=5, updated=0, errors=0) == 75

    row = db.get_operation(operation_id)
    assert row["phase"] == PHASE_PERSIST
    assert row["percent"] == 75
    assert row["inserted_count"] == 5


def test_exactly_one_terminal_write() -> None:
    operation_id = _operation()
    tracker = ProgressTracker(operation_id)
    tracker.persist(10, 10, "done", inserted=8, updated=1, errors=1)

    tracker.complete(message="ok", processed=10, inserted=8, updated=1, errors=1, details={"a": 1})

    with pytest.raises(OperationAlreadyFinalizedError):
        tracker.fail(message="late failure")
    with pytest.raises(OperationAlreadyFinalizedError):
        tracker.persist(10, 10, "late", inserted=0, updated=0, errors=0)

    row = db.get_operation(operation_id)
    assert row["status"] == "completed"
    assert row["percent"] == 100
    assert row["message"] == "ok"
    assert row["ended_at"] is not None


def test_second_tracker_cannot_refinalize() -> None:
    operation_id = _operation()
    ProgressTracker(operation_id).fail(message="Scraping failed: timeout")

    with pytest.raises(OperationAlreadyFinalizedError):
        ProgressTracker(operation_id).complete(
            message="ok", processed=0, inserted=0, updated=0, errors=0, details={}
        )

    row = db.get_operation(operation_id)
    assert row["status"] == "failed"
    assert row["message"] == "Scraping failed: timeout"


def test_progress_writes_ignore_finalized_rows() -> None:
    operation_id = _operation()
    ProgressTracker(operation_id).fail(message="boom")

    assert not db.update_operation_progress(
        operation_id,
        phase=PHASE_SCRAPE,
        step=1,
        total=1,
        percent=50,
        current_message="late",
    )
    assert db.get_operation(operation_id)["current_message"] == "boom"
