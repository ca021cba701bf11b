"""Two-phase progress tracking for a pipeline operation.

The scrape phase maps its own ratio onto ``[0, 50]`` and the persist phase
onto ``[50, 100]``. Writes are rate limited to every ``PROGRESS_EVERY``
records, never move backwards within a phase, and the terminal write happens
exactly once.
"""
from __future__ import annotations

import math
import time
from typing import Any, Callable, Dict, Optional

from . import config, db
from .logging_utils import _scraper_event

PHASE_INIT = "init"
PHASE_SCRAPE = "scrape"
PHASE_PERSIST = "persist"

_PHASE_BOUNDS: Dict[str, tuple[int, int]] = {
    PHASE_INIT: (0, 0),
    PHASE_SCRAPE: (0, 50),
    PHASE_PERSIST: (50, 100),
}


class OperationAlreadyFinalizedError(RuntimeError):
    """Raised when a second terminal write is attempted for an operation."""


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def phase_percent(phase: str, step: int, total: Optional[int]) -> int:
    """Map ``step/total`` within *phase* onto the overall 0-100 scale."""

    low, high = _PHASE_BOUNDS[phase]
    if not total or total <= 0:
        # Unknown denominator: scrape stays at its floor, an empty persist
        # phase is trivially complete.
        ratio = 1.0 if phase == PHASE_PERSIST else 0.0
    else:
        ratio = min(max(step / total, 0.0), 1.0)
    return low + _round_half_up((high - low) * ratio)


class ProgressTracker:
    def __init__(
        self,
        operation_id: str,
        *,
        every: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.operation_id = operation_id
        self.every = max(1, every if every is not None else config.PROGRESS_EVERY)
        self._clock = clock
        self._started = clock()
        self._last_percent: Dict[str, int] = {}
        self._last_phase = PHASE_INIT
        self._last_step = 0
        self._last_total = 0
        self.finalized = False
        self.writes = 0

    @property
    def last_percent(self) -> int:
        return self._last_percent.get(self._last_phase, 0)

    def elapsed_ms(self) -> int:
        return int((self._clock() - self._started) * 1000)

    def should_report(self, processed: int, total: Optional[int]) -> bool:
        """Return True on every ``every``-th record and on the last one."""

        if processed <= 0:
            return False
        return processed % self.every == 0 or (total is not None and processed >= total)

    def _write(
        self,
        phase: str,
        step: int,
        total: Optional[int],
        message: str,
        **counters: Optional[int],
    ) -> int:
        if self.finalized:
            raise OperationAlreadyFinalizedError(
                f"Operation {self.operation_id} is already finalized"
            )

        percent = phase_percent(phase, step, total)
        percent = max(percent, self._last_percent.get(phase, percent))
        self._last_percent[phase] = percent
        self._last_phase = phase
        self._last_step = step
        self._last_total = total or 0

        db.update_operation_progress(
            self.operation_id,
            phase=phase,
            step=step,
            total=total or 0,
            percent=percent,
            current_message=message,
            **counters,
        )
        self.writes += 1
        return percent

    def start(self, message: str = "Starting run") -> int:
        return self._write(PHASE_SCRAPE, 0, None, message)

    def scrape(self, step: int, total: Optional[int], message: str) -> int:
        return self._write(PHASE_SCRAPE, step, total, message, process_count=step)

    def persist(
        self,
        step: int,
        total: int,
        message: str,
        *,
        inserted: int,
        updated: int,
        errors: int,
    ) -> int:
        return self._write(
            PHASE_PERSIST,
            step,
            total,
            message,
            inserted_count=inserted,
            updated_count=updated,
            error_count=errors,
        )

    def _finalize(
        self,
        *,
        status: str,
        message: str,
        percent: int,
        processed: int,
        inserted: int,
        updated: int,
        errors: int,
        details: Dict[str, Any],
    ) -> int:
        if self.finalized:
            raise OperationAlreadyFinalizedError(
                f"Operation {self.operation_id} is already finalized"
            )
        duration_ms = self.elapsed_ms()
        written = db.finalize_operation(
            self.operation_id,
            status=status,
            message=message,
            percent=percent,
            step=self._last_step if status == "failed" else processed,
            total=self._last_total if status == "failed" else processed,
            process_count=processed,
            inserted_count=inserted,
            updated_count=updated,
            error_count=errors,
            duration_ms=duration_ms,
            details=details,
        )
        self.finalized = True
        if not written:
            raise OperationAlreadyFinalizedError(
                f"Operation {self.operation_id} was not running"
            )
        _scraper_event(
            "state",
            phase="operation",
            operation_id=self.operation_id,
            status=status,
            duration_ms=duration_ms,
            inserted=inserted,
            updated=updated,
            errors=errors,
        )
        return duration_ms

    def complete(
        self,
        *,
        message: str,
        processed: int,
        inserted: int,
        updated: int,
        errors: int,
        details: Dict[str, Any],
    ) -> int:
        """Write the single ``completed`` terminal state; returns duration in ms."""

        return self._finalize(
            status="completed",
            message=message,
            percent=100,
            processed=processed,
            inserted=inserted,
            updated=updated,
            errors=errors,
            details=details,
        )

    def fail(
        self,
        *,
        message: str,
        processed: int = 0,
        inserted: int = 0,
        updated: int = 0,
        errors: int = 0,
        details: Optional[Dict[str, Any]] = None,
    ) -> int:
        """Write the single ``failed`` terminal state; returns duration in ms."""

        return self._finalize(
            status="failed",
            message=message,
            percent=self.last_percent,
            processed=processed,
            inserted=inserted,
            updated=updated,
            errors=errors,
            details=details or {},
        )


__all__ = [
    "PHASE_SCRAPE",
    "PHASE_PERSIST",
    "OperationAlreadyFinalizedError",
    "phase_percent",
    "ProgressTracker",
]
