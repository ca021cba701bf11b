"""Idempotent persistence of normalized records keyed by natural key."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from . import db
from .failures import classify_failure, is_record_level_error
from .logging_utils import _scraper_event
from .models import NormalizedRecord
from .utils import log_line

OUTCOME_INSERTED = "inserted"
OUTCOME_UPDATED = "updated"
OUTCOME_ERRORED = "errored"
OUTCOME_SKIPPED = "skipped"


@dataclass
class IngestResult:
    """Per-run persistence outcome.

    ``attempted`` counts records that reached the store (inserted, updated or
    errored). Keys skipped because the new-record quota was already met are
    tracked separately.
    """

    inserted: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    errored: List[Dict[str, Any]] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def inserted_count(self) -> int:
        return len(self.inserted)

    @property
    def updated_count(self) -> int:
        return len(self.updated)

    @property
    def error_count(self) -> int:
        return len(self.errored)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    @property
    def attempted(self) -> int:
        return self.inserted_count + self.updated_count + self.error_count

    @property
    def offered(self) -> int:
        return self.attempted + self.skipped_count

    def counters(self) -> Dict[str, int]:
        return {
            "inserted": self.inserted_count,
            "updated": self.updated_count,
            "errored": self.error_count,
            "skipped": self.skipped_count,
            "attempted": self.attempted,
        }

    def details(self) -> Dict[str, Any]:
        return {
            "inserted_keys": list(self.inserted),
            "updated_keys": list(self.updated),
            "errored": [dict(entry) for entry in self.errored],
            "skipped_keys": list(self.skipped),
        }


IngestProgress = Callable[[int, int, IngestResult], None]


class UpsertEngine:
    """Persist records in order while honouring a new-record quota.

    Once ``target_new`` inserts have happened, records whose key already
    exists are still refreshed; unseen keys are skipped.
    """

    def __init__(self, target_new: Optional[int], operation_id: str) -> None:
        self.target_new = target_new
        self.operation_id = operation_id

    def quota_reached(self, result: IngestResult) -> bool:
        return self.target_new is not None and result.inserted_count >= self.target_new

    def _persist_one(self, record: NormalizedRecord, result: IngestResult) -> str:
        key = record.natural_key
        exists = db.record_exists(key)

        if self.quota_reached(result):
            if not exists:
                result.skipped.append(key)
                return OUTCOME_SKIPPED
            db.update_record(record, self.operation_id)
            result.updated.append(key)
            return OUTCOME_UPDATED

        if exists:
            db.update_record(record, self.operation_id)
            result.updated.append(key)
            return OUTCOME_UPDATED

        db.insert_record(record, self.operation_id)
        result.inserted.append(key)
        return OUTCOME_INSERTED

    def ingest(
        self,
        records: Sequence[NormalizedRecord] | Iterable[NormalizedRecord],
        on_progress: Optional[IngestProgress] = None,
        *,
        result: Optional[IngestResult] = None,
    ) -> IngestResult:
        """Persist *records* in order and return their outcome.

        Outcomes are appended to *result* as they happen, so a caller holding
        it still sees the partial outcome when a run-level fault escapes.
        """

        batch = list(records)
        total = len(batch)
        if result is None:
            result = IngestResult()

        for index, record in enumerate(batch, start=1):
            try:
                self._persist_one(record, result)
            except Exception as exc:
                if not is_record_level_error(exc):
                    raise
                info = classify_failure(exc, scope="record")
                result.errored.append(
                    {
                        "natural_key": record.natural_key,
                        "error_message": info.message,
                        "code": info.code,
                    }
                )
                _scraper_event(
                    "error",
                    phase="persist",
                    operation_id=self.operation_id,
                    natural_key=record.natural_key,
                    code=info.code,
                    error=info.message,
                )

            if on_progress:
                on_progress(index, total, result)

        log_line(
            "[INGEST] "
            f"operation={self.operation_id} offered={total} "
            f"inserted={result.inserted_count} updated={result.updated_count} "
            f"errored={result.error_count} skipped={result.skipped_count}"
        )
        return result


__all__ = ["IngestResult", "UpsertEngine"]
