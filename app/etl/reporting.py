from __future__ import annotations

import json
import math
import sqlite3
from typing import Any, Dict, List, Optional

from . import db

MAX_PAGE_SIZE = 100


class OperationNotFoundError(Exception):
    """Raised when an operation id does not exist in the database."""


def _load_json(value: Optional[str], default: Any) -> Any:
    if not value:
        return default
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        return default


def _require_operation(operation_id: str) -> sqlite3.Row:
    row = db.get_operation(operation_id)
    if row is None:
        raise OperationNotFoundError(f"Operation {operation_id} does not exist")
    return row


def _operation_summary(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "operation_id": row["operation_id"],
        "operation_type": row["operation_type"],
        "trigger": row["trigger"],
        "status": row["status"],
        "message": row["message"],
        "process_count": int(row["process_count"] or 0),
        "inserted": int(row["inserted_count"] or 0),
        "updated": int(row["updated_count"] or 0),
        "errored": int(row["error_count"] or 0),
        "duration_ms": row["duration_ms"],
        "created_at": row["created_at"],
        "ended_at": row["ended_at"],
    }


def get_operation_progress(operation_id: str) -> Dict[str, Any]:
    """Return the latest progress snapshot written for ``operation_id``."""

    row = _require_operation(operation_id)
    return {
        "operation_id": row["operation_id"],
        "status": row["status"],
        "phase": row["phase"],
        "step": int(row["step"] or 0),
        "total": int(row["total"] or 0),
        "percent": int(row["percent"] or 0),
        "current_message": row["current_message"],
        "inserted": int(row["inserted_count"] or 0),
        "updated": int(row["updated_count"] or 0),
        "errored": int(row["error_count"] or 0),
        "updated_at": row["updated_at"],
    }


def get_operation_details(operation_id: str) -> Dict[str, Any]:
    """Return counts, duration, key lists and the details blob of an operation.

    Safe to call while the run is still going; key lists grow with each
    persist progress tick.
    """

    row = _require_operation(operation_id)
    details = _load_json(row["details_json"], {})
    errored = details.get("errored", [])

    payload = _operation_summary(row)
    payload.update(
        {
            "phase": row["phase"],
            "percent": int(row["percent"] or 0),
            "target_new": row["target_new"],
            "search_params": _load_json(row["search_params"], {}),
            "inserted_keys": list(details.get("inserted_keys", [])),
            "updated_keys": list(details.get("updated_keys", [])),
            "errored_keys": [entry.get("natural_key") for entry in errored],
            "errors": errored,
            "skipped_keys": list(details.get("skipped_keys", [])),
            "details": details,
        }
    )
    return payload


def list_operations(
    page: int = 1,
    size: int = 20,
    *,
    status: Optional[str] = None,
    operation_type: Optional[str] = None,
) -> Dict[str, Any]:
    """Return a page of operations ordered newest first."""

    page = max(1, int(page))
    size = min(max(1, int(size)), MAX_PAGE_SIZE)

    clauses: List[str] = []
    params: List[Any] = []
    if status:
        clauses.append("status = ?")
        params.append(status)
    if operation_type:
        clauses.append("operation_type = ?")
        params.append(operation_type)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

    conn = db.get_connection()
    total = int(
        conn.execute(f"SELECT COUNT(*) AS n FROM operations {where}", params).fetchone()["n"]
    )
    rows = conn.execute(
        f"""
        SELECT * FROM operations {where}
        ORDER BY created_at DESC, id DESC
        LIMIT ? OFFSET ?
        """,
        params + [size, (page - 1) * size],
    ).fetchall()

    return {
        "items": [_operation_summary(row) for row in rows],
        "page": page,
        "size": size,
        "total": total,
        "pages": math.ceil(total / size) if total else 0,
    }


def get_operation_stats() -> Dict[str, Any]:
    """Return operation totals by status and the average finished duration."""

    conn = db.get_connection()
    counts: Dict[str, int] = {"running": 0, "completed": 0, "failed": 0}
    for row in conn.execute(
        "SELECT status, COUNT(*) AS n FROM operations GROUP BY status"
    ).fetchall():
        counts[row["status"]] = int(row["n"])

    avg_row = conn.execute(
        """
        SELECT AVG(duration_ms) AS avg_ms,
               COALESCE(SUM(inserted_count), 0) AS inserted,
               COALESCE(SUM(updated_count), 0) AS updated,
               COALESCE(SUM(error_count), 0) AS errored
        FROM operations
        WHERE status IN ('completed', 'failed')
        """
    ).fetchone()
    avg_ms = avg_row["avg_ms"]

    return {
        "total": sum(counts.values()),
        **counts,
        "avg_duration_ms": int(round(avg_ms)) if avg_ms is not None else None,
        "records_inserted": int(avg_row["inserted"]),
        "records_updated": int(avg_row["updated"]),
        "records_errored": int(avg_row["errored"]),
    }


def get_latest_operation_id() -> Optional[str]:
    """Return the id of the most recently created operation, or None."""

    conn = db.get_connection()
    row = conn.execute(
        "SELECT operation_id FROM operations ORDER BY created_at DESC, id DESC LIMIT 1"
    ).fetchone()
    return row["operation_id"] if row else None


def get_persisted_record(natural_key: str) -> Optional[Dict[str, Any]]:
    """Return the canonical fields stored for ``natural_key``."""

    row = db.get_record(natural_key)
    if row is None:
        return None
    record = {key: row[key] for key in row.keys() if key != "id"}
    return record


__all__ = [
    "OperationNotFoundError",
    "get_operation_progress",
    "get_operation_details",
    "list_operations",
    "get_operation_stats",
    "get_latest_operation_id",
    "get_persisted_record",
]
