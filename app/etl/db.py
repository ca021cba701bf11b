"""SQLite helpers for the crawl-and-ingest pipeline.

This module defines the project database path, connection helper, schema
initialisation, and the helpers backing operation tracking and idempotent
record persistence keyed by natural key.
"""
from __future__ import annotations

import json
import sqlite3
import time
from pathlib import Path
from typing import Any, Iterable, Optional

from . import config
from .models import NormalizedRecord

DB_PATH: Path = config.DB_PATH

_RECORD_COLUMNS = (
    "nomenclature",
    "entity_name",
    "published_at",
    "restarted_from",
    "object_type",
    "description",
    "snip_code",
    "investment_code",
    "amount",
    "currency",
    "portal_version",
    "source_url",
    "page_number",
    "status",
    "scraped_at",
)


def get_connection() -> sqlite3.Connection:
    """Return a SQLite connection to the project database.

    The parent directory is created if missing and ``check_same_thread`` is
    disabled to allow reuse from the background run thread. Callers must
    manage concurrency at a higher layer.
    """

    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(DB_PATH, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def initialize_schema() -> None:
    """Create the baseline tables if they do not yet exist.

    Safe to call multiple times; each statement uses ``IF NOT EXISTS``.
    """

    statements: Iterable[str] = (
        """
        CREATE TABLE IF NOT EXISTS operations (
            id               INTEGER PRIMARY KEY AUTOINCREMENT,
            operation_id     TEXT NOT NULL UNIQUE,
            operation_type   TEXT NOT NULL,
            trigger          TEXT NOT NULL,
            status           TEXT NOT NULL,
            phase            TEXT NOT NULL DEFAULT 'init',
            step             INTEGER NOT NULL DEFAULT 0,
            total            INTEGER NOT NULL DEFAULT 0,
            percent          INTEGER NOT NULL DEFAULT 0,
            current_message  TEXT,
            message          TEXT,
            target_new       INTEGER,
            process_count    INTEGER NOT NULL DEFAULT 0,
            inserted_count   INTEGER NOT NULL DEFAULT 0,
            updated_count    INTEGER NOT NULL DEFAULT 0,
            error_count      INTEGER NOT NULL DEFAULT 0,
            duration_ms      INTEGER,
            search_params    TEXT NOT NULL,
            details_json     TEXT,
            created_at       TEXT NOT NULL,
            updated_at       TEXT NOT NULL,
            ended_at         TEXT
        );
        """,
        """
        CREATE INDEX IF NOT EXISTS idx_operations_created_at
            ON operations(created_at DESC);
        """,
        """
        CREATE INDEX IF NOT EXISTS idx_operations_status
            ON operations(status);
        """,
        """
        CREATE TABLE IF NOT EXISTS procurement_records (
            id                  INTEGER PRIMARY KEY AUTOINCREMENT,
            natural_key         TEXT NOT NULL UNIQUE,
            nomenclature        TEXT,
            entity_name         TEXT NOT NULL,
            published_at        TEXT,
            restarted_from      TEXT,
            object_type         TEXT,
            description         TEXT,
            snip_code           TEXT,
            investment_code     TEXT,
            amount              TEXT,
            currency            TEXT NOT NULL,
            portal_version      TEXT NOT NULL,
            source_url          TEXT,
            page_number         INTEGER,
            status              TEXT NOT NULL,
            scraped_at          TEXT,
            first_operation_id  TEXT NOT NULL,
            last_operation_id   TEXT NOT NULL,
            first_seen_at       TEXT NOT NULL,
            updated_at          TEXT NOT NULL
        );
        """,
        """
        CREATE INDEX IF NOT EXISTS idx_records_published_at
            ON procurement_records(published_at);
        """,
    )

    conn = get_connection()
    with conn:
        for statement in statements:
            conn.execute(statement)


def _utc_now() -> str:
    """Return a UTC timestamp formatted as ISO8601 without fractional seconds."""

    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


def create_operation(
    operation_id: str,
    *,
    operation_type: str,
    trigger: str,
    search_params: str,
    target_new: Optional[int],
    message: str = "Operation queued",
) -> str:
    """Insert an ``operations`` row with status ``running`` and return its id."""

    now = _utc_now()
    conn = get_connection()
    with conn:
        conn.execute(
            """
            INSERT INTO operations (
                operation_id, operation_type, trigger, status, phase,
                current_message, message, target_new, search_params,
                details_json, created_at, updated_at
            ) VALUES (?, ?, ?, 'running', 'init', ?, ?, ?, ?, '{}', ?, ?)
            """,
            (
                operation_id,
                operation_type,
                trigger,
                message,
                message,
                target_new,
                search_params,
                now,
                now,
            ),
        )
    return operation_id


def get_operation(operation_id: str) -> Optional[sqlite3.Row]:
    """Return the operations row for ``operation_id``, if any."""

    conn = get_connection()
    cursor = conn.execute(
        "SELECT * FROM operations WHERE operation_id = ? LIMIT 1",
        (operation_id,),
    )
    return cursor.fetchone()


def update_operation_progress(
    operation_id: str,
    *,
    phase: str,
    step: int,
    total: int,
    percent: int,
    current_message: str,
    inserted_count: Optional[int] = None,
    updated_count: Optional[int] = None,
    error_count: Optional[int] = None,
    process_count: Optional[int] = None,
) -> bool:
    """Write an intermediate progress snapshot for a running operation.

    Counters left as ``None`` keep their stored value. Returns ``False`` when
    the operation is unknown or already terminal.
    """

    conn = get_connection()
    with conn:
        cursor = conn.execute(
            """
            UPDATE operations
            SET phase = ?, step = ?, total = ?, percent = ?, current_message = ?,
                inserted_count = COALESCE(?, inserted_count),
                updated_count = COALESCE(?, updated_count),
                error_count = COALESCE(?, error_count),
                process_count = COALESCE(?, process_count),
                updated_at = ?
            WHERE operation_id = ? AND status = 'running'
            """,
            (
                phase,
                step,
                total,
                percent,
                current_message,
                inserted_count,
                updated_count,
                error_count,
                process_count,
                _utc_now(),
                operation_id,
            ),
        )
    return cursor.rowcount == 1


def finalize_operation(
    operation_id: str,
    *,
    status: str,
    message: str,
    percent: int,
    step: int,
    total: int,
    process_count: int,
    inserted_count: int,
    updated_count: int,
    error_count: int,
    duration_ms: int,
    details: dict[str, Any],
) -> bool:
    """Move a running operation to its terminal ``status``.

    The ``status = 'running'`` guard makes this a single-shot write: a second
    call for the same operation updates nothing and returns ``False``.
    """

    now = _utc_now()
    conn = get_connection()
    with conn:
        cursor = conn.execute(
            """
            UPDATE operations
            SET status = ?, phase = 'done', message = ?, current_message = ?,
                percent = ?, step = ?, total = ?, process_count = ?,
                inserted_count = ?, updated_count = ?, error_count = ?,
                duration_ms = ?, details_json = ?, updated_at = ?, ended_at = ?
            WHERE operation_id = ? AND status = 'running'
            """,
            (
                status,
                message,
                message,
                percent,
                step,
                total,
                process_count,
                inserted_count,
                updated_count,
                error_count,
                duration_ms,
                json.dumps(details, ensure_ascii=False, default=str),
                now,
                now,
                operation_id,
            ),
        )
    return cursor.rowcount == 1


def merge_operation_details(operation_id: str, extra: dict[str, Any]) -> None:
    """Merge ``extra`` into a running operation's details blob."""

    conn = get_connection()
    with conn:
        row = conn.execute(
            "SELECT details_json FROM operations WHERE operation_id = ? AND status = 'running'",
            (operation_id,),
        ).fetchone()
        if row is None:
            return
        try:
            details = json.loads(row["details_json"] or "{}")
        except json.JSONDecodeError:
            details = {}
        details.update(extra)
        conn.execute(
            "UPDATE operations SET details_json = ?, updated_at = ? WHERE operation_id = ?",
            (json.dumps(details, ensure_ascii=False, default=str), _utc_now(), operation_id),
        )


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


def get_record(natural_key: str) -> Optional[sqlite3.Row]:
    """Return the persisted record for ``natural_key``, if any."""

    conn = get_connection()
    cursor = conn.execute(
        "SELECT * FROM procurement_records WHERE natural_key = ? LIMIT 1",
        (natural_key,),
    )
    return cursor.fetchone()


def record_exists(natural_key: str) -> bool:
    conn = get_connection()
    row = conn.execute(
        "SELECT 1 FROM procurement_records WHERE natural_key = ? LIMIT 1",
        (natural_key,),
    ).fetchone()
    return row is not None


def insert_record(record: NormalizedRecord, operation_id: str) -> None:
    """Insert a new record. Raises ``sqlite3.IntegrityError`` on duplicates."""

    params = record.as_db_params()
    now = _utc_now()
    columns = ("natural_key",) + _RECORD_COLUMNS + (
        "first_operation_id",
        "last_operation_id",
        "first_seen_at",
        "updated_at",
    )
    values = [params["natural_key"]] + [params[col] for col in _RECORD_COLUMNS] + [
        operation_id,
        operation_id,
        now,
        now,
    ]
    placeholders = ", ".join("?" for _ in columns)

    conn = get_connection()
    with conn:
        conn.execute(
            f"INSERT INTO procurement_records ({', '.join(columns)}) VALUES ({placeholders})",
            values,
        )


def update_record(record: NormalizedRecord, operation_id: str) -> bool:
    """Refresh the canonical fields of an existing record.

    Returns ``False`` when no row carries the record's natural key.
    """

    params = record.as_db_params()
    assignments = ", ".join(f"{col} = ?" for col in _RECORD_COLUMNS)
    values = [params[col] for col in _RECORD_COLUMNS] + [
        operation_id,
        _utc_now(),
        params["natural_key"],
    ]

    conn = get_connection()
    with conn:
        cursor = conn.execute(
            f"""
            UPDATE procurement_records
            SET {assignments}, last_operation_id = ?, updated_at = ?
            WHERE natural_key = ?
            """,
            values,
        )
    return cursor.rowcount == 1


__all__ = [
    "DB_PATH",
    "get_connection",
    "initialize_schema",
    "create_operation",
    "get_operation",
    "update_operation_progress",
    "finalize_operation",
    "merge_operation_details",
    "get_record",
    "record_exists",
    "insert_record",
    "update_record",
]
