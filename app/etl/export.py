"""Audit exports of each run's extracted batch.

Every run writes its full batch under ``EXPORTS_DIR`` before persistence
starts, tagged with the operation id:

* ``scraping_<operation>_<ts>.json`` with run metadata and the records
* ``.csv`` and ``.xlsx`` tabular copies (the workbook adds a Summary sheet)
* ``.txt`` human-readable report

A failing writer is logged and reported back; it never aborts the run.
"""

from __future__ import annotations

import base64
import json
from collections import Counter, OrderedDict
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

import pandas as pd

from . import config
from .logging_utils import _scraper_event
from .models import NormalizedRecord
from .utils import log_line, sanitize_filename, short_error_message

TEXT_SUFFIXES = {".json", ".csv", ".txt"}
BINARY_SUFFIXES = {".xlsx"}


class ArtifactNotFoundError(FileNotFoundError):
    """Requested export artifact does not exist."""


class ArtifactAccessError(PermissionError):
    """Requested artifact name escapes the exports directory."""


@dataclass
class ExportResult:
    files: Dict[str, str] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    record_count: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "files": dict(self.files),
            "errors": dict(self.errors),
            "record_count": self.record_count,
        }


def _records_frame(records: Sequence[NormalizedRecord]) -> pd.DataFrame:
    rows = [record.as_db_params() for record in records]
    if not rows:
        return pd.DataFrame(columns=[f.name for f in fields(NormalizedRecord)])
    return pd.DataFrame(rows)


def _summary_frame(records: Sequence[NormalizedRecord]) -> pd.DataFrame:
    by_type = Counter(record.object_type or "Sin tipo" for record in records)
    return pd.DataFrame(
        [{"object_type": name, "count": count} for name, count in by_type.most_common()]
        or [{"object_type": "-", "count": 0}]
    )


def _write_json(path: Path, records: Sequence[NormalizedRecord], metadata: Dict[str, Any]) -> None:
    payload = {
        "metadata": metadata,
        "records": [record.as_db_params() for record in records],
    }
    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, ensure_ascii=False, indent=2, default=str)


def _write_csv(path: Path, records: Sequence[NormalizedRecord], metadata: Dict[str, Any]) -> None:
    _records_frame(records).to_csv(path, index=False, encoding="utf-8")


def _write_xlsx(path: Path, records: Sequence[NormalizedRecord], metadata: Dict[str, Any]) -> None:
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        _records_frame(records).to_excel(writer, index=False, sheet_name="Records")
        _summary_frame(records).to_excel(writer, index=False, sheet_name="Summary")


def build_text_report(records: Sequence[NormalizedRecord], metadata: Dict[str, Any]) -> str:
    """Render the plain-text audit report for *records*."""

    lines: List[str] = [
        "SEACE SCRAPING REPORT",
        "=" * 60,
        f"Operation: {metadata.get('operation_id')}",
        f"Generated: {metadata.get('generated_at')}",
        f"Records: {len(records)}",
        "",
    ]

    for index, record in enumerate(records, start=1):
        lines.extend(
            [
                f"[{index}] {record.natural_key}",
                f"    Entity: {record.entity_name}",
                f"    Published: {record.published_at or '-'}",
                f"    Object type: {record.object_type or '-'}",
                f"    Description: {record.description or '-'}",
                f"    Amount: {record.amount if record.amount is not None else '-'} {record.currency}",
                "",
            ]
        )

    by_type = Counter(record.object_type or "Sin tipo" for record in records)
    lines.append("TOTALS BY OBJECT TYPE")
    lines.append("-" * 60)
    for name, count in by_type.most_common():
        lines.append(f"{name}: {count}")
    lines.append("")

    amounts = [record.amount for record in records if record.amount is not None]
    total_amount = sum(amounts, Decimal("0"))
    average = (total_amount / len(amounts)).quantize(Decimal("0.01")) if amounts else Decimal("0.00")
    lines.append(f"Total amount: {total_amount}")
    lines.append(f"Average amount: {average}")
    lines.append("")

    lines.append("TOP ENTITIES")
    lines.append("-" * 60)
    for name, count in Counter(record.entity_name for record in records).most_common(5):
        lines.append(f"{name}: {count}")

    return "\n".join(lines) + "\n"


def _write_txt(path: Path, records: Sequence[NormalizedRecord], metadata: Dict[str, Any]) -> None:
    path.write_text(build_text_report(records, metadata), encoding="utf-8")


_WRITERS: "OrderedDict[str, Callable[[Path, Sequence[NormalizedRecord], Dict[str, Any]], None]]" = OrderedDict(
    [
        ("json", _write_json),
        ("csv", _write_csv),
        ("xlsx", _write_xlsx),
        ("txt", _write_txt),
    ]
)


def export_batch(
    records: Sequence[NormalizedRecord],
    operation_id: str,
    *,
    formats: Optional[Sequence[str]] = None,
    extra_metadata: Optional[Dict[str, Any]] = None,
) -> ExportResult:
    """Write *records* to every configured artifact format."""

    config.EXPORTS_DIR.mkdir(parents=True, exist_ok=True)
    now = datetime.now(timezone.utc)
    timestamp = now.strftime("%Y%m%d_%H%M%S")
    stem = f"scraping_{sanitize_filename(operation_id)}_{timestamp}"
    metadata: Dict[str, Any] = {
        "operation_id": operation_id,
        "generated_at": now.strftime("%Y-%m-%dT%H:%M:%SZ"),
        "record_count": len(records),
    }
    if extra_metadata:
        metadata.update(extra_metadata)

    result = ExportResult(record_count=len(records))
    for fmt in formats or config.export_formats():
        writer = _WRITERS.get(fmt)
        if writer is None:
            log_line(f"[EXPORT] Unknown export format {fmt!r}; skipping.")
            continue
        path = config.EXPORTS_DIR / f"{stem}.{fmt}"
        try:
            writer(path, records, metadata)
        except Exception as exc:  # noqa: BLE001
            result.errors[fmt] = short_error_message(exc)
            _scraper_event(
                "error",
                phase="export",
                operation_id=operation_id,
                format=fmt,
                error=short_error_message(exc),
            )
            continue
        result.files[fmt] = path.name

    _scraper_event(
        "export",
        operation_id=operation_id,
        records=len(records),
        files=sorted(result.files.values()),
        failed=sorted(result.errors),
    )
    return result


def _iso_from_timestamp(value: float) -> str:
    return datetime.fromtimestamp(value, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def list_exported_artifacts(name_filter: Optional[str] = None) -> List[Dict[str, Any]]:
    """Return export artifacts newest first, optionally filtered by substring."""

    if not config.EXPORTS_DIR.is_dir():
        return []

    entries = []
    for path in config.EXPORTS_DIR.iterdir():
        if not path.is_file():
            continue
        if path.suffix not in TEXT_SUFFIXES | BINARY_SUFFIXES:
            continue
        if name_filter and name_filter.lower() not in path.name.lower():
            continue
        stat = path.stat()
        entries.append(
            (
                stat.st_mtime,
                {
                    "name": path.name,
                    "size": stat.st_size,
                    "created_at": _iso_from_timestamp(stat.st_ctime),
                    "modified_at": _iso_from_timestamp(stat.st_mtime),
                },
            )
        )

    entries.sort(key=lambda item: (item[0], item[1]["name"]), reverse=True)
    return [entry for _, entry in entries]


def _resolve_artifact(name: str) -> Path:
    if not name or name in {".", ".."} or "/" in name or "\\" in name or "\x00" in name:
        raise ArtifactAccessError(f"Invalid artifact name: {name!r}")

    base = config.EXPORTS_DIR.resolve()
    candidate = (base / name).resolve()
    if candidate.parent != base:
        raise ArtifactAccessError(f"Invalid artifact name: {name!r}")
    if not candidate.is_file():
        raise ArtifactNotFoundError(f"Artifact not found: {name}")
    return candidate


def get_exported_artifact(name: str) -> Dict[str, Any]:
    """Return ``{name, content, size, encoding}`` for one export artifact."""

    path = _resolve_artifact(name)
    if path.suffix in BINARY_SUFFIXES:
        content = base64.b64encode(path.read_bytes()).decode("ascii")
        encoding = "base64"
    else:
        content = path.read_text(encoding="utf-8")
        encoding = "utf-8"
    return {
        "name": path.name,
        "content": content,
        "size": path.stat().st_size,
        "encoding": encoding,
    }


__all__ = [
    "ArtifactNotFoundError",
    "ArtifactAccessError",
    "ExportResult",
    "build_text_report",
    "export_batch",
    "list_exported_artifacts",
    "get_exported_artifact",
]
