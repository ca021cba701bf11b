import base64
import json
import os

import pandas as pd
import pytest

from app.etl import config, export
from app.etl.normalizer import normalize_row
from tests.test_crawler import make_raw_row


def _records(count: int):
    return [normalize_row(make_raw_row(n), scraped_at="2024-03-06T00:00:00Z") for n in range(1, count + 1)]


def test_export_batch_writes_every_format_with_exact_rows() -> None:
    records = _records(7)

    result = export.export_batch(records, "op-export", extra_metadata={"search_params": {"year": "2024"}})

    assert set(result.files) == {"json", "csv", "xlsx", "txt"}
    assert result.errors == {}
    assert all(name.startswith("scraping_op-export_") for name in result.files.values())

    payload = json.loads((config.EXPORTS_DIR / result.files["json"]).read_text(encoding="utf-8"))
    assert payload["metadata"]["operation_id"] == "op-export"
    assert payload["metadata"]["record_count"] == 7
    assert payload["metadata"]["search_params"] == {"year": "2024"}
    assert [row["natural_key"] for row in payload["records"]] == [r.natural_key for r in records]
    assert payload["records"][0]["amount"] == "1500.00"

    frame = pd.read_csv(config.EXPORTS_DIR / result.files["csv"])
    assert list(frame["natural_key"]) == [r.natural_key for r in records]

    sheets = pd.read_excel(config.EXPORTS_DIR / result.files["xlsx"], sheet_name=None, engine="openpyxl")
    assert set(sheets) == {"Records", "Summary"}
    assert len(sheets["Records"]) == 7

    report = (config.EXPORTS_DIR / result.files["txt"]).read_text(encoding="utf-8")
    assert "Records: 7" in report
    assert "Servicio: 7" in report
    assert "Total amount: 10500.00" in report
    assert "Average amount: 1500.00" in report


def test_export_writer_failure_is_reported_not_raised(monkeypatch: pytest.MonkeyPatch) -> None:
    def _broken(path, records, metadata):
        raise OSError("disk full")

    monkeypatch.setitem(export._WRITERS, "xlsx", _broken)

    result = export.export_batch(_records(2), "op-broken", formats=["json", "xlsx"])

    assert set(result.files) == {"json"}
    assert "disk full" in result.errors["xlsx"]


def test_list_exported_artifacts_newest_first_and_filtered() -> None:
    config.EXPORTS_DIR.mkdir(parents=True, exist_ok=True)
    older = config.EXPORTS_DIR / "scraping_a_20240101_000000.json"
    newer = config.EXPORTS_DIR / "scraping_b_20240102_000000.csv"
    ignored = config.EXPORTS_DIR / "notes.md"
    for path in (older, newer, ignored):
        path.write_text("x", encoding="utf-8")
    os.utime(older, (1_700_000_000, 1_700_000_000))
    os.utime(newer, (1_700_000_500, 1_700_000_500))

    names = [entry["name"] for entry in export.list_exported_artifacts()]
    assert names == [newer.name, older.name]

    filtered = export.list_exported_artifacts("scraping_a")
    assert [entry["name"] for entry in filtered] == [older.name]
    assert filtered[0]["size"] == 1
    assert filtered[0]["modified_at"] == "2023-11-14T22:13:20Z"


def test_get_exported_artifact_reads_text_and_binary() -> None:
    result = export.export_batch(_records(1), "op-read", formats=["txt", "xlsx"])

    text = export.get_exported_artifact(result.files["txt"])
    assert text["encoding"] == "utf-8"
    assert "SEACE SCRAPING REPORT" in text["content"]

    binary = export.get_exported_artifact(result.files["xlsx"])
    assert binary["encoding"] == "base64"
    assert base64.b64decode(binary["content"])[:2] == b"PK"


@pytest.mark.parametrize("name", ["../seace_etl.db", "sub/file.json", "..", ""])
def test_get_exported_artifact_rejects_traversal(name: str) -> None:
    with pytest.raises(export.ArtifactAccessError):
        export.get_exported_artifact(name)


def test_get_exported_artifact_missing() -> None:
    with pytest.raises(export.ArtifactNotFoundError):
        export.get_exported_artifact("scraping_missing.json")
