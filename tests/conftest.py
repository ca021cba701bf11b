from pathlib import Path

import pytest

from app.etl import config, db


def _configure_temp_paths(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    data_dir = tmp_path / "data"
    data_dir.mkdir(parents=True, exist_ok=True)
    db_path = data_dir / "seace_etl.db"

    monkeypatch.setattr(config, "DATA_DIR", data_dir)
    monkeypatch.setattr(config, "LOG_DIR", data_dir / "logs")
    monkeypatch.setattr(config, "LOG_FILE", data_dir / "logs" / "latest.log")
    monkeypatch.setattr(config, "EXPORTS_DIR", data_dir / "logs" / "scraping-exports")
    monkeypatch.setattr(config, "DB_PATH", db_path)
    monkeypatch.setattr(db, "DB_PATH", db_path)
    return data_dir


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point every storage path at a per-test directory and keep tests offline."""

    monkeypatch.setattr(config, "HEALTH_PROBE_PORTAL", False)
    monkeypatch.setattr(config, "MIN_FREE_MB", 0)
    return _configure_temp_paths(tmp_path, monkeypatch)
