from app.etl import config
from app.etl.config_validation import validate_runtime_config
import pytest


def test_unknown_driver_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "PORTAL_DRIVER", "firefox")
    with pytest.raises(ValueError):
        validate_runtime_config("api")


def test_overscan_factor_must_be_positive(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "OVERSCAN_FACTOR", 0.0)
    with pytest.raises(ValueError):
        validate_runtime_config("cli")


def test_min_free_mb_negative(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "MIN_FREE_MB", -5)
    with pytest.raises(ValueError):
        validate_runtime_config("cli")


def test_invalid_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "RESULTS_TIMEOUT_SECONDS", 0)
    with pytest.raises(ValueError):
        validate_runtime_config("cli")


def test_progress_cadence_clamped(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "PROGRESS_EVERY", 0)

    validate_runtime_config("tests")

    assert config.PROGRESS_EVERY == 1
