from __future__ import annotations

from typing import Literal

from . import config
from .logging_utils import _scraper_event
from .utils import log_line

Entrypoint = Literal["api", "cli", "tests"]


def _raise_config_error(
    message: str, *, entrypoint: Entrypoint, error: str, mode: str | None
) -> None:
    _scraper_event(
        "error",
        phase="config",
        context="runtime_validation",
        error=error,
        entrypoint=entrypoint,
        mode=mode,
    )
    mode_fragment = f", mode={mode}" if mode else ""
    log_line(f"[CONFIG] {message} (entrypoint={entrypoint}{mode_fragment})")
    raise ValueError(message)


def validate_runtime_config(entrypoint: Entrypoint, *, mode: str | None = None) -> None:
    """Validate runtime configuration for the given entrypoint.

    Raises ``ValueError`` when a blocking misconfiguration is detected.
    Non-fatal adjustments (e.g., clamping the progress cadence) are logged but
    do not raise.
    """

    if config.PORTAL_DRIVER not in config.SUPPORTED_DRIVERS:
        _raise_config_error(
            f"SEACE_PORTAL_DRIVER must be one of {sorted(config.SUPPORTED_DRIVERS)}.",
            entrypoint=entrypoint,
            error="unknown_portal_driver",
            mode=mode,
        )

    if config.OVERSCAN_FACTOR <= 0:
        _raise_config_error(
            "SEACE_OVERSCAN_FACTOR must be greater than zero.",
            entrypoint=entrypoint,
            error="overscan_factor_invalid",
            mode=mode,
        )

    if config.PROGRESS_EVERY < 1:
        adjusted = 1
        _scraper_event(
            "state",
            phase="config",
            context="runtime_validation",
            kind="config_adjustment",
            field="PROGRESS_EVERY",
            value=config.PROGRESS_EVERY,
            adjusted=adjusted,
            entrypoint=entrypoint,
            mode=mode,
        )
        log_line("[CONFIG] PROGRESS_EVERY < 1; clamping to 1.")
        config.PROGRESS_EVERY = adjusted

    if config.MIN_FREE_MB < 0:
        _raise_config_error(
            "MIN_FREE_MB must be non-negative.",
            entrypoint=entrypoint,
            error="min_free_mb_invalid",
            mode=mode,
        )

    timeout_fields = [
        ("SEACE_NAV_TIMEOUT_SECONDS", config.NAV_TIMEOUT_SECONDS),
        ("SEACE_RESULTS_TIMEOUT_SECONDS", config.RESULTS_TIMEOUT_SECONDS),
        ("SEACE_NEXT_PAGE_TIMEOUT_SECONDS", config.NEXT_PAGE_TIMEOUT_SECONDS),
        ("SEACE_GRID_ROWS_TIMEOUT_SECONDS", config.GRID_ROWS_TIMEOUT_SECONDS),
        ("SEACE_CLICK_TIMEOUT_MS", config.CLICK_TIMEOUT_MS),
    ]

    for field_name, value in timeout_fields:
        if value <= 0:
            _raise_config_error(
                f"{field_name} must be greater than zero.",
                entrypoint=entrypoint,
                error="invalid_timeout",
                mode=mode,
            )


__all__ = ["validate_runtime_config", "Entrypoint"]
