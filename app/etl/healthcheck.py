from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import requests

from . import config, db
from .config_validation import validate_runtime_config
from .logging_utils import _scraper_event
from .utils import disk_has_room, ensure_dirs, log_line


@dataclass
class HealthResult:
    ok: bool
    checks: dict[str, dict[str, Any]]


def _probe_portal() -> dict[str, Any]:
    if not config.HEALTH_PROBE_PORTAL:
        return {"ok": True, "skipped": True}
    try:
        response = requests.get(
            config.PORTAL_URL,
            headers=config.COMMON_HEADERS,
            timeout=config.HEALTH_PROBE_TIMEOUT_SECONDS,
        )
    except requests.RequestException as exc:
        return {"ok": False, "url": config.PORTAL_URL, "error": str(exc)}
    return {
        "ok": response.status_code < 500,
        "url": config.PORTAL_URL,
        "http_status": response.status_code,
    }


def run_health_checks(entrypoint: str = "cli") -> HealthResult:
    checks: dict[str, dict[str, Any]] = {}

    try:
        validate_runtime_config(entrypoint or "cli", mode=None)
        checks["config"] = {"ok": True, "driver": config.PORTAL_DRIVER}
    except ValueError as exc:
        checks["config"] = {"ok": False, "error": str(exc)}

    ensure_dirs()
    fs_ok = disk_has_room(config.MIN_FREE_MB, config.DATA_DIR)
    checks["filesystem"] = {
        "ok": fs_ok,
        "data_dir": str(config.DATA_DIR),
        "min_free_mb": config.MIN_FREE_MB,
    }

    try:
        db.initialize_schema()
        conn = db.get_connection()
        conn.execute("SELECT COUNT(*) FROM operations")
        checks["database"] = {"ok": True}
    except Exception as exc:  # noqa: BLE001
        checks["database"] = {"ok": False, "error": str(exc)}

    checks["portal"] = _probe_portal()

    # An unreachable portal only fails the CLI check; the API stays serving.
    strict_portal = entrypoint == "cli"
    overall_ok = all(
        check.get("ok", False)
        for name, check in checks.items()
        if strict_portal or name != "portal"
    )

    _scraper_event(
        "state" if overall_ok else "error",
        phase="health",
        context="healthcheck",
        ok=overall_ok,
        checks=checks,
    )

    return HealthResult(ok=overall_ok, checks=checks)


if __name__ == "__main__":  # pragma: no cover
    result = run_health_checks(entrypoint="cli")
    for name, info in result.checks.items():
        status = "OK" if info.get("ok") else "FAIL"
        log_line(f"[HEALTH] {name}: {status} {info}")
    raise SystemExit(0 if result.ok else 1)
