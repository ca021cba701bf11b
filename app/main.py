from __future__ import annotations

from typing import Any, Dict

from flask import Flask, Response, jsonify, request

from app.etl import db, export, reporting, run
from app.etl.healthcheck import run_health_checks
from app.etl.logging_utils import _scraper_event
from app.etl.utils import ensure_dirs

app = Flask(__name__)

# Initialise storage paths and SQLite schema on import so WSGI entrypoints
# also have the expected environment ready.
ensure_dirs()
db.initialize_schema()


def _int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    return int(raw)


@app.post("/api/etl/scraping/start")
def api_start_scraping() -> Response:
    """Register a crawl operation and run it in the background."""

    payload: Dict[str, Any] = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return jsonify({"ok": False, "error": "invalid_request", "details": "JSON object expected"}), 400

    try:
        started = run.start_run(payload, trigger="api")
    except ValueError as exc:
        _scraper_event(
            "error",
            phase="api",
            context="scraping_start",
            error="invalid_request",
            message=str(exc),
            remote_addr=request.remote_addr,
        )
        return jsonify({"ok": False, "error": "invalid_request", "details": str(exc)}), 400

    return jsonify(
        {
            "ok": True,
            "operation_id": started["operation_id"],
            "status": started["status"],
            "message": "Scraping started in background",
        }
    )


@app.get("/api/etl/operations/<operation_id>/progress")
def api_operation_progress(operation_id: str) -> Response:
    """Return the latest progress snapshot for an operation."""

    try:
        progress = reporting.get_operation_progress(operation_id)
    except reporting.OperationNotFoundError:
        return (
            jsonify({"ok": False, "status": "not_found", "operation_id": operation_id}),
            404,
        )
    return jsonify({"ok": True, **progress})


@app.get("/api/etl/operations/<operation_id>/details")
def api_operation_details(operation_id: str) -> Response:
    """Return counters, key lists and the details blob for an operation."""

    try:
        details = reporting.get_operation_details(operation_id)
    except reporting.OperationNotFoundError:
        return (
            jsonify({"ok": False, "status": "not_found", "operation_id": operation_id}),
            404,
        )
    return jsonify({"ok": True, **details})


@app.get("/api/etl/logs")
def api_operation_logs() -> Response:
    """Return a page of operations, newest first."""

    try:
        page = _int_arg("page", 1)
        size = _int_arg("size", 20)
    except ValueError:
        return jsonify({"ok": False, "error": "invalid page or size"}), 400

    listing = reporting.list_operations(
        page,
        size,
        status=request.args.get("status") or None,
        operation_type=request.args.get("operation_type") or None,
    )
    return jsonify({"ok": True, **listing})


@app.get("/api/etl/stats")
def api_operation_stats() -> Response:
    return jsonify({"ok": True, "stats": reporting.get_operation_stats()})


@app.get("/api/etl/exports")
def api_list_exports() -> Response:
    """List export artifacts, optionally filtered by name substring."""

    artifacts = export.list_exported_artifacts(request.args.get("filter") or None)
    return jsonify({"ok": True, "count": len(artifacts), "files": artifacts})


@app.get("/api/etl/exports/<path:name>")
def api_get_export(name: str) -> Response:
    try:
        artifact = export.get_exported_artifact(name)
    except export.ArtifactAccessError:
        return jsonify({"ok": False, "error": "access_denied", "name": name}), 403
    except export.ArtifactNotFoundError:
        return jsonify({"ok": False, "error": "not_found", "name": name}), 404
    return jsonify({"ok": True, **artifact})


@app.get("/api/records/<path:natural_key>")
def api_get_record(natural_key: str) -> Response:
    """Return the persisted canonical fields for a natural key."""

    record = reporting.get_persisted_record(natural_key)
    if record is None:
        return jsonify({"ok": False, "error": "record_not_found", "natural_key": natural_key}), 404
    return jsonify({"ok": True, "record": record})


@app.get("/api/health")
def api_health() -> Response:
    """Return a JSON health summary for configuration, filesystem, DB and portal."""

    result = run_health_checks(entrypoint="api")
    status = 200 if result.ok else 503
    return jsonify({"ok": result.ok, "checks": result.checks}), status
