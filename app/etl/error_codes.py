from __future__ import annotations

"""Centralised failure taxonomy for pipeline runs.

Codes are persisted in the operation details blob and included in structured
logs so callers polling an operation can tell why it ended. The set is small
and should stay stable for reporting.
"""


class ErrorCode:
    TIMEOUT = "timeout"
    NETWORK = "network_error"
    EMPTY_PAGE = "empty_page"
    RECORD_PERSIST = "record_persist_error"
    CRITICAL_SESSION = "critical_session_error"


# Suggested transport status for REST collaborators. ``None`` means the
# condition never surfaces as a run-level failure.
SUGGESTED_HTTP_STATUS: dict[str, int | None] = {
    ErrorCode.TIMEOUT: 504,
    ErrorCode.NETWORK: 502,
    ErrorCode.EMPTY_PAGE: None,
    ErrorCode.RECORD_PERSIST: None,
    ErrorCode.CRITICAL_SESSION: 500,
}

FATAL_ERROR_CODES = {
    ErrorCode.TIMEOUT,
    ErrorCode.NETWORK,
    ErrorCode.CRITICAL_SESSION,
}


__all__ = ["ErrorCode", "SUGGESTED_HTTP_STATUS", "FATAL_ERROR_CODES"]
