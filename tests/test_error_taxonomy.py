import sqlite3

from playwright.sync_api import TimeoutError as PWTimeout
from selenium.common.exceptions import TimeoutException

from app.etl.error_codes import ErrorCode
from app.etl.failures import classify_failure, is_record_level_error
from app.etl.portal import PortalNetworkError, PortalTimeoutError


def test_portal_timeout_maps_to_504() -> None:
    info = classify_failure(PortalTimeoutError("Results grid did not load within 90s"))

    assert info.code == ErrorCode.TIMEOUT
    assert info.http_status == 504
    assert info.fatal is True


def test_driver_timeout_types_are_recognised() -> None:
    assert classify_failure(PWTimeout("Timeout 30000ms exceeded.")).code == ErrorCode.TIMEOUT
    assert classify_failure(TimeoutException("wait expired")).code == ErrorCode.TIMEOUT


def test_net_err_message_maps_to_network_with_detail() -> None:
    info = classify_failure(
        RuntimeError("page.goto: net::ERR_NAME_NOT_RESOLVED at https://prodapp2.seace.gob.pe/")
    )

    assert info.code == ErrorCode.NETWORK
    assert info.http_status == 502
    assert info.detail == "ERR_NAME_NOT_RESOLVED"


def test_connection_faults_map_to_network() -> None:
    assert classify_failure(ConnectionError("reset by peer")).code == ErrorCode.NETWORK
    assert classify_failure(PortalNetworkError("portal down")).code == ErrorCode.NETWORK
    assert classify_failure(RuntimeError("read ECONNRESET")).code == ErrorCode.NETWORK


def test_navigation_keyword_maps_to_timeout() -> None:
    info = classify_failure(RuntimeError("Navigation failed because page was closed"))

    assert info.code == ErrorCode.TIMEOUT


def test_unknown_failures_are_critical() -> None:
    info = classify_failure(KeyError("grid"))

    assert info.code == ErrorCode.CRITICAL_SESSION
    assert info.http_status == 500
    assert info.detail == "KeyError"
    assert info.as_dict()["fatal"] is True


def test_record_scope_is_recoverable() -> None:
    exc = sqlite3.IntegrityError("UNIQUE constraint failed")
    info = classify_failure(exc, scope="record")

    assert info.code == ErrorCode.RECORD_PERSIST
    assert info.http_status is None
    assert info.fatal is False
    assert is_record_level_error(exc)
    assert is_record_level_error(ValueError("bad amount"))
    assert not is_record_level_error(RuntimeError("browser gone"))
    assert not is_record_level_error(TypeError("unsupported operand"))
