"""Map low-level browser, network and storage faults onto :class:`ErrorCode`.

Neither Playwright nor Selenium expose structured error codes for navigation
problems, so classification falls back to matching well-known fragments of the
exception message. Driver-specific timeout types are recognised directly.
"""
from __future__ import annotations

import re
import sqlite3
from dataclasses import asdict, dataclass
from typing import Any, Literal, Optional

from playwright.sync_api import TimeoutError as PWTimeout
from selenium.common.exceptions import TimeoutException as SeleniumTimeout

from .error_codes import FATAL_ERROR_CODES, SUGGESTED_HTTP_STATUS, ErrorCode
from .portal import PortalNetworkError, PortalTimeoutError
from .utils import short_error_message

Scope = Literal["run", "record"]

_TIMEOUT_PATTERN = re.compile(r"time(?:d)?\s*out|timeout|navigation", re.IGNORECASE)
_NET_ERR_PATTERN = re.compile(r"net::(ERR_[A-Z_]+)")
_NETWORK_PATTERN = re.compile(
    r"connection\s+(?:reset|refused|closed|aborted)|ECONNRESET|ECONNREFUSED|"
    r"ENOTFOUND|EAI_AGAIN|name\s+resolution",
    re.IGNORECASE,
)


@dataclass
class FailureInfo:
    code: str
    http_status: Optional[int]
    fatal: bool
    message: str
    detail: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _info(code: str, message: str, detail: Optional[str] = None) -> FailureInfo:
    return FailureInfo(
        code=code,
        http_status=SUGGESTED_HTTP_STATUS.get(code),
        fatal=code in FATAL_ERROR_CODES,
        message=message,
        detail=detail,
    )


def classify_failure(exc: BaseException, *, scope: Scope = "run") -> FailureInfo:
    """Return the taxonomy entry for *exc*.

    ``scope="record"`` marks faults raised while persisting a single record;
    those are always recoverable regardless of the message.
    """

    message = short_error_message(exc, max_length=500)

    if scope == "record":
        return _info(ErrorCode.RECORD_PERSIST, message, detail=exc.__class__.__name__)

    if isinstance(exc, (PortalTimeoutError, PWTimeout, SeleniumTimeout, TimeoutError)):
        return _info(ErrorCode.TIMEOUT, message)

    net_match = _NET_ERR_PATTERN.search(message)
    if net_match:
        return _info(ErrorCode.NETWORK, message, detail=net_match.group(1))

    if isinstance(exc, (PortalNetworkError, ConnectionError)) or _NETWORK_PATTERN.search(message):
        return _info(ErrorCode.NETWORK, message)

    if _TIMEOUT_PATTERN.search(message):
        return _info(ErrorCode.TIMEOUT, message)

    return _info(ErrorCode.CRITICAL_SESSION, message, detail=exc.__class__.__name__)


def is_record_level_error(exc: BaseException) -> bool:
    """Return True for faults that only affect the record being persisted."""

    return isinstance(exc, (sqlite3.Error, ValueError))


__all__ = ["FailureInfo", "classify_failure", "is_record_level_error"]
