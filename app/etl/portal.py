"""Search portal port: the navigation state machine every adapter follows.

Concrete adapters (Playwright, Selenium) implement the ``_open``/``_configure``
/``_submit``/``_has_next_page``/``_next_page``/``_extract_page``/``_close``
hooks. The public methods here enforce the legal state transitions and the
"always closed" guarantee so the orchestrator only ever talks to this port.

States::

    UNINITIALIZED -> SESSION_OPEN -> FILTERS_CONFIGURED -> SUBMITTED
        -> RESULTS_LOADED -> PAGINATING -> CLOSED

``FAILED`` is entered when any hook raises; ``close()`` still moves the
adapter to ``CLOSED`` afterwards.
"""
from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Tuple

from . import config
from .date_utils import default_range_for_year, to_portal_date
from .logging_utils import _scraper_event
from .models import SearchRequest
from .row_extractor import PageExtraction
from .utils import short_error_message

_PAGINATOR_TEXT = re.compile(r"P[áa]gina:\s*(\d+)\s*/\s*(\d+)", re.IGNORECASE)


class PortalState(str, Enum):
    UNINITIALIZED = "uninitialized"
    SESSION_OPEN = "session_open"
    FILTERS_CONFIGURED = "filters_configured"
    SUBMITTED = "submitted"
    RESULTS_LOADED = "results_loaded"
    PAGINATING = "paginating"
    CLOSED = "closed"
    FAILED = "failed"


class PortalError(Exception):
    """Base class for portal adapter failures."""


class PortalTimeoutError(PortalError):
    """Navigation or results loading exceeded its bounded wait."""


class PortalNetworkError(PortalError):
    """The remote portal could not be reached."""


class PortalStateError(PortalError):
    """An operation was attempted from a state that does not allow it."""


def parse_paginator_text(text: Optional[str]) -> Tuple[int, int]:
    """Return ``(current, total)`` from a paginator label such as ``Página: 2/7``."""

    match = _PAGINATOR_TEXT.search(text or "")
    if not match:
        return 1, 1
    return int(match.group(1)), int(match.group(2))


@dataclass(frozen=True)
class FilterPlan:
    """Concrete form values derived from a :class:`SearchRequest`."""

    object_type_label: Optional[str]
    year: str
    date_from: str
    date_to: str
    description: Optional[str]


def plan_filters(request: SearchRequest) -> FilterPlan:
    """Translate *request* into portal form values.

    Dates accept ISO or ``dd/mm/yyyy`` and default to the whole requested
    year.
    """

    default_from, default_to = default_range_for_year(request.year)
    object_type_label = None
    if request.object_type:
        object_type_label = config.OBJECT_TYPE_LABELS.get(request.object_type, request.object_type)
    return FilterPlan(
        object_type_label=object_type_label,
        year=request.year,
        date_from=to_portal_date(request.date_from) or default_from,
        date_to=to_portal_date(request.date_to) or default_to,
        description=request.description_query,
    )


class SearchPortal(ABC):
    """Abstract portal session owned exclusively by one run."""

    name = "portal"

    def __init__(self) -> None:
        self.state = PortalState.UNINITIALIZED
        self.page_number = 0
        self.failure: Optional[BaseException] = None

    # ------------------------------------------------------------------
    # Hooks implemented by concrete adapters
    # ------------------------------------------------------------------

    @abstractmethod
    def _open(self) -> None:
        ...

    @abstractmethod
    def _configure(self, request: SearchRequest) -> None:
        ...

    @abstractmethod
    def _submit(self) -> None:
        ...

    @abstractmethod
    def _has_next_page(self) -> bool:
        ...

    @abstractmethod
    def _next_page(self) -> bool:
        ...

    @abstractmethod
    def _extract_page(self) -> PageExtraction:
        ...

    @abstractmethod
    def _close(self) -> None:
        ...

    # ------------------------------------------------------------------
    # State handling
    # ------------------------------------------------------------------

    def _require(self, action: str, allowed: Iterable[PortalState]) -> None:
        allowed_states = set(allowed)
        if self.state not in allowed_states:
            raise PortalStateError(
                f"{self.name}: cannot {action} while {self.state.value}"
            )

    def _move(self, target: PortalState) -> None:
        _scraper_event(
            "portal",
            step="transition",
            adapter=self.name,
            previous=self.state.value,
            state=target.value,
        )
        self.state = target

    def _fail(self, action: str, exc: BaseException) -> None:
        self.failure = exc
        _scraper_event(
            "error",
            phase="portal",
            step=f"{action}_failed",
            adapter=self.name,
            state=self.state.value,
            error=short_error_message(exc),
        )
        self.state = PortalState.FAILED

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------

    def open(self) -> None:
        """Start the browser session and load the search form."""

        self._require("open", {PortalState.UNINITIALIZED})
        try:
            self._open()
        except Exception as exc:
            self._fail("open", exc)
            raise
        self._move(PortalState.SESSION_OPEN)

    def configure(self, request: SearchRequest) -> None:
        """Apply the request's filters. Missing widgets are skipped."""

        self._require("configure", {PortalState.SESSION_OPEN})
        try:
            self._configure(request)
        except Exception as exc:
            self._fail("configure", exc)
            raise
        self._move(PortalState.FILTERS_CONFIGURED)

    def submit(self) -> None:
        """Run the search and block until the results grid is present."""

        self._require("submit", {PortalState.SESSION_OPEN, PortalState.FILTERS_CONFIGURED})
        self._move(PortalState.SUBMITTED)
        try:
            self._submit()
        except Exception as exc:
            self._fail("submit", exc)
            raise
        self.page_number = 1
        self._move(PortalState.RESULTS_LOADED)

    def extract_page(self) -> PageExtraction:
        """Return the validated rows currently rendered in the grid."""

        self._require("extract_page", {PortalState.RESULTS_LOADED, PortalState.PAGINATING})
        try:
            extraction = self._extract_page()
        except Exception as exc:
            self._fail("extract_page", exc)
            raise
        if self.state is PortalState.RESULTS_LOADED:
            self._move(PortalState.PAGINATING)
        return extraction

    def has_next_page(self) -> bool:
        """Return True when a further page can be requested.

        Any error while inspecting the paginator is treated as "no more pages".
        """

        if self.state not in {PortalState.RESULTS_LOADED, PortalState.PAGINATING}:
            return False
        try:
            return bool(self._has_next_page())
        except Exception as exc:  # noqa: BLE001
            _scraper_event(
                "error",
                phase="portal",
                step="has_next_page_failed",
                adapter=self.name,
                error=short_error_message(exc),
            )
            return False

    def next_page(self) -> bool:
        """Advance the grid; return whether a content change was observed."""

        self._require("next_page", {PortalState.RESULTS_LOADED, PortalState.PAGINATING})
        try:
            changed = bool(self._next_page())
        except Exception as exc:
            self._fail("next_page", exc)
            raise
        self.page_number += 1
        if not changed:
            _scraper_event(
                "portal",
                step="page_change_not_detected",
                adapter=self.name,
                page=self.page_number,
            )
        self.state = PortalState.PAGINATING
        return changed

    def close(self) -> None:
        """Release the browser session. Safe to call repeatedly; never raises."""

        if self.state is PortalState.CLOSED:
            return
        try:
            self._close()
        except Exception as exc:  # noqa: BLE001
            _scraper_event(
                "error",
                phase="portal",
                step="close_failed",
                adapter=self.name,
                error=short_error_message(exc),
            )
        self._move(PortalState.CLOSED)

    def __enter__(self) -> "SearchPortal":
        try:
            self.open()
        except Exception:
            self.close()
            raise
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False


__all__ = [
    "PortalState",
    "PortalError",
    "PortalTimeoutError",
    "PortalNetworkError",
    "PortalStateError",
    "SearchPortal",
    "parse_paginator_text",
    "FilterPlan",
    "plan_filters",
]
