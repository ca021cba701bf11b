from __future__ import annotations

from typing import Dict, List, Optional, Sequence

import pytest

from app.etl.crawler import STOP_EMPTY_PAGE, STOP_LIMIT_REACHED, STOP_NO_MORE_PAGES, crawl
from app.etl.models import RawRow, SearchRequest
from app.etl.overscan import OverscanController, compute_extraction_limit
from app.etl.portal import PortalState, SearchPortal
from app.etl.row_extractor import ExtractionStats, PageExtraction


def make_raw_row(n: int, *, page: int = 1, nomenclature: Optional[str] = None) -> RawRow:
    return RawRow(
        ordinal=str(n),
        entity_name=f"MUNICIPALIDAD DISTRITAL {n % 3}",
        published_at="05/03/2024 10:30",
        nomenclature=nomenclature if nomenclature is not None else f"AS-SM-{n}-2024-MDC/CS-1",
        restarted_from="",
        object_type="Servicio",
        description=f"Servicio de mantenimiento numero {n}",
        amount_text="1.500,00",
        currency="Soles",
        portal_version="3",
        source_url="https://example.test/seace",
        page_number=page,
    )


def make_pages(total_rows: int, per_page: int = 15, *, start: int = 1) -> List[List[RawRow]]:
    pages: List[List[RawRow]] = []
    numbers = list(range(start, start + total_rows))
    for offset in range(0, len(numbers), per_page):
        page_no = offset // per_page + 1
        pages.append([make_raw_row(n, page=page_no) for n in numbers[offset : offset + per_page]])
    return pages


class FakePortal(SearchPortal):
    """In-memory portal serving pre-built pages of raw rows."""

    name = "fake"

    def __init__(
        self,
        pages: Sequence[Sequence[RawRow]],
        *,
        fail_on: Optional[Dict[str, BaseException]] = None,
    ) -> None:
        super().__init__()
        self.pages = [list(page) for page in pages]
        self.fail_on = fail_on or {}
        self.calls: List[str] = []
        self.close_calls = 0
        self.configured_with: Optional[SearchRequest] = None

    def _hook(self, action: str) -> None:
        self.calls.append(action)
        exc = self.fail_on.get(action)
        if exc is not None:
            raise exc

    def _open(self) -> None:
        self._hook("open")

    def _configure(self, request: SearchRequest) -> None:
        self.configured_with = request
        self._hook("configure")

    def _submit(self) -> None:
        self._hook("submit")

    def _has_next_page(self) -> bool:
        self._hook("has_next_page")
        return self.page_number < len(self.pages)

    def _next_page(self) -> bool:
        self._hook("next_page")
        return True

    def _extract_page(self) -> PageExtraction:
        self._hook("extract_page")
        index = self.page_number - 1
        rows = self.pages[index] if index < len(self.pages) else []
        return PageExtraction(rows=list(rows), stats=ExtractionStats(seen=len(rows), accepted=len(rows)))

    def _close(self) -> None:
        self.close_calls += 1


def test_compute_extraction_limit() -> None:
    assert compute_extraction_limit(20, 2.5) == 50
    assert compute_extraction_limit(3, 2.5) == 8
    assert compute_extraction_limit(None, 2.5) is None
    assert compute_extraction_limit(0, 2.5) is None
    with pytest.raises(ValueError):
        compute_extraction_limit(10, 0)


def test_overscan_controller_decisions() -> None:
    controller = OverscanController.for_request(20, 2.5)

    assert controller.extraction_limit == 50
    assert controller.should_continue(45, True) is True
    assert controller.should_continue(45, False) is False
    assert controller.should_continue(50, True) is False
    assert controller.limit_reached(60) is True
    assert OverscanController.for_request(None, 2.5).should_continue(10_000, True) is True


def test_crawl_stops_at_overscan_limit_without_truncating() -> None:
    portal = FakePortal(make_pages(75))
    request = SearchRequest(year="2024", target_new=20)
    progress: list[tuple[int, Optional[int], str]] = []
    sleeps: list[float] = []

    with portal:
        result = crawl(
            portal,
            request,
            OverscanController.for_request(20, 2.5),
            on_progress=lambda step, total, message: progress.append((step, total, message)),
            settle_seconds=0.25,
            sleep=sleeps.append,
        )

    assert result.stop_reason == STOP_LIMIT_REACHED
    assert len(result.rows) == 60
    assert result.pages == 4
    assert result.extraction_limit == 50
    assert [step for step, _, _ in progress] == [0, 15, 30, 45, 60]
    assert all(total == 50 for _, total, _ in progress)
    assert sleeps == [0.25, 0.25, 0.25]
    assert portal.configured_with is request
    assert portal.state is PortalState.CLOSED
    assert portal.close_calls == 1


def test_crawl_empty_page_is_a_soft_stop() -> None:
    portal = FakePortal(make_pages(15) + [[]])

    with portal:
        result = crawl(
            portal,
            SearchRequest(year="2024"),
            OverscanController.for_request(None, 2.5),
            settle_seconds=0,
        )

    assert result.stop_reason == STOP_EMPTY_PAGE
    assert len(result.rows) == 15
    assert result.pages == 1


def test_crawl_stops_when_no_more_pages() -> None:
    portal = FakePortal(make_pages(20, per_page=10))

    with portal:
        result = crawl(
            portal,
            SearchRequest(year="2024", target_new=100),
            OverscanController.for_request(100, 2.5),
            settle_seconds=0,
        )

    assert result.stop_reason == STOP_NO_MORE_PAGES
    assert len(result.rows) == 20
    assert result.pages == 2
    assert portal.calls.count("next_page") == 1
