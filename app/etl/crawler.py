"""Paginated crawl loop driven through the :class:`SearchPortal` port."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from . import config
from .logging_utils import _scraper_event
from .models import RawRow, SearchRequest
from .overscan import OverscanController
from .portal import SearchPortal
from .row_extractor import ExtractionStats

STOP_EMPTY_PAGE = "empty_page"
STOP_LIMIT_REACHED = "limit_reached"
STOP_NO_MORE_PAGES = "no_more_pages"

ProgressCallback = Callable[[int, Optional[int], str], None]


@dataclass
class CrawlResult:
    rows: List[RawRow] = field(default_factory=list)
    pages: int = 0
    stats: ExtractionStats = field(default_factory=ExtractionStats)
    stop_reason: str = STOP_NO_MORE_PAGES
    extraction_limit: Optional[int] = None

    def summary(self) -> dict:
        return {
            "rows": len(self.rows),
            "pages": self.pages,
            "stop_reason": self.stop_reason,
            "extraction_limit": self.extraction_limit,
            "rows_seen": self.stats.seen,
            "rows_rejected": dict(self.stats.rejected),
        }


def crawl(
    portal: SearchPortal,
    request: SearchRequest,
    controller: OverscanController,
    *,
    on_progress: Optional[ProgressCallback] = None,
    settle_seconds: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> CrawlResult:
    """Configure, submit and page through the portal, collecting raw rows.

    The returned batch is never truncated to ``target_new``; capping new
    inserts happens during ingestion. An empty page ends the loop without
    error.
    """

    settle = config.PAGE_SETTLE_SECONDS if settle_seconds is None else settle_seconds
    result = CrawlResult(extraction_limit=controller.extraction_limit)
    total = controller.progress_total()

    portal.configure(request)
    portal.submit()

    if on_progress:
        on_progress(0, total, "Starting extraction")

    while True:
        page_number = portal.page_number
        extraction = portal.extract_page()
        result.stats.merge(extraction.stats)

        if extraction.is_empty:
            result.stop_reason = STOP_EMPTY_PAGE
            _scraper_event(
                "paginate",
                step="soft_stop",
                page=page_number,
                accumulated=len(result.rows),
                reason=STOP_EMPTY_PAGE,
            )
            break

        result.rows.extend(extraction.rows)
        result.pages += 1
        _scraper_event(
            "paginate",
            step="page_done",
            page=page_number,
            page_rows=len(extraction.rows),
            accumulated=len(result.rows),
            extraction_limit=result.extraction_limit,
        )

        if on_progress:
            on_progress(
                len(result.rows),
                total,
                f"Extracted page {page_number}: {len(result.rows)} records found",
            )

        if controller.limit_reached(len(result.rows)):
            result.stop_reason = STOP_LIMIT_REACHED
            break

        if not controller.should_continue(len(result.rows), portal.has_next_page()):
            result.stop_reason = STOP_NO_MORE_PAGES
            break

        portal.next_page()
        if settle > 0:
            sleep(settle)

    _scraper_event("paginate", step="finished", **result.summary())
    return result


__all__ = [
    "CrawlResult",
    "crawl",
    "STOP_EMPTY_PAGE",
    "STOP_LIMIT_REACHED",
    "STOP_NO_MORE_PAGES",
]
