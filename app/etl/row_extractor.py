"""Read one rendered results page into validated :class:`RawRow` tuples.

The portal grid is read positionally. Column order:

    0  row ordinal
    1  entity name
    2  publication date and time
    3  nomenclature (natural key candidate)
    4  restarted from
    5  contract object type
    6  object description
    7  SNIP code
    8  investment code (CUI)
    9  reference amount
    10 currency
    11 portal version
    12 actions (ignored)

Only columns 0-6 are required; trailing columns default to empty strings.
"""
from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from bs4 import BeautifulSoup

from . import config
from .logging_utils import _scraper_event
from .models import RawRow
from .selectors_seace import SEACE_SELECTORS, SeaceSelectors

COL_ORDINAL = 0
COL_ENTITY = 1
COL_PUBLISHED_AT = 2
COL_NOMENCLATURE = 3
COL_RESTARTED_FROM = 4
COL_OBJECT_TYPE = 5
COL_DESCRIPTION = 6
COL_SNIP = 7
COL_INVESTMENT_CODE = 8
COL_AMOUNT = 9
COL_CURRENCY = 10
COL_VERSION = 11

REJECT_TOO_FEW_CELLS = "too_few_cells"
REJECT_NON_NUMERIC_ORDINAL = "non_numeric_ordinal"
REJECT_HEADER_ROW = "header_row"
REJECT_SHORT_DESCRIPTION = "short_description"

_LEADING_INT = re.compile(r"^[+-]?\d+")


@dataclass
class ExtractionStats:
    seen: int = 0
    accepted: int = 0
    rejected: Counter = field(default_factory=Counter)

    @property
    def rejected_total(self) -> int:
        return sum(self.rejected.values())

    def merge(self, other: "ExtractionStats") -> None:
        self.seen += other.seen
        self.accepted += other.accepted
        self.rejected.update(other.rejected)

    def as_dict(self) -> dict:
        return {
            "seen": self.seen,
            "accepted": self.accepted,
            "rejected": dict(self.rejected),
        }


@dataclass
class PageExtraction:
    rows: List[RawRow]
    stats: ExtractionStats

    @property
    def is_empty(self) -> bool:
        return not self.rows


def _cell(cells: Sequence[str], index: int) -> str:
    if index < len(cells):
        return " ".join((cells[index] or "").split())
    return ""


def rejection_reason(cells: Sequence[str]) -> Optional[str]:
    """Return why *cells* is not a data row, or ``None`` when it is valid."""

    if len(cells) < config.MIN_ROW_CELLS:
        return REJECT_TOO_FEW_CELLS

    if not _LEADING_INT.match(_cell(cells, COL_ORDINAL)):
        return REJECT_NON_NUMERIC_ORDINAL

    entity = _cell(cells, COL_ENTITY)
    if not entity or entity.lower() in config.HEADER_LABELS:
        return REJECT_HEADER_ROW

    if len(_cell(cells, COL_DESCRIPTION)) < config.MIN_DESCRIPTION_LENGTH:
        return REJECT_SHORT_DESCRIPTION

    return None


def row_from_cells(cells: Sequence[str], *, source_url: str = "", page_number: Optional[int] = None) -> RawRow:
    """Map positional cell text onto a :class:`RawRow`. Cells must be valid."""

    return RawRow(
        ordinal=_cell(cells, COL_ORDINAL),
        entity_name=_cell(cells, COL_ENTITY),
        published_at=_cell(cells, COL_PUBLISHED_AT),
        nomenclature=_cell(cells, COL_NOMENCLATURE),
        restarted_from=_cell(cells, COL_RESTARTED_FROM),
        object_type=_cell(cells, COL_OBJECT_TYPE),
        description=_cell(cells, COL_DESCRIPTION),
        snip_code=_cell(cells, COL_SNIP),
        investment_code=_cell(cells, COL_INVESTMENT_CODE),
        amount_text=_cell(cells, COL_AMOUNT),
        currency=_cell(cells, COL_CURRENCY),
        portal_version=_cell(cells, COL_VERSION),
        source_url=source_url,
        page_number=page_number,
    )


def extract_rows(
    rows: Iterable[Sequence[str]],
    *,
    source_url: str = "",
    page_number: Optional[int] = None,
) -> PageExtraction:
    """Validate cell lists and keep the data rows."""

    stats = ExtractionStats()
    accepted: List[RawRow] = []

    for index, cells in enumerate(rows):
        stats.seen += 1
        reason = rejection_reason(cells)
        if reason is not None:
            stats.rejected[reason] += 1
            _scraper_event(
                "extract",
                step="row_rejected",
                page=page_number,
                row_index=index,
                reason=reason,
                cells=len(cells),
            )
            continue
        accepted.append(row_from_cells(cells, source_url=source_url, page_number=page_number))
        stats.accepted += 1

    return PageExtraction(rows=accepted, stats=stats)


def read_grid_cells(html: str, *, selectors: SeaceSelectors = SEACE_SELECTORS) -> List[List[str]]:
    """Return the text of every ``td`` for each result row in *html*.

    Uses the primary grid rows (``tr[data-ri]``) and falls back to the first
    ``ui-datatable`` table that has any body rows.
    """

    soup = BeautifulSoup(html or "", "html5lib")
    rows = soup.select(selectors.grid_data_rows)

    if not rows:
        fallback = soup.select(selectors.grid_fallback_rows)
        if fallback:
            first_table = fallback[0].find_parent("table")
            rows = [row for row in fallback if row.find_parent("table") is first_table]

    return [
        [cell.get_text(" ", strip=True) for cell in row.find_all("td")]
        for row in rows
    ]


def extract_rows_from_html(
    html: str,
    *,
    source_url: str = "",
    page_number: Optional[int] = None,
    selectors: SeaceSelectors = SEACE_SELECTORS,
) -> PageExtraction:
    """Parse a rendered grid page and return its validated rows."""

    cells = read_grid_cells(html, selectors=selectors)
    extraction = extract_rows(cells, source_url=source_url, page_number=page_number)
    _scraper_event(
        "extract",
        step="page_parsed",
        page=page_number,
        **extraction.stats.as_dict(),
    )
    return extraction


__all__ = [
    "ExtractionStats",
    "PageExtraction",
    "rejection_reason",
    "row_from_cells",
    "extract_rows",
    "read_grid_cells",
    "extract_rows_from_html",
]
