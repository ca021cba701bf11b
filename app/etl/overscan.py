from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from . import config


def compute_extraction_limit(target_new: Optional[int], factor: Optional[float] = None) -> Optional[int]:
    """Return how many raw rows to pull to land ``target_new`` new records.

    ``None`` (or a non-positive target) means "no limit": crawl until the
    portal runs out of pages.
    """

    if not target_new or target_new <= 0:
        return None
    effective = config.OVERSCAN_FACTOR if factor is None else factor
    if effective <= 0:
        raise ValueError("overscan factor must be greater than zero")
    return int(math.ceil(target_new * effective))


@dataclass(frozen=True)
class OverscanController:
    """Decides whether the crawl loop should request another page."""

    target_new: Optional[int]
    factor: float

    @classmethod
    def for_request(cls, target_new: Optional[int], factor: Optional[float] = None) -> "OverscanController":
        return cls(
            target_new=target_new,
            factor=config.OVERSCAN_FACTOR if factor is None else factor,
        )

    @property
    def extraction_limit(self) -> Optional[int]:
        return compute_extraction_limit(self.target_new, self.factor)

    def limit_reached(self, accumulated: int) -> bool:
        limit = self.extraction_limit
        return limit is not None and accumulated >= limit

    def should_continue(self, accumulated: int, has_next_page: bool) -> bool:
        return has_next_page and not self.limit_reached(accumulated)

    def progress_total(self) -> Optional[int]:
        """Denominator used for scrape-phase progress."""

        return self.extraction_limit or self.target_new


__all__ = ["compute_extraction_limit", "OverscanController"]
