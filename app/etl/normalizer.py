"""Convert raw portal strings into canonical record fields.

Every function here is pure and idempotent: feeding a canonical value back in
returns it unchanged.
"""
from __future__ import annotations

import hashlib
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from . import config
from .date_utils import parse_publication_date, utc_now_iso
from .models import NormalizedRecord, RawRow

AMOUNT_SENTINELS = frozenset({"", "---", "--", "-", "n/a", "na", "s/n"})
_CENTS = Decimal("0.01")
_CURRENCY_MARKERS = re.compile(r"(?:S/\.?|US\$|\$|€|\bPEN\b|\bUSD\b|\bEUR\b)", re.IGNORECASE)
_NUMERIC = re.compile(r"^-?\d+(?:\.\d+)?$")


def _quantize(value: Decimal) -> Optional[Decimal]:
    if not value.is_finite():
        return None
    return value.quantize(_CENTS, rounding=ROUND_HALF_UP)


def _resolve_separators(text: str) -> str:
    """Rewrite *text* so that ``.`` is the only (decimal) separator."""

    has_dot = "." in text
    has_comma = "," in text

    if has_dot and has_comma:
        # Whichever separator comes last is the decimal point.
        if text.rfind(",") > text.rfind("."):
            return text.replace(".", "").replace(",", ".")
        return text.replace(",", "")

    if has_dot:
        if text.count(".") > 1:
            return text.replace(".", "")
        return text

    if has_comma:
        if text.count(",") > 1:
            return text.replace(",", "")
        return text.replace(",", ".")

    return text


def parse_amount(value: Any) -> Optional[Decimal]:
    """Parse a locale-ambiguous amount into a two-place ``Decimal``.

    >>> parse_amount("1.799.411,00")
    Decimal('1799411.00')
    >>> parse_amount("---") is None
    True
    """

    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, Decimal):
        return _quantize(value)
    if isinstance(value, int):
        return _quantize(Decimal(value))
    if isinstance(value, float):
        return _quantize(Decimal(str(value)))

    text = str(value).strip()
    if text.lower() in AMOUNT_SENTINELS:
        return None

    text = _CURRENCY_MARKERS.sub("", text)
    text = re.sub(r"\s+", "", text.replace("\xa0", ""))
    if text.lower() in AMOUNT_SENTINELS:
        return None

    text = _resolve_separators(text)
    if not _NUMERIC.match(text):
        return None

    try:
        return _quantize(Decimal(text))
    except InvalidOperation:
        return None


def clean_text(value: Any) -> Optional[str]:
    """Collapse whitespace and coerce empty strings to ``None``."""

    if value is None:
        return None
    text = " ".join(str(value).split())
    return text or None


def fallback_natural_key(entity_name: Optional[str], published_at: Optional[str], description: Optional[str]) -> str:
    """Return a stable key for rows that carry no nomenclature.

    Derived from the row content so the same logical record maps to the same
    key on every run.
    """

    source = "|".join(
        (clean_text(part) or "").lower()
        for part in (entity_name, published_at, description)
    )
    digest = hashlib.sha1(source.encode("utf-8")).hexdigest()[:16].upper()
    return f"PROC-{digest}"


def normalize_row(raw: RawRow, *, scraped_at: Optional[str] = None) -> NormalizedRecord:
    """Turn a validated :class:`RawRow` into a :class:`NormalizedRecord`."""

    entity_name = clean_text(raw.entity_name) or config.DEFAULT_ENTITY
    published_at = parse_publication_date(raw.published_at)
    description = clean_text(raw.description)
    nomenclature = clean_text(raw.nomenclature)

    natural_key = nomenclature or fallback_natural_key(
        entity_name, published_at or clean_text(raw.published_at), description
    )

    return NormalizedRecord(
        natural_key=natural_key,
        nomenclature=nomenclature,
        entity_name=entity_name,
        published_at=published_at,
        restarted_from=clean_text(raw.restarted_from),
        object_type=clean_text(raw.object_type),
        description=description,
        snip_code=clean_text(raw.snip_code),
        investment_code=clean_text(raw.investment_code),
        amount=parse_amount(raw.amount_text),
        currency=clean_text(raw.currency) or config.DEFAULT_CURRENCY,
        portal_version=clean_text(raw.portal_version) or config.DEFAULT_PORTAL_VERSION,
        source_url=clean_text(raw.source_url),
        page_number=raw.page_number,
        scraped_at=scraped_at or utc_now_iso(),
    )


def normalize_record(record: NormalizedRecord) -> NormalizedRecord:
    """Re-apply normalisation to an existing record; a no-op on canonical input."""

    return record.copy(
        nomenclature=clean_text(record.nomenclature),
        entity_name=clean_text(record.entity_name) or config.DEFAULT_ENTITY,
        published_at=parse_publication_date(record.published_at),
        restarted_from=clean_text(record.restarted_from),
        object_type=clean_text(record.object_type),
        description=clean_text(record.description),
        snip_code=clean_text(record.snip_code),
        investment_code=clean_text(record.investment_code),
        amount=parse_amount(record.amount),
        currency=clean_text(record.currency) or config.DEFAULT_CURRENCY,
        portal_version=clean_text(record.portal_version) or config.DEFAULT_PORTAL_VERSION,
        source_url=clean_text(record.source_url),
    )


__all__ = [
    "AMOUNT_SENTINELS",
    "parse_amount",
    "clean_text",
    "fallback_natural_key",
    "normalize_row",
    "normalize_record",
]
