"""Value types flowing through a crawl-and-ingest run."""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import date
from decimal import Decimal
from typing import Any, Mapping, Optional, Tuple

from . import config

_PAYLOAD_ALIASES: dict[str, Tuple[str, ...]] = {
    "keywords": ("keywords", "keyword", "palabraClave", "descripcion"),
    "object_type": ("object_type", "objetoContratacion", "objeto"),
    "year": ("year", "anio"),
    "date_from": ("date_from", "fechaDesde"),
    "date_to": ("date_to", "fechaHasta"),
    "entity": ("entity", "entidad"),
    "process_type": ("process_type", "tipoProceso"),
    "target_new": ("target_new", "maxProcesses", "max_processes"),
    "overscan_factor": ("overscan_factor", "overscanFactor"),
}


def _pick(payload: Mapping[str, Any], key: str) -> Any:
    for alias in _PAYLOAD_ALIASES[key]:
        value = payload.get(alias)
        if value is not None and value != "":
            return value
    return None


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class SearchRequest:
    """Caller-supplied search filters. Immutable once a run starts."""

    keywords: Tuple[str, ...] = ()
    object_type: Optional[str] = None
    year: str = field(default_factory=lambda: str(date.today().year))
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    entity: Optional[str] = None
    process_type: Optional[str] = None
    target_new: Optional[int] = None
    overscan_factor: Optional[float] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> "SearchRequest":
        """Build a request from an API/CLI payload.

        Raises ``ValueError`` when ``target_new``, ``year`` or
        ``overscan_factor`` cannot be interpreted.
        """

        payload = payload or {}

        raw_keywords = _pick(payload, "keywords")
        if isinstance(raw_keywords, (list, tuple)):
            keywords = tuple(k for k in (_clean_text(v) for v in raw_keywords) if k)
        elif raw_keywords is not None:
            keywords = tuple(
                k for k in (_clean_text(v) for v in str(raw_keywords).split(",")) if k
            )
        else:
            keywords = ()

        object_type = _clean_text(_pick(payload, "object_type"))
        if object_type is not None:
            object_type = object_type.lower()
            if object_type not in config.OBJECT_TYPE_LABELS:
                raise ValueError(
                    f"object_type must be one of {sorted(config.OBJECT_TYPE_LABELS)}"
                )

        year_raw = _clean_text(_pick(payload, "year")) or str(date.today().year)
        if not (len(year_raw) == 4 and year_raw.isdigit()):
            raise ValueError("year must be a four-digit year")

        target_raw = _pick(payload, "target_new")
        target_new: Optional[int] = None
        if target_raw is not None:
            try:
                target_new = int(target_raw)
            except (TypeError, ValueError):
                raise ValueError("target_new must be an integer") from None
            if target_new < 1:
                raise ValueError("target_new must be at least 1")
            if target_new > config.MAX_TARGET_NEW:
                raise ValueError(f"target_new must not exceed {config.MAX_TARGET_NEW}")

        factor_raw = _pick(payload, "overscan_factor")
        overscan_factor: Optional[float] = None
        if factor_raw is not None:
            try:
                overscan_factor = float(factor_raw)
            except (TypeError, ValueError):
                raise ValueError("overscan_factor must be a number") from None
            if overscan_factor <= 0:
                raise ValueError("overscan_factor must be greater than zero")

        return cls(
            keywords=keywords,
            object_type=object_type,
            year=year_raw,
            date_from=_clean_text(_pick(payload, "date_from")),
            date_to=_clean_text(_pick(payload, "date_to")),
            entity=_clean_text(_pick(payload, "entity")),
            process_type=_clean_text(_pick(payload, "process_type")),
            target_new=target_new,
            overscan_factor=overscan_factor,
        )

    @property
    def description_query(self) -> Optional[str]:
        """Free-text value typed into the portal's description filter."""

        return " ".join(self.keywords) or None

    def to_params(self) -> dict[str, Any]:
        params = asdict(self)
        params["keywords"] = list(self.keywords)
        return params

    def to_json(self) -> str:
        return json.dumps(self.to_params(), ensure_ascii=False, sort_keys=True)


@dataclass(frozen=True)
class RawRow:
    """Positional cell values read from one rendered result row."""

    ordinal: str
    entity_name: str
    published_at: str
    nomenclature: str
    restarted_from: str
    object_type: str
    description: str
    snip_code: str = ""
    investment_code: str = ""
    amount_text: str = ""
    currency: str = ""
    portal_version: str = ""
    source_url: str = ""
    page_number: Optional[int] = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class NormalizedRecord:
    natural_key: str
    nomenclature: Optional[str]
    entity_name: str
    published_at: Optional[str]
    restarted_from: Optional[str]
    object_type: Optional[str]
    description: Optional[str]
    snip_code: Optional[str]
    investment_code: Optional[str]
    amount: Optional[Decimal]
    currency: str
    portal_version: str
    source_url: Optional[str]
    page_number: Optional[int] = None
    status: str = config.DEFAULT_RECORD_STATUS
    scraped_at: Optional[str] = None

    def copy(self, **changes: Any) -> "NormalizedRecord":
        return replace(self, **changes)

    def canonical_fields(self) -> dict[str, Any]:
        """Return the fields exposed to downstream collaborators."""

        return {f.name: getattr(self, f.name) for f in fields(self)}

    def as_db_params(self) -> dict[str, Any]:
        params = self.canonical_fields()
        params["amount"] = str(self.amount) if self.amount is not None else None
        return params


__all__ = ["SearchRequest", "RawRow", "NormalizedRecord"]
