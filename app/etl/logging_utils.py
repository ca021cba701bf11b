from __future__ import annotations

from decimal import Decimal
from typing import Any

from .utils import log_line

# Key lists (inserted/skipped natural keys) can run to hundreds of entries.
EVENT_MAX_ITEMS = 10


def _format_value(value: Any) -> str:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (list, tuple, set, frozenset)) and len(value) > EVENT_MAX_ITEMS:
        items = sorted(value) if isinstance(value, (set, frozenset)) else list(value)
        head = ", ".join(repr(item) for item in items[:EVENT_MAX_ITEMS])
        return f"[{head}, ...(+{len(items) - EVENT_MAX_ITEMS} more)]"
    return repr(value)


def _scraper_event(label: str = "", *, phase: str | None = None, **fields: Any) -> None:
    """Emit a ``[SCRAPER][LABEL] k=v`` line for the pipeline log.

    ``phase`` becomes the label when none is given, otherwise it is logged as
    a field.
    """

    try:
        if phase and label:
            fields.setdefault("phase", phase)
        tag = (label or phase or "event").upper()
        payload = ", ".join(f"{key}={_format_value(fields[key])}" for key in sorted(fields))
        log_line(f"[SCRAPER][{tag}] {payload}")
    except Exception:  # noqa: BLE001
        return


__all__ = ["EVENT_MAX_ITEMS", "_scraper_event"]
