"""Configuration constants for the SEACE crawl-and-ingest pipeline."""
from __future__ import annotations

import os
from pathlib import Path

DATA_DIR: Path = Path(os.getenv("SEACE_DATA_DIR", "/app/data"))
LOG_DIR: Path = DATA_DIR / "logs"
LOG_FILE: Path = LOG_DIR / "latest.log"
EXPORTS_DIR: Path = LOG_DIR / "scraping-exports"
DB_PATH: Path = DATA_DIR / "seace_etl.db"

PORTAL_URL: str = os.getenv(
    "SEACE_PORTAL_URL",
    "https://prodapp2.seace.gob.pe/seacebus-uiwd-pub/buscadorPublico/buscadorPublico.xhtml",
)
# "playwright" (default) or "selenium".
PORTAL_DRIVER: str = os.getenv("SEACE_PORTAL_DRIVER", "playwright").strip().lower() or "playwright"
HEADLESS: bool = os.getenv("SEACE_HEADLESS", "true").strip().lower() not in {"0", "false"}
CHROME_BIN: str = os.getenv("SEACE_CHROME_BIN", "/usr/bin/chromium")

MIN_FREE_MB: int = int(os.getenv("MIN_FREE_MB", "100"))


def _parse_timeout_seconds(env_var: str, default: int, *, minimum: int = 1) -> int:
    """Parse a timeout value in seconds from the environment with bounds."""

    try:
        value = int(os.getenv(env_var, str(default)))
    except ValueError:
        return default
    return max(minimum, value)


def _parse_float(env_var: str, default: float) -> float:
    """Parse a float from the environment, falling back to ``default``."""

    try:
        return float(os.getenv(env_var, str(default)))
    except ValueError:
        return default


# Portal timeouts (seconds)
# Initial navigation to the search form.
NAV_TIMEOUT_SECONDS: int = _parse_timeout_seconds("SEACE_NAV_TIMEOUT_SECONDS", 90)
# Results grid materialising after the search button is clicked.
RESULTS_TIMEOUT_SECONDS: int = _parse_timeout_seconds("SEACE_RESULTS_TIMEOUT_SECONDS", 90)
# Paginator signature change after clicking "next".
NEXT_PAGE_TIMEOUT_SECONDS: int = _parse_timeout_seconds("SEACE_NEXT_PAGE_TIMEOUT_SECONDS", 10)
# Grid rows reappearing once the page changed.
GRID_ROWS_TIMEOUT_SECONDS: int = _parse_timeout_seconds("SEACE_GRID_ROWS_TIMEOUT_SECONDS", 30)
# Click-level timeout remains in milliseconds to match Playwright API expectations.
CLICK_TIMEOUT_MS: int = int(os.getenv("SEACE_CLICK_TIMEOUT_MS", "5000"))

# Short sleeps (seconds) between filter steps and between pages.
FILTER_SETTLE_SECONDS: float = _parse_float("SEACE_FILTER_SETTLE_SECONDS", 0.5)
PAGE_SETTLE_SECONDS: float = _parse_float("SEACE_PAGE_SETTLE_SECONDS", 1.0)

# Overscan: raw rows pulled per requested new record.
OVERSCAN_FACTOR: float = _parse_float("SEACE_OVERSCAN_FACTOR", 2.5)
# Progress writes happen every N records during both phases.
PROGRESS_EVERY: int = int(os.getenv("SEACE_PROGRESS_EVERY", "5"))
# Upper bound accepted for target_new from API callers.
MAX_TARGET_NEW: int = int(os.getenv("SEACE_MAX_TARGET_NEW", "1000"))

# Row validation
MIN_ROW_CELLS: int = 7
MIN_DESCRIPTION_LENGTH: int = 10
HEADER_LABELS: frozenset[str] = frozenset({"nombre o sigla de la entidad", "entidad"})

# Defaults applied during normalisation
DEFAULT_CURRENCY: str = "Soles"
DEFAULT_PORTAL_VERSION: str = "3"
DEFAULT_ENTITY: str = "Entidad Desconocida"
DEFAULT_RECORD_STATUS: str = "Publicado"

OBJECT_TYPE_LABELS: dict[str, str] = {
    "bien": "Bien",
    "consultoria": "Consultoría de Obra",
    "obra": "Obra",
    "servicio": "Servicio",
}

COMMON_HEADERS: dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,*/*",
    "Accept-Language": "es-PE,es;q=0.9,en;q=0.8",
}


def export_formats() -> tuple[str, ...]:
    """Return the export artifact formats enabled via ``SEACE_EXPORT_FORMATS``."""

    raw = os.getenv("SEACE_EXPORT_FORMATS", "json,csv,xlsx,txt")
    formats = tuple(part.strip().lower() for part in raw.split(",") if part.strip())
    return formats or ("json",)


# Healthcheck reachability probe for the portal host.
HEALTH_PROBE_PORTAL: bool = os.getenv("SEACE_HEALTH_PROBE_PORTAL", "true").strip().lower() not in {
    "0",
    "false",
}
HEALTH_PROBE_TIMEOUT_SECONDS: int = _parse_timeout_seconds("SEACE_HEALTH_PROBE_TIMEOUT_SECONDS", 10)

SUPPORTED_DRIVERS: frozenset[str] = frozenset({"playwright", "selenium"})
