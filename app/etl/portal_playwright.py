"""Playwright adapter for the SEACE public search portal (default driver)."""
from __future__ import annotations

from typing import Optional

from playwright.sync_api import (
    Browser,
    BrowserContext,
    Error as PWError,
    Page,
    Playwright,
    TimeoutError as PWTimeout,
    sync_playwright,
)

from . import config
from .logging_utils import _scraper_event
from .models import SearchRequest
from .portal import PortalTimeoutError, SearchPortal, parse_paginator_text, plan_filters
from .row_extractor import PageExtraction, extract_rows_from_html
from .selectors_seace import SEACE_SELECTORS, SeaceSelectors
from .utils import log_line

_BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--window-size=1920,1080",
]

# Evaluated in the page: paginator label plus the first data row, so a page
# change is detected even when the paginator text is missing.
_SIGNATURE_JS = """
([paginatorSel, rowSel]) => {
    const pag = document.querySelector(paginatorSel);
    const row = document.querySelector(rowSel);
    return (pag ? pag.textContent.trim() : '') + '|' + (row ? row.textContent.trim() : '');
}
"""

_SIGNATURE_CHANGED_JS = """
([paginatorSel, rowSel, before]) => {
    const pag = document.querySelector(paginatorSel);
    const row = document.querySelector(rowSel);
    const now = (pag ? pag.textContent.trim() : '') + '|' + (row ? row.textContent.trim() : '');
    return now !== before;
}
"""


def wait_seconds(page: Optional[Page], seconds: float) -> None:
    """Wait safely for ``seconds`` only if *page* remains open."""

    if page is None:
        return

    if seconds is None or seconds <= 0:
        return

    if not page.is_closed():
        page.wait_for_timeout(int(seconds * 1000))


class PlaywrightSeacePortal(SearchPortal):
    name = "playwright"

    def __init__(
        self,
        *,
        portal_url: str | None = None,
        headless: bool | None = None,
        selectors: SeaceSelectors = SEACE_SELECTORS,
    ) -> None:
        super().__init__()
        self.portal_url = portal_url or config.PORTAL_URL
        self.headless = config.HEADLESS if headless is None else headless
        self.selectors = selectors
        self._pw: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def _open(self) -> None:
        self._pw = sync_playwright().start()
        self._browser = self._pw.chromium.launch(headless=self.headless, args=_BROWSER_ARGS)
        self._context = self._browser.new_context(
            viewport={"width": 1920, "height": 1080},
            user_agent=config.COMMON_HEADERS["User-Agent"],
            locale="es-PE",
        )
        self.page = self._context.new_page()
        self.page.set_default_timeout(config.NAV_TIMEOUT_SECONDS * 1000)

        _scraper_event("nav", step="goto", label="search_form", url=self.portal_url)
        try:
            self.page.goto(
                self.portal_url,
                wait_until="networkidle",
                timeout=config.NAV_TIMEOUT_SECONDS * 1000,
            )
        except PWTimeout as exc:
            raise PortalTimeoutError(
                f"Navigation to search form timed out after {config.NAV_TIMEOUT_SECONDS}s: {exc}"
            ) from exc
        log_line(f"[PORTAL] Search form loaded from {self.portal_url}")

    def _close(self) -> None:
        for label, closer in (
            ("context", self._context),
            ("browser", self._browser),
        ):
            if closer is None:
                continue
            try:
                closer.close()
            except PWError as exc:
                log_line(f"[PORTAL] Ignoring {label} close error: {exc}")
        if self._pw is not None:
            try:
                self._pw.stop()
            except PWError as exc:
                log_line(f"[PORTAL] Ignoring playwright stop error: {exc}")
        self.page = None
        self._context = None
        self._browser = None
        self._pw = None

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def _select_search_tab(self) -> bool:
        page = self.page
        try:
            tab = page.locator(self.selectors.search_tabs).filter(
                has_text=self.selectors.search_tab_label
            ).first
            if not tab.count():
                log_line("[PORTAL] Search tab not found; assuming it is already active.")
                return False
            tab.click(timeout=config.CLICK_TIMEOUT_MS)
            wait_seconds(page, config.FILTER_SETTLE_SECONDS)
            return True
        except PWError as exc:
            log_line(f"[PORTAL] Could not select search tab: {exc}")
            return False

    def _select_object_type(self, label_text: Optional[str]) -> bool:
        if not label_text:
            return False
        page = self.page
        try:
            label = page.locator(self.selectors.object_type_label).first
            if not label.count():
                log_line("[PORTAL] Object type menu not found; skipping filter.")
                return False
            label_id = label.get_attribute("id") or ""
            container = label.locator("xpath=ancestor::div[contains(@class,'ui-selectonemenu')][1]")
            container.locator(self.selectors.object_type_trigger).first.click(
                timeout=config.CLICK_TIMEOUT_MS
            )
            wait_seconds(page, 0.8)

            option_selector = f"li[data-label='{label_text}']"
            option = page.locator(
                f"{self.selectors.by_id(label_id.replace('_label', '_panel'))} {option_selector}"
            )
            if not option.count():
                option = page.locator(self.selectors.object_type_open_panel).first.locator(
                    option_selector
                )
            if not option.count():
                log_line(f"[PORTAL] Object type option {label_text!r} not found; skipping filter.")
                return False
            option.first.click(timeout=config.CLICK_TIMEOUT_MS)
            wait_seconds(page, config.FILTER_SETTLE_SECONDS)
            return True
        except PWError as exc:
            log_line(f"[PORTAL] Could not select object type {label_text!r}: {exc}")
            return False

    def _select_year(self, year: str) -> bool:
        try:
            select = self.page.locator(self.selectors.by_id(self.selectors.year_select))
            if not select.count():
                log_line("[PORTAL] Year select not found; skipping filter.")
                return False
            select.first.select_option(value=year, timeout=config.CLICK_TIMEOUT_MS)
            wait_seconds(self.page, config.FILTER_SETTLE_SECONDS)
            return True
        except PWError as exc:
            log_line(f"[PORTAL] Could not select year {year!r}: {exc}")
            return False

    def _type_into(self, element_id: str, value: str, *, label: str) -> bool:
        try:
            field = self.page.locator(self.selectors.by_id(element_id))
            if not field.count():
                log_line(f"[PORTAL] {label} input not found; skipping.")
                return False
            target = field.first
            target.scroll_into_view_if_needed(timeout=config.CLICK_TIMEOUT_MS)
            target.click(timeout=config.CLICK_TIMEOUT_MS)
            target.press("Control+A")
            target.press("Backspace")
            target.press_sequentially(value, delay=100)
            wait_seconds(self.page, config.FILTER_SETTLE_SECONDS)
            return True
        except PWError as exc:
            log_line(f"[PORTAL] Could not fill {label}: {exc}")
            return False

    def _configure(self, request: SearchRequest) -> None:
        plan = plan_filters(request)
        self._select_search_tab()
        applied = {
            "object_type": self._select_object_type(plan.object_type_label),
            "year": self._select_year(plan.year),
            "date_from": self._type_into(
                self.selectors.date_from_input, plan.date_from, label="Publication date from"
            ),
            "date_to": self._type_into(
                self.selectors.date_to_input, plan.date_to, label="Publication date to"
            ),
            "description": (
                self._type_into(self.selectors.description_input, plan.description, label="Description")
                if plan.description
                else False
            ),
        }

        _scraper_event(
            "portal",
            step="filters_applied",
            adapter=self.name,
            applied=applied,
            date_from=plan.date_from,
            date_to=plan.date_to,
            unsupported={"entity": request.entity, "process_type": request.process_type},
        )

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def _submit(self) -> None:
        page = self.page
        button = page.locator(self.selectors.by_id(self.selectors.search_button))
        if button.count():
            try:
                button.first.click(timeout=config.CLICK_TIMEOUT_MS)
            except PWError as exc:
                log_line(f"[PORTAL] Direct click on search failed ({exc}); using DOM click.")
                button.first.evaluate("el => el.click()")
        else:
            log_line("[PORTAL] Search button not found; waiting for results anyway.")

        try:
            page.wait_for_selector(
                self.selectors.grid_rows,
                timeout=config.RESULTS_TIMEOUT_SECONDS * 1000,
            )
        except PWTimeout as exc:
            raise PortalTimeoutError(
                f"Results grid did not load within {config.RESULTS_TIMEOUT_SECONDS}s: {exc}"
            ) from exc
        wait_seconds(page, config.FILTER_SETTLE_SECONDS)
        log_line("[PORTAL] Results grid loaded.")

    def _signature(self) -> str:
        return self.page.evaluate(
            _SIGNATURE_JS,
            [self.selectors.paginator_current, self.selectors.grid_data_rows],
        )

    def _has_next_page(self) -> bool:
        enabled = self.page.locator(self.selectors.paginator_next_enabled).count() > 0
        paginator = self.page.locator(self.selectors.paginator_current)
        text = paginator.first.text_content() if paginator.count() else ""
        current, total = parse_paginator_text(text)
        _scraper_event(
            "paginate",
            step="has_next",
            current=current,
            total=total,
            has_next=enabled,
        )
        return enabled

    def _next_page(self) -> bool:
        page = self.page
        before = self._signature()
        page.locator(self.selectors.paginator_next_enabled).first.click(
            timeout=config.CLICK_TIMEOUT_MS
        )

        changed = True
        try:
            page.wait_for_function(
                _SIGNATURE_CHANGED_JS,
                arg=[self.selectors.paginator_current, self.selectors.grid_data_rows, before],
                timeout=config.NEXT_PAGE_TIMEOUT_SECONDS * 1000,
            )
        except PWTimeout:
            changed = False
            log_line("[PORTAL] Paginator signature did not change; continuing.")

        try:
            page.wait_for_selector(
                self.selectors.grid_data_rows,
                timeout=config.GRID_ROWS_TIMEOUT_SECONDS * 1000,
            )
        except PWTimeout:
            log_line("[PORTAL] No grid rows after page change; extractor will soft-stop.")
        return changed

    def _extract_page(self) -> PageExtraction:
        return extract_rows_from_html(
            self.page.content(),
            source_url=self.page.url,
            page_number=self.page_number,
            selectors=self.selectors,
        )


__all__ = ["PlaywrightSeacePortal", "wait_seconds"]
