"""Selenium adapter for the SEACE public search portal.

Selected with ``SEACE_PORTAL_DRIVER=selenium`` for hosts where only a system
Chromium plus chromedriver is available.
"""
from __future__ import annotations

import time
from typing import Optional

from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.common.by import By
from selenium.webdriver.common.keys import Keys
from selenium.webdriver.remote.webdriver import WebDriver
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import Select, WebDriverWait

from . import config
from .logging_utils import _scraper_event
from .models import SearchRequest
from .portal import PortalTimeoutError, SearchPortal, parse_paginator_text, plan_filters
from .row_extractor import PageExtraction, extract_rows_from_html
from .selectors_seace import SEACE_SELECTORS, SeaceSelectors
from .utils import ensure_dirs, log_line


def make_driver(headless: bool | None = None) -> WebDriver:
    """Instantiate a headless Chrome WebDriver instance."""
    ensure_dirs()
    chrome_options = Options()
    chrome_options.binary_location = config.CHROME_BIN
    if config.HEADLESS if headless is None else headless:
        chrome_options.add_argument("--headless=new")
    chrome_options.add_argument("--disable-gpu")
    chrome_options.add_argument("--no-sandbox")
    chrome_options.add_argument("--disable-dev-shm-usage")
    chrome_options.add_argument("--window-size=1920,1080")
    chrome_options.add_argument(f"--user-agent={config.COMMON_HEADERS['User-Agent']}")
    driver = webdriver.Chrome(options=chrome_options)
    driver.set_page_load_timeout(config.NAV_TIMEOUT_SECONDS)
    return driver


class SeleniumSeacePortal(SearchPortal):
    name = "selenium"

    def __init__(
        self,
        *,
        portal_url: str | None = None,
        headless: bool | None = None,
        selectors: SeaceSelectors = SEACE_SELECTORS,
    ) -> None:
        super().__init__()
        self.portal_url = portal_url or config.PORTAL_URL
        self.headless = headless
        self.selectors = selectors
        self.driver: Optional[WebDriver] = None

    def _open(self) -> None:
        self.driver = make_driver(self.headless)
        _scraper_event("nav", step="goto", label="search_form", url=self.portal_url)
        try:
            self.driver.get(self.portal_url)
        except TimeoutException as exc:
            raise PortalTimeoutError(
                f"Navigation to search form timed out after {config.NAV_TIMEOUT_SECONDS}s"
            ) from exc
        log_line(f"[PORTAL] Search form loaded from {self.portal_url}")

    def _close(self) -> None:
        if self.driver is not None:
            try:
                self.driver.quit()
            except WebDriverException as exc:
                log_line(f"[PORTAL] Ignoring driver quit error: {exc}")
        self.driver = None

    def _find(self, css: str):
        elements = self.driver.find_elements(By.CSS_SELECTOR, css)
        return elements[0] if elements else None

    def _select_search_tab(self) -> bool:
        try:
            for tab in self.driver.find_elements(By.CSS_SELECTOR, self.selectors.search_tabs):
                if self.selectors.search_tab_label in (tab.text or ""):
                    self.driver.execute_script("arguments[0].click();", tab)
                    time.sleep(config.FILTER_SETTLE_SECONDS)
                    return True
            log_line("[PORTAL] Search tab not found; assuming it is already active.")
        except WebDriverException as exc:
            log_line(f"[PORTAL] Could not select search tab: {exc}")
        return False

    def _select_object_type(self, label_text: Optional[str]) -> bool:
        if not label_text:
            return False
        try:
            label = self._find(self.selectors.object_type_label)
            if label is None:
                log_line("[PORTAL] Object type menu not found; skipping filter.")
                return False
            label_id = label.get_attribute("id") or ""
            container = label.find_element(
                By.XPATH, "ancestor::div[contains(@class,'ui-selectonemenu')][1]"
            )
            trigger = container.find_element(By.CSS_SELECTOR, self.selectors.object_type_trigger)
            self.driver.execute_script("arguments[0].click();", trigger)
            time.sleep(0.8)

            option_selector = f"li[data-label='{label_text}']"
            option = self._find(
                f"{self.selectors.by_id(label_id.replace('_label', '_panel'))} {option_selector}"
            ) or self._find(f"{self.selectors.object_type_open_panel} {option_selector}")
            if option is None:
                log_line(f"[PORTAL] Object type option {label_text!r} not found; skipping filter.")
                return False
            self.driver.execute_script("arguments[0].click();", option)
            time.sleep(config.FILTER_SETTLE_SECONDS)
            return True
        except WebDriverException as exc:
            log_line(f"[PORTAL] Could not select object type {label_text!r}: {exc}")
            return False

    def _select_year(self, year: str) -> bool:
        try:
            element = self._find(self.selectors.by_id(self.selectors.year_select))
            if element is None:
                log_line("[PORTAL] Year select not found; skipping filter.")
                return False
            Select(element).select_by_value(year)
            time.sleep(config.FILTER_SETTLE_SECONDS)
            return True
        except WebDriverException as exc:
            log_line(f"[PORTAL] Could not select year {year!r}: {exc}")
            return False

    def _type_into(self, element_id: str, value: str, *, label: str) -> bool:
        try:
            element = self._find(self.selectors.by_id(element_id))
            if element is None:
                log_line(f"[PORTAL] {label} input not found; skipping.")
                return False
            self.driver.execute_script("arguments[0].scrollIntoView(true);", element)
            element.click()
            element.send_keys(Keys.CONTROL, "a")
            element.send_keys(Keys.BACKSPACE)
            element.send_keys(value)
            time.sleep(config.FILTER_SETTLE_SECONDS)
            return True
        except WebDriverException as exc:
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

    def _submit(self) -> None:
        button = self._find(self.selectors.by_id(self.selectors.search_button))
        if button is not None:
            self.driver.execute_script("arguments[0].click();", button)
        else:
            log_line("[PORTAL] Search button not found; waiting for results anyway.")

        try:
            WebDriverWait(self.driver, config.RESULTS_TIMEOUT_SECONDS).until(
                EC.presence_of_element_located((By.CSS_SELECTOR, self.selectors.grid_rows))
            )
        except TimeoutException as exc:
            raise PortalTimeoutError(
                f"Results grid did not load within {config.RESULTS_TIMEOUT_SECONDS}s"
            ) from exc
        time.sleep(config.FILTER_SETTLE_SECONDS)
        log_line("[PORTAL] Results grid loaded.")

    def _signature(self) -> str:
        paginator = self._find(self.selectors.paginator_current)
        row = self._find(self.selectors.grid_data_rows)
        return f"{paginator.text if paginator else ''}|{row.text if row else ''}"

    def _has_next_page(self) -> bool:
        enabled = self._find(self.selectors.paginator_next_enabled) is not None
        paginator = self._find(self.selectors.paginator_current)
        current, total = parse_paginator_text(paginator.text if paginator else "")
        _scraper_event(
            "paginate",
            step="has_next",
            current=current,
            total=total,
            has_next=enabled,
        )
        return enabled

    def _next_page(self) -> bool:
        before = self._signature()
        button = self._find(self.selectors.paginator_next_enabled)
        if button is None:
            return False
        self.driver.execute_script("arguments[0].click();", button)

        changed = True
        try:
            WebDriverWait(self.driver, config.NEXT_PAGE_TIMEOUT_SECONDS).until(
                lambda _driver: self._signature() != before
            )
        except TimeoutException:
            changed = False
            log_line("[PORTAL] Paginator signature did not change; continuing.")

        try:
            WebDriverWait(self.driver, config.GRID_ROWS_TIMEOUT_SECONDS).until(
                EC.presence_of_element_located((By.CSS_SELECTOR, self.selectors.grid_data_rows))
            )
        except TimeoutException:
            log_line("[PORTAL] No grid rows after page change; extractor will soft-stop.")
        return changed

    def _extract_page(self) -> PageExtraction:
        return extract_rows_from_html(
            self.driver.page_source,
            source_url=self.driver.current_url,
            page_number=self.page_number,
            selectors=self.selectors,
        )


__all__ = ["SeleniumSeacePortal", "make_driver"]
