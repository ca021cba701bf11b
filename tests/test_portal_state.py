import pytest

from app.etl import config
from app.etl.models import SearchRequest
from app.etl.portal import (
    PortalState,
    PortalStateError,
    PortalTimeoutError,
    parse_paginator_text,
    plan_filters,
)
from tests.test_crawler import FakePortal, make_pages


def test_parse_paginator_text() -> None:
    assert parse_paginator_text("Página: 2/7") == (2, 7)
    assert parse_paginator_text("Pagina: 10 / 12") == (10, 12)
    assert parse_paginator_text("") == (1, 1)
    assert parse_paginator_text(None) == (1, 1)


def test_plan_filters_maps_labels_and_defaults_dates() -> None:
    plan = plan_filters(
        SearchRequest(keywords=("agua", "potable"), object_type="consultoria", year="2023")
    )

    assert plan.object_type_label == config.OBJECT_TYPE_LABELS["consultoria"]
    assert plan.date_from == "01/01/2023"
    assert plan.date_to == "31/12/2023"
    assert plan.description == "agua potable"

    dated = plan_filters(SearchRequest(year="2024", date_from="2024-02-01", date_to="15/02/2024"))
    assert dated.date_from == "01/02/2024"
    assert dated.date_to == "15/02/2024"
    assert dated.object_type_label is None
    assert dated.description is None


def test_portal_walks_the_happy_path_states() -> None:
    portal = FakePortal(make_pages(20, per_page=10))
    assert portal.state is PortalState.UNINITIALIZED

    portal.open()
    assert portal.state is PortalState.SESSION_OPEN
    portal.configure(SearchRequest(year="2024"))
    assert portal.state is PortalState.FILTERS_CONFIGURED
    portal.submit()
    assert portal.state is PortalState.RESULTS_LOADED
    assert portal.page_number == 1

    assert len(portal.extract_page().rows) == 10
    assert portal.state is PortalState.PAGINATING
    assert portal.has_next_page() is True
    assert portal.next_page() is True
    assert portal.page_number == 2
    assert portal.has_next_page() is False

    portal.close()
    portal.close()
    assert portal.state is PortalState.CLOSED
    assert portal.close_calls == 1


def test_portal_rejects_out_of_order_calls() -> None:
    portal = FakePortal([])

    with pytest.raises(PortalStateError):
        portal.submit()
    with pytest.raises(PortalStateError):
        portal.extract_page()
    assert portal.has_next_page() is False


def test_submit_timeout_fails_and_context_still_closes() -> None:
    portal = FakePortal(make_pages(5), fail_on={"submit": PortalTimeoutError("grid did not load")})

    with pytest.raises(PortalTimeoutError):
        with portal:
            portal.configure(SearchRequest(year="2024"))
            portal.submit()

    assert isinstance(portal.failure, PortalTimeoutError)
    assert portal.state is PortalState.CLOSED
    assert portal.close_calls == 1


def test_open_failure_closes_session() -> None:
    portal = FakePortal([], fail_on={"open": RuntimeError("browser crashed")})

    with pytest.raises(RuntimeError):
        with portal:
            pass

    assert portal.state is PortalState.CLOSED
    assert portal.close_calls == 1


def test_has_next_page_errors_mean_no_more_pages() -> None:
    portal = FakePortal(make_pages(30), fail_on={"has_next_page": RuntimeError("detached")})

    with portal:
        portal.configure(SearchRequest(year="2024"))
        portal.submit()
        portal.extract_page()
        assert portal.has_next_page() is False
