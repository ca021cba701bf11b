import json

import pytest

from app.etl import config
from app.etl.models import SearchRequest


def test_from_payload_accepts_portal_aliases() -> None:
    request = SearchRequest.from_payload(
        {
            "palabraClave": "agua, saneamiento ,",
            "objetoContratacion": "Servicio",
            "anio": 2023,
            "fechaDesde": "2023-01-15",
            "fechaHasta": "",
            "entidad": " GOBIERNO REGIONAL ",
            "tipoProceso": "Licitación Pública",
            "maxProcesses": "25",
            "overscanFactor": "3",
        }
    )

    assert request.keywords == ("agua", "saneamiento")
    assert request.object_type == "servicio"
    assert request.year == "2023"
    assert request.date_from == "2023-01-15"
    assert request.date_to is None
    assert request.entity == "GOBIERNO REGIONAL"
    assert request.process_type == "Licitación Pública"
    assert request.target_new == 25
    assert request.overscan_factor == 3.0
    assert request.description_query == "agua saneamiento"


def test_from_payload_defaults() -> None:
    request = SearchRequest.from_payload(None)

    assert request.keywords == ()
    assert request.object_type is None
    assert len(request.year) == 4
    assert request.target_new is None
    assert request.description_query is None


@pytest.mark.parametrize(
    "payload",
    [
        {"maxProcesses": 0},
        {"maxProcesses": "abc"},
        {"maxProcesses": config.MAX_TARGET_NEW + 1},
        {"anio": "24"},
        {"objetoContratacion": "software"},
        {"overscanFactor": 0},
        {"overscanFactor": "x"},
    ],
)
def test_from_payload_rejects_invalid_values(payload: dict) -> None:
    with pytest.raises(ValueError):
        SearchRequest.from_payload(payload)


def test_request_is_immutable_and_serialisable() -> None:
    request = SearchRequest(keywords=("puente",), year="2024", target_new=3)

    with pytest.raises(AttributeError):
        request.year = "2025"  # type: ignore[misc]

    params = json.loads(request.to_json())
    assert params["keywords"] == ["puente"]
    assert params["target_new"] == 3
