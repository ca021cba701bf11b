from app.etl.row_extractor import (
    REJECT_HEADER_ROW,
    REJECT_NON_NUMERIC_ORDINAL,
    REJECT_SHORT_DESCRIPTION,
    REJECT_TOO_FEW_CELLS,
    extract_rows,
    extract_rows_from_html,
    read_grid_cells,
    rejection_reason,
)
from app.etl.selectors_seace import SeaceSelectors


VALID_CELLS = [
    "1",
    "GOBIERNO REGIONAL DE AREQUIPA",
    "05/03/2024 10:30",
    "LP-SM-3-2024-GRA-1",
    "",
    "Obra",
    "Mejoramiento de la carretera departamental",
    "",
    "2456789",
    "1.799.411,00",
    "Soles",
    "3",
    "",
]


def _html(rows: list[list[str]]) -> str:
    body = "".join(
        f"<tr data-ri='{index}'>" + "".join(f"<td>{cell}</td>" for cell in cells) + "</tr>"
        for index, cells in enumerate(rows)
    )
    return (
        "<html><body><div class='ui-datatable'>"
        "<table role='grid'><thead><tr><th>N°</th></tr></thead>"
        f"<tbody>{body}</tbody></table>"
        "<span class='ui-paginator-current'>Página: 1/3</span>"
        "</div></body></html>"
    )


def test_rejection_rules() -> None:
    assert rejection_reason(VALID_CELLS) is None
    assert rejection_reason(VALID_CELLS[:5]) == REJECT_TOO_FEW_CELLS
    assert rejection_reason(["N°"] + VALID_CELLS[1:]) == REJECT_NON_NUMERIC_ORDINAL

    header = list(VALID_CELLS)
    header[1] = "Nombre o Sigla de la Entidad"
    assert rejection_reason(header) == REJECT_HEADER_ROW

    short = list(VALID_CELLS)
    short[6] = "Obra"
    assert rejection_reason(short) == REJECT_SHORT_DESCRIPTION


def test_extract_rows_counts_rejections() -> None:
    header = list(VALID_CELLS)
    header[0] = "N°"
    extraction = extract_rows([VALID_CELLS, header, VALID_CELLS[:3]], page_number=2)

    assert len(extraction.rows) == 1
    assert extraction.stats.seen == 3
    assert extraction.stats.accepted == 1
    assert extraction.stats.rejected_total == 2
    row = extraction.rows[0]
    assert row.nomenclature == "LP-SM-3-2024-GRA-1"
    assert row.amount_text == "1.799.411,00"
    assert row.investment_code == "2456789"
    assert row.page_number == 2


def test_read_grid_cells_uses_data_rows() -> None:
    cells = read_grid_cells(_html([VALID_CELLS, VALID_CELLS]))

    assert len(cells) == 2
    assert cells[0][1] == "GOBIERNO REGIONAL DE AREQUIPA"


def test_read_grid_cells_falls_back_to_datatable_rows() -> None:
    html = (
        "<table class='ui-datatable-data'><tbody><tr>"
        + "".join(f"<td>{cell}</td>" for cell in VALID_CELLS)
        + "</tr></tbody></table>"
    )
    cells = read_grid_cells(html)

    assert len(cells) == 1
    assert cells[0][3] == "LP-SM-3-2024-GRA-1"


def test_read_grid_cells_fallback_follows_selectors_and_first_table() -> None:
    row = "<tr>" + "".join(f"<td>{cell}</td>" for cell in VALID_CELLS) + "</tr>"
    html = (
        f"<table class='legacy'><tbody>{row}{row}</tbody></table>"
        f"<table class='legacy'><tbody>{row}</tbody></table>"
    )

    assert read_grid_cells(html) == []
    cells = read_grid_cells(html, selectors=SeaceSelectors(grid_fallback_rows="table.legacy tbody tr"))

    assert len(cells) == 2


def test_extract_rows_from_html_empty_grid_is_empty_page() -> None:
    extraction = extract_rows_from_html(_html([]), source_url="https://example.test", page_number=4)

    assert extraction.is_empty
    assert extraction.stats.seen == 0
