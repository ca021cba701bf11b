"""Selectors and widget identifiers for the SEACE public search portal."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SeaceSelectors:
    """PrimeFaces widget hints for the public procurement search form.

    The form lives under the ``tbBuscador:idFormBuscarProceso`` naming
    container; ids contain colons, so they are addressed through attribute
    selectors rather than ``#id``.
    """

    search_tabs: str = "li[role='tab'] a, a[role='tab'], button[role='tab']"
    search_tab_label: str = "Procedimientos de Selección"
    object_type_label: str = (
        "label.ui-selectonemenu-label[id*='idFormBuscarProceso:'][id*='ObjContratacion']"
    )
    object_type_trigger: str = ".ui-selectonemenu-trigger"
    object_type_open_panel: str = ".ui-selectonemenu-panel:not(.ui-helper-hidden)"
    year_select: str = "tbBuscador:idFormBuscarProceso:anioConvocatoria_input"
    date_from_input: str = "tbBuscador:idFormBuscarProceso:fechaPublicacionDesde_input"
    date_to_input: str = "tbBuscador:idFormBuscarProceso:fechaPublicacionHasta_input"
    description_input: str = "tbBuscador:idFormBuscarProceso:descripcionObjeto"
    search_button: str = "tbBuscador:idFormBuscarProceso:btnBuscarSel"

    grid_rows: str = "table[role='grid'] tbody tr"
    grid_data_rows: str = "table[role='grid'] tbody tr[data-ri]"
    grid_fallback_rows: str = "table[class*='ui-datatable'] tbody tr"

    paginator_next_enabled: str = ".ui-paginator-next:not(.ui-state-disabled)"
    paginator_current: str = ".ui-paginator-current"

    def by_id(self, element_id: str) -> str:
        """Return a CSS attribute selector for a PrimeFaces client id."""

        return f"[id='{element_id}']"


SEACE_SELECTORS = SeaceSelectors()

__all__ = ["SeaceSelectors", "SEACE_SELECTORS"]
