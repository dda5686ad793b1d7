from __future__ import annotations

"""Selectors and layout hints for the notification inbox portal."""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Tuple


@dataclass(frozen=True)
class InboxSelectors:
    """Portal-specific selector hints.

    The inbox is a PrimeFaces DataTable whose body id contains
    ``tblLista_data``. Rows carry a server-assigned ``data-ri`` index that is
    reassigned on every AJAX rebuild, so the notification number (column
    ``col_secondary_key``) is the identity used to re-find a row.
    """

    table_body: str = 'tbody[id*="tblLista_data"]'
    table_body_fallbacks: Tuple[str, ...] = (
        ".ui-datatable-data",
        ".ui-datatable-tablewrapper table tbody",
        'table[role="grid"] tbody',
    )
    row: str = "tr[data-ri]"
    loading_indicators: Tuple[str, ...] = (
        ".ui-datatable-loading",
        ".ui-blockui",
        ".loading-indicator",
    )
    empty_row_class: str = "ui-datatable-empty-message"
    empty_phrases: Tuple[str, ...] = (
        "no hay",
        "no se encontraron",
        "sin registros",
        "no records",
    )
    # A data row must have more than this many cells to count as rendered.
    table_min_cells: int = 1
    # Rows with fewer cells than this are skipped during extraction.
    extract_min_cells: int = 3

    # Fixed column mapping (0-based). The last cell holds the row actions.
    col_secondary_key: int = 1
    col_case_number: int = 2
    col_summary: int = 3
    col_court: int = 4
    col_timestamp: int = 5

    # Paginator
    paginator_current: str = ".ui-paginator-current"
    paginator_next: str = ".ui-paginator-next"
    paginator_prev: str = ".ui-paginator-prev"
    paginator_page: str = ".ui-paginator-page"
    disabled_class: str = "ui-state-disabled"
    active_class: str = "ui-state-active"

    # Date filter form
    date_start_id: str = "frmBusqueda:fechaInicial_input"
    date_end_id: str = "frmBusqueda:fechaFinal_input"
    date_start_fallbacks: Tuple[str, ...] = (
        'input[id*="fechaInicial"]',
        'input[id*="fechaDesde"]',
    )
    date_end_fallbacks: Tuple[str, ...] = (
        'input[id*="fechaFinal"]',
        'input[id*="fechaHasta"]',
    )
    datepicker_popup: str = "#ui-datepicker-div"
    search_button_id: str = "frmBusqueda:btnBuscar"
    search_button_fallbacks: Tuple[str, ...] = ('button[id*="btnBuscar"]',)
    search_button_labels: Tuple[str, ...] = ("buscar", "consultar")

    # Attachments dialog
    modal_containers: Tuple[str, ...] = (
        'div[id*="dlgListaAnexos"]',
        'div[id*="frmAnexos"][class*="ui-dialog"]',
        '.ui-dialog[aria-hidden="false"]',
    )
    modal_title: str = ".ui-dialog-title"
    modal_rows: str = "tbody tr"
    modal_loading: Tuple[str, ...] = (".ui-blockui", ".ui-datatable-loading")
    # Dialog titles containing these words are error or confirmation popups.
    modal_error_keywords: Tuple[str, ...] = (
        "error",
        "advertencia",
        "aviso",
        "confirm",
        "sesión",
        "sesion",
        "alerta",
    )

    # Ordered strategies for the attachments trigger inside a row.
    trigger_icon: Tuple[str, ...] = (
        ".ui-icon-search",
        ".fa-paperclip",
        ".fa-folder-open",
        '[class*="anexo" i]',
    )
    trigger_dynamic_id: Tuple[str, ...] = (
        '[id*="btnAnexos"]',
        '[id*="btnVerAnexos"]',
        '[id*="btnDescargar"]',
        '[id*=":j_idt"]',
    )
    trigger_any: str = 'button, a.ui-commandlink, a[onclick], [role="button"]'

    # Closing the dialog
    close_icon: str = ".ui-dialog-titlebar-close"
    close_labels: Tuple[str, ...] = ("cerrar", "close", "salir")
    close_id_fragment: str = "Cerrar"

    # "Download all" control inside the dialog
    download_all_ids: Tuple[str, ...] = ("btnDescargaTodo", "consolidado")
    download_all_labels: Tuple[str, ...] = ("consolidado", "descargar todo")

    # Confirmation dialogs dismissed during recovery.
    dismiss_containers: str = '.ui-dialog[aria-hidden="false"], .ui-overlaypanel, .ui-confirm-dialog'
    dismiss_labels: Tuple[str, ...] = ("aceptar", "cerrar", "ok", "sí", "si")

    def to_js(self) -> Dict[str, Any]:
        """Return the selector set as a plain mapping for ``page.evaluate``."""

        return {key: list(value) if isinstance(value, tuple) else value for key, value in asdict(self).items()}


INBOX_SELECTORS = InboxSelectors()

__all__ = ["InboxSelectors", "INBOX_SELECTORS"]
