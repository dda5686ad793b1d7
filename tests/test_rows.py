from __future__ import annotations

from app.inbox import rows
from app.inbox.rows import ROWS_HTML_JS
from tests.fakes import FakePage

TABLE_HTML = """
<table><tbody id="frmBusqueda:tblLista_data" class="ui-datatable-data">
  <tr data-ri="0">
    <td>1</td>
    <td>N-2024-001</td>
    <td>00123-2024-0-1801-JR-CI-01</td>
    <td>Resolución&nbsp;N.º   5</td>
    <td>1° Juzgado Civil</td>
    <td>10/01/2024 10:15</td>
    <td><button id="frmBusqueda:tblLista:0:btnAnexos"><span class="ui-icon-search"></span></button></td>
  </tr>
  <tr data-ri="1">
    <td>2</td>
    <td>N-2024-002</td>
    <td>00456-2024-0-1801-JR-CI-02</td>
    <td>Decreto</td>
    <td>2° Juzgado Civil</td>
    <td>11/01/2024 09:00</td>
    <td></td>
  </tr>
  <tr data-ri="2"><td>3</td><td>x</td></tr>
  <tr data-ri="3"><td>4</td><td></td><td></td><td>summary only</td></tr>
</tbody></table>
"""

EMPTY_HTML = """
<table><tbody id="frmBusqueda:tblLista_data">
  <tr class="ui-widget-content ui-datatable-empty-message"><td colspan="7">No se encontraron registros</td></tr>
</tbody></table>
"""


def test_parse_rows_uses_fixed_column_mapping() -> None:
    records = rows.parse_rows_html(TABLE_HTML, page_number=2)

    assert [r.secondary_key for r in records] == ["N-2024-001", "N-2024-002"]
    first = records[0]
    assert first.row_key == "0"
    assert first.case_number == "00123-2024-0-1801-JR-CI-01"
    assert first.summary == "Resolución N.º 5"
    assert first.court == "1° Juzgado Civil"
    assert first.timestamp == "10/01/2024 10:15"
    assert first.page_number == 2
    assert first.has_attachment_button is True
    assert records[1].has_attachment_button is False


def test_parse_rows_skips_empty_message_row() -> None:
    assert rows.parse_rows_html(EMPTY_HTML, page_number=1) == []


def test_extract_visible_rows(fake_page: FakePage) -> None:
    fake_page.handlers[ROWS_HTML_JS] = TABLE_HTML

    records = rows.extract_visible_rows(fake_page, page_number=1)

    assert len(records) == 2
    assert fake_page.calls(ROWS_HTML_JS)[0]["table_body"] == 'tbody[id*="tblLista_data"]'


def test_extract_visible_rows_without_table(fake_page: FakePage) -> None:
    fake_page.handlers[ROWS_HTML_JS] = None

    assert rows.extract_visible_rows(fake_page) == []


def test_extract_visible_rows_with_lost_context(fake_page: FakePage) -> None:
    assert rows.extract_visible_rows(fake_page) == []
