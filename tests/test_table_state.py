from __future__ import annotations

from app.inbox import table_state
from app.inbox.table_state import TABLE_STATE_JS, TableKind, TableState
from tests.fakes import FakePage, Seq, table_probe


def test_from_probe_normalises_kinds() -> None:
    assert TableState.from_probe(table_probe("rows", 4)).kind is TableKind.ROWS
    assert TableState.from_probe(table_probe("rows", 0)).kind is TableKind.EMPTY
    assert TableState.from_probe(table_probe("empty", no_results=True)).no_results is True
    assert TableState.from_probe({"kind": "weird"}) is None
    assert TableState.from_probe(None) is None


def test_peek_reports_loading_when_page_does_not_answer(fake_page: FakePage) -> None:
    state = table_state.peek_table_state(fake_page)
    assert state.kind is TableKind.LOADING
    assert not state.loaded


def test_transient_empty_flicker_is_not_accepted(fake_page: FakePage) -> None:
    fake_page.handlers[TABLE_STATE_JS] = Seq(
        table_probe("rows", 3),
        table_probe("rows", 0),
        table_probe("rows", 3),
        table_probe("rows", 3),
    )

    result = table_state.await_table_loaded(fake_page)

    assert result.loaded
    assert result.has_rows
    assert result.row_count == 3
    assert result.message == "rows"
    assert len(fake_page.calls(TABLE_STATE_JS)) == 4


def test_row_count_change_during_confirmation_keeps_polling(fake_page: FakePage) -> None:
    fake_page.handlers[TABLE_STATE_JS] = Seq(
        table_probe("loading"),
        table_probe("rows", 2),
        table_probe("rows", 10),
        table_probe("rows", 10),
    )

    result = table_state.await_table_loaded(fake_page)

    assert result.row_count == 10


def test_empty_table_with_no_results_message(fake_page: FakePage) -> None:
    fake_page.handlers[TABLE_STATE_JS] = table_probe("empty", no_results=True)

    result = table_state.await_table_loaded(fake_page)

    assert result.loaded
    assert not result.has_rows
    assert result.message == "no results"


def test_loading_forever_times_out(fake_page: FakePage) -> None:
    fake_page.handlers[TABLE_STATE_JS] = table_probe("loading")

    result = table_state.await_table_loaded(fake_page, max_wait=5)

    assert not result.loaded
    assert result.message == "timeout"
    assert fake_page.clock >= 5


def test_absent_table_is_not_loaded(fake_page: FakePage) -> None:
    fake_page.handlers[TABLE_STATE_JS] = table_probe("absent")

    result = table_state.await_table_loaded(fake_page, max_wait=3)

    assert not result.loaded


def test_closed_page(fake_page: FakePage) -> None:
    fake_page.closed = True

    result = table_state.await_table_loaded(fake_page)

    assert result.message == "page closed"
