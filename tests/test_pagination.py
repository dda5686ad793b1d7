from __future__ import annotations

from typing import Any, Dict

import pytest

from app.inbox import pagination
from app.inbox.pagination import PAGER_CLICK_JS, PAGER_INFO_JS
from app.inbox.table_state import TABLE_STATE_JS
from tests.fakes import FakePage, table_probe


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Página 2 de 5", (2, 5)),
        ("Pagina 1/3", (1, 3)),
        ("(3 of 10)", (3, 10)),
        ("Registros 1 - 10 ( 4 / 7 )", (4, 7)),
        ("2 de 5", (2, 5)),
        ("Mostrando 1 - 10 de 45 registros", None),
        ("Registros 11 - 20 de 45, página 2 de 5", (2, 5)),
        ("7/3", None),
        ("", None),
        ("sin datos", None),
    ],
)
def test_parse_page_indicator(text: str, expected) -> None:
    assert pagination.parse_page_indicator(text) == expected


class FakePager:
    """Paginator with numbered links for ``links`` and next/prev controls."""

    def __init__(self, page: FakePage, *, total: int, links: bool = True) -> None:
        self.current = 1
        self.total = total
        self.links = links
        self.clicks: list[Dict[str, Any]] = []
        page.handlers[PAGER_INFO_JS] = self.info
        page.handlers[PAGER_CLICK_JS] = self.click
        page.handlers[TABLE_STATE_JS] = table_probe("rows", 10)

    def info(self, _arg: Any) -> Dict[str, Any]:
        return {
            "text": f"({self.current} of {self.total})",
            "hasNext": True,
            "nextDisabled": self.current >= self.total,
            "hasPrev": True,
            "prevDisabled": self.current <= 1,
            "active": str(self.current),
            "pages": [str(n) for n in range(1, self.total + 1)] if self.links else [],
        }

    def click(self, arg: Dict[str, Any]) -> bool:
        self.clicks.append({"kind": arg["kind"], "number": arg["number"]})
        if arg["kind"] == "next" and self.current < self.total:
            self.current += 1
            return True
        if arg["kind"] == "prev" and self.current > 1:
            self.current -= 1
            return True
        if arg["kind"] == "page" and self.links and 1 <= arg["number"] <= self.total:
            self.current = arg["number"]
            return True
        return False


def test_current_page_without_paginator_is_one(fake_page: FakePage) -> None:
    fake_page.handlers[PAGER_INFO_JS] = {
        "text": "",
        "hasNext": False,
        "hasPrev": False,
        "active": "",
        "pages": [],
    }

    assert pagination.current_page_number(fake_page) == 1
    assert pagination.has_next_page(fake_page) is False


def test_current_page_unreadable(fake_page: FakePage) -> None:
    assert pagination.current_page_number(fake_page) is None


def test_go_to_current_page_does_not_click(fake_page: FakePage) -> None:
    pager = FakePager(fake_page, total=3)

    assert pagination.go_to_page(fake_page, 1) is True
    assert pager.clicks == []


def test_go_to_page_uses_numbered_link(fake_page: FakePage) -> None:
    pager = FakePager(fake_page, total=4)

    assert pagination.go_to_page(fake_page, 3) is True
    assert pager.current == 3
    assert pager.clicks == [{"kind": "page", "number": 3}]


def test_go_to_page_steps_without_links(fake_page: FakePage) -> None:
    pager = FakePager(fake_page, total=4, links=False)

    assert pagination.go_to_page(fake_page, 3) is True
    assert [c["kind"] for c in pager.clicks] == ["page", "next", "next"]

    assert pagination.go_to_page(fake_page, 1) is True
    assert pager.current == 1


def test_go_to_page_beyond_last_fails(fake_page: FakePage) -> None:
    FakePager(fake_page, total=2, links=False)

    assert pagination.go_to_page(fake_page, 5) is False


def test_next_page_requires_table_reload(fake_page: FakePage) -> None:
    pager = FakePager(fake_page, total=2)
    fake_page.handlers[TABLE_STATE_JS] = table_probe("loading")

    assert pagination.has_next_page(fake_page) is True
    assert pagination.go_to_next_page(fake_page) is False
    assert pager.current == 2


def test_record_range_label_falls_back_to_active_link(fake_page: FakePage) -> None:
    fake_page.handlers[PAGER_INFO_JS] = {
        "text": "Mostrando 11 - 20 de 45 registros",
        "hasNext": True,
        "nextDisabled": False,
        "hasPrev": True,
        "prevDisabled": False,
        "active": "2",
        "pages": ["1", "2", "3", "4", "5"],
    }

    info = pagination.read_page_info(fake_page)

    assert info.current == 2
    assert info.total is None
    assert pagination.current_page_number(fake_page) == 2
    assert pagination.has_next_page(fake_page) is True
