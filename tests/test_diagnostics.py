from __future__ import annotations

import pytest

from app.inbox import config, diagnostics
from app.inbox.diagnostics import PAGE_SUMMARY_JS
from tests.fakes import FakePage


def test_diagnose_summarises_page(fake_page: FakePage) -> None:
    fake_page.handlers[PAGE_SUMMARY_JS] = {
        "title": "SINOE - Casillas",
        "datatables": 0,
        "forms": 1,
        "tables": [],
        "dialogs": [{"id": "dlgSesion", "visible": True, "title": "Sesión expirada"}],
        "messages": ["Su sesión ha expirado"],
    }

    summary = diagnostics.diagnose_inbox_page(fake_page, reason="table_not_loaded")

    assert summary["reason"] == "table_not_loaded"
    assert summary["url"] == fake_page.url
    assert summary["messages"] == ["Su sesión ha expirado"]
    assert "screenshot" not in summary


def test_diagnose_unreadable_page_with_screenshot(
    fake_page: FakePage, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(config, "SAVE_DEBUG_SCREENSHOTS", True)

    summary = diagnostics.diagnose_inbox_page(fake_page, reason="no rows/extracted")

    assert summary["unreadable"] is True
    assert summary["screenshot"] == fake_page.screenshots[0]
    assert "no_rows_extracted_" in fake_page.screenshots[0]
