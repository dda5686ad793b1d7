from __future__ import annotations

from app.inbox import config, logging_utils, recovery
from app.inbox.health import HEALTH_PROBE_JS
from app.inbox.recovery import DISMISS_DIALOGS_JS
from app.inbox.table_state import TABLE_STATE_JS
from tests.fakes import FakePage, table_probe

LOGIN_URL = "https://casillas.pj.gob.pe/sinoe/login.xhtml"


def _page_after_reload(page: FakePage, probe: dict) -> None:
    def _reload() -> None:
        page.handlers[TABLE_STATE_JS] = probe

    page.reload_hook = _reload
    page.handlers[DISMISS_DIALOGS_JS] = 1


def test_reload_restores_the_table(fake_page: FakePage) -> None:
    fake_page.handlers[HEALTH_PROBE_JS] = {"rows": 0}
    _page_after_reload(fake_page, table_probe("rows", 4))

    result = recovery.recover(fake_page)

    assert result.recovered
    assert result.strategy == "reload"
    assert result.row_count == 4
    assert fake_page.reload_calls == 1
    assert fake_page.goto_calls == []
    assert fake_page.calls(DISMISS_DIALOGS_JS)


def test_dead_context_off_page_is_reloaded(fake_page: FakePage) -> None:
    fake_page.set_url("https://portal.example/sinoe/error.xhtml")
    _page_after_reload(fake_page, table_probe("empty", no_results=True))

    result = recovery.recover(fake_page)

    assert result.recovered
    assert result.row_count == 0
    assert fake_page.reload_calls == 1


def test_responsive_page_elsewhere_navigates_to_inbox(fake_page: FakePage) -> None:
    fake_page.set_url("https://portal.example/other/page.xhtml")
    fake_page.handlers[HEALTH_PROBE_JS] = {"rows": 0}
    fake_page.handlers[DISMISS_DIALOGS_JS] = 0

    def _goto(url: str) -> None:
        fake_page.set_url(url)
        fake_page.handlers[TABLE_STATE_JS] = table_probe("rows", 2)

    fake_page.goto_hook = _goto

    result = recovery.recover(fake_page)

    assert result.recovered
    assert result.strategy == "navigate"
    assert fake_page.reload_calls == 0
    assert fake_page.goto_calls == [config.INBOX_URL]


def test_failed_reload_falls_back_to_navigation(fake_page: FakePage) -> None:
    fake_page.handlers[HEALTH_PROBE_JS] = {"rows": 0}
    fake_page.handlers[DISMISS_DIALOGS_JS] = 0
    fake_page.handlers[TABLE_STATE_JS] = table_probe("loading")

    def _goto(url: str) -> None:
        fake_page.handlers[TABLE_STATE_JS] = table_probe("rows", 6)

    fake_page.goto_hook = _goto

    result = recovery.recover(fake_page)

    assert result.recovered
    assert result.strategy == "navigate"
    assert fake_page.reload_calls == 1
    assert len(fake_page.goto_calls) == 1


def test_login_redirect_after_reload_means_expired(fake_page: FakePage) -> None:
    fake_page.handlers[HEALTH_PROBE_JS] = {"rows": 0}
    fake_page.reload_hook = lambda: fake_page.set_url(LOGIN_URL)

    result = recovery.recover(fake_page)

    assert not result.recovered
    assert result.session_expired
    assert fake_page.goto_calls == []


def test_login_page_before_recovery_means_expired(fake_page: FakePage) -> None:
    fake_page.set_url(LOGIN_URL)

    result = recovery.recover(fake_page)

    assert result.session_expired
    assert result.strategy == "precheck"
    assert fake_page.reload_calls == 0


def test_exhausted_recovery(fake_page: FakePage) -> None:
    fake_page.handlers[HEALTH_PROBE_JS] = {"rows": 0}
    fake_page.handlers[DISMISS_DIALOGS_JS] = 0
    fake_page.handlers[TABLE_STATE_JS] = table_probe("loading")

    result = recovery.recover(fake_page)

    assert not result.recovered
    assert not result.session_expired
    assert result.strategy == "exhausted"
    assert fake_page.reload_calls == 1
    assert len(fake_page.goto_calls) == 1


def test_closed_page_cannot_recover(fake_page: FakePage) -> None:
    fake_page.closed = True

    result = recovery.recover(fake_page)

    assert not result.recovered
    assert fake_page.reload_calls == 0


def test_navigation_events_name_their_target(fake_page: FakePage, monkeypatch) -> None:
    lines: list[str] = []
    monkeypatch.setattr(logging_utils, "log_line", lambda msg: lines.append(msg))
    fake_page.handlers[HEALTH_PROBE_JS] = {"rows": 0}
    _page_after_reload(fake_page, table_probe("rows", 4))

    assert recovery.recover(fake_page).recovered

    nav = [line for line in lines if line.startswith("[SCRAPER][NAV]")]
    assert nav and all("target=" in line for line in nav)
