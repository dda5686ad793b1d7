from __future__ import annotations

import pytest
from playwright.sync_api import Error as PWError

from app.inbox import page_bridge
from tests.fakes import FakePage


def test_safe_evaluate_returns_result_and_passes_argument(fake_page: FakePage) -> None:
    fake_page.handlers["probe"] = lambda arg: {"echo": arg}

    assert page_bridge.safe_evaluate(fake_page, "probe", {"a": 1}) == {"echo": {"a": 1}}
    assert fake_page.calls("probe") == [{"a": 1}]


def test_safe_evaluate_maps_context_loss_to_none(fake_page: FakePage, monkeypatch) -> None:
    events: list[dict] = []
    monkeypatch.setattr(page_bridge, "_scraper_event", lambda label, **f: events.append(f))

    # Unregistered scripts behave like a destroyed execution context.
    assert page_bridge.safe_evaluate(fake_page, "gone") is None
    assert events[0]["context_lost"] is True


def test_safe_evaluate_on_closed_page_does_not_touch_it(fake_page: FakePage) -> None:
    fake_page.closed = True
    fake_page.handlers["probe"] = 1

    assert page_bridge.safe_evaluate(fake_page, "probe") is None
    assert fake_page.evaluations == []
    assert page_bridge.safe_evaluate(None, "probe") is None


def test_safe_evaluate_lets_programming_errors_through(fake_page: FakePage) -> None:
    fake_page.handlers["broken"] = ValueError("bad argument")

    with pytest.raises(ValueError):
        page_bridge.safe_evaluate(fake_page, "broken")


def test_is_context_lost_error() -> None:
    assert page_bridge.is_context_lost_error(PWError("Execution context was destroyed, most likely"))
    assert page_bridge.is_context_lost_error(PWError("Target page, context or browser has been closed"))
    assert not page_bridge.is_context_lost_error(PWError("ReferenceError: foo is not defined"))


def test_safe_url_and_wait_seconds(fake_page: FakePage) -> None:
    assert page_bridge.safe_url(fake_page) == fake_page.url
    fake_page.url_error = PWError("Target closed")
    assert page_bridge.safe_url(fake_page) is None

    page_bridge.wait_seconds(fake_page, 1.5)
    page_bridge.wait_seconds(fake_page, 0)
    assert fake_page.waits == [1500]

    fake_page.closed = True
    page_bridge.wait_seconds(fake_page, 2)
    assert fake_page.waits == [1500]


def test_press_key(fake_page: FakePage) -> None:
    assert page_bridge.press_key(fake_page, "Escape") is True
    assert fake_page.keyboard.pressed == ["Escape"]
    fake_page.closed = True
    assert page_bridge.press_key(fake_page, "Escape") is False


def test_wait_seconds_keeps_sub_millisecond_pauses(fake_page: FakePage) -> None:
    page_bridge.wait_seconds(fake_page, 0.0004)
    page_bridge.wait_seconds(fake_page, 0.25)
    page_bridge.wait_seconds(fake_page, 0)

    assert fake_page.waits == [1.0, 250.0]
