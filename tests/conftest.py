from __future__ import annotations

from pathlib import Path

import pytest

from app.inbox import config, polling
from tests.fakes import FakePage


@pytest.fixture(autouse=True)
def temp_data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setattr(config, "DATA_DIR", tmp_path)
    monkeypatch.setattr(config, "LOG_DIR", tmp_path / "logs")
    monkeypatch.setattr(config, "LOG_FILE", tmp_path / "logs" / "latest.log")
    monkeypatch.setattr(config, "RUNS_DIR", tmp_path / "runs")
    monkeypatch.setattr(config, "EXPORTS_DIR", tmp_path / "exports")
    return tmp_path


@pytest.fixture
def fake_page(monkeypatch: pytest.MonkeyPatch) -> FakePage:
    page = FakePage()
    monkeypatch.setattr(polling, "monotonic", lambda: page.clock)
    return page
