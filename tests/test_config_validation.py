from app.inbox import config
from app.inbox.config_validation import validate_runtime_config
import pytest


def test_defaults_are_valid() -> None:
    validate_runtime_config("tests")


def test_relative_inbox_url_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "INBOX_URL", "/sinoe/notificacion-bandeja.xhtml")
    with pytest.raises(ValueError):
        validate_runtime_config("cli")


def test_invalid_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "MODAL_OPEN_TIMEOUT_SECONDS", 0)
    with pytest.raises(ValueError):
        validate_runtime_config("cli")


def test_failure_threshold_must_be_positive(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "MAX_CONSECUTIVE_FAILURES", 0)
    with pytest.raises(ValueError):
        validate_runtime_config("run")


def test_negative_recovery_budget(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "MAX_RECOVERIES", -1)
    with pytest.raises(ValueError):
        validate_runtime_config("run")


def test_poll_intervals_clamped(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "TABLE_POLL_INTERVAL_SECONDS", 0)
    monkeypatch.setattr(config, "MODAL_CLOSE_POLL_SECONDS", -1.0)
    monkeypatch.setattr(config, "MIN_PDF_BYTES", -10)

    validate_runtime_config("tests")

    assert config.TABLE_POLL_INTERVAL_SECONDS == 0.1
    assert config.MODAL_CLOSE_POLL_SECONDS == 0.1
    assert config.MIN_PDF_BYTES == 0
