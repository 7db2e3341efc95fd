from __future__ import annotations

import logging
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from state_audit import logging_utils

from entity_models import Charge


def _settings(log_file: str | None, structured: bool = False) -> SimpleNamespace:
    return SimpleNamespace(
        logging=SimpleNamespace(level="INFO", file=log_file, structured=structured),
    )


@patch("state_audit.logging_utils.load_settings")
@patch("state_audit.logging_utils.logging.basicConfig")
def test_configure_logging_stream_only(
    mock_basic_config: MagicMock,
    mock_load_settings: MagicMock,
) -> None:
    mock_load_settings.return_value = _settings(None)

    logging_utils.configure_logging()

    kwargs = mock_basic_config.call_args.kwargs
    assert kwargs["force"] is True
    assert kwargs["level"] == logging.INFO
    assert len(kwargs["handlers"]) == 1


@patch("state_audit.logging_utils.load_settings")
@patch("state_audit.logging_utils.logging.FileHandler", side_effect=OSError("permission denied"))
@patch("state_audit.logging_utils._logger")
@patch("state_audit.logging_utils.logging.basicConfig")
def test_configure_logging_file_handler_error(
    _mock_basic_config: MagicMock,
    mock_logger: MagicMock,
    _mock_file_handler: MagicMock,
    mock_load_settings: MagicMock,
    tmp_path,
) -> None:
    mock_load_settings.return_value = _settings(str(tmp_path / "logs" / "app.log"))

    logging_utils.configure_logging()

    mock_logger.warning.assert_called_once()


def test_get_logger_auto_configures(monkeypatch) -> None:
    monkeypatch.setattr(logging_utils, "_logging_configured", False)

    calls = {"count": 0}

    def fake_configure() -> None:
        calls["count"] += 1
        monkeypatch.setattr(logging_utils, "_logging_configured", True)

    monkeypatch.setattr(logging_utils, "configure_logging", fake_configure)

    logger = logging_utils.get_logger("test.logger")
    assert logger.name == "test.logger"
    assert calls["count"] == 1


@patch("state_audit.logging_utils.load_settings")
def test_log_event_renders_params_inline(
    mock_load_settings: MagicMock, caplog: pytest.LogCaptureFixture
) -> None:
    mock_load_settings.return_value = _settings(None)
    logger = logging.getLogger("state_audit.test.inline")

    with caplog.at_level(logging.DEBUG, logger="state_audit.test.inline"):
        logging_utils.log_event(logger, logging.DEBUG, "committing_audit_log", event="charge")

    assert caplog.records[-1].getMessage() == "committing_audit_log event=charge"


@patch("state_audit.logging_utils.load_settings")
def test_log_event_structured_passes_params(
    mock_load_settings: MagicMock, caplog: pytest.LogCaptureFixture
) -> None:
    mock_load_settings.return_value = _settings(None, structured=True)
    logger = logging.getLogger("state_audit.test.structured")

    with caplog.at_level(logging.DEBUG, logger="state_audit.test.structured"):
        logging_utils.log_event(logger, logging.DEBUG, "updating_audit_log", audit_log_id=3)

    record = caplog.records[-1]
    assert record.getMessage() == "updating_audit_log"
    assert record.params == {"audit_log_id": 3}


@patch("state_audit.logging_utils.load_settings")
def test_log_event_skips_disabled_levels(mock_load_settings: MagicMock) -> None:
    logger = MagicMock()
    logger.isEnabledFor.return_value = False

    logging_utils.log_event(logger, logging.DEBUG, "preparing_audit_log", machine="status")

    logger.log.assert_not_called()
    mock_load_settings.assert_not_called()


def test_engine_events_are_logged_while_processing(store, caplog: pytest.LogCaptureFixture) -> None:
    charge = Charge.create(store, total=10)

    with caplog.at_level(logging.DEBUG, logger="state_audit"):
        charge.process("finalize")
        charge.audit_one_off("note", "checked")

    messages = [record.getMessage() for record in caplog.records]
    assert any(m.startswith("processing_phase phase=committed event=finalize") for m in messages)
    assert "committing_audit_log event=finalize from_state=pending to_state=open state_machine=status_col" in messages
    assert "creating_one_off_audit_log event=note" in messages


def test_processing_configures_logging_on_first_use(store, monkeypatch) -> None:
    monkeypatch.setattr(logging_utils, "_logging_configured", False)

    calls = {"count": 0}

    def fake_configure() -> None:
        calls["count"] += 1
        monkeypatch.setattr(logging_utils, "_logging_configured", True)

    monkeypatch.setattr(logging_utils, "configure_logging", fake_configure)

    Charge.create(store).process("finalize")

    assert calls["count"] == 1
