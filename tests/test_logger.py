"""Tests for logger.py -- setup_logging() and JsonFormatter.

basicConfig is mocked throughout: pytest's log capture keeps handlers on the
root logger, which would turn a real basicConfig call into a no-op.
"""

import json
import logging
import sys
from unittest.mock import patch

from taskmaster_sync.logger import JsonFormatter, setup_logging

BASIC_CONFIG = "taskmaster_sync.logger.logging.basicConfig"


def _kwargs(mock_basic) -> dict:
    mock_basic.assert_called_once()
    return mock_basic.call_args[1]


class TestSetupLogging:
    """Tests for setup_logging()."""

    @patch(BASIC_CONFIG)
    def test_cli_logs_to_stderr_at_info(self, mock_basic):
        setup_logging(mode="cli")

        kwargs = _kwargs(mock_basic)
        assert kwargs["level"] == logging.INFO
        (handler,) = kwargs["handlers"]
        assert handler.stream is sys.stderr

    @patch(BASIC_CONFIG)
    def test_cli_with_log_file_adds_file_handler(self, mock_basic, tmp_path):
        setup_logging(mode="cli", log_file=str(tmp_path / "sync.log"))

        handlers = _kwargs(mock_basic)["handlers"]
        file_handlers = [h for h in handlers if isinstance(h, logging.FileHandler)]
        assert len(handlers) == 2
        assert len(file_handlers) == 1
        # the file log names the emitting module
        assert "%(name)s" in file_handlers[0].formatter._fmt
        file_handlers[0].close()

    @patch(BASIC_CONFIG)
    def test_mcp_logs_to_file_at_warning(self, mock_basic, tmp_path):
        log_file = str(tmp_path / "mcp.log")
        setup_logging(mode="mcp", log_file=log_file)

        kwargs = _kwargs(mock_basic)
        assert kwargs["filename"] == log_file
        assert kwargs["level"] == logging.WARNING
        assert "handlers" not in kwargs

    @patch(BASIC_CONFIG)
    def test_mcp_log_file_from_env(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_FILE", "/var/tmp/custom.log")
        setup_logging(mode="mcp")
        assert _kwargs(mock_basic)["filename"] == "/var/tmp/custom.log"

    @patch(BASIC_CONFIG)
    def test_mcp_default_log_file(self, mock_basic):
        setup_logging(mode="mcp")
        assert _kwargs(mock_basic)["filename"] == "/tmp/taskmaster-sync.log"

    @patch(BASIC_CONFIG)
    def test_debug_beats_env(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        setup_logging(mode="cli", debug=True)
        assert _kwargs(mock_basic)["level"] == logging.DEBUG

    @patch(BASIC_CONFIG)
    def test_env_beats_config_level(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "error")
        setup_logging(mode="cli", level="DEBUG")
        assert _kwargs(mock_basic)["level"] == logging.ERROR

    @patch(BASIC_CONFIG)
    def test_config_level_used_without_env(self, mock_basic):
        setup_logging(mode="mcp", level="info")
        assert _kwargs(mock_basic)["level"] == logging.INFO

    @patch(BASIC_CONFIG)
    def test_unknown_level_falls_back_to_info(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "chatty")
        setup_logging(mode="cli")
        assert _kwargs(mock_basic)["level"] == logging.INFO

    @patch(BASIC_CONFIG)
    def test_json_format(self, mock_basic):
        setup_logging(mode="cli", debug_format="json")
        (handler,) = _kwargs(mock_basic)["handlers"]
        assert isinstance(handler.formatter, JsonFormatter)

    @patch(BASIC_CONFIG)
    def test_http_loggers_quieted(self, _mock_basic):
        setup_logging(mode="cli")
        assert logging.getLogger("urllib3").level == logging.WARNING
        assert logging.getLogger("requests").level == logging.WARNING


class TestJsonFormatter:
    def test_single_line_json(self):
        record = logging.LogRecord(
            "taskmaster_sync.sync", logging.INFO, __file__, 1, "synced %d", (3,), None
        )
        output = JsonFormatter().format(record)
        assert "\n" not in output
        entry = json.loads(output)
        assert entry["level"] == "INFO"
        assert entry["logger"] == "taskmaster_sync.sync"
        assert entry["msg"] == "synced 3"
        assert "exc" not in entry

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            exc_info = sys.exc_info()
        record = logging.LogRecord(
            "x", logging.ERROR, __file__, 1, "failed", (), exc_info
        )
        entry = json.loads(JsonFormatter().format(record))
        assert "RuntimeError: boom" in entry["exc"]
