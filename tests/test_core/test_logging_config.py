"""
Tests for Logging and Environment Loading

Tests for callsheet/core/logging_config.py and callsheet/core/env_loader.py
"""

import logging

from callsheet.core.env_loader import ensure_env_loaded, get_api_key
from callsheet.core.logging_config import LogContext, LogLevel, get_logger, setup_logging


class TestLogging:
    """Tests for logging helpers."""

    def test_get_logger_namespaced(self):
        assert get_logger("pipelines.reconciler").name == "callsheet.pipelines.reconciler"
        assert get_logger("callsheet.llm").name == "callsheet.llm"

    def test_setup_logging_writes_file(self, temp_dir):
        log_file = temp_dir / "logs" / "callsheet.log"

        root = setup_logging(LogLevel.DEBUG, log_file=log_file, console_output=False)
        get_logger("tests").info("hello from the test")
        for handler in root.handlers:
            handler.flush()

        assert root.level == logging.DEBUG
        assert "hello from the test" in log_file.read_text(encoding="utf-8")

        for handler in list(root.handlers):
            handler.close()
        root.handlers.clear()

    def test_log_context_restores_level(self):
        logger = get_logger("tests.context")
        logger.setLevel(logging.INFO)

        with LogContext(logger, LogLevel.ERROR):
            assert logger.level == logging.ERROR

        assert logger.level == logging.INFO


class TestEnvLoader:
    """Tests for API key lookup."""

    def test_explicit_env_file(self, temp_dir, monkeypatch):
        monkeypatch.delenv("CALLSHEET_TEST_TOKEN", raising=False)
        env_file = temp_dir / ".env"
        env_file.write_text("CALLSHEET_TEST_TOKEN=from-file\n", encoding="utf-8")

        assert ensure_env_loaded(env_file) is True
        assert get_api_key("CALLSHEET_TEST_TOKEN") == "from-file"
        monkeypatch.delenv("CALLSHEET_TEST_TOKEN", raising=False)

    def test_missing_env_file(self, temp_dir):
        assert ensure_env_loaded(temp_dir / "absent.env") is False

    def test_fallback_keys(self, monkeypatch):
        monkeypatch.delenv("CALLSHEET_PRIMARY_KEY", raising=False)
        monkeypatch.setenv("CALLSHEET_SECONDARY_KEY", "second")

        assert get_api_key("CALLSHEET_PRIMARY_KEY", ["CALLSHEET_SECONDARY_KEY"]) == "second"
        assert get_api_key("CALLSHEET_PRIMARY_KEY") is None
