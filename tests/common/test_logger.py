"""Tests for logging utilities."""

import logging

import pytest
from rich.logging import RichHandler

from common.logger import get_logger, setup_logging


class TestGetLogger:
    """Tests for get_logger function."""

    def test_returns_logger_instance(self):
        """Test that get_logger returns a logger instance."""
        logger = get_logger("test")
        assert isinstance(logger, logging.Logger)

    def test_logger_name(self):
        """Test that logger has correct name."""
        logger = get_logger("test.module")
        assert logger.name == "test.module"

    def test_default_level_is_info(self, monkeypatch):
        """Test that default logging level is INFO."""
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        logger = get_logger("test.default")
        assert logger.level == logging.INFO

    def test_level_from_environment(self, monkeypatch):
        """Test that LOG_LEVEL is used when no level is given."""
        monkeypatch.setenv("LOG_LEVEL", "warning")
        logger = get_logger("test.env_level")
        assert logger.level == logging.WARNING

    def test_custom_level(self):
        """Test that custom logging level can be set."""
        logger = get_logger("test.custom", level="DEBUG")
        assert logger.level == logging.DEBUG

    def test_logger_has_rich_handler(self):
        """Test that logger is configured with a rich handler."""
        logger = get_logger("test.handler")
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], RichHandler)

    def test_handler_does_not_render_markup(self):
        """SQL in log lines uses brackets, so markup must be off."""
        logger = get_logger("test.markup")
        assert logger.handlers[0].markup is False

    def test_reuses_existing_logger(self):
        """Test that get_logger reuses existing logger instance."""
        logger1 = get_logger("test.reuse")
        logger2 = get_logger("test.reuse")
        assert logger1 is logger2
        # Should not add duplicate handlers
        assert len(logger1.handlers) == len(logger2.handlers)

    def test_logging_output(self, caplog):
        """Test that logging actually produces output."""
        logger = get_logger("test.output")

        with caplog.at_level(logging.INFO):
            logger.info("Opened connection 'main'")

        assert "Opened connection 'main'" in caplog.text

    def test_log_levels(self, caplog):
        """Test different log levels."""
        logger = get_logger("test.levels", level="DEBUG")

        with caplog.at_level(logging.DEBUG):
            logger.debug("Debug message")
            logger.info("Info message")
            logger.warning("Warning message")
            logger.error("Error message")

        assert "Debug message" in caplog.text
        assert "Info message" in caplog.text
        assert "Warning message" in caplog.text
        assert "Error message" in caplog.text

    def test_info_level_filters_debug(self, caplog):
        """Test that INFO level filters out DEBUG messages."""
        logger = get_logger("test.filter", level="INFO")

        with caplog.at_level(logging.DEBUG):
            logger.debug("This should not appear")
            logger.info("This should appear")

        assert "This should not appear" not in caplog.text
        assert "This should appear" in caplog.text


class TestSetupLogging:
    """Tests for setup_logging function."""

    @pytest.fixture
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers = list(root.handlers)
        level = root.level
        yield root
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_sets_root_level(self, monkeypatch, restore_root_logger):
        """Test that the root logger gets the requested level."""
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        setup_logging(level="WARNING")

        assert restore_root_logger.level == logging.WARNING
        assert any(isinstance(h, RichHandler) for h in restore_root_logger.handlers)

    def test_writes_log_file(self, tmp_path, monkeypatch, restore_root_logger):
        """Test that a log file handler is added when requested."""
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        log_file = tmp_path / "datadesk.log"

        setup_logging(level="INFO", log_file=str(log_file))
        logging.getLogger("test.setup.file").info("Written to file")
        for handler in restore_root_logger.handlers:
            handler.flush()

        content = log_file.read_text()
        assert "Written to file" in content
        assert "INFO" in content
