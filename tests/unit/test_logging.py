"""Tests for logging system."""

import logging
import os
import time
from datetime import datetime

from inkwell.utils.logging import cleanup_old_logs, get_logger, setup_logging


class TestLogging:
    """Test logging functionality."""

    def test_setup_logging_default(self, temp_dir):
        """Test setting up logging with default parameters."""
        log_file = temp_dir / "test.log"
        logger = setup_logging(log_file=log_file, level="INFO")

        assert logger.name == "inkwell"
        assert logger.level == logging.INFO
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], logging.FileHandler)

    def test_setup_logging_with_console(self, temp_dir):
        """Test setting up logging with console output."""
        logger = setup_logging(log_file=temp_dir / "test.log", level="DEBUG", console_output=True)

        assert logger.level == logging.DEBUG
        handler_types = [type(h).__name__ for h in logger.handlers]
        assert handler_types == ['FileHandler', 'StreamHandler']

    def test_log_levels(self, temp_dir):
        """Test different log levels."""
        log_file = temp_dir / "test.log"
        logger = setup_logging(log_file=log_file, level="WARNING")

        logger.debug("Debug message")
        logger.info("Info message")
        logger.warning("Warning message")
        logger.error("Error message")

        content = log_file.read_text(encoding='utf-8')
        assert "Debug message" not in content
        assert "Info message" not in content
        assert "Warning message" in content
        assert "Error message" in content

    def test_default_log_location(self, monkeypatch, temp_dir):
        """Test default log file location under the Inkwell home."""
        monkeypatch.setenv("INKWELL_HOME_DIR", str(temp_dir))

        logger = setup_logging()
        logger.info("Test message")

        timestamp = datetime.now().strftime("%Y%m%d")
        assert (temp_dir / "logs" / f"inkwell_{timestamp}.log").exists()

    def test_child_loggers_share_handlers(self, temp_dir):
        """Module loggers propagate to the inkwell file handler."""
        log_file = temp_dir / "test.log"
        setup_logging(log_file=log_file)

        get_logger("chapters").info("Saved chapter c1")

        content = log_file.read_text(encoding='utf-8')
        assert "inkwell.chapters" in content
        assert "Saved chapter c1" in content
        assert datetime.now().strftime("%Y-%m-%d") in content

    def test_get_logger(self):
        """Test getting logger instances."""
        assert get_logger().name == "inkwell"

        named = get_logger("test_module")
        assert named.name == "inkwell.test_module"
        assert get_logger("test_module") is named

    def test_logger_startup_message(self, temp_dir):
        """Test that startup message is logged."""
        log_file = temp_dir / "test.log"
        setup_logging(log_file=log_file, level="INFO")

        content = log_file.read_text(encoding='utf-8')
        assert "Inkwell logging started" in content
        assert "Level: INFO" in content
        assert str(log_file) in content
        assert "=" * 60 in content

    def test_unicode_handling(self, temp_dir):
        """Test handling of unicode characters in logs."""
        log_file = temp_dir / "test.log"
        logger = setup_logging(log_file=log_file)

        logger.info("Unicode test: 第一章 ✨")

        assert "第一章 ✨" in log_file.read_text(encoding='utf-8')

    def test_exception_logging(self, temp_dir):
        """Test logging exceptions with traceback."""
        log_file = temp_dir / "test.log"
        logger = setup_logging(log_file=log_file)

        try:
            raise ValueError("Test exception")
        except ValueError:
            logger.error("Error occurred", exc_info=True)

        content = log_file.read_text(encoding='utf-8')
        assert "Error occurred" in content
        assert "ValueError: Test exception" in content
        assert "Traceback" in content

    def test_multiple_setup_calls(self, temp_dir):
        """Test that multiple setup calls clear existing handlers."""
        log_file1 = temp_dir / "test1.log"
        log_file2 = temp_dir / "test2.log"

        logger = setup_logging(log_file=log_file1)
        initial_handlers = len(logger.handlers)

        logger = setup_logging(log_file=log_file2)
        assert len(logger.handlers) == initial_handlers

        logger.info("Test message")
        assert "Test message" in log_file2.read_text(encoding='utf-8')


class TestCleanupOldLogs:
    """Test log retention."""

    def test_removes_only_old_logs(self, temp_dir):
        old_log = temp_dir / "old.log"
        new_log = temp_dir / "new.log"
        other = temp_dir / "keep.txt"
        for path in (old_log, new_log, other):
            path.write_text("x")

        ten_days_ago = time.time() - 10 * 24 * 3600
        os.utime(old_log, (ten_days_ago, ten_days_ago))
        os.utime(other, (ten_days_ago, ten_days_ago))

        assert cleanup_old_logs(temp_dir, days_to_keep=7) == 1
        assert not old_log.exists()
        assert new_log.exists()
        assert other.exists()

    def test_missing_directory(self, temp_dir):
        assert cleanup_old_logs(temp_dir / "missing") == 0
