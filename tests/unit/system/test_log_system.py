"""Tests for centralized logging configuration."""

import json
import logging
from logging.handlers import RotatingFileHandler

import pytest
import structlog

from basketlever.system import LoggerFactory, LoggingConfig


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before and after each test."""
    LoggerFactory.reset()
    yield
    LoggerFactory.reset()


def test_default_configuration():
    """Logger factory falls back to console INFO without file output."""
    logger = LoggerFactory.get_logger()

    assert LoggerFactory.is_configured()
    assert hasattr(logger, "info")
    assert hasattr(logger, "warning")

    config = LoggerFactory.get_config()
    assert config.level == "INFO"
    assert config.format == "console"
    assert config.enable_file is False
    assert config.file_level == "WARNING"


def test_get_config_before_configure_returns_defaults():
    assert not LoggerFactory.is_configured()
    assert LoggerFactory.get_config() == LoggingConfig()


def test_explicit_configuration():
    config = LoggingConfig(level="DEBUG", format="json", enable_file=False)

    LoggerFactory.configure(config)

    assert LoggerFactory.is_configured()
    assert LoggerFactory.get_config().level == "DEBUG"
    assert LoggerFactory.get_config().format == "json"
    assert logging.getLogger().level == logging.DEBUG


def test_file_logging_writes_json_lines(tmp_path):
    """File output is JSON, one object per line."""
    log_file = tmp_path / "basketlever.log"
    config = LoggingConfig(
        level="INFO",
        enable_file=True,
        file_path=log_file,
        file_level="DEBUG",
        file_rotation=False,
    )

    LoggerFactory.configure(config)
    LoggerFactory.get_logger("basketlever.test").info("leverage.lever.completed", basket="0xbasket")

    entry = json.loads(log_file.read_text().strip())
    assert entry["event"] == "leverage.lever.completed"
    assert entry["basket"] == "0xbasket"


def test_file_logging_without_path_uses_default():
    config = LoggingConfig(enable_file=True, file_path=None, file_rotation=False)

    LoggerFactory.configure(config)

    assert str(LoggerFactory.get_config().file_path) == "logs/basketlever.log"


def test_default_file_path_opens_handler(tmp_path, monkeypatch):
    # Arrange
    monkeypatch.chdir(tmp_path)
    config = LoggingConfig(enable_file=True, file_path=None, file_rotation=False)

    # Act
    LoggerFactory.configure(config)

    # Assert
    handlers = [h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)]
    assert [h.baseFilename for h in handlers] == [str(tmp_path / "logs" / "basketlever.log")]
    assert (tmp_path / "logs").is_dir()


def test_rotating_file_handler(tmp_path):
    log_file = tmp_path / "rotating.log"
    config = LoggingConfig(
        enable_file=True,
        file_path=log_file,
        file_rotation=True,
        max_file_size_mb=1,
        backup_count=3,
    )

    LoggerFactory.configure(config)

    handlers = [h for h in logging.getLogger().handlers if isinstance(h, RotatingFileHandler)]
    handler = next(h for h in handlers if str(log_file) in h.baseFilename)
    assert handler.maxBytes == 1024 * 1024
    assert handler.backupCount == 3


def test_reset_clears_configuration():
    LoggerFactory.configure(LoggingConfig(level="DEBUG"))

    LoggerFactory.reset()

    assert not LoggerFactory.is_configured()
    assert logging.getLogger().handlers == []


class TestConsoleRenderer:
    """Event display entries are formatted, everything else is rendered as key=value."""

    def test_event_display_is_formatted(self):
        # Arrange
        LoggerFactory.configure(LoggingConfig())
        renderer = LoggerFactory._custom_console_renderer()
        event_dict = {
            "logger": "basketlever.events.leverage_increased",
            "event": "event.display",
            "event_type": "leverage_increased",
            "basket_token": "0xbasket",
            "total_borrow": "1000000000",
        }

        # Act
        line = renderer(None, "info", event_dict)

        # Assert
        assert "Lever" in line
        assert "0xbasket" in line
        assert "1000000000" in line

    def test_event_display_dropped_when_disabled(self):
        LoggerFactory.configure(LoggingConfig(enable_event_display=False))
        renderer = LoggerFactory._custom_console_renderer()

        with pytest.raises(structlog.DropEvent):
            renderer(None, "info", {"logger": "basketlever.events.positions_synced", "event": "event.display"})

    def test_regular_entry_renders_context_sorted(self):
        LoggerFactory.configure(LoggingConfig())
        renderer = LoggerFactory._custom_console_renderer()

        line = renderer(
            None,
            "info",
            {"event": "leverage.positions.synced", "level": "info", "borrow_unit": -1, "basket": "0xb"},
        )

        assert "leverage.positions.synced" in line
        assert line.index("basket=0xb") < line.index("borrow_unit=-1")
