"""Tests for the logging configuration module."""

from pathlib import Path

from markdown_diff_preview.utils.logging import (
    LogEventNames,
    LogFormat,
    LogLevel,
    add_context_processor,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)


class TestAddContextProcessor:
    """Tests for add_context_processor."""

    def test_adds_service(self) -> None:
        """Test that the service name is added."""
        result = add_context_processor(None, "info", {"event": "x"})  # type: ignore[arg-type]
        assert result["service"] == "markdown-diff-preview"
        assert result["event"] == "x"


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_configure_with_console_format(self) -> None:
        """Test configuration with console format."""
        configure_logging(level=LogLevel.DEBUG, log_format=LogFormat.CONSOLE)
        # Should not raise

    def test_configure_with_json_format(self) -> None:
        """Test configuration with JSON format."""
        configure_logging(level=LogLevel.INFO, log_format=LogFormat.JSON)
        # Should not raise

    def test_configure_with_string_values(self) -> None:
        """Test configuration with string values."""
        configure_logging(level="warning", log_format="JSON")
        # Should not raise

    def test_configure_with_file_logging(self, tmp_path: Path) -> None:
        """Test configuration with file logging."""
        log_file = tmp_path / "logs" / "test.log"
        configure_logging(
            level=LogLevel.INFO,
            log_format=LogFormat.JSON,
            file_path=log_file,
            file_enabled=True,
        )
        assert log_file.parent.exists()


class TestGetLogger:
    """Tests for get_logger function."""

    def test_get_logger_returns_bound_logger(self) -> None:
        """Test that get_logger returns a structlog logger."""
        configure_logging()
        log = get_logger("test")
        assert log is not None


class TestContextFunctions:
    """Tests for context binding functions."""

    def test_bind_and_clear_context(self) -> None:
        """Test binding and clearing context."""
        bind_context(file_path="docs/guide.md", comment_id=3)
        clear_context()


class TestLogLevel:
    """Tests for LogLevel enum."""

    def test_log_levels(self) -> None:
        """Test that all expected log levels exist."""
        assert LogLevel.DEBUG.value == "DEBUG"
        assert LogLevel.INFO.value == "INFO"
        assert LogLevel.WARNING.value == "WARNING"
        assert LogLevel.ERROR.value == "ERROR"
        assert LogLevel.CRITICAL.value == "CRITICAL"


class TestLogFormat:
    """Tests for LogFormat enum."""

    def test_log_formats(self) -> None:
        """Test that all expected formats exist."""
        assert LogFormat.JSON.value == "json"
        assert LogFormat.CONSOLE.value == "console"


class TestLogEventNames:
    """Tests for event name constants."""

    def test_snake_case(self) -> None:
        """Test that event names are snake_case strings."""
        names = [value for key, value in vars(LogEventNames).items() if key.isupper()]
        assert names
        assert all(name == name.lower() and " " not in name for name in names)
