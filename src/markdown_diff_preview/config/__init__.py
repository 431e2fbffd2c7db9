"""Configuration loading and validation."""

from .loader import load_config
from .schema import (
    FileLoggingConfig,
    LedgerConfig,
    LoggingConfig,
    PreviewConfig,
    RenderConfig,
)

__all__ = [
    # Loader
    "load_config",
    # Root config
    "PreviewConfig",
    # Sections
    "RenderConfig",
    "LedgerConfig",
    "LoggingConfig",
    "FileLoggingConfig",
]
