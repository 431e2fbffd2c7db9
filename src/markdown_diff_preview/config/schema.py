"""Pydantic models for configuration schema."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RenderConfig(BaseModel):
    """HTML rendering configuration."""

    show_line_numbers: bool = True
    wrap_plain_text: bool = True
    timestamp_format: str = "%Y-%m-%d %H:%M"
    empty_state_text: str = "Empty document"

    @field_validator("timestamp_format")
    @classmethod
    def validate_timestamp_format(cls, v: str) -> str:
        """Require at least one strftime directive."""
        if "%" not in v:
            raise ValueError(f"Timestamp format has no strftime directive: {v!r}")
        return v


class LedgerConfig(BaseModel):
    """Comment ledger serialization configuration."""

    indent: int = Field(2, ge=0, le=8)
    reserve_marker_ids: bool = True


class FileLoggingConfig(BaseModel):
    """File logging configuration."""

    enabled: bool = False
    path: Path = Path.home() / ".cache" / "markdown-diff-preview" / "preview.log"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "console"
    file: FileLoggingConfig = FileLoggingConfig()


class PreviewConfig(BaseSettings):
    """Root configuration for markdown-diff-preview."""

    render: RenderConfig = RenderConfig()
    ledger: LedgerConfig = LedgerConfig()
    logging: LoggingConfig = LoggingConfig()

    model_config = SettingsConfigDict(
        env_prefix="MDPREVIEW_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )
