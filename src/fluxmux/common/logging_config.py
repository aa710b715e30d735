"""Logging section of the fluxmux configuration."""

from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Accepted spellings that map onto a standard level name
LEVEL_ALIASES = {"WARN": "WARNING", "FATAL": "ERROR"}


class LoggingConfig(BaseModel):
    """Where run logs go and how they are rendered.

    Console output always goes to stderr. ``file`` adds a rotating JSON log
    alongside it.
    """

    model_config = ConfigDict(extra='forbid')

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root log level"
    )
    format: Literal["simple", "detailed", "json"] = Field(
        default="json",
        description="Console rendering; file logs are always JSON"
    )
    file: Optional[Path] = Field(default=None, description="Rotating log file path")
    max_file_size_mb: int = Field(default=10, ge=1, description="Rotate the log file at this size")
    backup_count: int = Field(default=5, ge=0, description="Rotated log files to keep")

    @field_validator('level', mode='before')
    @classmethod
    def normalize_level(cls, v):
        if isinstance(v, str):
            v = v.strip().upper()
            return LEVEL_ALIASES.get(v, v)
        return v

    @field_validator('format', mode='before')
    @classmethod
    def normalize_format(cls, v):
        return v.strip().lower() if isinstance(v, str) else v
