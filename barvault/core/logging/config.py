"""Logging configuration primitives for structured logging."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:
    from barvault.core.config import LoggingConfig

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


class LogConfig(BaseModel):
    """Sinks and level of barvault's JSON log stream.

    Records always go to ``console_stream`` (stderr when unset) so command
    output on stdout stays machine readable; ``file_path`` adds a JSON-lines
    file next to it.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    level: str = "INFO"
    console_output: bool = True
    console_stream: Any = None
    file_path: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)

    @field_validator("level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"unknown log level '{value}'")
        return level

    @classmethod
    def from_settings(cls, settings: LoggingConfig, *, level: str | None = None, **kwargs: Any) -> LogConfig:
        """Build from the ``[logging]`` config section; an explicit ``level`` wins."""

        return cls(level=level or settings.level, file_path=settings.file, **kwargs)


__all__ = ["LOG_LEVELS", "LogConfig"]
