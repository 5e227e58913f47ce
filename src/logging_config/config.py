"""Logging Configuration.

Settings for structured logging, log levels, and output formats.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class LogLevel(str, Enum):
    """Log level options."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output format."""
    JSON = "json"
    CONSOLE = "console"


@dataclass
class LoggingConfig:
    """Structured logging configuration."""

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.JSON
    include_caller: bool = True
    slow_threshold_ms: float = 1000.0
    service_name: str = "lot-ledger"

    @classmethod
    def from_settings(cls, settings: Optional[object] = None) -> "LoggingConfig":
        """Build from application settings, falling back to defaults on unknown values."""
        if settings is None:
            from src.settings import get_settings
            settings = get_settings()
        level = str(settings.log_level).upper()
        fmt = str(settings.log_format).lower()
        return cls(
            level=LogLevel(level) if level in LogLevel.__members__ else LogLevel.INFO,
            format=LogFormat(fmt) if fmt in [f.value for f in LogFormat] else LogFormat.JSON,
            slow_threshold_ms=settings.slow_threshold_ms,
        )


DEFAULT_LOGGING_CONFIG = LoggingConfig()

_active_config = DEFAULT_LOGGING_CONFIG


def active_config() -> LoggingConfig:
    """The config installed by the last configure_logging call."""
    return _active_config


def set_active_config(config: LoggingConfig) -> None:
    global _active_config
    _active_config = config
