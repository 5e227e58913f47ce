"""Logging Setup.

Routes the engine's log records (everything below the ``src`` package
logger) to a single handler, as JSON lines or as console text. Every
line carries the ledger, account and operation bound by
LedgerLogContext; a LedgerError attached to a record is written out with
its error code and details.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any, Optional

from src.ledger_errors.exceptions import LedgerError
from src.logging_config.config import (
    DEFAULT_LOGGING_CONFIG,
    LogFormat,
    LoggingConfig,
    set_active_config,
)
from src.logging_config.context import get_context_dict

LEDGER_LOGGER = "src"
HANDLER_NAME = "lot-ledger"

# Attributes the engine attaches through ``extra=``.
LEDGER_FIELDS = ("record_id", "instrument_id", "operation_name", "duration_ms")

QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "alembic")


def error_fields(exc: BaseException) -> dict[str, Any]:
    """Structured description of a logged exception."""
    if isinstance(exc, LedgerError):
        fields = exc.to_dict()
    else:
        fields = {"message": str(exc)}
    fields["type"] = type(exc).__name__
    return fields


class LedgerJsonFormatter(logging.Formatter):
    """One JSON object per record, ledger context before the message."""

    def __init__(self, service_name: str = "lot-ledger", include_caller: bool = True):
        super().__init__()
        self.service_name = service_name
        self.include_caller = include_caller

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "service": self.service_name,
        }
        entry.update(get_context_dict())
        entry["message"] = record.getMessage()

        for key in LEDGER_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value

        if self.include_caller:
            entry["source"] = f"{record.module}.{record.funcName}:{record.lineno}"

        if record.exc_info and record.exc_info[1] is not None:
            entry["error"] = error_fields(record.exc_info[1])
            entry["traceback"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class LedgerConsoleFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL logger: message [ledger_id=... operation=...]``."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)-8s %(name)s: %(message)s", datefmt="%H:%M:%S")

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        if record.exc_info and isinstance(record.exc_info[1], LedgerError):
            line += f" ({record.exc_info[1].error_code.value})"
        context = get_context_dict()
        if context:
            line += " [" + " ".join(f"{k}={v}" for k, v in context.items()) + "]"
        return line


def _ledger_logger() -> logging.Logger:
    return logging.getLogger(LEDGER_LOGGER)


def reset_logging() -> None:
    """Remove the handler installed by configure_logging and restore defaults."""
    target = _ledger_logger()
    for handler in list(target.handlers):
        if handler.get_name() == HANDLER_NAME:
            target.removeHandler(handler)
    target.setLevel(logging.NOTSET)
    set_active_config(DEFAULT_LOGGING_CONFIG)


def configure_logging(
    config: Optional[LoggingConfig] = None,
    stream: Optional[IO[str]] = None,
) -> logging.Handler:
    """Install the ledger log handler.

    Records still propagate to the root logger, so an application's own
    handlers keep working. Calling again replaces the previous handler.

    Args:
        config: Level, format and slow threshold. Defaults apply when
            omitted; LoggingConfig.from_settings reads them from
            ``LOTLEDGER_LOG_LEVEL`` / ``LOTLEDGER_LOG_FORMAT``.
        stream: Where lines are written. Defaults to stdout.

    Returns:
        The installed handler.
    """
    config = config or DEFAULT_LOGGING_CONFIG
    reset_logging()

    if config.format == LogFormat.JSON:
        formatter: logging.Formatter = LedgerJsonFormatter(
            service_name=config.service_name,
            include_caller=config.include_caller,
        )
    else:
        formatter = LedgerConsoleFormatter()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(formatter)

    target = _ledger_logger()
    target.addHandler(handler)
    target.setLevel(config.level.value)
    set_active_config(config)

    # SQL echo is controlled by LOTLEDGER_DATABASE_ECHO, not the ledger level
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler
