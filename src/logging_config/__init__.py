"""Structured Logging & Ledger Context.

Provides JSON and console logging for the engine, ledger/account
context binding, and performance timing for ledger operations.
"""

from src.logging_config.config import LogFormat, LoggingConfig, LogLevel, active_config
from src.logging_config.context import LedgerLogContext, generate_ledger_id, get_context_dict
from src.logging_config.performance import PerformanceTimer, log_performance
from src.logging_config.setup import (
    LedgerConsoleFormatter,
    LedgerJsonFormatter,
    configure_logging,
    reset_logging,
)

__all__ = [
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "active_config",
    "LedgerLogContext",
    "LedgerConsoleFormatter",
    "LedgerJsonFormatter",
    "PerformanceTimer",
    "configure_logging",
    "generate_ledger_id",
    "get_context_dict",
    "log_performance",
    "reset_logging",
]
