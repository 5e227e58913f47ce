"""Performance Logging.

Times ledger operations. Calls finishing under the slow threshold are
logged at DEBUG, slower ones at WARNING and failures at ERROR. Unless a
threshold is given explicitly it is read from the active LoggingConfig
at call time, so ``LOTLEDGER_SLOW_THRESHOLD_MS`` applies once logging is
configured.
"""

import functools
import logging
import time
from typing import Any, Callable, Optional

from src.logging_config.config import active_config

logger = logging.getLogger(__name__)


class PerformanceTimer:
    """Context manager for timing a block of ledger work.

    Example:
        with PerformanceTimer("rederive INFY from 2024-01-01") as timer:
            rederive(session, "INFY")
        timer.duration_ms
    """

    def __init__(
        self,
        operation_name: str,
        threshold_ms: Optional[float] = None,
        log: Optional[logging.Logger] = None,
    ):
        self.operation_name = operation_name
        self._threshold_ms = threshold_ms
        self.log = log or logger
        self.start_time: float = 0
        self.duration_ms: float = 0

    @property
    def threshold_ms(self) -> float:
        if self._threshold_ms is not None:
            return self._threshold_ms
        return active_config().slow_threshold_ms

    def __enter__(self) -> "PerformanceTimer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.duration_ms = (time.perf_counter() - self.start_time) * 1000
        extra = {"duration_ms": round(self.duration_ms, 2), "operation_name": self.operation_name}

        if exc_type is not None:
            self.log.error(
                "%s failed after %.1fms: %s",
                self.operation_name, self.duration_ms, exc_type.__name__,
                extra=extra,
            )
        elif self.duration_ms >= self.threshold_ms:
            self.log.warning(
                "Slow operation: %s took %.1fms", self.operation_name, self.duration_ms,
                extra=extra,
            )
        else:
            self.log.debug(
                "%s completed in %.1fms", self.operation_name, self.duration_ms,
                extra=extra,
            )


def log_performance(threshold_ms: Optional[float] = None) -> Callable:
    """Decorator timing each call with a PerformanceTimer.

    Logs through the decorated function's module logger. Exceptions
    propagate after the failure is logged.

    Example:
        @log_performance()
        def record_disposal(self, instrument_id, quantity, unit_price, trade_date):
            ...
    """
    def decorator(func: Callable) -> Callable:
        log = logging.getLogger(func.__module__)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            with PerformanceTimer(func.__qualname__, threshold_ms, log):
                return func(*args, **kwargs)

        return wrapper

    return decorator
