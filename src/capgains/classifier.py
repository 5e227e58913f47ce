"""Holding Period Classification.

A matched lot is long-term when it was held strictly longer than the
threshold (365 days by default); otherwise it is short-term. Holding
periods are plain calendar-day differences.
"""

from datetime import date
from typing import Optional

from src.capgains.config import LONG_TERM_THRESHOLD_DAYS, GainBucket, TaxConfig
from src.ledger_errors.exceptions import InvalidArgument


def holding_period_days(acquired: date, disposed: date) -> int:
    """Calendar days between acquisition and disposal."""
    if acquired is None or disposed is None:
        raise InvalidArgument("Both acquisition and disposal dates are required", field="trade_date")
    return (disposed - acquired).days


def classify(holding_days: int, threshold_days: int = LONG_TERM_THRESHOLD_DAYS) -> GainBucket:
    """LONG if held more than ``threshold_days`` days, else SHORT."""
    if holding_days > threshold_days:
        return GainBucket.LONG
    return GainBucket.SHORT


class GainClassifier:
    """Classifies holding periods using the configured threshold."""

    def __init__(self, config: Optional[TaxConfig] = None):
        self.threshold_days = (config or TaxConfig()).long_term_threshold_days

    def classify(self, holding_days: int) -> GainBucket:
        return classify(holding_days, self.threshold_days)

    def classify_dates(self, acquired: date, disposed: date) -> tuple[int, GainBucket]:
        """Holding period and bucket for a pair of dates."""
        days = holding_period_days(acquired, disposed)
        return days, self.classify(days)

    def days_to_long_term(self, acquired: date, on: date) -> int:
        """Days left until a lot held since ``acquired`` turns long-term.

        Zero or negative once it already is.
        """
        return self.threshold_days + 1 - holding_period_days(acquired, on)
