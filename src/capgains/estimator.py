"""Tax Liability Estimation.

Computes bucketed tax on realized gains:

- short-term gains are taxed at the short rate on the full amount;
- long-term gains are pooled with long-term gains already realized in the
  same aggregation period and only the part of the pool above the
  exemption threshold is taxed at the long rate.

Losses never produce negative tax. The exemption belongs to the
aggregation period, not to any single gain, so callers estimating one
disposal at a time pass the period's prior long-term gains.
"""

from typing import Iterable, Optional
import logging

from src.capgains.config import GainBucket, TaxConfig, DEFAULT_TAX_CONFIG
from src.capgains.models import RealizedGain, TaxEstimate
from src.ledger_errors.exceptions import InvalidArgument

logger = logging.getLogger(__name__)


class TaxEstimator:
    """Estimates short-term and long-term tax on realized gains."""

    def __init__(self, config: Optional[TaxConfig] = None):
        self.config = config or DEFAULT_TAX_CONFIG

    def estimate_tax(
        self,
        realized_gains: Iterable[RealizedGain],
        prior_long_term_gains: float = 0.0,
        short_rate: Optional[float] = None,
        long_rate: Optional[float] = None,
        long_exemption_threshold: Optional[float] = None,
    ) -> TaxEstimate:
        """Estimate tax for a set of realized gains.

        Args:
            realized_gains: Gains to tax, any mix of buckets.
            prior_long_term_gains: Long-term gains already realized in the
                aggregation period, which consume the exemption first.
            short_rate: Short-term rate (defaults to config).
            long_rate: Long-term rate (defaults to config).
            long_exemption_threshold: Long-term exemption for the period
                (defaults to config).

        Returns:
            TaxEstimate with gains, taxable amounts and tax per bucket.
        """
        short_rate = self.config.short_term_rate if short_rate is None else short_rate
        long_rate = self.config.long_term_rate if long_rate is None else long_rate
        threshold = (
            self.config.long_term_exemption
            if long_exemption_threshold is None else long_exemption_threshold
        )
        self._validate(short_rate, long_rate, threshold, prior_long_term_gains)

        short_gain = 0.0
        long_gain = 0.0
        taxable_short = 0.0
        taxable_long_new = 0.0

        for gain in realized_gains:
            if gain.bucket == GainBucket.LONG:
                long_gain += gain.gain_amount
                taxable_long_new += max(0.0, gain.gain_amount)
            else:
                short_gain += gain.gain_amount
                taxable_short += max(0.0, gain.gain_amount)

        pooled_long = prior_long_term_gains + taxable_long_new
        taxable_long = max(0.0, pooled_long - threshold)
        exemption_used = min(pooled_long, threshold) if pooled_long > 0 else 0.0

        estimate = TaxEstimate(
            short_term_gain=short_gain,
            long_term_gain=long_gain,
            taxable_short_term=taxable_short,
            taxable_long_term=taxable_long,
            prior_long_term_gains=prior_long_term_gains,
            exemption_threshold=threshold,
            exemption_used=exemption_used,
            short_rate=short_rate,
            long_rate=long_rate,
            short_tax=taxable_short * short_rate,
            long_tax=taxable_long * long_rate,
        )

        logger.debug(
            "Estimated tax: short=%.2f long=%.2f (pooled long-term %.2f, exemption %.2f)",
            estimate.short_tax, estimate.long_tax, pooled_long, threshold,
        )
        return estimate

    def estimate_single(
        self,
        gain_amount: float,
        bucket: GainBucket,
        prior_long_term_gains: float = 0.0,
    ) -> float:
        """Tax on one gain amount given the period's prior long-term gains."""
        if gain_amount <= 0:
            return 0.0
        if bucket == GainBucket.LONG:
            pooled = prior_long_term_gains + gain_amount
            return max(0.0, pooled - self.config.long_term_exemption) * self.config.long_term_rate
        return gain_amount * self.config.short_term_rate

    @staticmethod
    def _validate(
        short_rate: float,
        long_rate: float,
        threshold: float,
        prior_long_term_gains: float,
    ) -> None:
        for name, rate in (("short_rate", short_rate), ("long_rate", long_rate)):
            if not 0.0 <= rate <= 1.0:
                raise InvalidArgument(f"{name} must be between 0 and 1, got {rate}", field=name)
        if threshold < 0:
            raise InvalidArgument(
                f"Exemption threshold cannot be negative, got {threshold}",
                field="long_exemption_threshold",
            )
        if prior_long_term_gains < 0:
            raise InvalidArgument(
                "Prior long-term gains cannot be negative",
                field="prior_long_term_gains",
            )
