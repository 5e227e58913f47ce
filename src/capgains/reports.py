"""Capital Gains Reports.

Aggregates realized gains per financial year and applies the long-term
exemption once per year through the tax estimator.
"""

from typing import Any, Optional
import logging

from src.capgains.estimator import TaxEstimator
from src.capgains.ledger import LotLedger
from src.capgains.models import InstrumentGainSummary, PeriodReport, RealizedGain
from src.capgains.periods import (
    financial_year_bounds,
    format_financial_year,
    parse_financial_year,
)

logger = logging.getLogger(__name__)


class CapitalGainsReporter:
    """Builds per-period capital gains reports.

    Produces:
    - Financial-year reports with bucketed gains and estimated tax
    - Long-term exemption usage for a year
    - A summary across every year with realized gains
    """

    def __init__(self, context: Any, ledger: Optional[LotLedger] = None):
        self.context = context
        self.config = context.config
        self.ledger = ledger or LotLedger(context)
        self.estimator = TaxEstimator(context.config)

    def _label(self, financial_year: str) -> str:
        """Normalize ``"2024"``/``"2024-2025"``/``"FY 2024-25"`` to the stored label."""
        return format_financial_year(
            parse_financial_year(financial_year), self.config.financial_year_start_month
        )

    def period_report(
        self,
        financial_year: str,
        prior_long_term_gains: float = 0.0,
        instrument_id: Optional[str] = None,
    ) -> PeriodReport:
        """Report for one financial year.

        Args:
            financial_year: Year label such as ``"2024-25"``.
            prior_long_term_gains: Long-term gains realized in the year
                outside this ledger; they consume the exemption first.
            instrument_id: Restrict to one instrument.

        Returns:
            PeriodReport with the year's gains, per-instrument totals and
            the tax estimate.
        """
        label = self._label(financial_year)
        start, end = financial_year_bounds(label, self.config.financial_year_start_month)
        gains = self.ledger.realized_gains(financial_year=label, instrument_id=instrument_id)

        report = PeriodReport(
            financial_year=label,
            period_start=start,
            period_end=end,
            gains=gains,
            tax=self.estimator.estimate_tax(gains, prior_long_term_gains=prior_long_term_gains),
            by_instrument=self._by_instrument(gains),
        )
        logger.debug(
            "Report %s: %d gains, short %.2f, long %.2f, tax %.2f",
            label, len(gains), report.short_term_gain, report.long_term_gain, report.tax.total_tax,
        )
        return report

    def _by_instrument(self, gains: list[RealizedGain]) -> list[InstrumentGainSummary]:
        summaries: dict[str, InstrumentGainSummary] = {}
        for gain in gains:
            summary = summaries.setdefault(gain.instrument_id, InstrumentGainSummary(gain.instrument_id))
            summary.quantity += gain.quantity
            summary.proceeds += gain.proceeds
            summary.cost_basis += gain.cost_basis
            if gain.is_long_term:
                summary.long_term_gain += gain.gain_amount
            else:
                summary.short_term_gain += gain.gain_amount
        return sorted(summaries.values(), key=lambda s: s.instrument_id)

    def exemption_usage(
        self,
        financial_year: str,
        prior_long_term_gains: float = 0.0,
    ) -> dict[str, Any]:
        """How much of the year's long-term exemption is consumed."""
        report = self.period_report(financial_year, prior_long_term_gains=prior_long_term_gains)
        tax = report.tax
        return {
            "financial_year": report.financial_year,
            "exemption_threshold": tax.exemption_threshold,
            "long_term_gains": tax.prior_long_term_gains + sum(
                g.gain_amount for g in report.gains if g.is_long_term and g.is_gain
            ),
            "exemption_used": tax.exemption_used,
            "exemption_remaining": tax.exemption_remaining,
            "taxable_long_term": tax.taxable_long_term,
        }

    def financial_years(self) -> list[str]:
        """Every financial year with realized gains, oldest first."""
        labels = {g.financial_year for g in self.ledger.realized_gains()}
        return sorted(labels, key=parse_financial_year)

    def yearly_summary(self) -> list[PeriodReport]:
        """A report for each financial year with realized gains.

        Each year gets its own exemption; nothing carries over.
        """
        return [self.period_report(label) for label in self.financial_years()]
