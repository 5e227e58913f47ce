"""Tests for financial-year capital gains reports."""

from datetime import date

import pytest

from src.capgains import InvalidArgument


@pytest.fixture
def two_years(orchestrator):
    """Long-term gains of 150k in FY 2023-24 and 80k in FY 2024-25, plus a short-term TCS trade."""
    orchestrator.record_acquisition("INFY", 100, 1_000.0, date(2021, 5, 1))
    orchestrator.record_disposal("INFY", 50, 4_000.0, date(2023, 6, 1))      # LT 150,000
    orchestrator.record_disposal("INFY", 40, 3_000.0, date(2024, 6, 1))      # LT 80,000
    orchestrator.record_acquisition("TCS", 10, 3_000.0, date(2024, 5, 1))
    orchestrator.record_disposal("TCS", 10, 3_500.0, date(2024, 8, 1))       # ST 5,000
    orchestrator.record_acquisition("WIPRO", 10, 500.0, date(2024, 5, 1))
    orchestrator.record_disposal("WIPRO", 10, 400.0, date(2024, 9, 1))       # ST -1,000


class TestPeriodReport:
    """Tests for CapitalGainsReporter.period_report."""

    def test_exemption_applied_per_year(self, reporter, two_years):
        first = reporter.period_report("2023-24")
        second = reporter.period_report("2024-25")
        assert first.tax.long_tax == pytest.approx(5_000)
        assert second.tax.long_tax == 0
        assert second.tax.exemption_used == pytest.approx(80_000)

    def test_bucket_totals(self, reporter, two_years):
        report = reporter.period_report("2024-25")
        assert report.long_term_gain == pytest.approx(80_000)
        assert report.short_term_gain == pytest.approx(4_000)
        assert report.total_gain == pytest.approx(84_000)
        assert report.total_losses == pytest.approx(-1_000)
        assert report.tax.short_tax == pytest.approx(1_000)

    def test_period_bounds(self, reporter, two_years):
        report = reporter.period_report("2024-25")
        assert report.period_start == date(2024, 4, 1)
        assert report.period_end == date(2025, 3, 31)

    @pytest.mark.parametrize("label", ["2024", "2024-2025", "FY 2024-25"])
    def test_label_normalized(self, reporter, two_years, label):
        assert reporter.period_report(label).financial_year == "2024-25"

    def test_invalid_label(self, reporter):
        with pytest.raises(InvalidArgument):
            reporter.period_report("next year")

    def test_by_instrument(self, reporter, two_years):
        report = reporter.period_report("2024-25")
        summaries = {s.instrument_id: s for s in report.by_instrument}
        assert list(summaries) == ["INFY", "TCS", "WIPRO"]
        assert summaries["INFY"].long_term_gain == pytest.approx(80_000)
        assert summaries["TCS"].short_term_gain == pytest.approx(5_000)
        assert summaries["WIPRO"].total_gain == pytest.approx(-1_000)
        assert summaries["TCS"].proceeds == pytest.approx(35_000)

    def test_instrument_filter(self, reporter, two_years):
        report = reporter.period_report("2024-25", instrument_id="TCS")
        assert [g.instrument_id for g in report.gains] == ["TCS"]

    def test_prior_gains(self, reporter, two_years):
        report = reporter.period_report("2024-25", prior_long_term_gains=50_000)
        assert report.tax.taxable_long_term == pytest.approx(30_000)
        assert report.tax.long_tax == pytest.approx(3_000)

    def test_empty_year(self, reporter, two_years):
        report = reporter.period_report("2019-20")
        assert report.gains == []
        assert report.tax.total_tax == 0

    def test_to_dict(self, reporter, two_years):
        data = reporter.period_report("2023-24").to_dict()
        assert data["financial_year"] == "2023-24"
        assert data["transactions"] == 1
        assert data["tax"]["long_tax"] == pytest.approx(5_000)
        assert data["by_instrument"][0]["instrument_id"] == "INFY"


class TestYearlyViews:
    """Tests for exemption usage and multi-year summaries."""

    def test_exemption_usage(self, reporter, two_years):
        usage = reporter.exemption_usage("2024-25", prior_long_term_gains=10_000)
        assert usage["long_term_gains"] == pytest.approx(90_000)
        assert usage["exemption_used"] == pytest.approx(90_000)
        assert usage["exemption_remaining"] == pytest.approx(10_000)
        assert usage["taxable_long_term"] == 0

    def test_financial_years(self, reporter, two_years):
        assert reporter.financial_years() == ["2023-24", "2024-25"]

    def test_yearly_summary(self, reporter, two_years):
        reports = reporter.yearly_summary()
        assert [r.financial_year for r in reports] == ["2023-24", "2024-25"]
        assert sum(r.tax.long_tax for r in reports) == pytest.approx(5_000)
