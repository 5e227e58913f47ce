"""Tests for derived lot availability."""

from collections import defaultdict
from datetime import date

import pytest

from src.capgains import (
    DisposalOrchestrator,
    EditRequest,
    GainBucket,
    InvalidArgument,
    LedgerContext,
    LotLedger,
    NotFound,
    TransactionType,
)
from src.capgains.ledger import QUANTITY_EPSILON


# Steps: ("buy", quantity, date), ("sell", quantity, date) or
# ("edit", index of an earlier step, changes).
SEQUENCES = {
    "interleaved": [
        ("buy", 10, date(2024, 1, 1)),
        ("buy", 5, date(2024, 2, 1)),
        ("sell", 7, date(2024, 3, 1)),
        ("buy", 8, date(2024, 4, 1)),
        ("sell", 10, date(2024, 5, 1)),
        ("sell", 3, date(2024, 6, 1)),
    ],
    "fractional": [
        ("buy", 0.1, date(2024, 1, 1)),
        ("buy", 0.2, date(2024, 1, 1)),
        ("sell", 0.3, date(2024, 2, 1)),
        ("buy", 1.5, date(2024, 3, 1)),
        ("sell", 0.75, date(2024, 4, 1)),
        ("sell", 0.75, date(2024, 5, 1)),
    ],
    "acquisition_moved_later": [
        ("buy", 10, date(2024, 1, 1)),
        ("buy", 10, date(2024, 3, 1)),
        ("sell", 12, date(2024, 6, 1)),
        ("edit", 0, {"trade_date": date(2024, 4, 1)}),
        ("sell", 5, date(2024, 7, 1)),
    ],
    "disposal_quantity_cut": [
        ("buy", 10, date(2024, 1, 1)),
        ("buy", 10, date(2024, 3, 1)),
        ("sell", 8, date(2024, 4, 1)),
        ("sell", 8, date(2024, 6, 1)),
        ("edit", 2, {"quantity": 2}),
        ("sell", 6, date(2024, 7, 1)),
    ],
    "quantity_raise_then_flip": [
        ("buy", 10, date(2024, 1, 1)),
        ("buy", 4, date(2024, 2, 1)),
        ("sell", 6, date(2024, 3, 1)),
        ("buy", 5, date(2024, 4, 1)),
        ("edit", 0, {"quantity": 12}),
        ("edit", 3, {"transaction_type": TransactionType.DISPOSAL}),
    ],
    "disposal_moved_earlier_then_repriced": [
        ("buy", 10, date(2024, 1, 1)),
        ("buy", 10, date(2024, 3, 1)),
        ("sell", 5, date(2024, 5, 1)),
        ("sell", 10, date(2024, 8, 1)),
        ("edit", 3, {"trade_date": date(2024, 3, 15)}),
        ("edit", 1, {"unit_price": 110.0}),
    ],
}


def _assert_conserved(ledger, instrument_id):
    """Open quantity equals acquired minus disposed and no lot is overdrawn."""
    records = ledger.records(instrument_id)
    acquired = sum(r.quantity for r in records if r.is_acquisition)
    disposed = sum(r.quantity for r in records if r.is_disposal)
    for record in records:
        if record.is_acquisition:
            assert record.quantity - ledger.consumed_quantity(record.record_id) >= -QUANTITY_EPSILON
        else:
            matched = sum(g.quantity for g in ledger.gains_for_disposal(record.record_id))
            assert matched == pytest.approx(record.quantity)
    available = sum(lot.available for lot in ledger.available_lots(instrument_id))
    assert available == pytest.approx(acquired - disposed, abs=1e-9)


def _assert_fifo(ledger, instrument_id):
    """A disposal only draws on a lot once every older eligible lot is used up."""
    records = ledger.records(instrument_id)
    rank = {r.record_id: (r.trade_date, r.record_id) for r in records}
    acquisitions = [r for r in records if r.is_acquisition]
    gains = ledger.realized_gains(instrument_id=instrument_id)
    for gain in gains:
        drawn = defaultdict(float)
        for other in gains:
            if rank[other.disposal_id] <= rank[gain.disposal_id]:
                drawn[other.acquisition_id] += other.quantity
        for lot in acquisitions:
            older = rank[lot.record_id] < rank[gain.acquisition_id]
            if older and lot.trade_date <= gain.disposal_date:
                assert drawn[lot.record_id] == pytest.approx(lot.quantity)


class TestAvailableLots:
    """Tests for LotLedger.available_lots."""

    def test_ordered_by_date_then_insertion(self, orchestrator, ledger):
        late = orchestrator.record_acquisition("INFY", 5, 130.0, date(2024, 3, 1))
        first = orchestrator.record_acquisition("INFY", 5, 100.0, date(2024, 1, 1))
        second = orchestrator.record_acquisition("INFY", 5, 90.0, date(2024, 1, 1))
        lots = ledger.available_lots("INFY")
        assert [lot.acquisition_id for lot in lots] == [
            first.record_id, second.record_id, late.record_id,
        ]

    def test_availability_derived_from_matches(self, orchestrator, ledger, two_lots):
        orchestrator.record_disposal("INFY", 12, 150.0, date(2024, 6, 1))
        lots = ledger.available_lots("INFY")
        assert len(lots) == 1
        assert lots[0].acquisition_id == two_lots[1].record_id
        assert lots[0].available == pytest.approx(8)
        assert lots[0].consumed == pytest.approx(2)

    def test_fully_consumed_lots_excluded(self, orchestrator, ledger, two_lots):
        orchestrator.record_disposal("INFY", 20, 150.0, date(2024, 6, 1))
        assert ledger.available_lots("INFY") == []

    def test_unknown_instrument(self, ledger, two_lots):
        with pytest.raises(NotFound) as exc_info:
            ledger.available_lots("TCS")
        assert exc_info.value.resource_id == "TCS"

    def test_as_of_excludes_later_lots(self, ledger, two_lots):
        lots = ledger.available_lots("INFY", as_of=date(2024, 2, 1))
        assert [lot.acquisition_id for lot in lots] == [two_lots[0].record_id]

    def test_as_of_includes_same_day(self, ledger, two_lots):
        lots = ledger.available_lots("INFY", as_of=date(2024, 3, 1))
        assert len(lots) == 2

    def test_repeated_reads_identical(self, orchestrator, ledger, two_lots):
        orchestrator.record_disposal("INFY", 3, 150.0, date(2024, 6, 1))
        assert ledger.available_lots("INFY") == ledger.available_lots("INFY")


class TestLedgerReads:
    """Tests for records, consumption and holdings."""

    def test_consumed_quantity(self, orchestrator, ledger, two_lots):
        orchestrator.record_disposal("INFY", 12, 150.0, date(2024, 6, 1))
        assert ledger.consumed_quantity(two_lots[0].record_id) == pytest.approx(10)
        assert ledger.consumed_quantity(two_lots[1].record_id) == pytest.approx(2)

    def test_consumed_quantity_unknown_record(self, ledger):
        with pytest.raises(NotFound):
            ledger.consumed_quantity(999)

    def test_get_record(self, ledger, two_lots):
        record = ledger.get_record(two_lots[0].record_id)
        assert record.is_acquisition
        assert record.quantity == 10
        assert record.account_id == "test-account"

    def test_get_record_missing(self, ledger):
        with pytest.raises(NotFound) as exc_info:
            ledger.get_record(42)
        assert exc_info.value.resource_type == "record"

    def test_records_filtered(self, orchestrator, ledger, two_lots):
        orchestrator.record_disposal("INFY", 1, 150.0, date(2024, 6, 1))
        disposals = ledger.records(transaction_type=TransactionType.DISPOSAL)
        assert len(disposals) == 1
        assert disposals[0].is_disposal
        assert len(ledger.records(instrument_id="INFY")) == 3

    def test_inventory_before(self, orchestrator, ledger, two_lots):
        orchestrator.record_disposal("INFY", 4, 150.0, date(2024, 6, 1))
        assert ledger.inventory_before("INFY", date(2024, 3, 1)) == pytest.approx(10)
        assert ledger.inventory_before("INFY", date(2024, 7, 1)) == pytest.approx(16)
        assert ledger.inventory_before(
            "INFY", date(2024, 7, 1), exclude_id=two_lots[0].record_id
        ) == pytest.approx(6)

    def test_holdings(self, orchestrator, ledger, two_lots):
        orchestrator.record_disposal("INFY", 12, 150.0, date(2024, 6, 1))
        position = ledger.holdings("INFY")
        assert position.quantity == pytest.approx(8)
        assert position.cost == pytest.approx(960)
        assert position.average_cost == pytest.approx(120)

    def test_all_holdings_skips_closed(self, orchestrator, ledger, two_lots):
        orchestrator.record_acquisition("TCS", 5, 3000.0, date(2024, 2, 1))
        orchestrator.record_disposal("INFY", 20, 150.0, date(2024, 6, 1))
        assert [h.instrument_id for h in ledger.all_holdings()] == ["TCS"]
        assert ledger.instruments() == ["INFY", "TCS"]


class TestUnrealizedGains:
    """Tests for valuing open lots at a supplied price."""

    def test_values_open_quantity(self, orchestrator, ledger, two_lots):
        orchestrator.record_disposal("INFY", 12, 150.0, date(2024, 6, 1))
        gains = ledger.unrealized_gains("INFY", 130.0, as_of=date(2025, 1, 15))
        assert len(gains) == 1
        lot = gains[0]
        assert lot.acquisition_id == two_lots[1].record_id
        assert lot.quantity == pytest.approx(8)
        assert lot.cost_basis == pytest.approx(960)
        assert lot.market_value == pytest.approx(1_040)
        assert lot.gain_amount == pytest.approx(80)
        assert lot.gain_percent == pytest.approx(8.3333, rel=1e-4)

    def test_bucket_if_sold_on_valuation_date(self, ledger, two_lots):
        first, second = ledger.unrealized_gains("INFY", 90.0, as_of=date(2025, 1, 2))
        assert first.holding_period_days == 367
        assert first.bucket == GainBucket.LONG
        assert first.days_to_long_term == 0
        assert first.gain_amount == pytest.approx(-100)
        assert second.holding_period_days == 307
        assert second.bucket == GainBucket.SHORT
        assert second.days_to_long_term == 59
        assert second.gain_amount == pytest.approx(-300)

    def test_leaves_out_lots_after_valuation_date(self, ledger, two_lots):
        gains = ledger.unrealized_gains("INFY", 110.0, as_of=date(2024, 2, 1))
        assert [g.acquisition_id for g in gains] == [two_lots[0].record_id]

    @pytest.mark.parametrize("price", [0, -5.0, "abc", None])
    def test_invalid_price(self, ledger, two_lots, price):
        with pytest.raises(InvalidArgument) as exc_info:
            ledger.unrealized_gains("INFY", price, as_of=date(2024, 6, 1))
        assert exc_info.value.field == "unit_price"

    def test_unknown_instrument(self, ledger):
        with pytest.raises(NotFound):
            ledger.unrealized_gains("NOPE", 10.0, as_of=date(2024, 6, 1))

    def test_to_dict(self, ledger, two_lots):
        data = ledger.unrealized_gains("INFY", 110.0, as_of=date(2024, 6, 1))[0].to_dict()
        assert data["acquisition_date"] == "2024-01-01"
        assert data["bucket"] == "SHORT"
        assert data["gain_amount"] == pytest.approx(100)


class TestLotsByAge:
    """Tests for grouping open lots by holding age."""

    def test_default_buckets(self, orchestrator, ledger):
        old = orchestrator.record_acquisition("INFY", 6, 100.0, date(2021, 1, 1))
        mid = orchestrator.record_acquisition("INFY", 2, 100.0, date(2023, 9, 1))
        new = orchestrator.record_acquisition("INFY", 2, 100.0, date(2024, 5, 1))
        buckets = ledger.lots_by_age("INFY", as_of=date(2024, 6, 1))
        assert [b.label for b in buckets] == [
            "0-6 months", "6-12 months", "1-2 years", "2-5 years", "5+ years",
        ]
        by_label = {b.label: b for b in buckets}
        assert [lot.acquisition_id for lot in by_label["0-6 months"].lots] == [new.record_id]
        assert [lot.acquisition_id for lot in by_label["6-12 months"].lots] == [mid.record_id]
        assert [lot.acquisition_id for lot in by_label["2-5 years"].lots] == [old.record_id]
        assert by_label["2-5 years"].quantity == pytest.approx(6)
        assert by_label["2-5 years"].share == pytest.approx(60)
        assert by_label["5+ years"].lots == []
        assert by_label["5+ years"].share == 0

    def test_consumed_lots_left_out(self, orchestrator, ledger, two_lots):
        orchestrator.record_disposal("INFY", 10, 150.0, date(2024, 6, 1))
        buckets = ledger.lots_by_age("INFY", as_of=date(2024, 7, 1))
        assert [lot.acquisition_id for b in buckets for lot in b.lots] == [two_lots[1].record_id]
        assert buckets[0].share == pytest.approx(100)

    def test_custom_buckets_inclusive(self, ledger, two_lots):
        young, older = ledger.lots_by_age(
            "INFY",
            as_of=date(2024, 6, 1),
            buckets=[("young", 0, 92), ("older", 93, None)],
        )
        assert [lot.acquisition_id for lot in young.lots] == [two_lots[1].record_id]
        assert [lot.acquisition_id for lot in older.lots] == [two_lots[0].record_id]

    def test_age_outside_buckets(self, ledger, two_lots):
        with pytest.raises(InvalidArgument) as exc_info:
            ledger.lots_by_age("INFY", as_of=date(2024, 6, 1), buckets=[("recent", 0, 30)])
        assert exc_info.value.field == "buckets"


class TestLedgerInvariants:
    """Conservation and isolation across ledgers."""

    def test_quantity_conserved(self, orchestrator, ledger, two_lots):
        orchestrator.record_disposal("INFY", 3, 150.0, date(2024, 4, 1))
        orchestrator.record_disposal("INFY", 9, 150.0, date(2024, 6, 1))
        for acquisition in two_lots:
            consumed = sum(g.quantity for g in ledger.gains_for_acquisition(acquisition.record_id))
            available = sum(
                lot.available for lot in ledger.available_lots("INFY")
                if lot.acquisition_id == acquisition.record_id
            )
            assert consumed + available == pytest.approx(acquisition.quantity)

    @pytest.mark.parametrize("steps", list(SEQUENCES.values()), ids=list(SEQUENCES))
    def test_conserved_after_every_step(self, orchestrator, editor, ledger, steps):
        record_ids = []
        for kind, *args in steps:
            if kind == "buy":
                quantity, on = args
                record_ids.append(orchestrator.record_acquisition("INFY", quantity, 100.0, on).record_id)
            elif kind == "sell":
                quantity, on = args
                record_ids.append(orchestrator.record_disposal("INFY", quantity, 150.0, on).disposal.record_id)
            else:
                index, changes = args
                editor.commit_edit(EditRequest(record_id=record_ids[index], **changes))
                record_ids.append(record_ids[index])
            _assert_conserved(ledger, "INFY")
            _assert_fifo(ledger, "INFY")

    def test_accounts_isolated(self, context, two_lots):
        other = LedgerContext(store=context.store, account_id="someone-else")
        with pytest.raises(NotFound):
            LotLedger(other).available_lots("INFY")
        with pytest.raises(NotFound):
            LotLedger(other).get_record(two_lots[0].record_id)

    def test_independent_contexts(self):
        first = LedgerContext.in_memory()
        second = LedgerContext.in_memory()
        try:
            DisposalOrchestrator(first).record_acquisition("INFY", 1, 10.0, date(2024, 1, 1))
            assert LotLedger(first).instruments() == ["INFY"]
            assert LotLedger(second).instruments() == []
        finally:
            first.store.engine.dispose()
            second.store.engine.dispose()
