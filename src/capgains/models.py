"""Capital Gains Data Models.

Dataclasses for ledger records, lots, matches, realized gains, tax
estimates and edit proposals.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Optional

from src.capgains.config import EditRule, EditState, GainBucket, TransactionType


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Ledger Records
# =============================================================================

@dataclass(frozen=True)
class TradeRecord:
    """An acquisition or disposal as recorded in the ledger."""
    record_id: int
    instrument_id: str
    trade_date: date
    quantity: float
    unit_price: float
    transaction_type: TransactionType
    notes: Optional[str] = None
    account_id: str = "default"

    @property
    def is_acquisition(self) -> bool:
        return self.transaction_type == TransactionType.ACQUISITION

    @property
    def is_disposal(self) -> bool:
        return self.transaction_type == TransactionType.DISPOSAL

    @property
    def total_value(self) -> float:
        return self.quantity * self.unit_price

    @staticmethod
    def create(**values: Any) -> "TradeRecord":
        """Build the Acquisition or Disposal matching ``transaction_type``."""
        record_type = TransactionType(values.pop("transaction_type"))
        cls = Acquisition if record_type == TransactionType.ACQUISITION else Disposal
        return cls(transaction_type=record_type, **values)

    @classmethod
    def from_row(cls, row: Any) -> "TradeRecord":
        """Convert a LedgerTransaction ORM row."""
        return TradeRecord.create(
            record_id=row.id,
            instrument_id=row.instrument_id,
            trade_date=row.trade_date,
            quantity=row.quantity,
            unit_price=row.unit_price,
            transaction_type=row.transaction_type,
            notes=row.notes,
            account_id=row.account_id,
        )

    def audit_values(self) -> dict[str, Any]:
        """Values of the fields tracked by the audit log."""
        return {
            "trade_date": self.trade_date,
            "instrument_id": self.instrument_id,
            "transaction_type": self.transaction_type.value,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "notes": self.notes,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "record_id": self.record_id,
            "account_id": self.account_id,
            "instrument_id": self.instrument_id,
            "transaction_type": self.transaction_type.value,
            "trade_date": self.trade_date.isoformat(),
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class Acquisition(TradeRecord):
    """A recorded purchase ("buy")."""
    transaction_type: TransactionType = TransactionType.ACQUISITION


@dataclass(frozen=True)
class Disposal(TradeRecord):
    """A recorded sale ("sell")."""
    transaction_type: TransactionType = TransactionType.DISPOSAL


# =============================================================================
# Lots and Matches
# =============================================================================

@dataclass(frozen=True)
class AvailableLot:
    """Unconsumed portion of one acquisition."""
    acquisition_id: int
    trade_date: date
    unit_price: float
    quantity: float
    available: float

    @property
    def consumed(self) -> float:
        return self.quantity - self.available


@dataclass(frozen=True)
class MatchedLot:
    """Part of a disposal satisfied from a single lot."""
    acquisition_id: int
    acquisition_date: date
    quantity: float
    unit_cost_basis: float
    unit_proceeds: float
    holding_period_days: int

    @property
    def cost(self) -> float:
        return self.quantity * self.unit_cost_basis

    @property
    def proceeds(self) -> float:
        return self.quantity * self.unit_proceeds

    @property
    def gain(self) -> float:
        return self.proceeds - self.cost


@dataclass
class MatchResult:
    """Outcome of FIFO matching one disposal."""
    matched_lots: list[MatchedLot] = field(default_factory=list)
    total_quantity: float = 0.0
    total_cost: float = 0.0
    total_proceeds: float = 0.0
    total_gain: float = 0.0

    @property
    def average_cost(self) -> float:
        if self.total_quantity == 0:
            return 0.0
        return self.total_cost / self.total_quantity


@dataclass
class RealizedGain:
    """Record of one acquisition/disposal pairing."""
    acquisition_id: int
    disposal_id: int
    instrument_id: str
    quantity: float
    unit_cost_basis: float
    unit_proceeds: float
    acquisition_date: date
    disposal_date: date
    holding_period_days: int
    bucket: GainBucket
    gain_amount: float
    financial_year: str = ""
    gain_id: Optional[int] = None

    @property
    def cost_basis(self) -> float:
        return self.quantity * self.unit_cost_basis

    @property
    def proceeds(self) -> float:
        return self.quantity * self.unit_proceeds

    @property
    def is_gain(self) -> bool:
        return self.gain_amount > 0

    @property
    def is_loss(self) -> bool:
        return self.gain_amount < 0

    @property
    def is_long_term(self) -> bool:
        return self.bucket == GainBucket.LONG

    @classmethod
    def from_row(cls, row: Any) -> "RealizedGain":
        """Convert a RealizedGainRecord ORM row."""
        return cls(
            gain_id=row.id,
            acquisition_id=row.acquisition_id,
            disposal_id=row.disposal_id,
            instrument_id=row.instrument_id,
            quantity=row.quantity,
            unit_cost_basis=row.unit_cost_basis,
            unit_proceeds=row.unit_proceeds,
            acquisition_date=row.acquisition_date,
            disposal_date=row.disposal_date,
            holding_period_days=row.holding_period_days,
            bucket=GainBucket(row.bucket),
            gain_amount=row.gain_amount,
            financial_year=row.financial_year,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "gain_id": self.gain_id,
            "acquisition_id": self.acquisition_id,
            "disposal_id": self.disposal_id,
            "instrument_id": self.instrument_id,
            "quantity": self.quantity,
            "unit_cost_basis": self.unit_cost_basis,
            "unit_proceeds": self.unit_proceeds,
            "acquisition_date": self.acquisition_date.isoformat(),
            "disposal_date": self.disposal_date.isoformat(),
            "holding_period_days": self.holding_period_days,
            "bucket": self.bucket.value,
            "gain_amount": self.gain_amount,
            "financial_year": self.financial_year,
        }


@dataclass(frozen=True)
class LedgerChange:
    """Notification that a mutation committed.

    Returned on every mutating result and optionally handed to an
    ``on_change`` callback supplied by the caller.
    """
    kind: str  # acquisition_recorded, disposal_recorded, edit_committed, record_deleted
    record_id: int
    instrument_ids: tuple[str, ...] = ()
    occurred_at: datetime = field(default_factory=_utc_now)


@dataclass
class DisposalResult:
    """Result of recording a disposal."""
    disposal: Disposal
    realized_gains: list[RealizedGain]
    match: MatchResult
    change: Optional[LedgerChange] = None

    @property
    def short_term_gain(self) -> float:
        return sum(g.gain_amount for g in self.realized_gains if g.bucket == GainBucket.SHORT)

    @property
    def long_term_gain(self) -> float:
        return sum(g.gain_amount for g in self.realized_gains if g.bucket == GainBucket.LONG)

    @property
    def total_gain(self) -> float:
        return sum(g.gain_amount for g in self.realized_gains)


@dataclass
class Holdings:
    """Open position in one instrument."""
    instrument_id: str
    quantity: float = 0.0
    cost: float = 0.0
    lots: list[AvailableLot] = field(default_factory=list)

    @property
    def average_cost(self) -> float:
        if self.quantity == 0:
            return 0.0
        return self.cost / self.quantity


@dataclass(frozen=True)
class UnrealizedGain:
    """Open part of a lot valued at a caller-supplied price.

    ``bucket`` is the classification the lot would get if it were sold
    on the valuation date.
    """
    acquisition_id: int
    instrument_id: str
    acquisition_date: date
    quantity: float
    unit_cost_basis: float
    unit_price: float
    holding_period_days: int
    bucket: GainBucket
    days_to_long_term: int

    @property
    def cost_basis(self) -> float:
        return self.quantity * self.unit_cost_basis

    @property
    def market_value(self) -> float:
        return self.quantity * self.unit_price

    @property
    def gain_amount(self) -> float:
        return self.market_value - self.cost_basis

    @property
    def gain_percent(self) -> float:
        if self.cost_basis == 0:
            return 0.0
        return self.gain_amount / self.cost_basis * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "acquisition_id": self.acquisition_id,
            "instrument_id": self.instrument_id,
            "acquisition_date": self.acquisition_date.isoformat(),
            "quantity": self.quantity,
            "unit_cost_basis": self.unit_cost_basis,
            "unit_price": self.unit_price,
            "holding_period_days": self.holding_period_days,
            "bucket": self.bucket.value,
            "days_to_long_term": self.days_to_long_term,
            "gain_amount": self.gain_amount,
            "gain_percent": self.gain_percent,
        }


@dataclass
class LotAgeBucket:
    """Open lots whose age falls within one band."""
    label: str
    min_days: int
    max_days: Optional[int]
    lots: list[AvailableLot] = field(default_factory=list)
    share: float = 0.0  # percentage of the open quantity

    @property
    def quantity(self) -> float:
        return sum(lot.available for lot in self.lots)

    def contains(self, age_days: int) -> bool:
        return age_days >= self.min_days and (self.max_days is None or age_days <= self.max_days)


# =============================================================================
# Tax Estimation
# =============================================================================

@dataclass
class TaxEstimate:
    """Bucketed tax liability for a set of realized gains."""
    short_term_gain: float = 0.0
    long_term_gain: float = 0.0
    taxable_short_term: float = 0.0
    taxable_long_term: float = 0.0
    prior_long_term_gains: float = 0.0
    exemption_threshold: float = 0.0
    exemption_used: float = 0.0
    short_rate: float = 0.0
    long_rate: float = 0.0
    short_tax: float = 0.0
    long_tax: float = 0.0

    @property
    def total_tax(self) -> float:
        return self.short_tax + self.long_tax

    @property
    def exemption_remaining(self) -> float:
        return max(0.0, self.exemption_threshold - self.exemption_used)

    def to_dict(self) -> dict[str, Any]:
        return {
            "short_term_gain": self.short_term_gain,
            "long_term_gain": self.long_term_gain,
            "taxable_short_term": self.taxable_short_term,
            "taxable_long_term": self.taxable_long_term,
            "prior_long_term_gains": self.prior_long_term_gains,
            "exemption_threshold": self.exemption_threshold,
            "exemption_used": self.exemption_used,
            "short_tax": self.short_tax,
            "long_tax": self.long_tax,
            "total_tax": self.total_tax,
        }


# =============================================================================
# Edits
# =============================================================================

class _Unset:
    """Marker for an EditRequest field the caller left alone."""

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass(frozen=True)
class EditRequest:
    """Proposed modification of an existing record.

    Fields left as ``UNSET`` keep their current value. ``notes=None``
    clears the notes.
    """
    record_id: int
    trade_date: Optional[date] = UNSET
    quantity: Optional[float] = UNSET
    unit_price: Optional[float] = UNSET
    transaction_type: Optional[TransactionType] = UNSET
    instrument_id: Optional[str] = UNSET
    notes: Optional[str] = UNSET

    def is_set(self, name: str) -> bool:
        return getattr(self, name) is not UNSET

    def apply_to(self, record: TradeRecord) -> TradeRecord:
        """Return the record as it would look after this edit."""
        values = record.to_dict()
        values.update(
            trade_date=record.trade_date,
            transaction_type=record.transaction_type,
        )
        for name in ("instrument_id", "trade_date", "quantity", "unit_price", "transaction_type", "notes"):
            if self.is_set(name):
                values[name] = getattr(self, name)
        values["transaction_type"] = TransactionType(values["transaction_type"])
        return TradeRecord.create(**values)


@dataclass(frozen=True)
class EditRejection:
    """Structured reason an edit was refused.

    ``bound`` is the limit the edit exceeded, e.g. the minimum permitted
    quantity or the latest permitted date.
    """
    rule: EditRule
    field: str
    message: str
    bound: Any = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        bound = self.bound.isoformat() if isinstance(self.bound, date) else self.bound
        return {
            "rule": self.rule.value,
            "field": self.field,
            "message": self.message,
            "bound": bound,
            "details": self.details,
        }


@dataclass
class EditProposal:
    """An edit moving from PROPOSED to ACCEPTED or REJECTED."""
    request: EditRequest
    before: TradeRecord
    after: TradeRecord
    state: EditState = EditState.PROPOSED
    rejection: Optional[EditRejection] = None

    @property
    def is_accepted(self) -> bool:
        return self.state == EditState.ACCEPTED

    @property
    def is_rejected(self) -> bool:
        return self.state == EditState.REJECTED

    @property
    def date_changed(self) -> bool:
        return self.before.trade_date != self.after.trade_date

    @property
    def quantity_changed(self) -> bool:
        return self.before.quantity != self.after.quantity

    @property
    def price_changed(self) -> bool:
        return self.before.unit_price != self.after.unit_price

    @property
    def type_changed(self) -> bool:
        return self.before.transaction_type != self.after.transaction_type

    @property
    def instrument_changed(self) -> bool:
        return self.before.instrument_id != self.after.instrument_id

    @property
    def affects_matching(self) -> bool:
        """Whether committing this edit can change which lots are consumed."""
        return (
            self.date_changed
            or self.quantity_changed
            or self.type_changed
            or self.instrument_changed
        )

    def accept(self) -> "EditProposal":
        self._require_proposed()
        self.state = EditState.ACCEPTED
        return self

    def reject(self, rejection: EditRejection) -> "EditProposal":
        self._require_proposed()
        self.state = EditState.REJECTED
        self.rejection = rejection
        return self

    def _require_proposed(self) -> None:
        if self.state != EditState.PROPOSED:
            raise ValueError(f"Edit of record {self.before.record_id} is already {self.state.value}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "record_id": self.before.record_id,
            "state": self.state.value,
            "before": self.before.to_dict(),
            "after": self.after.to_dict(),
            "rejection": self.rejection.to_dict() if self.rejection else None,
        }


@dataclass
class EditCommitResult:
    """Result of committing an accepted edit.

    ``rematched`` is set when FIFO was replayed; ``recomputed_gains`` then
    holds every re-derived match of the affected instruments.
    """
    record: TradeRecord
    proposal: EditProposal
    recomputed_gains: list[RealizedGain] = field(default_factory=list)
    rematched: bool = False
    audit_entries: int = 0
    change: Optional[LedgerChange] = None


# =============================================================================
# Period Reports
# =============================================================================

@dataclass
class InstrumentGainSummary:
    """Realized gains of one instrument within a period."""
    instrument_id: str
    quantity: float = 0.0
    proceeds: float = 0.0
    cost_basis: float = 0.0
    short_term_gain: float = 0.0
    long_term_gain: float = 0.0

    @property
    def total_gain(self) -> float:
        return self.short_term_gain + self.long_term_gain


@dataclass
class PeriodReport:
    """Capital gains and estimated tax for one financial year."""
    financial_year: str
    period_start: date
    period_end: date
    gains: list[RealizedGain] = field(default_factory=list)
    tax: TaxEstimate = field(default_factory=TaxEstimate)
    by_instrument: list[InstrumentGainSummary] = field(default_factory=list)

    @property
    def short_term_gain(self) -> float:
        return self.tax.short_term_gain

    @property
    def long_term_gain(self) -> float:
        return self.tax.long_term_gain

    @property
    def total_gain(self) -> float:
        return self.short_term_gain + self.long_term_gain

    @property
    def total_losses(self) -> float:
        return sum(g.gain_amount for g in self.gains if g.is_loss)

    @property
    def total_proceeds(self) -> float:
        return sum(g.proceeds for g in self.gains)

    @property
    def total_cost_basis(self) -> float:
        return sum(g.cost_basis for g in self.gains)

    def to_dict(self) -> dict[str, Any]:
        return {
            "financial_year": self.financial_year,
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "transactions": len(self.gains),
            "short_term_gain": self.short_term_gain,
            "long_term_gain": self.long_term_gain,
            "total_gain": self.total_gain,
            "total_losses": self.total_losses,
            "total_proceeds": self.total_proceeds,
            "total_cost_basis": self.total_cost_basis,
            "tax": self.tax.to_dict(),
            "by_instrument": [
                {
                    "instrument_id": s.instrument_id,
                    "quantity": s.quantity,
                    "proceeds": s.proceeds,
                    "cost_basis": s.cost_basis,
                    "short_term_gain": s.short_term_gain,
                    "long_term_gain": s.long_term_gain,
                    "total_gain": s.total_gain,
                }
                for s in self.by_instrument
            ],
        }
