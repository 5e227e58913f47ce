"""Lot Ledger.

Read-only view over acquisitions and the quantity already consumed from
each. Availability is derived from the realized_gains table on every
call; nothing is cached, so it can never drift from the recorded matches.

Every read accepts an optional session so that the orchestrator and the
edit committer can see their own uncommitted writes.

Open lots can also be valued at a price the caller supplies and grouped
by holding age; no market data is fetched here.
"""

from datetime import date
from typing import Any, Callable, Optional, Sequence, TypeVar
import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from src.capgains.classifier import GainClassifier, holding_period_days
from src.capgains.config import LOT_AGE_BUCKETS, TransactionType
from src.capgains.models import (
    AvailableLot,
    Holdings,
    LotAgeBucket,
    RealizedGain,
    TradeRecord,
    UnrealizedGain,
)
from src.db.models import LedgerTransaction, RealizedGainRecord
from src.ledger_errors.exceptions import InvalidArgument, NotFound
from src.ledger_errors.validators import validate_trade_date, validate_unit_price

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Remaining quantities below this are float residue from summing matches.
QUANTITY_EPSILON = 1e-9


class LotLedger:
    """Derived lot availability for one ledger context."""

    def __init__(self, context: Any):
        self.context = context

    @property
    def account_id(self) -> str:
        return self.context.account_id

    def _read(self, session: Optional[Session], fn: Callable[[Session], T]) -> T:
        if session is not None:
            return fn(session)
        return self.context.store.run_in_transaction(fn)

    # =========================================================================
    # Records
    # =========================================================================

    def load_row(self, session: Session, record_id: int) -> LedgerTransaction:
        """ORM row for a record of this account, or NotFound."""
        row = session.get(LedgerTransaction, record_id)
        if row is None or row.account_id != self.account_id:
            raise NotFound(
                f"Record {record_id} not found",
                resource_type="record",
                resource_id=record_id,
            )
        return row

    def get_record(self, record_id: int, session: Optional[Session] = None) -> TradeRecord:
        """The acquisition or disposal with this id."""
        return self._read(session, lambda s: TradeRecord.from_row(self.load_row(s, record_id)))

    def records(
        self,
        instrument_id: Optional[str] = None,
        transaction_type: Optional[TransactionType] = None,
        session: Optional[Session] = None,
    ) -> list[TradeRecord]:
        """Records of this account in date order, ties in insertion order."""
        statement = select(LedgerTransaction).where(
            LedgerTransaction.account_id == self.account_id
        )
        if instrument_id is not None:
            statement = statement.where(LedgerTransaction.instrument_id == instrument_id)
        if transaction_type is not None:
            statement = statement.where(LedgerTransaction.transaction_type == transaction_type)
        statement = statement.order_by(LedgerTransaction.trade_date, LedgerTransaction.id)

        def _load(s: Session) -> list[TradeRecord]:
            return [TradeRecord.from_row(row) for row in s.execute(statement).scalars()]

        return self._read(session, _load)

    def instruments(self, session: Optional[Session] = None) -> list[str]:
        """Instrument ids with at least one acquisition, sorted."""
        statement = (
            select(LedgerTransaction.instrument_id)
            .where(
                LedgerTransaction.account_id == self.account_id,
                LedgerTransaction.transaction_type == TransactionType.ACQUISITION,
            )
            .distinct()
            .order_by(LedgerTransaction.instrument_id)
        )
        return self._read(session, lambda s: list(s.execute(statement).scalars()))

    # =========================================================================
    # Availability
    # =========================================================================

    def available_lots(
        self,
        instrument_id: str,
        as_of: Optional[date] = None,
        session: Optional[Session] = None,
    ) -> list[AvailableLot]:
        """Open lots of an instrument, oldest first.

        Args:
            instrument_id: Instrument to look up.
            as_of: Only lots acquired on or before this date.
            session: Read inside this transaction.

        Returns:
            Lots with ``available > 0`` ordered by trade date, then
            insertion order.

        Raises:
            NotFound: the instrument has no acquisitions in this ledger.
        """
        consumed = (
            select(
                RealizedGainRecord.acquisition_id.label("acquisition_id"),
                func.sum(RealizedGainRecord.quantity).label("consumed"),
            )
            .group_by(RealizedGainRecord.acquisition_id)
            .subquery()
        )
        statement = (
            select(LedgerTransaction, func.coalesce(consumed.c.consumed, 0.0))
            .outerjoin(consumed, consumed.c.acquisition_id == LedgerTransaction.id)
            .where(
                LedgerTransaction.account_id == self.account_id,
                LedgerTransaction.instrument_id == instrument_id,
                LedgerTransaction.transaction_type == TransactionType.ACQUISITION,
            )
            .order_by(LedgerTransaction.trade_date, LedgerTransaction.id)
        )

        def _load(s: Session) -> list[AvailableLot]:
            rows = s.execute(statement).all()
            if not rows:
                raise NotFound(
                    f"No acquisitions recorded for {instrument_id}",
                    resource_type="instrument",
                    resource_id=instrument_id,
                )
            lots = []
            for txn, used in rows:
                if as_of is not None and txn.trade_date > as_of:
                    continue
                available = txn.quantity - (used or 0.0)
                if available <= QUANTITY_EPSILON:
                    continue
                lots.append(AvailableLot(
                    acquisition_id=txn.id,
                    trade_date=txn.trade_date,
                    unit_price=txn.unit_price,
                    quantity=txn.quantity,
                    available=available,
                ))
            return lots

        lots = self._read(session, _load)
        logger.debug("%d open lots for %s", len(lots), instrument_id)
        return lots

    def consumed_quantity(self, acquisition_id: int, session: Optional[Session] = None) -> float:
        """Total quantity drawn from an acquisition by recorded matches."""
        statement = select(func.coalesce(func.sum(RealizedGainRecord.quantity), 0.0)).where(
            RealizedGainRecord.acquisition_id == acquisition_id
        )

        def _load(s: Session) -> float:
            self.load_row(s, acquisition_id)
            return float(s.execute(statement).scalar_one())

        return self._read(session, _load)

    def inventory_before(
        self,
        instrument_id: str,
        on: date,
        exclude_id: Optional[int] = None,
        session: Optional[Session] = None,
    ) -> float:
        """Net quantity held strictly before ``on``.

        Acquisitions minus disposals dated before ``on``, ignoring
        ``exclude_id``.
        """
        def _total(s: Session, transaction_type: TransactionType) -> float:
            statement = select(func.coalesce(func.sum(LedgerTransaction.quantity), 0.0)).where(
                LedgerTransaction.account_id == self.account_id,
                LedgerTransaction.instrument_id == instrument_id,
                LedgerTransaction.transaction_type == transaction_type,
                LedgerTransaction.trade_date < on,
            )
            if exclude_id is not None:
                statement = statement.where(LedgerTransaction.id != exclude_id)
            return float(s.execute(statement).scalar_one())

        def _load(s: Session) -> float:
            return _total(s, TransactionType.ACQUISITION) - _total(s, TransactionType.DISPOSAL)

        return self._read(session, _load)

    def holdings(self, instrument_id: str, session: Optional[Session] = None) -> Holdings:
        """Open quantity and remaining cost of an instrument."""
        lots = self.available_lots(instrument_id, session=session)
        return Holdings(
            instrument_id=instrument_id,
            quantity=sum(lot.available for lot in lots),
            cost=sum(lot.available * lot.unit_price for lot in lots),
            lots=lots,
        )

    def all_holdings(self, session: Optional[Session] = None) -> list[Holdings]:
        """Holdings of every instrument still held."""
        def _load(s: Session) -> list[Holdings]:
            result = []
            for instrument_id in self.instruments(session=s):
                position = self.holdings(instrument_id, session=s)
                if position.quantity > QUANTITY_EPSILON:
                    result.append(position)
            return result

        return self._read(session, _load)

    # =========================================================================
    # Valuation
    # =========================================================================

    def unrealized_gains(
        self,
        instrument_id: str,
        unit_price: float,
        as_of: Optional[date] = None,
        session: Optional[Session] = None,
    ) -> list[UnrealizedGain]:
        """Value the open lots of an instrument at ``unit_price``.

        Args:
            instrument_id: Instrument to value.
            unit_price: Price per unit supplied by the caller.
            as_of: Valuation date; lots acquired after it are left out.
                Defaults to today.
            session: Read inside this transaction.

        Returns:
            One UnrealizedGain per open lot, oldest first, with the
            bucket the lot would fall in if sold on ``as_of``.

        Raises:
            InvalidArgument: malformed price or date.
            NotFound: the instrument has no acquisitions in this ledger.
        """
        unit_price = validate_unit_price(unit_price)
        as_of = date.today() if as_of is None else validate_trade_date(as_of)
        classifier = GainClassifier(self.context.config)

        result = []
        for lot in self.available_lots(instrument_id, as_of=as_of, session=session):
            days, bucket = classifier.classify_dates(lot.trade_date, as_of)
            result.append(UnrealizedGain(
                acquisition_id=lot.acquisition_id,
                instrument_id=instrument_id,
                acquisition_date=lot.trade_date,
                quantity=lot.available,
                unit_cost_basis=lot.unit_price,
                unit_price=unit_price,
                holding_period_days=days,
                bucket=bucket,
                days_to_long_term=max(0, classifier.days_to_long_term(lot.trade_date, as_of)),
            ))
        return result

    def lots_by_age(
        self,
        instrument_id: str,
        as_of: Optional[date] = None,
        buckets: Sequence[tuple[str, int, Optional[int]]] = LOT_AGE_BUCKETS,
        session: Optional[Session] = None,
    ) -> list[LotAgeBucket]:
        """Group the open lots of an instrument by holding age.

        Args:
            instrument_id: Instrument to look up.
            as_of: Date ages are measured at. Defaults to today.
            buckets: ``(label, min_days, max_days)`` bands, inclusive on
                both ends; ``None`` leaves the last band open.
            session: Read inside this transaction.

        Returns:
            One LotAgeBucket per band, in the order given, each holding
            its lots and its share of the open quantity.

        Raises:
            InvalidArgument: a lot's age falls in none of the bands.
            NotFound: the instrument has no acquisitions in this ledger.
        """
        as_of = date.today() if as_of is None else validate_trade_date(as_of)
        bands = [LotAgeBucket(label=label, min_days=low, max_days=high) for label, low, high in buckets]

        lots = self.available_lots(instrument_id, as_of=as_of, session=session)
        for lot in lots:
            age = holding_period_days(lot.trade_date, as_of)
            band = next((b for b in bands if b.contains(age)), None)
            if band is None:
                raise InvalidArgument(
                    f"Lot {lot.acquisition_id} is {age} days old, outside every age bucket",
                    field="buckets",
                )
            band.lots.append(lot)

        total = sum(lot.available for lot in lots)
        for band in bands:
            band.share = band.quantity / total * 100 if total > 0 else 0.0
        return bands

    # =========================================================================
    # Realized gains
    # =========================================================================

    def _gain_rows(self, session: Optional[Session], *conditions) -> list[RealizedGain]:
        statement = (
            select(RealizedGainRecord)
            .where(RealizedGainRecord.account_id == self.account_id, *conditions)
            .order_by(RealizedGainRecord.disposal_date, RealizedGainRecord.id)
        )

        def _load(s: Session) -> list[RealizedGain]:
            return [RealizedGain.from_row(row) for row in s.execute(statement).scalars()]

        return self._read(session, _load)

    def gains_for_acquisition(self, acquisition_id: int, session: Optional[Session] = None) -> list[RealizedGain]:
        return self._gain_rows(session, RealizedGainRecord.acquisition_id == acquisition_id)

    def gains_for_disposal(self, disposal_id: int, session: Optional[Session] = None) -> list[RealizedGain]:
        return self._gain_rows(session, RealizedGainRecord.disposal_id == disposal_id)

    def realized_gains(
        self,
        financial_year: Optional[str] = None,
        instrument_id: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> list[RealizedGain]:
        """Realized gains, optionally filtered by financial year and instrument."""
        conditions = []
        if financial_year is not None:
            conditions.append(RealizedGainRecord.financial_year == financial_year)
        if instrument_id is not None:
            conditions.append(RealizedGainRecord.instrument_id == instrument_id)
        return self._gain_rows(session, *conditions)
