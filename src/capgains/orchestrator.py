"""Disposal Orchestrator.

Records acquisitions and disposals. A disposal is inserted, matched
FIFO against the lots dated on or before it, classified, and its
realized gains persisted, all in one transaction: on any failure
nothing is written.
"""

from datetime import date
from typing import Any, Callable, Optional
import logging

from sqlalchemy.orm import Session

from src.audit.recorder import AuditLogger
from src.capgains.classifier import GainClassifier
from src.capgains.config import TransactionType
from src.capgains.ledger import LotLedger
from src.capgains.matcher import FifoMatcher
from src.capgains.models import (
    Acquisition,
    DisposalResult,
    LedgerChange,
    MatchResult,
    RealizedGain,
    TradeRecord,
)
from src.capgains.periods import financial_year_for
from src.capgains.validator import EditValidator
from src.db.models import LedgerTransaction, RealizedGainRecord
from src.ledger_errors.exceptions import EditRejected
from src.ledger_errors.validators import (
    validate_instrument_id,
    validate_quantity,
    validate_trade_date,
    validate_unit_price,
)
from src.logging_config.performance import log_performance

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[LedgerChange], None]


def realize_disposal(
    session: Session,
    context: Any,
    disposal: LedgerTransaction,
    ledger: Optional[LotLedger] = None,
    matcher: Optional[FifoMatcher] = None,
) -> tuple[MatchResult, list[RealizedGain]]:
    """Match a flushed disposal row and insert its realized gains.

    Runs inside the caller's transaction. Lots dated after the disposal
    are never consumed.
    """
    ledger = ledger or LotLedger(context)
    matcher = matcher or FifoMatcher()
    classifier = GainClassifier(context.config)
    fy_label = financial_year_for(disposal.trade_date, context.config.financial_year_start_month)

    lots = ledger.available_lots(disposal.instrument_id, as_of=disposal.trade_date, session=session)
    match = matcher.match(
        lots,
        disposal.quantity,
        disposal.trade_date,
        disposal.unit_price,
        instrument_id=disposal.instrument_id,
    )

    rows = [
        RealizedGainRecord(
            account_id=disposal.account_id,
            acquisition_id=piece.acquisition_id,
            disposal_id=disposal.id,
            instrument_id=disposal.instrument_id,
            quantity=piece.quantity,
            unit_cost_basis=piece.unit_cost_basis,
            unit_proceeds=piece.unit_proceeds,
            acquisition_date=piece.acquisition_date,
            disposal_date=disposal.trade_date,
            holding_period_days=piece.holding_period_days,
            bucket=classifier.classify(piece.holding_period_days),
            gain_amount=piece.gain,
            financial_year=fy_label,
        )
        for piece in match.matched_lots
    ]
    session.add_all(rows)
    session.flush()
    return match, [RealizedGain.from_row(row) for row in rows]


def _notify(on_change: Optional[ChangeCallback], change: LedgerChange) -> None:
    if on_change is not None:
        on_change(change)


class DisposalOrchestrator:
    """Entry point for recording and deleting ledger records.

    Example:
        context = LedgerContext.in_memory()
        orchestrator = DisposalOrchestrator(context)
        orchestrator.record_acquisition("INFY", 10, 100.0, date(2024, 1, 1))
        result = orchestrator.record_disposal("INFY", 4, 150.0, date(2024, 6, 1))
        result.total_gain  # 200.0
    """

    def __init__(self, context: Any):
        self.context = context
        self.ledger = LotLedger(context)
        self.matcher = FifoMatcher()
        self.validator = EditValidator(context, self.ledger)
        self.audit = AuditLogger(context.store, context.audit_config)

    def _validated(
        self,
        instrument_id: Any,
        quantity: Any,
        unit_price: Any,
        trade_date: Any,
    ) -> tuple[str, float, float, date]:
        return (
            validate_instrument_id(instrument_id),
            validate_quantity(quantity),
            validate_unit_price(unit_price),
            validate_trade_date(trade_date, reject_future=self.context.config.reject_future_dates),
        )

    @log_performance()
    def record_acquisition(
        self,
        instrument_id: str,
        quantity: float,
        unit_price: float,
        trade_date: date,
        notes: Optional[str] = None,
        on_change: Optional[ChangeCallback] = None,
    ) -> Acquisition:
        """Record a purchase, opening a new lot."""
        instrument_id, quantity, unit_price, trade_date = self._validated(
            instrument_id, quantity, unit_price, trade_date
        )
        row = LedgerTransaction(
            account_id=self.context.account_id,
            instrument_id=instrument_id,
            transaction_type=TransactionType.ACQUISITION,
            trade_date=trade_date,
            quantity=quantity,
            unit_price=unit_price,
            notes=notes,
        )
        with self.context.log_context("record_acquisition"):
            self.context.store.insert_atomic([row])
            acquisition = TradeRecord.from_row(row)
            logger.info(
                "Recorded acquisition %s: %.4f %s @ %.4f on %s",
                acquisition.record_id, quantity, instrument_id, unit_price, trade_date,
                extra={"record_id": acquisition.record_id, "instrument_id": instrument_id},
            )

        _notify(on_change, LedgerChange(
            kind="acquisition_recorded",
            record_id=acquisition.record_id,
            instrument_ids=(instrument_id,),
        ))
        return acquisition

    @log_performance()
    def record_disposal(
        self,
        instrument_id: str,
        quantity: float,
        unit_price: float,
        trade_date: date,
        notes: Optional[str] = None,
        on_change: Optional[ChangeCallback] = None,
    ) -> DisposalResult:
        """Record a sale and realize its gains.

        Args:
            instrument_id: Instrument sold.
            quantity: Quantity sold (positive).
            unit_price: Proceeds per unit (positive).
            trade_date: Date of the sale.
            notes: Free-form notes.
            on_change: Called with the LedgerChange after commit.

        Returns:
            DisposalResult with the disposal, its realized gains and the match.

        Raises:
            InvalidArgument: malformed input.
            NotFound: no acquisitions recorded for the instrument.
            InsufficientInventory: not enough open quantity on or before
                ``trade_date``. Nothing is persisted.
            PersistenceFailure: the store failed. Nothing is persisted.
        """
        instrument_id, quantity, unit_price, trade_date = self._validated(
            instrument_id, quantity, unit_price, trade_date
        )

        def _record(session: Session) -> DisposalResult:
            row = LedgerTransaction(
                account_id=self.context.account_id,
                instrument_id=instrument_id,
                transaction_type=TransactionType.DISPOSAL,
                trade_date=trade_date,
                quantity=quantity,
                unit_price=unit_price,
                notes=notes,
            )
            session.add(row)
            session.flush()
            match, gains = realize_disposal(session, self.context, row, self.ledger, self.matcher)
            return DisposalResult(
                disposal=TradeRecord.from_row(row),
                realized_gains=gains,
                match=match,
            )

        with self.context.log_context("record_disposal"):
            result = self.context.store.run_in_transaction(_record)
            logger.info(
                "Recorded disposal %s: %.4f %s @ %.4f on %s across %d lots, gain %.2f",
                result.disposal.record_id, quantity, instrument_id, unit_price, trade_date,
                len(result.realized_gains), result.total_gain,
                extra={"record_id": result.disposal.record_id, "instrument_id": instrument_id},
            )

        result.change = LedgerChange(
            kind="disposal_recorded",
            record_id=result.disposal.record_id,
            instrument_ids=(instrument_id,),
        )
        _notify(on_change, result.change)
        return result

    @log_performance()
    def delete_record(
        self,
        record_id: int,
        on_change: Optional[ChangeCallback] = None,
    ) -> LedgerChange:
        """Delete an acquisition nothing has been drawn from, with its audit history.

        Raises:
            NotFound: unknown record.
            EditRejected: the record is a disposal, or quantity has been
                consumed from the acquisition.
        """
        def _delete(session: Session) -> str:
            rejection = self.validator.check_delete(record_id, session=session)
            if rejection is not None:
                logger.info("Refused to delete record %s: %s", record_id, rejection.message)
                raise EditRejected(rejection)
            row = self.ledger.load_row(session, record_id)
            instrument_id = row.instrument_id
            session.delete(row)
            session.flush()
            self.audit.delete_history(record_id, session=session)
            return instrument_id

        with self.context.log_context("delete_record"):
            instrument_id = self.context.store.run_in_transaction(_delete)
            logger.info(
                "Deleted acquisition %s of %s", record_id, instrument_id,
                extra={"record_id": record_id, "instrument_id": instrument_id},
            )

        change = LedgerChange(
            kind="record_deleted",
            record_id=record_id,
            instrument_ids=(instrument_id,),
        )
        _notify(on_change, change)
        return change
