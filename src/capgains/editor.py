"""Edit Commit.

Applies an accepted edit atomically: the record is updated, the realized
gains of every disposal it can affect are re-derived, and one audit row
is written per changed field. A rejected or failing edit leaves no trace.

An edit that moves a date, a quantity, a type or an instrument replays
FIFO for the affected instruments from the earlier of the old and new
dates: every disposal dated on or after it loses its matches and is
matched again in (trade_date, id) order. A price-only edit cannot change
which lots are consumed, so its gains are recomputed in place.
"""

from datetime import date, datetime, timezone
from typing import Any, Optional
import logging

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from src.audit.recorder import AuditLogger
from src.capgains.config import TransactionType
from src.capgains.ledger import LotLedger
from src.capgains.matcher import FifoMatcher
from src.capgains.models import (
    EditCommitResult,
    EditProposal,
    EditRequest,
    LedgerChange,
    RealizedGain,
    TradeRecord,
)
from src.capgains.orchestrator import ChangeCallback, realize_disposal
from src.capgains.validator import EditValidator
from src.db.models import LedgerTransaction, RealizedGainRecord
from src.ledger_errors.exceptions import EditRejected
from src.logging_config.performance import PerformanceTimer, log_performance

logger = logging.getLogger(__name__)


class EditCommitter:
    """Commits edit requests that pass validation."""

    def __init__(self, context: Any):
        self.context = context
        self.ledger = LotLedger(context)
        self.matcher = FifoMatcher()
        self.validator = EditValidator(context, self.ledger)
        self.audit = AuditLogger(context.store, context.audit_config)

    def propose_edit(self, request: EditRequest) -> EditProposal:
        """Validate without committing."""
        return self.validator.propose_edit(request)

    @log_performance()
    def commit_edit(
        self,
        request: EditRequest,
        on_change: Optional[ChangeCallback] = None,
    ) -> EditCommitResult:
        """Re-validate and apply an edit in one transaction.

        Args:
            request: The requested changes.
            on_change: Called with the LedgerChange after commit.

        Returns:
            EditCommitResult with the updated record, the gains that were
            recomputed and the number of audit rows written.

        Raises:
            InvalidArgument: a supplied value is malformed.
            NotFound: the record does not exist.
            EditRejected: the edit violates a rule; nothing is written.
            InsufficientInventory: re-deriving a disposal's matches needs
                more than is available; nothing is written.
            PersistenceFailure: the store failed; nothing is written.
        """
        def _commit(session: Session) -> EditCommitResult:
            proposal = self.validator.propose_edit(request, session=session)
            if proposal.is_rejected:
                raise EditRejected(proposal.rejection)
            return self._apply(session, proposal)

        with self.context.log_context("commit_edit"):
            result = self.context.store.run_in_transaction(_commit)
            logger.info(
                "Committed edit of record %s: %d audit entries, %d gains recomputed%s",
                request.record_id, result.audit_entries, len(result.recomputed_gains),
                ", rematched" if result.rematched else "",
                extra={"record_id": request.record_id},
            )

        instrument_ids = tuple(dict.fromkeys(
            (result.proposal.before.instrument_id, result.record.instrument_id)
        ))
        result.change = LedgerChange(
            kind="edit_committed",
            record_id=result.record.record_id,
            instrument_ids=instrument_ids,
        )
        if on_change is not None:
            on_change(result.change)
        return result

    def _apply(self, session: Session, proposal: EditProposal) -> EditCommitResult:
        before, after = proposal.before, proposal.after
        modified_at = datetime.now(timezone.utc).replace(tzinfo=None)

        row = self.ledger.load_row(session, before.record_id)
        row.instrument_id = after.instrument_id
        row.transaction_type = after.transaction_type
        row.trade_date = after.trade_date
        row.quantity = after.quantity
        row.unit_price = after.unit_price
        row.notes = after.notes
        row.modified_at = modified_at
        session.flush()

        rematch = proposal.affects_matching
        if rematch:
            recomputed = self._rederive(
                session,
                instrument_ids=tuple(dict.fromkeys((before.instrument_id, after.instrument_id))),
                since=min(before.trade_date, after.trade_date),
            )
        elif proposal.price_changed:
            recomputed = self._recompute(session, row)
        else:
            recomputed = []

        entries = self.audit.log_edit(
            before.record_id,
            before,
            after,
            timestamp=modified_at,
            session=session,
        )
        return EditCommitResult(
            record=TradeRecord.from_row(row),
            proposal=proposal,
            recomputed_gains=recomputed,
            rematched=rematch,
            audit_entries=len(entries),
        )

    def _rederive(
        self,
        session: Session,
        instrument_ids: tuple[str, ...],
        since: date,
    ) -> list[RealizedGain]:
        """Replay FIFO for every disposal of ``instrument_ids`` dated on or after ``since``.

        Disposals dated earlier can only have consumed lots dated earlier
        still, so their matches stay as they are.
        """
        gains: list[RealizedGain] = []
        for instrument_id in instrument_ids:
            disposals = session.execute(
                select(LedgerTransaction)
                .where(
                    LedgerTransaction.account_id == self.context.account_id,
                    LedgerTransaction.instrument_id == instrument_id,
                    LedgerTransaction.transaction_type == TransactionType.DISPOSAL,
                    LedgerTransaction.trade_date >= since,
                )
                .order_by(LedgerTransaction.trade_date, LedgerTransaction.id)
            ).scalars().all()
            if not disposals:
                continue

            with PerformanceTimer(f"rederive {instrument_id} from {since.isoformat()}"):
                session.execute(
                    delete(RealizedGainRecord).where(
                        RealizedGainRecord.disposal_id.in_([d.id for d in disposals])
                    )
                )
                session.flush()
                for disposal in disposals:
                    _, matched = realize_disposal(session, self.context, disposal, self.ledger, self.matcher)
                    gains.extend(matched)
            logger.debug(
                "Re-derived %d disposals of %s from %s",
                len(disposals), instrument_id, since,
                extra={"instrument_id": instrument_id},
            )
        return gains

    def _recompute(self, session: Session, row: LedgerTransaction) -> list[RealizedGain]:
        """Refresh prices and gain amounts of the gains drawn on ``row``."""
        if row.transaction_type == TransactionType.ACQUISITION:
            condition = RealizedGainRecord.acquisition_id == row.id
        else:
            condition = RealizedGainRecord.disposal_id == row.id
        gains = session.execute(
            select(RealizedGainRecord).where(condition).order_by(RealizedGainRecord.id)
        ).scalars().all()

        for gain in gains:
            if row.transaction_type == TransactionType.ACQUISITION:
                gain.unit_cost_basis = row.unit_price
            else:
                gain.unit_proceeds = row.unit_price
            gain.gain_amount = gain.quantity * (gain.unit_proceeds - gain.unit_cost_basis)

        session.flush()
        return [RealizedGain.from_row(gain) for gain in gains]


def commit_edit(context: Any, request: EditRequest, on_change: Optional[ChangeCallback] = None) -> EditCommitResult:
    """Functional shorthand for ``EditCommitter(context).commit_edit``."""
    return EditCommitter(context).commit_edit(request, on_change=on_change)
