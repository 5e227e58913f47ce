"""Edit Validation.

Checks a proposed modification of a recorded acquisition or disposal
against the matches already derived from it. Rules run in a fixed
order and the first one violated decides the rejection:

1. An acquisition's quantity cannot drop below what has been consumed.
2. An acquisition cannot move after any disposal it was matched to.
3. A disposal cannot move before any acquisition it was matched to.
4. An acquisition can only become a disposal when enough inventory is
   held before its date, and only if nothing has been drawn from it.
5. A matched disposal cannot become an acquisition.
6. Matched records cannot change instrument.

Malformed values are rejected with InvalidArgument before any rule runs.
"""

from dataclasses import replace
from typing import Any, Callable, Optional
import logging

from sqlalchemy.orm import Session

from src.capgains.config import EditRule, TransactionType
from src.capgains.ledger import QUANTITY_EPSILON, LotLedger
from src.capgains.models import (
    EditProposal,
    EditRejection,
    EditRequest,
    RealizedGain,
    TradeRecord,
)
from src.ledger_errors.exceptions import InvalidArgument
from src.ledger_errors.validators import (
    validate_instrument_id,
    validate_quantity,
    validate_trade_date,
    validate_unit_price,
)

logger = logging.getLogger(__name__)


class _EditFacts:
    """Matches and consumption of the record being edited, loaded once."""

    def __init__(self, ledger: LotLedger, session: Session, record: TradeRecord):
        if record.is_acquisition:
            self.gains: list[RealizedGain] = ledger.gains_for_acquisition(record.record_id, session=session)
        else:
            self.gains = ledger.gains_for_disposal(record.record_id, session=session)
        self.consumed = sum(g.quantity for g in self.gains) if record.is_acquisition else 0.0


class EditValidator:
    """Moves an EditProposal from PROPOSED to ACCEPTED or REJECTED."""

    def __init__(self, context: Any, ledger: Optional[LotLedger] = None):
        self.context = context
        self.ledger = ledger or LotLedger(context)

    def _normalized(self, request: EditRequest) -> EditRequest:
        """Validate supplied values; fields left unset stay unset."""
        changes: dict[str, Any] = {}
        if request.is_set("transaction_type"):
            try:
                changes["transaction_type"] = TransactionType(request.transaction_type)
            except ValueError:
                raise InvalidArgument(
                    f"Unknown transaction type: {request.transaction_type!r}",
                    field="transaction_type",
                )
        if request.is_set("trade_date"):
            changes["trade_date"] = validate_trade_date(
                request.trade_date, self.context.config.reject_future_dates
            )
        if request.is_set("quantity"):
            changes["quantity"] = validate_quantity(request.quantity)
        if request.is_set("unit_price"):
            changes["unit_price"] = validate_unit_price(request.unit_price)
        if request.is_set("instrument_id"):
            changes["instrument_id"] = validate_instrument_id(request.instrument_id)
        return replace(request, **changes)

    def propose_edit(self, request: EditRequest, session: Optional[Session] = None) -> EditProposal:
        """Evaluate an edit request.

        Args:
            request: The requested changes.
            session: Evaluate inside this transaction.

        Returns:
            An EditProposal in state ACCEPTED or REJECTED. A rejected
            proposal carries the violated rule, the field, and the bound.

        Raises:
            InvalidArgument: a supplied value is malformed.
            NotFound: the record does not exist.
        """
        request = self._normalized(request)

        def _evaluate(s: Session) -> EditProposal:
            before = TradeRecord.from_row(self.ledger.load_row(s, request.record_id))
            proposal = EditProposal(request=request, before=before, after=request.apply_to(before))
            rejection = self.first_violation(proposal, s)
            if rejection is None:
                return proposal.accept()
            logger.info(
                "Rejected edit of record %s: %s",
                request.record_id, rejection.message,
                extra={"record_id": request.record_id},
            )
            return proposal.reject(rejection)

        if session is not None:
            return _evaluate(session)
        return self.context.store.run_in_transaction(_evaluate)

    def first_violation(self, proposal: EditProposal, session: Session) -> Optional[EditRejection]:
        """The first rule the proposal violates, or None."""
        facts = _EditFacts(self.ledger, session, proposal.before)
        rules: list[Callable[[EditProposal, _EditFacts, Session], Optional[EditRejection]]] = [
            self._check_quantity,
            self._check_acquisition_date,
            self._check_disposal_date,
            self._check_flip_to_disposal,
            self._check_flip_to_acquisition,
            self._check_instrument_change,
        ]
        for rule in rules:
            rejection = rule(proposal, facts, session)
            if rejection is not None:
                return rejection
        return None

    # =========================================================================
    # Rules
    # =========================================================================

    def _check_quantity(self, proposal: EditProposal, facts: _EditFacts, session: Session) -> Optional[EditRejection]:
        before, after = proposal.before, proposal.after
        if not before.is_acquisition or not proposal.quantity_changed:
            return None
        if after.quantity < facts.consumed - QUANTITY_EPSILON:
            return EditRejection(
                rule=EditRule.QUANTITY_BELOW_MATCHED,
                field="quantity",
                message=(
                    f"Quantity cannot be reduced below {facts.consumed}: "
                    f"that much has already been disposed of"
                ),
                bound=facts.consumed,
                details={"requested": after.quantity, "consumed": facts.consumed},
            )
        return None

    def _check_acquisition_date(self, proposal: EditProposal, facts: _EditFacts, session: Session) -> Optional[EditRejection]:
        before, after = proposal.before, proposal.after
        if not before.is_acquisition or not proposal.date_changed or not facts.gains:
            return None
        earliest = min(g.disposal_date for g in facts.gains)
        if after.trade_date > earliest:
            disposal_ids = sorted({g.disposal_id for g in facts.gains if g.disposal_date < after.trade_date})
            return EditRejection(
                rule=EditRule.ACQUISITION_DATE_AFTER_DISPOSAL,
                field="trade_date",
                message=(
                    f"Acquisition date cannot be later than {earliest.isoformat()}, "
                    f"the earliest disposal matched to it"
                ),
                bound=earliest,
                details={"requested": after.trade_date.isoformat(), "disposal_ids": disposal_ids},
            )
        return None

    def _check_disposal_date(self, proposal: EditProposal, facts: _EditFacts, session: Session) -> Optional[EditRejection]:
        before, after = proposal.before, proposal.after
        if not before.is_disposal or not proposal.date_changed or not facts.gains:
            return None
        latest = max(g.acquisition_date for g in facts.gains)
        if after.trade_date < latest:
            acquisition_ids = sorted({g.acquisition_id for g in facts.gains if g.acquisition_date > after.trade_date})
            return EditRejection(
                rule=EditRule.DISPOSAL_DATE_BEFORE_ACQUISITION,
                field="trade_date",
                message=(
                    f"Disposal date cannot be earlier than {latest.isoformat()}, "
                    f"the latest acquisition matched to it"
                ),
                bound=latest,
                details={"requested": after.trade_date.isoformat(), "acquisition_ids": acquisition_ids},
            )
        return None

    def _check_flip_to_disposal(self, proposal: EditProposal, facts: _EditFacts, session: Session) -> Optional[EditRejection]:
        before, after = proposal.before, proposal.after
        if not (before.is_acquisition and after.is_disposal):
            return None
        inventory = self.ledger.inventory_before(
            after.instrument_id, after.trade_date, exclude_id=before.record_id, session=session
        )
        if inventory < after.quantity - QUANTITY_EPSILON:
            return EditRejection(
                rule=EditRule.FLIP_TO_DISPOSAL_INSUFFICIENT_INVENTORY,
                field="transaction_type",
                message=(
                    f"Only {inventory} units of {after.instrument_id} were held before "
                    f"{after.trade_date.isoformat()}; cannot dispose of {after.quantity}"
                ),
                bound=inventory,
                details={"requested": after.quantity, "available": inventory},
            )
        if facts.consumed > 0:
            return EditRejection(
                rule=EditRule.FLIP_TO_DISPOSAL_CONSUMED_ACQUISITION,
                field="transaction_type",
                message=(
                    f"Cannot turn this acquisition into a disposal: "
                    f"{facts.consumed} units have already been disposed of from it"
                ),
                bound=facts.consumed,
                details={"disposal_ids": sorted({g.disposal_id for g in facts.gains})},
            )
        return None

    def _check_flip_to_acquisition(self, proposal: EditProposal, facts: _EditFacts, session: Session) -> Optional[EditRejection]:
        before, after = proposal.before, proposal.after
        if not (before.is_disposal and after.is_acquisition) or not facts.gains:
            return None
        return EditRejection(
            rule=EditRule.FLIP_TO_ACQUISITION_MATCHED_DISPOSAL,
            field="transaction_type",
            message=(
                f"Cannot turn this disposal into an acquisition: "
                f"it is matched against {len(facts.gains)} lots"
            ),
            bound=len(facts.gains),
            details={"acquisition_ids": sorted({g.acquisition_id for g in facts.gains})},
        )

    def _check_instrument_change(self, proposal: EditProposal, facts: _EditFacts, session: Session) -> Optional[EditRejection]:
        before, after = proposal.before, proposal.after
        if not proposal.instrument_changed or not facts.gains:
            return None
        if before.is_disposal:
            message = f"Cannot change the instrument of a disposal matched against {len(facts.gains)} lots"
            bound = len(facts.gains)
        else:
            message = (
                f"Cannot change the instrument of an acquisition: "
                f"{facts.consumed} units have already been disposed of from it"
            )
            bound = facts.consumed
        return EditRejection(
            rule=EditRule.INSTRUMENT_CHANGE_WITH_MATCHES,
            field="instrument_id",
            message=message,
            bound=bound,
            details={"from": before.instrument_id, "to": after.instrument_id},
        )

    # =========================================================================
    # Deletion
    # =========================================================================

    def check_delete(self, record_id: int, session: Optional[Session] = None) -> Optional[EditRejection]:
        """Why a record cannot be deleted, or None when it can.

        Raises:
            NotFound: the record does not exist.
        """
        def _evaluate(s: Session) -> Optional[EditRejection]:
            record = TradeRecord.from_row(self.ledger.load_row(s, record_id))
            if record.is_disposal:
                return EditRejection(
                    rule=EditRule.DELETE_DISPOSAL,
                    field="record_id",
                    message="Disposals cannot be deleted; their matches are permanent",
                    details={"record_id": record_id},
                )
            consumed = self.ledger.consumed_quantity(record_id, session=s)
            if consumed > 0:
                return EditRejection(
                    rule=EditRule.DELETE_CONSUMED_ACQUISITION,
                    field="record_id",
                    message=f"Cannot delete acquisition: {consumed} units have been disposed of",
                    bound=consumed,
                    details={"record_id": record_id},
                )
            return None

        if session is not None:
            return _evaluate(session)
        return self.context.store.run_in_transaction(_evaluate)
