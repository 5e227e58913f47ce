"""FIFO Lot Matching.

Consumes open lots oldest-first against a disposal quantity. The walk
follows the order the lots are given in (the ledger hands them over by
date, then insertion order) and never reorders by price.
"""

from datetime import date
from typing import Optional, Sequence
import logging

from src.capgains.classifier import holding_period_days
from src.capgains.ledger import QUANTITY_EPSILON
from src.capgains.models import AvailableLot, MatchedLot, MatchResult
from src.ledger_errors.exceptions import InsufficientInventory, InvalidArgument
from src.ledger_errors.validators import validate_quantity, validate_unit_price

logger = logging.getLogger(__name__)


class FifoMatcher:
    """Pure FIFO matcher. Stateless; never touches storage."""

    def match(
        self,
        lots: Sequence[AvailableLot],
        disposal_quantity: float,
        disposal_date: date,
        disposal_unit_price: float,
        instrument_id: Optional[str] = None,
    ) -> MatchResult:
        """Match a disposal against open lots.

        Args:
            lots: Open lots in consumption order.
            disposal_quantity: Quantity being disposed of.
            disposal_date: Date of the disposal.
            disposal_unit_price: Proceeds per unit.
            instrument_id: Only used to label errors.

        Returns:
            MatchResult whose matched quantities sum to the disposal quantity.

        Raises:
            InvalidArgument: non-positive quantity or price, or no date.
            InsufficientInventory: the lots cannot cover the quantity. No
                partial match is produced.
        """
        disposal_quantity = validate_quantity(disposal_quantity)
        disposal_unit_price = validate_unit_price(disposal_unit_price)
        if disposal_date is None:
            raise InvalidArgument("Disposal date is required", field="trade_date")

        total_available = sum(lot.available for lot in lots)
        shortfall = disposal_quantity - total_available
        if shortfall > QUANTITY_EPSILON:
            logger.warning(
                "Cannot match %.4f of %s: only %.4f available",
                disposal_quantity, instrument_id or "instrument", total_available,
            )
            raise InsufficientInventory(
                shortfall=shortfall,
                requested=disposal_quantity,
                available=total_available,
                instrument_id=instrument_id,
            )

        result = MatchResult()
        remaining = disposal_quantity

        for lot in lots:
            if remaining <= QUANTITY_EPSILON:
                break
            if lot.available <= 0:
                continue

            take = min(remaining, lot.available)
            # Absorb float residue so the pieces sum to the disposal quantity
            if remaining - take <= QUANTITY_EPSILON:
                take = remaining

            piece = MatchedLot(
                acquisition_id=lot.acquisition_id,
                acquisition_date=lot.trade_date,
                quantity=take,
                unit_cost_basis=lot.unit_price,
                unit_proceeds=disposal_unit_price,
                holding_period_days=holding_period_days(lot.trade_date, disposal_date),
            )
            result.matched_lots.append(piece)
            result.total_quantity += piece.quantity
            result.total_cost += piece.cost
            result.total_proceeds += piece.proceeds
            result.total_gain += piece.gain
            remaining -= take

        logger.debug(
            "Matched %.4f across %d lots, gain %.2f",
            result.total_quantity, len(result.matched_lots), result.total_gain,
        )
        return result
