"""Input Validation Utilities.

Validators for the values every ledger record carries: instrument id,
quantity, unit price and trade date. Each returns the normalized value or
raises InvalidArgument naming the offending field.
"""

import math
from datetime import date, datetime
from typing import Any, Optional

from src.ledger_errors.exceptions import InvalidArgument


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_instrument_id(instrument_id: Any) -> str:
    """Instrument ids are opaque non-empty strings; surrounding whitespace is dropped."""
    if not isinstance(instrument_id, str) or not instrument_id.strip():
        raise InvalidArgument("Instrument id is required", field="instrument_id")
    return instrument_id.strip()


def validate_positive(value: Any, field: str) -> float:
    """Validate a finite, strictly positive number."""
    if not _is_number(value) or math.isnan(value) or math.isinf(value):
        raise InvalidArgument(f"{field} must be a finite number, got {value!r}", field=field)
    if value <= 0:
        raise InvalidArgument(f"{field} must be positive, got {value}", field=field)
    return float(value)


def validate_quantity(quantity: Any) -> float:
    return validate_positive(quantity, "quantity")


def validate_unit_price(unit_price: Any) -> float:
    return validate_positive(unit_price, "unit_price")


def validate_trade_date(
    trade_date: Any,
    reject_future: bool = False,
    today: Optional[date] = None,
) -> date:
    """Validate a trade date.

    Accepts a date, a datetime (its date part is used) or an ISO
    ``YYYY-MM-DD`` string.

    Raises:
        InvalidArgument: missing, unparseable, or in the future when
            ``reject_future`` is set.
    """
    if isinstance(trade_date, datetime):
        trade_date = trade_date.date()
    elif isinstance(trade_date, str):
        try:
            trade_date = date.fromisoformat(trade_date.strip())
        except ValueError:
            raise InvalidArgument(f"Invalid trade date: {trade_date!r}", field="trade_date")
    if not isinstance(trade_date, date):
        raise InvalidArgument("Trade date is required", field="trade_date")

    if reject_future and trade_date > (today or date.today()):
        raise InvalidArgument(
            f"Trade date {trade_date.isoformat()} is in the future",
            field="trade_date",
        )
    return trade_date
