"""Ledger Errors & Input Validation.

Typed exceptions with stable error codes for every failure path of the
ledger, and validators for the values each record carries. Depends on
nothing else in the project so that every package can import it.
"""

from src.ledger_errors.config import ErrorCode
from src.ledger_errors.exceptions import (
    EditRejected,
    InsufficientInventory,
    InvalidArgument,
    LedgerError,
    NotFound,
    PersistenceFailure,
)
from src.ledger_errors.validators import (
    validate_instrument_id,
    validate_positive,
    validate_quantity,
    validate_trade_date,
    validate_unit_price,
)

__all__ = [
    # Config
    "ErrorCode",
    # Exceptions
    "LedgerError",
    "InvalidArgument",
    "InsufficientInventory",
    "EditRejected",
    "NotFound",
    "PersistenceFailure",
    # Validators
    "validate_instrument_id",
    "validate_positive",
    "validate_quantity",
    "validate_trade_date",
    "validate_unit_price",
]
