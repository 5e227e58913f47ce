"""Capital Gains Configuration.

Transaction types, holding-period buckets, edit rules, error codes and
the tax configuration dataclass.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

# Persisted enums live with the ORM models; re-exported here for callers.
from src.db.models import GainBucket, TransactionType
from src.ledger_errors.config import ErrorCode


# =============================================================================
# Enums
# =============================================================================

class EditState(str, Enum):
    """Lifecycle of a proposed edit. ACCEPTED and REJECTED are terminal."""
    PROPOSED = "PROPOSED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class EditRule(str, Enum):
    """Rules a proposed edit can violate, in evaluation order."""
    QUANTITY_BELOW_MATCHED = "QUANTITY_BELOW_MATCHED"
    ACQUISITION_DATE_AFTER_DISPOSAL = "ACQUISITION_DATE_AFTER_DISPOSAL"
    DISPOSAL_DATE_BEFORE_ACQUISITION = "DISPOSAL_DATE_BEFORE_ACQUISITION"
    FLIP_TO_DISPOSAL_INSUFFICIENT_INVENTORY = "FLIP_TO_DISPOSAL_INSUFFICIENT_INVENTORY"
    FLIP_TO_DISPOSAL_CONSUMED_ACQUISITION = "FLIP_TO_DISPOSAL_CONSUMED_ACQUISITION"
    FLIP_TO_ACQUISITION_MATCHED_DISPOSAL = "FLIP_TO_ACQUISITION_MATCHED_DISPOSAL"
    INSTRUMENT_CHANGE_WITH_MATCHES = "INSTRUMENT_CHANGE_WITH_MATCHES"
    # Deletion guards
    DELETE_DISPOSAL = "DELETE_DISPOSAL"
    DELETE_CONSUMED_ACQUISITION = "DELETE_CONSUMED_ACQUISITION"


# =============================================================================
# Constants
# =============================================================================

LONG_TERM_THRESHOLD_DAYS = 365
SHORT_TERM_RATE = 0.20
LONG_TERM_RATE = 0.10
LONG_TERM_EXEMPTION = 100_000.0
FINANCIAL_YEAR_START_MONTH = 4  # April 1 .. March 31

# Holding-age bands for open lots: (label, min days, max days or None)
LOT_AGE_BUCKETS = (
    ("0-6 months", 0, 182),
    ("6-12 months", 183, 365),
    ("1-2 years", 366, 730),
    ("2-5 years", 731, 1825),
    ("5+ years", 1826, None),
)


# =============================================================================
# Configuration Dataclasses
# =============================================================================

@dataclass
class TaxConfig:
    """Tax model and ledger behaviour configuration."""
    short_term_rate: float = SHORT_TERM_RATE
    long_term_rate: float = LONG_TERM_RATE
    long_term_exemption: float = LONG_TERM_EXEMPTION
    long_term_threshold_days: int = LONG_TERM_THRESHOLD_DAYS
    financial_year_start_month: int = FINANCIAL_YEAR_START_MONTH
    reject_future_dates: bool = False

    @classmethod
    def from_settings(cls, settings: Optional[object] = None) -> "TaxConfig":
        """Build from application settings (defaults to the cached Settings)."""
        if settings is None:
            from src.settings import get_settings
            settings = get_settings()
        return cls(
            short_term_rate=settings.short_term_rate,
            long_term_rate=settings.long_term_rate,
            long_term_exemption=settings.long_term_exemption,
            long_term_threshold_days=settings.long_term_threshold_days,
            financial_year_start_month=settings.financial_year_start_month,
            reject_future_dates=settings.reject_future_dates,
        )


# Default configuration
DEFAULT_TAX_CONFIG = TaxConfig()
