"""FIFO Lot Matching & Capital Gains.

Tracks ownership lots of tradable instruments and, on each disposal,
determines exactly which prior acquisitions are consumed, in what order,
and with what tax consequence:
- FIFO lot matching with derived (never cached) lot availability
- Short/long-term classification by holding period
- Bucketed tax estimation with a per-financial-year long-term exemption
- Validated edits of already-matched records with field-level audit
- Financial-year capital gains reports

Example:
    from src.capgains import DisposalOrchestrator, EditCommitter, EditRequest, LedgerContext

    context = LedgerContext.in_memory()
    orchestrator = DisposalOrchestrator(context)
    orchestrator.record_acquisition("INFY", 10, 100.0, date(2024, 1, 1))
    result = orchestrator.record_disposal("INFY", 4, 150.0, date(2024, 6, 1))

    # Retroactive edits are checked against recorded matches
    proposal = EditCommitter(context).propose_edit(EditRequest(record_id=1, quantity=3))
    proposal.rejection.bound  # 4.0, the minimum permitted quantity
"""

from src.capgains.config import (
    EditRule,
    EditState,
    ErrorCode,
    GainBucket,
    TransactionType,
    LONG_TERM_THRESHOLD_DAYS,
    SHORT_TERM_RATE,
    LONG_TERM_RATE,
    LONG_TERM_EXEMPTION,
    FINANCIAL_YEAR_START_MONTH,
    LOT_AGE_BUCKETS,
    TaxConfig,
    DEFAULT_TAX_CONFIG,
)

from src.ledger_errors.exceptions import (
    LedgerError,
    InvalidArgument,
    InsufficientInventory,
    EditRejected,
    NotFound,
    PersistenceFailure,
)

from src.capgains.models import (
    TradeRecord,
    Acquisition,
    Disposal,
    AvailableLot,
    MatchedLot,
    MatchResult,
    RealizedGain,
    LedgerChange,
    DisposalResult,
    Holdings,
    UnrealizedGain,
    LotAgeBucket,
    TaxEstimate,
    UNSET,
    EditRequest,
    EditRejection,
    EditProposal,
    EditCommitResult,
    InstrumentGainSummary,
    PeriodReport,
)

from src.capgains.classifier import GainClassifier, classify, holding_period_days
from src.capgains.estimator import TaxEstimator
from src.capgains.periods import (
    financial_year_for,
    financial_year_bounds,
    financial_years_between,
    group_by_financial_year,
    next_financial_year,
    previous_financial_year,
)
from src.capgains.store import LedgerStore
from src.capgains.context import LedgerContext
from src.capgains.ledger import LotLedger
from src.capgains.matcher import FifoMatcher
from src.capgains.validator import EditValidator
from src.capgains.orchestrator import DisposalOrchestrator
from src.capgains.editor import EditCommitter, commit_edit
from src.capgains.reports import CapitalGainsReporter

__all__ = [
    # Config
    "EditRule",
    "EditState",
    "ErrorCode",
    "GainBucket",
    "TransactionType",
    "LONG_TERM_THRESHOLD_DAYS",
    "SHORT_TERM_RATE",
    "LONG_TERM_RATE",
    "LONG_TERM_EXEMPTION",
    "FINANCIAL_YEAR_START_MONTH",
    "LOT_AGE_BUCKETS",
    "TaxConfig",
    "DEFAULT_TAX_CONFIG",
    # Errors
    "LedgerError",
    "InvalidArgument",
    "InsufficientInventory",
    "EditRejected",
    "NotFound",
    "PersistenceFailure",
    # Models
    "TradeRecord",
    "Acquisition",
    "Disposal",
    "AvailableLot",
    "MatchedLot",
    "MatchResult",
    "RealizedGain",
    "LedgerChange",
    "DisposalResult",
    "Holdings",
    "UnrealizedGain",
    "LotAgeBucket",
    "TaxEstimate",
    "UNSET",
    "EditRequest",
    "EditRejection",
    "EditProposal",
    "EditCommitResult",
    "InstrumentGainSummary",
    "PeriodReport",
    # Classification & tax
    "GainClassifier",
    "classify",
    "holding_period_days",
    "TaxEstimator",
    # Periods
    "financial_year_for",
    "financial_year_bounds",
    "financial_years_between",
    "group_by_financial_year",
    "next_financial_year",
    "previous_financial_year",
    # Engine
    "LedgerStore",
    "LedgerContext",
    "LotLedger",
    "FifoMatcher",
    "EditValidator",
    "DisposalOrchestrator",
    "EditCommitter",
    "commit_edit",
    "CapitalGainsReporter",
]
