"""Pytest configuration and shared fixtures."""

import sys
from datetime import date
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.capgains import (  # noqa: E402
    CapitalGainsReporter,
    DisposalOrchestrator,
    EditCommitter,
    EditValidator,
    LedgerContext,
    LotLedger,
)
from src.logging_config.setup import reset_logging  # noqa: E402


@pytest.fixture(autouse=True)
def ledger_logging():
    """Drop any handler a test installed through configure_logging."""
    yield
    reset_logging()


@pytest.fixture
def context():
    """A fresh in-memory ledger per test."""
    ctx = LedgerContext.in_memory(account_id="test-account")
    yield ctx
    ctx.store.engine.dispose()


@pytest.fixture
def orchestrator(context):
    return DisposalOrchestrator(context)


@pytest.fixture
def ledger(context):
    return LotLedger(context)


@pytest.fixture
def validator(context):
    return EditValidator(context)


@pytest.fixture
def editor(context):
    return EditCommitter(context)


@pytest.fixture
def reporter(context):
    return CapitalGainsReporter(context)


@pytest.fixture
def two_lots(orchestrator):
    """INFY bought 10 @ 100 on Jan 1 and 10 @ 120 on Mar 1, 2024."""
    first = orchestrator.record_acquisition("INFY", 10, 100.0, date(2024, 1, 1))
    second = orchestrator.record_acquisition("INFY", 10, 120.0, date(2024, 3, 1))
    return first, second
