"""SQLAlchemy ORM models for the lot ledger.

Tables:
- ledger_transactions: Acquisitions and disposals (one row per record)
- realized_gains: One row per (acquisition, disposal) pairing produced by FIFO matching
- transaction_audit: Field-level before/after values for accepted edits (append-only)

Lot availability is never stored; it is derived from realized_gains.
"""

import enum

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from src.db.base import Base


class TransactionType(str, enum.Enum):
    """Side of a ledger record."""
    ACQUISITION = "ACQUISITION"
    DISPOSAL = "DISPOSAL"


class GainBucket(str, enum.Enum):
    """Holding-period classification of a realized gain."""
    SHORT = "SHORT"  # held <= threshold days
    LONG = "LONG"    # held > threshold days


class LedgerTransaction(Base):
    """Acquisition or disposal of an instrument.

    The autoincrement id doubles as insertion order, the stable secondary
    key when several lots share a date.
    """

    __tablename__ = "ledger_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(String(64), nullable=False, default="default", index=True)
    instrument_id = Column(String(64), nullable=False, index=True)
    transaction_type = Column(Enum(TransactionType), nullable=False)
    trade_date = Column(Date, nullable=False)
    quantity = Column(Float, nullable=False)
    unit_price = Column(Float, nullable=False)
    notes = Column(Text)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    modified_at = Column(DateTime)

    __table_args__ = (
        Index(
            "ix_ledger_transactions_lookup",
            "account_id", "instrument_id", "transaction_type", "trade_date",
        ),
    )


class RealizedGainRecord(Base):
    """Cost, proceeds and classification of one acquisition/disposal pairing."""

    __tablename__ = "realized_gains"

    id = Column(Integer, primary_key=True, autoincrement=True)
    account_id = Column(String(64), nullable=False, default="default", index=True)
    acquisition_id = Column(
        Integer, ForeignKey("ledger_transactions.id"), nullable=False, index=True
    )
    disposal_id = Column(
        Integer, ForeignKey("ledger_transactions.id"), nullable=False, index=True
    )
    instrument_id = Column(String(64), nullable=False)
    quantity = Column(Float, nullable=False)
    unit_cost_basis = Column(Float, nullable=False)
    unit_proceeds = Column(Float, nullable=False)
    acquisition_date = Column(Date, nullable=False)
    disposal_date = Column(Date, nullable=False)
    holding_period_days = Column(Integer, nullable=False)
    bucket = Column(Enum(GainBucket), nullable=False)
    gain_amount = Column(Float, nullable=False)
    financial_year = Column(String(9), nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now())

    acquisition = relationship("LedgerTransaction", foreign_keys=[acquisition_id])
    disposal = relationship("LedgerTransaction", foreign_keys=[disposal_id])


class TransactionAudit(Base):
    """One changed field of one accepted edit. Values are JSON-encoded."""

    __tablename__ = "transaction_audit"

    id = Column(Integer, primary_key=True, autoincrement=True)
    record_id = Column(Integer, nullable=False, index=True)
    modified_at = Column(DateTime, nullable=False, index=True)
    field_name = Column(String(64), nullable=False)
    old_value = Column(Text)
    new_value = Column(Text)
