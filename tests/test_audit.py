"""Tests for the field-level edit audit log."""

import json
import subprocess
import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

from src.audit import AuditConfig, AuditEntry, AuditLogger, AuditQuery
from src.audit.events import decode_value, encode_value, normalize_timestamp
from src.capgains import InvalidArgument, TransactionType
from src.db.models import TransactionAudit


BEFORE = {
    "trade_date": date(2024, 1, 1),
    "instrument_id": "INFY",
    "transaction_type": TransactionType.ACQUISITION,
    "quantity": 10.0,
    "unit_price": 100.0,
    "notes": None,
}

T0 = datetime(2024, 6, 1, 9, 30)


def _after(**changes):
    values = dict(BEFORE)
    values.update(changes)
    return values


@pytest.fixture
def audit(context):
    return AuditLogger(context.store, context.audit_config)


class TestAuditConfig:
    """Tests for audit configuration."""

    def test_default_config(self):
        config = AuditConfig()
        assert config.enabled is True
        assert config.epsilon == 1e-4
        assert "quantity" in config.tracked_fields
        assert config.is_numeric("unit_price")
        assert not config.is_numeric("notes")

    def test_custom_config(self):
        config = AuditConfig(epsilon=0.01, enabled=False)
        assert config.epsilon == 0.01
        assert config.enabled is False


class TestValueEncoding:
    """Tests for stored value encoding."""

    def test_encode_date(self):
        assert encode_value(date(2024, 1, 1)) == '"2024-01-01"'

    def test_encode_enum(self):
        assert encode_value(TransactionType.DISPOSAL) == '"DISPOSAL"'

    def test_encode_none(self):
        assert decode_value(encode_value(None)) is None

    def test_decode_non_json(self):
        assert decode_value("plain text") == "plain text"

    def test_normalize_aware_timestamp(self):
        aware = datetime(2024, 6, 1, 12, 0, tzinfo=timezone(timedelta(hours=5, minutes=30)))
        assert normalize_timestamp(aware) == datetime(2024, 6, 1, 6, 30)


class TestChangeDetection:
    """Tests for AuditLogger.detect_changes."""

    def test_no_change(self, audit):
        assert audit.detect_changes(BEFORE, _after()) == []

    def test_float_noise_ignored(self, audit):
        assert audit.detect_changes(BEFORE, _after(quantity=10.00000001)) == []

    def test_numeric_change_detected(self, audit):
        assert audit.detect_changes(BEFORE, _after(unit_price=100.5)) == [("unit_price", 100.0, 100.5)]

    def test_enum_and_string_compare_equal(self, audit):
        assert audit.detect_changes(BEFORE, _after(transaction_type="ACQUISITION")) == []

    def test_none_to_value(self, audit):
        assert audit.detect_changes(BEFORE, _after(notes="x")) == [("notes", None, "x")]


class TestAuditLogger:
    """Tests for writing and reading audit history."""

    def test_one_entry_per_changed_field(self, audit):
        entries = audit.log_edit(1, BEFORE, _after(quantity=12.0, trade_date=date(2024, 1, 5)), timestamp=T0)
        assert [e.field_name for e in entries] == ["trade_date", "quantity"]
        assert all(e.entry_id is not None for e in entries)
        assert entries[0].old_value == "2024-01-01"
        assert entries[0].new_value == "2024-01-05"

    def test_nothing_written_without_changes(self, audit):
        assert audit.log_edit(1, BEFORE, _after(quantity=10.00001), timestamp=T0) == []
        assert audit.get_history(1) == []

    def test_values_stored_as_json(self, context, audit):
        audit.log_edit(1, BEFORE, _after(quantity=12.0), timestamp=T0)
        rows = context.store.query(TransactionAudit.__table__.select(), scalars=False)
        assert json.loads(rows[0].old_value) == 10.0
        assert json.loads(rows[0].new_value) == 12.0

    def test_history_ordered_by_timestamp(self, audit):
        audit.log_edit(1, BEFORE, _after(notes="second"), timestamp=T0 + timedelta(hours=1))
        audit.log_edit(1, BEFORE, _after(notes="first"), timestamp=T0)
        history = audit.get_history(1)
        assert [e.new_value for e in history] == ["first", "second"]

    def test_history_is_per_record(self, audit):
        audit.log_edit(1, BEFORE, _after(notes="a"), timestamp=T0)
        audit.log_edit(2, BEFORE, _after(notes="b"), timestamp=T0)
        assert [e.new_value for e in audit.get_history(2)] == ["b"]

    def test_repeated_reads_identical(self, audit):
        audit.log_edit(1, BEFORE, _after(quantity=11.0, notes="n"), timestamp=T0)
        assert audit.get_history(1) == audit.get_history(1)

    def test_aware_timestamp_stored_as_utc(self, audit):
        audit.log_edit(1, BEFORE, _after(notes="x"), timestamp=datetime(2024, 6, 1, 12, tzinfo=timezone.utc))
        assert audit.get_history(1)[0].timestamp == datetime(2024, 6, 1, 12)

    def test_disabled(self, context):
        disabled = AuditLogger(context.store, AuditConfig(enabled=False))
        assert disabled.log_edit(1, BEFORE, _after(notes="x")) == []
        assert disabled.get_history(1) == []

    def test_rolls_back_with_session(self, context, audit):
        class Boom(Exception):
            pass

        def _edit(session):
            audit.log_edit(1, BEFORE, _after(notes="x"), timestamp=T0, session=session)
            raise Boom()

        with pytest.raises(Boom):
            context.store.run_in_transaction(_edit)
        assert audit.get_history(1) == []

    def test_edit_summary(self, audit):
        audit.log_edit(1, BEFORE, _after(quantity=12.0, notes="a"), timestamp=T0)
        audit.log_edit(1, BEFORE, _after(unit_price=90.0), timestamp=T0 + timedelta(days=1))
        summary = audit.get_edit_summary(1)
        assert summary["has_been_edited"] is True
        assert summary["edit_count"] == 2
        assert summary["total_changes"] == 3
        assert summary["fields_changed"] == ["quantity", "notes", "unit_price"]
        assert summary["last_modified"] == T0 + timedelta(days=1)

    def test_edit_summary_empty(self, audit):
        summary = audit.get_edit_summary(99)
        assert summary["has_been_edited"] is False
        assert summary["edit_count"] == 0

    def test_field_history(self, context, audit):
        audit.log_edit(1, BEFORE, _after(quantity=12.0, notes="a"), timestamp=T0)
        entries = AuditQuery(context.store).get_field_history(1, "notes")
        assert [e.new_value for e in entries] == ["a"]


class TestDeleteHistory:
    """History may only go away with its record."""

    def test_refused_while_record_exists(self, orchestrator, audit):
        acquisition = orchestrator.record_acquisition("INFY", 1, 10.0, date(2024, 1, 1))
        audit.log_edit(acquisition.record_id, BEFORE, _after(notes="x"), timestamp=T0)
        with pytest.raises(InvalidArgument):
            audit.delete_history(acquisition.record_id)
        assert len(audit.get_history(acquisition.record_id)) == 1

    def test_deleted_for_missing_record(self, audit):
        audit.log_edit(77, BEFORE, _after(notes="x", quantity=3.0), timestamp=T0)
        assert audit.delete_history(77) == 2
        assert audit.get_history(77) == []

    def test_recorder_imports_before_the_engine(self):
        result = subprocess.run(
            [sys.executable, "-c", "import src.audit.recorder as r; print(r.InvalidArgument.__module__)"],
            cwd=Path(__file__).parent.parent,
            capture_output=True,
            text=True,
        )
        assert result.returncode == 0, result.stderr
        assert result.stdout.strip() == "src.ledger_errors.exceptions"


class TestAuditEntry:
    """Tests for AuditEntry serialization."""

    def test_round_trip(self):
        entry = AuditEntry(record_id=5, field_name="quantity", old_value=1.0, new_value=2.0, timestamp=T0, entry_id=9)
        assert AuditEntry.from_dict(entry.to_dict()) == entry

    def test_to_dict(self):
        data = AuditEntry(record_id=5, field_name="notes", timestamp=T0).to_dict()
        assert data["timestamp"] == "2024-06-01T09:30:00"
        assert data["old_value"] is None
