"""Tests for AuditLogger - immutable, hash-chained alert trail."""
import threading
from dataclasses import replace
from datetime import datetime, timedelta

import pytest

from solace.shared.models import AlertStateName, ResolvedAction, TriggerSource
from solace.services.audit_service.audit_logger import AuditLogger, AuditEntry, GENESIS_HASH
from solace.services.audit_service.records import (
    AUDIT_SCHEMA_VERSION,
    AuditRecord,
    AuditSink,
    FanoutAuditSink,
)

T0 = datetime(2026, 10, 1, 12, 0, 0)


def make_record(entry_id="entry_1", from_state=AlertStateName.CLEAR,
                to_state=AlertStateName.FLAGGED, event="assessment",
                severity=3, timestamp=T0, **kwargs):
    return AuditRecord(
        entry_id=entry_id,
        from_state=from_state,
        to_state=to_state,
        trigger_source=TriggerSource.JOURNAL,
        timestamp=timestamp,
        severity=severity,
        event=event,
        **kwargs,
    )


@pytest.fixture
def audit_logger():
    return AuditLogger()


class TestAuditRecord:
    def test_to_dict_has_stable_keys(self):
        record = make_record(
            to_state=AlertStateName.RESOLVED,
            from_state=AlertStateName.MODAL_OPEN,
            event="call_for_help",
            revision_seq=4,
            resolved_action=ResolvedAction.CALL_FOR_HELP,
        )
        data = record.to_dict()

        assert data["entry_id"] == "entry_1"
        assert data["from"] == "ModalOpen"
        assert data["to"] == "Resolved"
        assert data["trigger_source"] == "journal"
        assert data["timestamp"] == "2026-10-01T12:00:00"
        assert data["severity"] == 3
        assert data["event"] == "call_for_help"
        assert data["revision_seq"] == 4
        assert data["resolved_action"] == "call_for_help"
        assert data["schema_version"] == AUDIT_SCHEMA_VERSION

    def test_record_ids_unique(self):
        assert make_record().record_id != make_record().record_id
        assert make_record().record_id.startswith("alert_")

    def test_record_is_immutable(self):
        record = make_record()
        with pytest.raises(AttributeError):
            record.severity = 1


class TestAuditEntryCreation:
    def test_log_creates_entry(self, audit_logger):
        record = make_record()
        entry = audit_logger.log(record)

        assert isinstance(entry, AuditEntry)
        assert entry.record is record
        assert entry.sequence == 0
        assert entry.previous_hash == GENESIS_HASH
        assert len(entry.entry_hash) == 64

    def test_entries_are_chained(self, audit_logger):
        first = audit_logger.log(make_record())
        second = audit_logger.log(make_record(
            from_state=AlertStateName.FLAGGED, to_state=AlertStateName.BANNER_SHOWN, event="present"
        ))
        assert second.previous_hash == first.entry_hash
        assert second.sequence == 1

    def test_append_is_log(self, audit_logger):
        audit_logger.append(make_record())
        assert len(audit_logger.entries) == 1
        assert isinstance(audit_logger, AuditSink)


class TestChainVerification:
    def test_empty_chain_valid(self, audit_logger):
        assert audit_logger.verify_chain() is True

    def test_valid_chain(self, audit_logger):
        for _ in range(5):
            audit_logger.log(make_record())
        assert audit_logger.verify_chain() is True

    def test_tampered_record_detected(self, audit_logger):
        for _ in range(3):
            audit_logger.log(make_record())
        entry = audit_logger._entries[1]
        audit_logger._entries[1] = replace(entry, record=replace(entry.record, severity=1))

        assert audit_logger.verify_chain() is False

    def test_deleted_entry_detected(self, audit_logger):
        for _ in range(3):
            audit_logger.log(make_record())
        del audit_logger._entries[1]

        assert audit_logger.verify_chain() is False


class TestQuery:
    @pytest.fixture
    def populated(self, audit_logger):
        audit_logger.log(make_record(entry_id="a", timestamp=T0))
        audit_logger.log(make_record(
            entry_id="a", from_state=AlertStateName.FLAGGED,
            to_state=AlertStateName.BANNER_SHOWN, event="present",
            timestamp=T0 + timedelta(minutes=1),
        ))
        audit_logger.log(make_record(entry_id="b", timestamp=T0 + timedelta(minutes=2)))
        return audit_logger

    def test_query_by_entry(self, populated):
        assert len(populated.query(entry_id="a")) == 2

    def test_query_by_state(self, populated):
        results = populated.query(to_state=AlertStateName.FLAGGED)
        assert [r.entry_id for r in results] == ["a", "b"]

    def test_query_by_event(self, populated):
        assert len(populated.query(event="present")) == 1

    def test_query_by_date_range(self, populated):
        results = populated.query(
            start_date=T0 + timedelta(seconds=30),
            end_date=T0 + timedelta(minutes=1),
        )
        assert [r.event for r in results] == ["present"]


class FailingSink(AuditSink):
    def __init__(self):
        self.calls = 0

    def append(self, record):
        self.calls += 1
        raise RuntimeError("sink down")


class TestFanoutAuditSink:
    def test_delivers_to_all_sinks(self):
        first, second = AuditLogger(), AuditLogger()
        FanoutAuditSink(first, second).append(make_record())
        assert len(first.records()) == len(second.records()) == 1

    def test_failure_does_not_skip_later_sinks(self):
        failing, healthy = FailingSink(), AuditLogger()
        fanout = FanoutAuditSink(failing, healthy)

        with pytest.raises(RuntimeError, match="sink down"):
            fanout.append(make_record())

        assert failing.calls == 1
        assert len(healthy.records()) == 1


class TestConcurrentEntries:
    """Machines for different entries append to one shared chain."""

    def test_parallel_appends_keep_chain_intact(self, audit_logger):
        def write(entry_id):
            for _ in range(500):
                audit_logger.log(make_record(entry_id=entry_id))

        threads = [
            threading.Thread(target=write, args=(f"entry_{i}",)) for i in range(8)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        entries = audit_logger.entries
        assert len(entries) == 4000
        assert [e.sequence for e in entries] == list(range(4000))
        assert audit_logger.verify_chain() is True
