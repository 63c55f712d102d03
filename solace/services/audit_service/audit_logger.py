"""Audit logger - append-only, hash-chained alert audit trail.

Every alert state transition is stored as an AuditEntry chained to the
previous entry by SHA-256, so any later edit or deletion is detectable by
verify_chain().
"""
import hashlib
import json
import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime
from typing import List, Optional

from solace.shared.models import AlertStateName
from .records import AuditRecord, AuditSink

logger = logging.getLogger(__name__)

GENESIS_HASH = "genesis"


@dataclass(frozen=True)
class AuditEntry:
    """Immutable chained wrapper around one AuditRecord."""
    record: AuditRecord
    sequence: int
    previous_hash: str = GENESIS_HASH
    entry_hash: str = ""

    def compute_hash(self) -> str:
        """Compute SHA-256 hash of entry for verification.

        Returns:
            Hex-encoded hash string
        """
        content = {
            "record": self.record.to_dict(),
            "sequence": self.sequence,
            "previous_hash": self.previous_hash,
        }
        content_str = json.dumps(content, sort_keys=True)
        return hashlib.sha256(content_str.encode()).hexdigest()


class AuditLogger(AuditSink):
    """In-process audit sink with a verifiable hash chain.

    Used directly in development and tests, and as the local trail that
    backs remote sinks in the service.
    """

    def __init__(self):
        """Initialize audit logger."""
        self._entries: List[AuditEntry] = []
        self._last_hash: str = GENESIS_HASH
        # Machines for different entries share one chain
        self._lock = threading.Lock()

        logger.info("AUDIT_LOGGER_INITIALIZED")

    def append(self, record: AuditRecord) -> None:
        self.log(record)

    def log(self, record: AuditRecord) -> AuditEntry:
        """Store a record at the end of the chain.

        Args:
            record: Transition record from the state machine

        Returns:
            Created AuditEntry

        Logs:
            - AUDIT_ENTRY_CREATED: After entry is stored
        """
        with self._lock:
            entry = AuditEntry(
                record=record,
                sequence=len(self._entries),
                previous_hash=self._last_hash,
            )
            entry = replace(entry, entry_hash=entry.compute_hash())

            self._entries.append(entry)
            self._last_hash = entry.entry_hash

        logger.info(
            "AUDIT_ENTRY_CREATED",
            extra={
                "record_id": record.record_id,
                "entry_id": record.entry_id,
                "from_state": record.from_state.value,
                "to_state": record.to_state.value,
                "event": record.event,
                "severity": record.severity,
                "entry_hash": entry.entry_hash[:16],  # Truncated for logs
            }
        )
        return entry

    @property
    def entries(self) -> List[AuditEntry]:
        with self._lock:
            return list(self._entries)

    def records(self) -> List[AuditRecord]:
        return [e.record for e in self.entries]

    def verify_chain(self) -> bool:
        """Verify integrity of audit chain.

        Returns:
            True if chain is valid, False if tampered
        """
        entries = self.entries
        expected_prev = GENESIS_HASH
        for sequence, entry in enumerate(entries):
            if entry.previous_hash != expected_prev or entry.sequence != sequence:
                logger.critical(
                    "AUDIT_CHAIN_VERIFICATION_FAILED",
                    extra={
                        "record_id": entry.record.record_id,
                        "expected_prev": expected_prev[:16],
                        "actual_prev": entry.previous_hash[:16],
                    }
                )
                return False

            computed = entry.compute_hash()
            if computed != entry.entry_hash:
                logger.critical(
                    "AUDIT_ENTRY_HASH_MISMATCH",
                    extra={
                        "record_id": entry.record.record_id,
                        "computed": computed[:16],
                        "stored": entry.entry_hash[:16],
                    }
                )
                return False

            expected_prev = entry.entry_hash

        logger.info(
            "AUDIT_CHAIN_VERIFIED",
            extra={"entry_count": len(entries)}
        )
        return True

    def query(
        self,
        entry_id: Optional[str] = None,
        to_state: Optional[AlertStateName] = None,
        event: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> List[AuditRecord]:
        """Query stored records.

        Args:
            entry_id: Filter by journal entry
            to_state: Filter by destination state
            event: Filter by triggering event name
            start_date: Filter by start date
            end_date: Filter by end date

        Returns:
            Matching AuditRecords in append order
        """
        results = self.records()

        if entry_id:
            results = [r for r in results if r.entry_id == entry_id]
        if to_state:
            results = [r for r in results if r.to_state == to_state]
        if event:
            results = [r for r in results if r.event == event]
        if start_date:
            results = [r for r in results if r.timestamp >= start_date]
        if end_date:
            results = [r for r in results if r.timestamp <= end_date]

        return results
