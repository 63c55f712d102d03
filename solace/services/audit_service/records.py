"""Alert transition audit records and the sink interface.

The record field set is append-only: new fields may be added at the end,
existing keys are never renamed or removed, so historical logs stay
parseable. Bump AUDIT_SCHEMA_VERSION when adding a field.
"""
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from solace.shared.models import AlertStateName, ResolvedAction, TriggerSource

AUDIT_SCHEMA_VERSION = 1


def _record_id() -> str:
    return f"alert_{uuid.uuid4().hex[:16]}"


@dataclass(frozen=True)
class AuditRecord:
    """One alert state transition."""
    entry_id: str
    from_state: AlertStateName
    to_state: AlertStateName
    trigger_source: TriggerSource
    timestamp: datetime
    severity: Optional[int]
    # Additive fields
    event: str = ""
    revision_seq: Optional[int] = None
    resolved_action: Optional[ResolvedAction] = None
    record_id: str = field(default_factory=_record_id)
    schema_version: int = AUDIT_SCHEMA_VERSION

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with stable key names."""
        return {
            "entry_id": self.entry_id,
            "from": self.from_state.value,
            "to": self.to_state.value,
            "trigger_source": self.trigger_source.value,
            "timestamp": self.timestamp.isoformat(),
            "severity": self.severity,
            "event": self.event,
            "revision_seq": self.revision_seq,
            "resolved_action": self.resolved_action.value if self.resolved_action else None,
            "record_id": self.record_id,
            "schema_version": self.schema_version,
        }


class AuditSink(ABC):
    """Destination for alert transition records.

    append() may raise; the state machine logs the failure and keeps
    going, so a broken sink never blocks an alert. Sinks that can retry
    (see KinesisAuditSink) own their retry policy.
    """

    @abstractmethod
    def append(self, record: AuditRecord) -> None:
        """Deliver one record."""


class FanoutAuditSink(AuditSink):
    """Delivers each record to several sinks.

    Every sink is attempted even if an earlier one fails; the first
    failure is re-raised afterwards so the caller still sees it.
    """

    def __init__(self, *sinks: AuditSink):
        self.sinks = list(sinks)

    def append(self, record: AuditRecord) -> None:
        first_error: Optional[Exception] = None
        for sink in self.sinks:
            try:
                sink.append(record)
            except Exception as e:
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error
