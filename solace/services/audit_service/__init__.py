"""Audit Service: append-only trail of alert state transitions.

Every EscalationStateMachine transition is delivered to an AuditSink.
Delivery failures never block an alert; they are logged and, for sinks
that support it, retried.

This service provides:
- AuditRecord: stable, additive-only transition record
- AuditLogger: in-process hash-chained trail with verification
- KinesisAuditSink: durable delivery with a retry buffer
- FanoutAuditSink: deliver to several sinks at once
"""

from .records import AuditRecord, AuditSink, FanoutAuditSink, AUDIT_SCHEMA_VERSION
from .audit_logger import AuditLogger, AuditEntry
from .kinesis_sink import KinesisAuditSink

__all__ = [
    "AuditRecord",
    "AuditSink",
    "FanoutAuditSink",
    "AUDIT_SCHEMA_VERSION",
    "AuditLogger",
    "AuditEntry",
    "KinesisAuditSink",
]
