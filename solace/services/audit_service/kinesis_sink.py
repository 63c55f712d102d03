"""Kinesis audit sink.

Streams alert transition records to Kinesis for durable storage and
telemetry.

Failure Handling:
    - Delivery failure does NOT block the alert transition
    - Failed records are buffered and retried on the next append or on
      retry_pending()
    - Failures are logged at CRITICAL level for alerting
"""
import json
import logging
import os
import threading
from collections import deque
from typing import Deque, Optional

from .records import AuditRecord, AuditSink

logger = logging.getLogger(__name__)


class KinesisAuditSink(AuditSink):
    """Publishes audit records to a Kinesis stream.

    Records for one journal entry share a partition key so they land on
    one shard in order.
    """

    def __init__(
        self,
        stream_name: str = "solace-alert-audit",
        enabled: bool = True,
        region: Optional[str] = None,
        max_pending: int = 1000,
        kinesis_client=None,
    ):
        """Initialize sink.

        Args:
            stream_name: Kinesis stream name
            enabled: Whether publishing is enabled (disable for local dev)
            region: AWS region (defaults to AWS_REGION env var)
            max_pending: Failed records kept for retry; oldest dropped first
            kinesis_client: Pre-built client, mainly for tests
        """
        self.stream_name = stream_name
        self.enabled = enabled
        self.region = region or os.getenv("AWS_REGION", "us-east-1")
        self._kinesis_client = kinesis_client
        self._pending: Deque[AuditRecord] = deque(maxlen=max_pending)
        # Held while publishing so buffered records go out in order
        self._lock = threading.RLock()

        logger.info(
            "AUDIT_SINK_INITIALIZED",
            extra={
                "stream_name": stream_name,
                "enabled": enabled,
                "region": self.region,
            }
        )

    @property
    def kinesis_client(self):
        """Lazy initialization of Kinesis client."""
        if self._kinesis_client is None and self.enabled:
            try:
                import boto3
                self._kinesis_client = boto3.client(
                    "kinesis",
                    region_name=self.region,
                )
            except Exception as e:
                logger.error(
                    "KINESIS_CLIENT_INIT_FAILED",
                    extra={"error": str(e)}
                )
        return self._kinesis_client

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def append(self, record: AuditRecord) -> None:
        """Publish one record, retrying earlier failures first.

        Never raises; undelivered records stay in the retry buffer.
        """
        if not self.enabled:
            logger.debug(
                "AUDIT_PUBLISH_SKIPPED",
                extra={"record_id": record.record_id, "reason": "publishing_disabled"}
            )
            return

        with self._lock:
            if self._pending:
                self.retry_pending()
            if not self._publish(record):
                self._buffer(record)

    def retry_pending(self) -> int:
        """Retry buffered records in order.

        Returns:
            Number of records delivered
        """
        delivered = 0
        with self._lock:
            while self._pending:
                record = self._pending[0]
                if not self._publish(record):
                    break
                self._pending.popleft()
                delivered += 1
            remaining = len(self._pending)

        if delivered:
            logger.info(
                "AUDIT_PENDING_RETRIED",
                extra={"delivered": delivered, "remaining": remaining}
            )
        return delivered

    def _buffer(self, record: AuditRecord) -> None:
        if len(self._pending) == self._pending.maxlen:
            dropped = self._pending[0]
            logger.critical(
                "AUDIT_RECORD_DROPPED",
                extra={
                    "record_id": dropped.record_id,
                    "entry_id": dropped.entry_id,
                    "payload": json.dumps(dropped.to_dict()),
                    "action": "MANUAL_REVIEW_REQUIRED",
                }
            )
        self._pending.append(record)

    def _publish(self, record: AuditRecord) -> bool:
        payload = json.dumps(record.to_dict())
        client = self.kinesis_client
        if client is None:
            logger.critical(
                "AUDIT_RECORD_FALLBACK_LOG",
                extra={
                    "record_id": record.record_id,
                    "payload": payload,
                    "reason": "kinesis_client_unavailable",
                }
            )
            return False

        try:
            response = client.put_record(
                StreamName=self.stream_name,
                Data=payload,
                PartitionKey=record.entry_id,  # Same entry -> same shard
            )
        except Exception as e:
            # CRITICAL: Log failure but don't raise, the alert still proceeds
            logger.critical(
                "AUDIT_RECORD_PUBLISH_FAILED",
                extra={
                    "record_id": record.record_id,
                    "entry_id": record.entry_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "pending": len(self._pending),
                }
            )
            return False

        logger.info(
            "AUDIT_RECORD_PUBLISHED",
            extra={
                "record_id": record.record_id,
                "entry_id": record.entry_id,
                "shard_id": response.get("ShardId"),
                "sequence_number": response.get("SequenceNumber"),
            }
        )
        return True
