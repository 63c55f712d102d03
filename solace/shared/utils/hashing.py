"""Fingerprints for journal text in logs and audit records.

Journal text is never written to application logs. Log lines and audit
records carry a SHA-256 fingerprint instead, so a record can be matched
against the stored entry during review without exposing its content.
"""
import hashlib


def hash_text_for_audit(text: str) -> str:
    """Hash journal text for the audit trail.

    Args:
        text: Raw entry text

    Returns:
        SHA-256 hex digest of the UTF-8 encoded text
    """
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def short_hash(text: str, length: int = 16) -> str:
    """Truncated fingerprint for log lines."""
    return hash_text_for_audit(text)[:length]
