"""Shared utilities for the Solace crisis engine."""
from .hashing import hash_text_for_audit, short_hash

__all__ = ["hash_text_for_audit", "short_hash"]
