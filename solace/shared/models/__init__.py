"""Shared domain models for the Solace crisis engine."""
from .crisis import (
    TriggerSource,
    CrisisCategory,
    AlertStateName,
    ResolvedAction,
    UserIntent,
    JournalRevision,
    CrisisSignal,
    CrisisAssessment,
    AlertState,
    MIN_TIER,
    MAX_TIER,
)

__all__ = [
    "TriggerSource",
    "CrisisCategory",
    "AlertStateName",
    "ResolvedAction",
    "UserIntent",
    "JournalRevision",
    "CrisisSignal",
    "CrisisAssessment",
    "AlertState",
    "MIN_TIER",
    "MAX_TIER",
]
