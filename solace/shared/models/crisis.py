"""Crisis signal and alert lifecycle domain models.

Value types shared by the scanner, the escalation state machine and the
audit sink. Everything here is immutable: a new AlertState is produced on
every transition rather than mutating the old one.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class TriggerSource(Enum):
    """Feature or context that produced the text being assessed."""
    JOURNAL = "journal"
    VOICE = "voice"
    CHAT = "chat"
    ASSESSMENT = "assessment"
    SCORE = "score"
    MANUAL = "manual"


class CrisisCategory(Enum):
    """Indicator categories a lexicon phrase can belong to."""
    SELF_HARM = "self_harm"
    SUICIDAL_IDEATION = "suicidal_ideation"
    VIOLENCE_TOWARD_OTHERS = "violence_toward_others"
    ACUTE_DESPAIR = "acute_despair"


class AlertStateName(Enum):
    """Lifecycle states of a single entry's alert."""
    CLEAR = "Clear"
    FLAGGED = "Flagged"
    BANNER_SHOWN = "BannerShown"
    MODAL_OPEN = "ModalOpen"
    RESOLVED = "Resolved"
    SUPPRESSED = "Suppressed"


class ResolvedAction(Enum):
    """Terminal actions that resolve an alert."""
    ACCESS_SUPPORT = "access_support"
    CALL_FOR_HELP = "call_for_help"
    DISMISS = "dismiss"
    CLOSE = "close"


class UserIntent(Enum):
    """Intents the presenter forwards verbatim from the UI."""
    ACCESS_SUPPORT = "access_support"
    CALL_FOR_HELP = "call_for_help"
    DISMISS = "dismiss"
    CLOSE = "close"
    ACKNOWLEDGE = "acknowledge"
    OPEN_MODAL = "open_modal"

    @property
    def resolved_action(self) -> Optional[ResolvedAction]:
        """Terminal action this intent maps to, if any."""
        try:
            return ResolvedAction(self.value)
        except ValueError:
            return None


MIN_TIER = 1
MAX_TIER = 3


@dataclass(frozen=True)
class JournalRevision:
    """A snapshot of an entry's text after one edit.

    revision_seq is monotonic per entry; the caller owns numbering.
    """
    entry_id: str
    text: str
    revision_seq: int
    edited_at: datetime = field(default_factory=datetime.utcnow)
    trigger_source: TriggerSource = TriggerSource.JOURNAL

    def __post_init__(self):
        if not isinstance(self.revision_seq, int) or self.revision_seq < 0:
            raise ValueError(
                f"revision_seq must be a non-negative int, got {self.revision_seq!r}"
            )


@dataclass(frozen=True)
class CrisisSignal:
    """One matched indicator phrase.

    Suppressed signals were negated ("I would never ...") and are kept
    for audit only; they never count toward severity.
    """
    category: CrisisCategory
    matched_phrase: str
    span: Tuple[int, int]
    tier: int
    lexicon_entry_id: str = ""
    suppressed: bool = False
    negation_cue: Optional[str] = None

    def __post_init__(self):
        if not MIN_TIER <= self.tier <= MAX_TIER:
            raise ValueError(f"Tier must be {MIN_TIER}-{MAX_TIER}, got {self.tier}")
        start, end = self.span
        if start < 0 or start > end:
            raise ValueError(f"Invalid span {self.span}")

    def sort_key(self) -> Tuple[int, int, str, str]:
        return (self.span[0], self.span[1], self.category.value, self.matched_phrase)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "matched_phrase": self.matched_phrase,
            "span": list(self.span),
            "tier": self.tier,
            "lexicon_entry_id": self.lexicon_entry_id,
            "suppressed": self.suppressed,
            "negation_cue": self.negation_cue,
        }


@dataclass(frozen=True)
class CrisisAssessment:
    """Result of one completed scan of one revision.

    available=False is the "assessment unavailable" sentinel: the text
    could not be checked, which is different from checked and clear.
    """
    entry_id: str
    revision_seq: int
    signals: Tuple[CrisisSignal, ...] = ()
    severity: Optional[int] = None
    assessed_at: datetime = field(default_factory=datetime.utcnow)
    lexicon_version: str = ""
    available: bool = True
    unavailable_reason: Optional[str] = None

    def __post_init__(self):
        if self.severity is not None and not MIN_TIER <= self.severity <= MAX_TIER:
            raise ValueError(f"Severity must be None or {MIN_TIER}-{MAX_TIER}")
        if not self.available and (self.severity is not None or self.signals):
            raise ValueError("Unavailable assessment cannot carry signals or severity")

    @classmethod
    def unavailable(
        cls,
        entry_id: str,
        revision_seq: int,
        reason: str,
        lexicon_version: str = "",
    ) -> "CrisisAssessment":
        """Build the sentinel returned when the scanner cannot run."""
        return cls(
            entry_id=entry_id,
            revision_seq=revision_seq,
            lexicon_version=lexicon_version,
            available=False,
            unavailable_reason=reason,
        )

    @property
    def active_signals(self) -> Tuple[CrisisSignal, ...]:
        return tuple(s for s in self.signals if not s.suppressed)

    @property
    def suppressed_signals(self) -> Tuple[CrisisSignal, ...]:
        return tuple(s for s in self.signals if s.suppressed)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "revision_seq": self.revision_seq,
            "signals": [s.to_dict() for s in self.signals],
            "severity": self.severity,
            "assessed_at": self.assessed_at.isoformat(),
            "lexicon_version": self.lexicon_version,
            "available": self.available,
            "unavailable_reason": self.unavailable_reason,
        }


@dataclass(frozen=True)
class AlertState:
    """Snapshot of one entry's alert.

    Owned by the entry's EscalationStateMachine. Presenters read it and
    send intents; they never build or modify one themselves.
    """
    entry_id: str
    state: AlertStateName
    trigger_source: TriggerSource
    last_transition_at: datetime
    last_severity: Optional[int] = None
    acknowledged_at: Optional[datetime] = None
    resolved_action: Optional[ResolvedAction] = None
    cooldown_until: Optional[datetime] = None
    last_revision_seq: Optional[int] = None
    require_acknowledge: bool = True

    @property
    def is_interrupting(self) -> bool:
        """True while the user is being shown a banner or modal."""
        return self.state in (
            AlertStateName.FLAGGED,
            AlertStateName.BANNER_SHOWN,
            AlertStateName.MODAL_OPEN,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "state": self.state.value,
            "trigger_source": self.trigger_source.value,
            "last_severity": self.last_severity,
            "acknowledged_at": self.acknowledged_at.isoformat() if self.acknowledged_at else None,
            "resolved_action": self.resolved_action.value if self.resolved_action else None,
            "last_transition_at": self.last_transition_at.isoformat(),
            "cooldown_until": self.cooldown_until.isoformat() if self.cooldown_until else None,
            "last_revision_seq": self.last_revision_seq,
            "require_acknowledge": self.require_acknowledge,
        }
