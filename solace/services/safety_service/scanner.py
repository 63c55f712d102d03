"""Signal scanner - lexicon-driven crisis signal detection.

Every journal, voice and chat revision is scanned here before the
escalation state machine decides whether to interrupt the user.

Pipeline:
- Tokenize with TextNormalizer (spans point into the original text)
- Match lexicon phrases as whole token sequences, across line breaks
  and sentence punctuation
- Suppress matches preceded by a negation cue in the same clause
- Severity = highest tier among non-suppressed signals

The scanner is a pure function of (text, lexicon version): the same input
always yields the same signals and severity.
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from solace.shared.models import CrisisAssessment, CrisisSignal, JournalRevision
from solace.shared.utils import short_hash
from .config import EngineConfig
from .lexicon import Lexicon, LexiconEntry, LexiconLoadError, LexiconLoadReport, load_lexicon
from .text_normalizer import TextNormalizer, Token, get_normalizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanResult:
    """Signals found in one text snapshot.

    available=False means the text could not be checked.
    """
    signals: Tuple[CrisisSignal, ...] = ()
    severity: Optional[int] = None
    available: bool = True
    lexicon_version: str = ""
    unavailable_reason: Optional[str] = None
    scan_latency_ms: float = 0.0
    scanned_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def active_signals(self) -> Tuple[CrisisSignal, ...]:
        return tuple(s for s in self.signals if not s.suppressed)

    @property
    def suppressed_signals(self) -> Tuple[CrisisSignal, ...]:
        return tuple(s for s in self.signals if s.suppressed)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "signals": [s.to_dict() for s in self.signals],
            "severity": self.severity,
            "available": self.available,
            "lexicon_version": self.lexicon_version,
            "unavailable_reason": self.unavailable_reason,
            "scan_latency_ms": round(self.scan_latency_ms, 2),
            "scanned_at": self.scanned_at.isoformat(),
        }


def aggregate_severity(signals: Sequence[CrisisSignal]) -> Optional[int]:
    """Highest tier among non-suppressed signals.

    Severity is a ceiling: repeated matches at one tier never add up.
    """
    tiers = [s.tier for s in signals if not s.suppressed]
    return max(tiers) if tiers else None


class SignalScanner:
    """Detects crisis indicator phrases in journal text.

    If the lexicon cannot be loaded the scanner still constructs, reports
    available=False, and returns the unavailable sentinel from every scan
    so callers can tell "could not check" apart from "checked, clear".
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        lexicon: Optional[Lexicon] = None,
        normalizer: Optional[TextNormalizer] = None,
    ):
        """Initialize scanner and load its lexicon.

        Args:
            config: Engine configuration (lexicon version, negation window)
            lexicon: Pre-loaded lexicon; skips loading from disk
            normalizer: Tokenizer shared with the lexicon
        """
        self.config = config or EngineConfig()
        self.negation_window = self.config.negation_window_tokens
        self._normalizer = normalizer or get_normalizer()
        self._lexicon: Optional[Lexicon] = lexicon
        self.load_report: Optional[LexiconLoadReport] = None
        self.load_error: Optional[str] = None

        if self._lexicon is None:
            self._lexicon = self._load(self.config.lexicon_version, self.config.lexicon_dir)

        logger.info(
            "SIGNAL_SCANNER_INITIALIZED",
            extra={
                "lexicon_version": self.lexicon_version,
                "available": self.available,
                "entry_count": len(self._lexicon) if self._lexicon else 0,
                "negation_window": self.negation_window,
            }
        )

    def _load(self, version: str, directory: Path) -> Optional[Lexicon]:
        try:
            lexicon, report = load_lexicon(version, directory, normalizer=self._normalizer)
        except LexiconLoadError as e:
            self.load_error = str(e)
            logger.critical(
                "SIGNAL_SCANNER_LEXICON_UNAVAILABLE",
                extra={
                    "lexicon_version": version,
                    "error": str(e),
                    "action": "ASSESSMENTS_UNAVAILABLE",
                }
            )
            return None
        self.load_report = report
        return lexicon

    @property
    def available(self) -> bool:
        return self._lexicon is not None

    @property
    def lexicon_version(self) -> str:
        if self._lexicon is not None:
            return self._lexicon.version
        return self.config.lexicon_version

    def scan(self, text: str) -> ScanResult:
        """Scan a text snapshot for crisis signals.

        Args:
            text: Raw entry text

        Returns:
            ScanResult with every matched signal (suppressed ones
            included) and the aggregate severity

        Logs:
            - SIGNAL_SCAN_UNAVAILABLE: If no lexicon is loaded
            - SIGNAL_SCAN_CRISIS: If a tier-3 signal is active
            - SIGNAL_SCAN_COMPLETED: After every successful scan
        """
        start_time = time.perf_counter()

        if self._lexicon is None:
            logger.error(
                "SIGNAL_SCAN_UNAVAILABLE",
                extra={
                    "lexicon_version": self.lexicon_version,
                    "text_hash": short_hash(text),
                    "reason": "lexicon_unavailable",
                }
            )
            return ScanResult(
                available=False,
                lexicon_version=self.lexicon_version,
                unavailable_reason="lexicon_unavailable",
            )

        tokens = self._normalizer.tokenize(text)
        signals = sorted(self._match(text, tokens), key=CrisisSignal.sort_key)
        severity = aggregate_severity(signals)
        latency_ms = (time.perf_counter() - start_time) * 1000

        result = ScanResult(
            signals=tuple(signals),
            severity=severity,
            lexicon_version=self._lexicon.version,
            scan_latency_ms=latency_ms,
        )

        log_extra = {
            "lexicon_version": self._lexicon.version,
            "text_hash": short_hash(text),
            "text_length": len(text),
            "token_count": len(tokens),
            "active_signals": len(result.active_signals),
            "suppressed_signals": len(result.suppressed_signals),
            "severity": severity,
            "latency_ms": latency_ms,
        }
        if severity == 3:
            logger.critical(
                "SIGNAL_SCAN_CRISIS",
                extra={
                    **log_extra,
                    "categories": sorted({s.category.value for s in result.active_signals}),
                }
            )
        logger.info("SIGNAL_SCAN_COMPLETED", extra=log_extra)
        return result

    def assess(self, revision: JournalRevision) -> CrisisAssessment:
        """Scan one revision and wrap the result as an assessment.

        Args:
            revision: Entry snapshot to assess

        Returns:
            CrisisAssessment, or the unavailable sentinel if the scanner
            has no lexicon
        """
        result = self.scan(revision.text)
        if not result.available:
            return CrisisAssessment.unavailable(
                entry_id=revision.entry_id,
                revision_seq=revision.revision_seq,
                reason=result.unavailable_reason or "lexicon_unavailable",
                lexicon_version=result.lexicon_version,
            )
        return CrisisAssessment(
            entry_id=revision.entry_id,
            revision_seq=revision.revision_seq,
            signals=result.signals,
            severity=result.severity,
            assessed_at=result.scanned_at,
            lexicon_version=result.lexicon_version,
        )

    def _match(self, text: str, tokens: List[Token]) -> List[CrisisSignal]:
        """Find every lexicon phrase occurring as a token sequence."""
        signals: List[CrisisSignal] = []
        words = [t.text for t in tokens]
        for position, token in enumerate(tokens):
            for entry in self._lexicon.candidates(token.text):
                length = len(entry.tokens)
                if tuple(words[position:position + length]) != entry.tokens:
                    continue
                last = tokens[position + length - 1]
                signals.append(self._build_signal(text, tokens, position, last, entry))
        return signals

    def _build_signal(
        self,
        text: str,
        tokens: List[Token],
        position: int,
        last: Token,
        entry: LexiconEntry,
    ) -> CrisisSignal:
        start = tokens[position].start
        cue = self._find_negation(tokens, position)
        return CrisisSignal(
            category=entry.category,
            matched_phrase=text[start:last.end],
            span=(start, last.end),
            tier=entry.tier,
            lexicon_entry_id=entry.entry_id,
            suppressed=cue is not None,
            negation_cue=cue,
        )

    def _find_negation(self, tokens: List[Token], position: int) -> Optional[str]:
        """Negation cue in the window immediately before a match.

        The window holds at most negation_window tokens and stops at the
        start of the match's clause.
        """
        if self.negation_window == 0:
            return None
        clause = tokens[position].clause
        window = [
            t.text for t in tokens[max(0, position - self.negation_window):position]
            if t.clause == clause
        ]
        for cue in self._lexicon.negation_cues:
            size = len(cue)
            for offset in range(len(window) - size + 1):
                if tuple(window[offset:offset + size]) == cue:
                    return " ".join(cue)
        return None
