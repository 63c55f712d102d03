"""Versioned crisis indicator lexicon.

The lexicon is data, not code: indicator phrases and negation cues live in
lexicons/<version>.json so severity tuning and audits never need a code
change. This module loads and validates that file.

File format:
    {
      "version": "2026.10.01",
      "negation_cues": ["not", "never", "no longer"],
      "entries": [
        {"id": "si-001", "category": "suicidal_ideation", "tier": 3,
         "phrase": "end my life"}
      ]
    }

A malformed entry is rejected on its own and recorded in the load report;
the rest of the lexicon still loads. Only file-level problems (missing
file, invalid JSON, wrong version, nothing usable) fail the whole load.
"""
import json
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from solace.shared.models import CrisisCategory, MAX_TIER, MIN_TIER
from .config import DEFAULT_LEXICON_DIR
from .text_normalizer import TextNormalizer, get_normalizer

logger = logging.getLogger(__name__)


class LexiconLoadError(Exception):
    """The lexicon file cannot be used at all."""


@dataclass(frozen=True)
class LexiconValidationError:
    """One rejected lexicon record."""
    index: int
    entry_id: Optional[str]
    field: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "entry_id": self.entry_id,
            "field": self.field,
            "reason": self.reason,
        }


@dataclass
class LexiconLoadReport:
    """Outcome of loading one lexicon file."""
    version: str
    source: str
    accepted_entries: int = 0
    accepted_negation_cues: int = 0
    errors: List[LexiconValidationError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "source": self.source,
            "accepted_entries": self.accepted_entries,
            "accepted_negation_cues": self.accepted_negation_cues,
            "errors": [e.to_dict() for e in self.errors],
        }


@dataclass(frozen=True)
class LexiconEntry:
    """One indicator phrase."""
    entry_id: str
    category: CrisisCategory
    tier: int
    phrase: str
    tokens: Tuple[str, ...]


class Lexicon:
    """Read-only phrase table shared by every scan.

    Entries are indexed by their first normalized token so the scanner
    only compares phrases that can start at a given word.
    """

    def __init__(
        self,
        version: str,
        entries: List[LexiconEntry],
        negation_cues: List[Tuple[str, ...]],
    ):
        self.version = version
        self._entries: Tuple[LexiconEntry, ...] = tuple(entries)
        self._negation_cues: Tuple[Tuple[str, ...], ...] = tuple(negation_cues)

        index: Dict[str, List[LexiconEntry]] = defaultdict(list)
        by_category: Dict[CrisisCategory, List[LexiconEntry]] = defaultdict(list)
        for entry in self._entries:
            index[entry.tokens[0]].append(entry)
            by_category[entry.category].append(entry)
        self._index = {
            token: tuple(sorted(group, key=lambda e: (-len(e.tokens), e.entry_id)))
            for token, group in index.items()
        }
        self._by_category = {k: tuple(v) for k, v in by_category.items()}

    @property
    def entries(self) -> Tuple[LexiconEntry, ...]:
        return self._entries

    @property
    def negation_cues(self) -> Tuple[Tuple[str, ...], ...]:
        return self._negation_cues

    def candidates(self, token: str) -> Tuple[LexiconEntry, ...]:
        """Entries whose phrase starts with token, longest first."""
        return self._index.get(token, ())

    def by_category(self, category: CrisisCategory) -> Tuple[LexiconEntry, ...]:
        return self._by_category.get(category, ())

    def __len__(self) -> int:
        return len(self._entries)

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        expected_version: Optional[str] = None,
        source: str = "<memory>",
        normalizer: Optional[TextNormalizer] = None,
    ) -> Tuple["Lexicon", LexiconLoadReport]:
        """Validate a parsed lexicon document.

        Args:
            data: Parsed JSON document
            expected_version: Version the caller asked for, if any
            source: Where the document came from, for the report
            normalizer: Tokenizer used for phrases (must match the scanner's)

        Returns:
            (Lexicon, LexiconLoadReport)

        Raises:
            LexiconLoadError: If the document as a whole is unusable
        """
        normalizer = normalizer or get_normalizer()

        if not isinstance(data, Mapping):
            raise LexiconLoadError(f"{source}: lexicon document must be an object")

        version = data.get("version")
        if not isinstance(version, str) or not version:
            raise LexiconLoadError(f"{source}: missing lexicon version")
        if expected_version is not None and version != expected_version:
            raise LexiconLoadError(
                f"{source}: version mismatch, expected {expected_version}, found {version}"
            )

        raw_entries = data.get("entries")
        if not isinstance(raw_entries, list):
            raise LexiconLoadError(f"{source}: 'entries' must be a list")

        report = LexiconLoadReport(version=version, source=source)
        entries = _validate_entries(raw_entries, normalizer, report)
        negation_cues = _validate_negation_cues(
            data.get("negation_cues", []), normalizer, report
        )

        if not entries:
            raise LexiconLoadError(f"{source}: no valid lexicon entries")

        report.accepted_entries = len(entries)
        report.accepted_negation_cues = len(negation_cues)
        return cls(version, entries, negation_cues), report


def _validate_entries(
    raw_entries: List[Any],
    normalizer: TextNormalizer,
    report: LexiconLoadReport,
) -> List[LexiconEntry]:
    entries: List[LexiconEntry] = []
    seen_ids = set()
    seen_phrases = set()

    def reject(index: int, entry_id: Optional[str], field_name: str, reason: str):
        report.errors.append(LexiconValidationError(index, entry_id, field_name, reason))

    for index, raw in enumerate(raw_entries):
        if not isinstance(raw, Mapping):
            reject(index, None, "entry", "entry must be an object")
            continue

        entry_id = raw.get("id")
        if not isinstance(entry_id, str) or not entry_id.strip():
            reject(index, None, "id", "missing id")
            continue
        if entry_id in seen_ids:
            reject(index, entry_id, "id", "duplicate id")
            continue

        try:
            category = CrisisCategory(raw.get("category"))
        except ValueError:
            reject(index, entry_id, "category", f"unknown category {raw.get('category')!r}")
            continue

        tier = raw.get("tier")
        # bool is an int subclass; true/false are not tiers
        if isinstance(tier, bool) or not isinstance(tier, int) or not MIN_TIER <= tier <= MAX_TIER:
            reject(index, entry_id, "tier", f"tier must be an integer {MIN_TIER}-{MAX_TIER}")
            continue

        phrase = raw.get("phrase")
        if not isinstance(phrase, str) or not phrase.strip():
            reject(index, entry_id, "phrase", "missing phrase")
            continue
        tokens = normalizer.normalize_phrase(phrase)
        if not tokens:
            reject(index, entry_id, "phrase", "phrase has no words")
            continue
        if (category, tokens) in seen_phrases:
            reject(index, entry_id, "phrase", "duplicate phrase in category")
            continue

        seen_ids.add(entry_id)
        seen_phrases.add((category, tokens))
        entries.append(LexiconEntry(
            entry_id=entry_id,
            category=category,
            tier=tier,
            phrase=phrase.strip(),
            tokens=tokens,
        ))
    return entries


def _validate_negation_cues(
    raw_cues: Any,
    normalizer: TextNormalizer,
    report: LexiconLoadReport,
) -> List[Tuple[str, ...]]:
    if not isinstance(raw_cues, list):
        report.errors.append(LexiconValidationError(
            -1, None, "negation_cues", "negation_cues must be a list"
        ))
        return []

    cues: List[Tuple[str, ...]] = []
    for index, raw in enumerate(raw_cues):
        tokens = normalizer.normalize_phrase(raw) if isinstance(raw, str) else ()
        if not tokens:
            report.errors.append(LexiconValidationError(
                index, None, "negation_cues", f"invalid negation cue {raw!r}"
            ))
            continue
        if tokens not in cues:
            cues.append(tokens)
    return cues


def load_lexicon(
    version: str,
    directory: Optional[Path] = None,
    normalizer: Optional[TextNormalizer] = None,
) -> Tuple[Lexicon, LexiconLoadReport]:
    """Load and validate lexicons/<version>.json.

    Args:
        version: Lexicon version identifier
        directory: Directory holding lexicon files (defaults to the
            packaged lexicons/ directory)
        normalizer: Tokenizer for phrases

    Returns:
        (Lexicon, LexiconLoadReport)

    Raises:
        LexiconLoadError: If the file is missing, unreadable, not JSON, of
            another version, or contains no valid entries

    Logs:
        - LEXICON_LOADED: On success
        - LEXICON_ENTRIES_REJECTED: If some entries failed validation
        - LEXICON_LOAD_FAILED: On file-level failure
    """
    path = Path(directory or DEFAULT_LEXICON_DIR) / f"{version}.json"
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        lexicon, report = Lexicon.from_dict(
            data,
            expected_version=version,
            source=str(path),
            normalizer=normalizer,
        )
    except (OSError, json.JSONDecodeError) as e:
        logger.error(
            "LEXICON_LOAD_FAILED",
            extra={"version": version, "path": str(path), "error": str(e)}
        )
        raise LexiconLoadError(f"{path}: {e}") from e
    except LexiconLoadError as e:
        logger.error(
            "LEXICON_LOAD_FAILED",
            extra={"version": version, "path": str(path), "error": str(e)}
        )
        raise

    if report.errors:
        logger.warning(
            "LEXICON_ENTRIES_REJECTED",
            extra={
                "version": version,
                "rejected_count": len(report.errors),
                "errors": [e.to_dict() for e in report.errors],
            }
        )

    logger.info(
        "LEXICON_LOADED",
        extra={
            "version": version,
            "entry_count": report.accepted_entries,
            "negation_cue_count": report.accepted_negation_cues,
        }
    )
    return lexicon, report
