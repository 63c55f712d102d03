"""Text normalization and tokenization for signal scanning.

Turns raw journal text into a list of normalized word tokens that keep
their character spans in the ORIGINAL text, so every match can point at
exactly what the user typed.

Handles:
- Case (case-folded)
- Unicode styling (fullwidth, circled, mathematical letters, accents)
- Zero-width characters inserted inside words
- Leetspeak digits inside words (k1ll -> kill)
- Letters split by dots or dashes (k.i.l.l -> kill)
- Punctuation and whitespace variation between words

This is safety-critical code: a tokenizer bug is a missed crisis.
"""
import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Tuple

logger = logging.getLogger(__name__)


# Digits commonly substituted for letters. Only applied to tokens that
# mix letters and digits, so "2026" or "3" stay numbers.
LEETSPEAK_MAP: Dict[str, str] = {
    "0": "o",
    "1": "i",
    "3": "e",
    "4": "a",
    "5": "s",
    "7": "t",
    "8": "b",
    "9": "g",
}

# Invisible characters removed before tokenizing
STRIP_CHARS: FrozenSet[str] = frozenset({
    "\u200b",  # Zero-width space
    "\u200c",  # Zero-width non-joiner
    "\u200d",  # Zero-width joiner
    "\ufeff",  # Byte order mark
    "\u00ad",  # Soft hyphen
    "\u2060",  # Word joiner
})

# Characters that end a clause; negation never crosses them, phrases may
CLAUSE_TERMINATORS: FrozenSet[str] = frozenset({".", "!", "?", ";", "\n", "\r"})

# Separators allowed between single letters of a spelled-out word
LETTER_SEPARATORS: FrozenSet[str] = frozenset({".", "-", "_", "*"})

# Combining marks, so decomposed accents (i + U+0301) stay inside the word
_MARKS = "\u0300-\u036f\u1ab0-\u1aff\u1dc0-\u1dff\u20d0-\u20ff\ufe20-\ufe2f"
_WORD_CHAR = r"(?:[^\W_]|[" + _MARKS + r"])"
_TOKEN_PATTERN = re.compile(
    r"[^\W_]" + _WORD_CHAR + r"*(?:['\u2019]" + _WORD_CHAR + r"+)*"
)


@dataclass(frozen=True)
class Token:
    """A normalized word and where it sits in the original text."""
    text: str
    start: int
    end: int
    clause: int = 0


class TextNormalizer:
    """Tokenizes text for phrase matching.

    Usage:
        tokens = TextNormalizer().tokenize("I w4nt to   END my life.")
        [t.text for t in tokens]  # ['i', 'want', 'to', 'end', 'my', 'life']
    """

    def __init__(self, min_spelled_letters: int = 3):
        """Initialize the normalizer.

        Args:
            min_spelled_letters: Shortest run of separated single letters
                that is joined back into one word
        """
        self.min_spelled_letters = min_spelled_letters

        logger.debug(
            "TEXT_NORMALIZER_INITIALIZED",
            extra={
                "leetspeak_mappings": len(LEETSPEAK_MAP),
                "min_spelled_letters": min_spelled_letters,
            }
        )

    def tokenize(self, text: str) -> List[Token]:
        """Split text into normalized tokens with original spans.

        Args:
            text: Raw input text

        Returns:
            Tokens in reading order
        """
        if not text:
            return []

        cleaned, offsets = self._strip_invisible(text)

        raw: List[Tuple[str, int, int]] = []
        for match in _TOKEN_PATTERN.finditer(cleaned):
            start = offsets[match.start()]
            end = offsets[match.end() - 1] + 1
            raw.append((self.normalize_word(match.group(0)), start, end))

        raw = self._join_spelled_letters(text, raw)

        tokens: List[Token] = []
        clause = 0
        prev_end = 0
        for word, start, end in raw:
            if tokens and any(c in CLAUSE_TERMINATORS for c in text[prev_end:start]):
                clause += 1
            tokens.append(Token(text=word, start=start, end=end, clause=clause))
            prev_end = end
        return tokens

    def normalize_word(self, word: str) -> str:
        """Normalize a single word.

        Args:
            word: One token as it appears in the text

        Returns:
            Case-folded ASCII-leaning form used for matching
        """
        result = unicodedata.normalize("NFKC", word)
        result = result.replace("\u2019", "'")
        result = "".join(
            c for c in unicodedata.normalize("NFKD", result)
            if unicodedata.category(c) != "Mn"
        )
        result = result.casefold()
        if any(c.isdigit() for c in result) and any(c.isalpha() for c in result):
            result = "".join(LEETSPEAK_MAP.get(c, c) for c in result)
        return result

    def normalize_phrase(self, phrase: str) -> Tuple[str, ...]:
        """Tokenize a lexicon phrase the same way as user text."""
        return tuple(token.text for token in self.tokenize(phrase))

    def _strip_invisible(self, text: str) -> Tuple[str, List[int]]:
        """Remove invisible characters, keeping a map to original offsets.

        Compatibility characters are folded one by one (circled and
        styled letters are symbols until NFKC turns them into letters).

        Returns:
            (cleaned text, offsets) where offsets[i] is the index in the
            original text of cleaned[i]
        """
        chars: List[str] = []
        offsets: List[int] = []
        for index, char in enumerate(text):
            if char in STRIP_CHARS:
                continue
            for folded in unicodedata.normalize("NFKC", char):
                chars.append(folded)
                offsets.append(index)
        return "".join(chars), offsets

    def _join_spelled_letters(
        self,
        text: str,
        raw: List[Tuple[str, int, int]],
    ) -> List[Tuple[str, int, int]]:
        """Join runs like k.i.l.l into one token spanning the whole run."""
        joined: List[Tuple[str, int, int]] = []
        run: List[Tuple[str, int, int]] = []

        def _close_run():
            if len(run) >= self.min_spelled_letters:
                joined.append(("".join(w for w, _, _ in run), run[0][1], run[-1][2]))
            else:
                joined.extend(run)
            run.clear()

        for item in raw:
            word, start, _ = item
            if len(word) == 1 and word.isalpha():
                if run:
                    gap = text[run[-1][2]:start]
                    if len(gap) == 1 and gap in LETTER_SEPARATORS:
                        run.append(item)
                        continue
                    _close_run()
                run.append(item)
                continue
            if run:
                _close_run()
            joined.append(item)
        if run:
            _close_run()
        return joined


# Module-level singleton, the normalizer is stateless
_normalizer = None


def get_normalizer() -> TextNormalizer:
    """Get the shared TextNormalizer instance."""
    global _normalizer
    if _normalizer is None:
        _normalizer = TextNormalizer()
    return _normalizer
