"""Safety Service: lexicon-driven crisis signal detection.

Every journal revision passes through the SignalScanner before the
escalation state machine decides whether to interrupt the user.

Components:
- lexicon.py: versioned phrase table loaded from lexicons/<version>.json
- text_normalizer.py: tokenizer keeping spans into the original text
- scanner.py: SignalScanner (matching, negation suppression, severity)
- config.py: EngineConfig, every tuning knob supplied from outside

Usage:
    from solace.services.safety_service import SignalScanner
    scanner = SignalScanner()
    result = scanner.scan("I want to end my life")
    result.severity  # 3
"""

from .config import EngineConfig, DEFAULT_LEXICON_DIR
from .lexicon import (
    Lexicon,
    LexiconEntry,
    LexiconLoadError,
    LexiconLoadReport,
    LexiconValidationError,
    load_lexicon,
)
from .scanner import SignalScanner, ScanResult, aggregate_severity
from .text_normalizer import TextNormalizer, Token

__all__ = [
    "EngineConfig",
    "DEFAULT_LEXICON_DIR",
    "Lexicon",
    "LexiconEntry",
    "LexiconLoadError",
    "LexiconLoadReport",
    "LexiconValidationError",
    "load_lexicon",
    "SignalScanner",
    "ScanResult",
    "aggregate_severity",
    "TextNormalizer",
    "Token",
]
