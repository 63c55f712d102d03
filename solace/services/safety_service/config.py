"""Crisis engine configuration.

Every safety tuning knob is supplied from outside the code: the lexicon
version, the debounce and cooldown windows and the negation window. Values
come from the environment in deployed services (see from_env) and from
explicit construction in tests.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from solace.shared.models import TriggerSource

DEFAULT_LEXICON_DIR = Path(__file__).parent / "lexicons"


@dataclass(frozen=True)
class EngineConfig:
    """Configuration for scanning, debouncing and escalation."""

    # Lexicon file lexicons/<version>.json
    lexicon_version: str = "2026.10.01"
    lexicon_dir: Path = DEFAULT_LEXICON_DIR

    # Quiet period after the last keystroke before a revision is scanned
    debounce_window_ms: int = 300

    # Equal-or-lower severity re-detections are suppressed for this long
    # after an alert is resolved
    cooldown_window_ms: int = 10 * 60 * 1000

    # Tokens before a match searched for negation cues
    negation_window_tokens: int = 3

    # Presentation defaults, overridable per entry
    require_acknowledge: bool = True
    default_trigger_source: TriggerSource = TriggerSource.JOURNAL

    def __post_init__(self):
        if not self.lexicon_version:
            raise ValueError("lexicon_version is required")
        if self.debounce_window_ms < 0:
            raise ValueError(f"debounce_window_ms must be >= 0, got {self.debounce_window_ms}")
        if self.cooldown_window_ms < 0:
            raise ValueError(f"cooldown_window_ms must be >= 0, got {self.cooldown_window_ms}")
        if self.negation_window_tokens < 0:
            raise ValueError(
                f"negation_window_tokens must be >= 0, got {self.negation_window_tokens}"
            )

    @property
    def debounce_window_seconds(self) -> float:
        return self.debounce_window_ms / 1000.0

    @property
    def cooldown_window_seconds(self) -> float:
        return self.cooldown_window_ms / 1000.0

    @classmethod
    def from_env(cls, prefix: str = "SOLACE_") -> "EngineConfig":
        """Build configuration from SOLACE_* environment variables.

        Unset variables keep their defaults.

        Raises:
            ValueError: If a numeric variable is not an integer or a
                value fails validation
        """
        defaults = cls()

        def _int(name: str, default: int) -> int:
            raw: Optional[str] = os.getenv(prefix + name)
            if raw is None or raw.strip() == "":
                return default
            try:
                return int(raw)
            except ValueError:
                raise ValueError(f"{prefix}{name} must be an integer, got {raw!r}")

        lexicon_dir = os.getenv(prefix + "LEXICON_DIR")
        return cls(
            lexicon_version=os.getenv(prefix + "LEXICON_VERSION", defaults.lexicon_version),
            lexicon_dir=Path(lexicon_dir) if lexicon_dir else defaults.lexicon_dir,
            debounce_window_ms=_int("DEBOUNCE_WINDOW_MS", defaults.debounce_window_ms),
            cooldown_window_ms=_int("COOLDOWN_WINDOW_MS", defaults.cooldown_window_ms),
            negation_window_tokens=_int(
                "NEGATION_WINDOW_TOKENS", defaults.negation_window_tokens
            ),
            require_acknowledge=os.getenv(prefix + "REQUIRE_ACKNOWLEDGE", "true").lower() == "true",
            default_trigger_source=TriggerSource(
                os.getenv(prefix + "DEFAULT_TRIGGER_SOURCE", defaults.default_trigger_source.value)
            ),
        )
