"""Tests for SignalScanner - safety-critical code requires full coverage.

These tests include adversarial cases to ensure the scanner catches
crisis language even when disguised, and negation cases to ensure
"I would never hurt myself" does not interrupt the user.
"""
import logging

import pytest

from solace.shared.models import CrisisCategory, JournalRevision
from solace.services.safety_service.config import EngineConfig
from solace.services.safety_service.lexicon import Lexicon
from solace.services.safety_service.scanner import SignalScanner, aggregate_severity


@pytest.fixture
def scanner():
    """Create a SignalScanner with the shipped lexicon."""
    return SignalScanner()


@pytest.fixture
def unavailable_scanner(tmp_path):
    """Scanner whose lexicon file does not exist."""
    return SignalScanner(EngineConfig(lexicon_version="1999.01.01", lexicon_dir=tmp_path))


class TestCrisisDetection:
    """Tests for crisis phrase matching."""

    def test_end_my_life(self, scanner):
        result = scanner.scan("I want to end my life")

        assert result.available is True
        assert result.severity == 3
        assert len(result.signals) == 1
        signal = result.signals[0]
        assert signal.category == CrisisCategory.SUICIDAL_IDEATION
        assert signal.tier == 3
        assert signal.matched_phrase == "end my life"
        assert signal.span == (10, 21)
        assert signal.suppressed is False

    def test_severity_is_highest_tier(self, scanner):
        result = scanner.scan("I feel hopeless and want to end my life")

        assert result.severity == 3
        categories = {s.category for s in result.signals}
        assert categories == {CrisisCategory.ACUTE_DESPAIR, CrisisCategory.SUICIDAL_IDEATION}

    def test_severity_never_sums(self, scanner):
        """Three tier-1 signals are still tier 1."""
        result = scanner.scan("hopeless, worthless, trapped")
        assert len(result.signals) == 3
        assert result.severity == 1

    def test_self_harm_tier_two(self, scanner):
        result = scanner.scan("Sometimes I cut myself")
        assert result.severity == 2
        assert result.signals[0].category == CrisisCategory.SELF_HARM

    def test_violence_toward_others(self, scanner):
        result = scanner.scan("I want to make them pay")
        assert result.signals[0].category == CrisisCategory.VIOLENCE_TOWARD_OTHERS

    def test_case_insensitive(self, scanner):
        assert scanner.scan("I WANT TO END MY LIFE").severity == 3

    def test_signals_sorted_by_span(self, scanner):
        result = scanner.scan("I want to die. Everything is hopeless")
        assert [s.span[0] for s in result.signals] == sorted(s.span[0] for s in result.signals)
        assert result.signals[0].category == CrisisCategory.SUICIDAL_IDEATION

    def test_matched_phrase_is_original_text(self, scanner):
        result = scanner.scan("I want to END  my, LIFE")
        assert result.signals[0].matched_phrase == "END  my, LIFE"


class TestSafeText:
    """Tests for text that must not produce signals."""

    def test_normal_entry(self, scanner):
        result = scanner.scan("I had a good day at school today")
        assert result.signals == ()
        assert result.severity is None
        assert result.available is True

    def test_empty_text(self, scanner):
        result = scanner.scan("")
        assert result.severity is None
        assert result.available is True

    def test_no_match_inside_larger_words(self, scanner):
        assert scanner.scan("The suicidesquad movie was fun").severity is None
        assert scanner.scan("I untrapped the bird").severity is None


class TestNegation:
    """Negated phrases are kept for audit but never raise severity."""

    def test_never_hurt_myself(self, scanner):
        result = scanner.scan("I will never hurt myself")

        assert result.severity is None
        assert len(result.signals) == 1
        assert result.signals[0].suppressed is True
        assert result.signals[0].negation_cue == "never"
        assert result.suppressed_signals == result.signals
        assert result.active_signals == ()

    def test_multi_word_cue(self, scanner):
        result = scanner.scan("I no longer want to die")
        assert result.severity is None
        assert result.signals[0].negation_cue == "no longer"

    def test_curly_apostrophe_cue(self, scanner):
        assert scanner.scan("I don\u2019t want to die").severity is None

    def test_cue_inside_phrase_does_not_negate_it(self, scanner):
        result = scanner.scan("I don't want to live anymore")
        assert result.severity == 3

    def test_negation_does_not_cross_sentences(self, scanner):
        result = scanner.scan("Never. I hurt myself")
        assert result.severity == 2
        assert result.signals[0].suppressed is False

    def test_cue_outside_window(self, scanner):
        result = scanner.scan("I never ever really truly want to die")
        assert result.severity == 3

    def test_mixed_negated_and_active(self, scanner):
        result = scanner.scan("I would not hurt myself. I want to die")
        assert result.severity == 3
        assert len(result.suppressed_signals) == 1
        assert len(result.active_signals) == 1

    def test_window_zero_disables_negation(self):
        scanner = SignalScanner(EngineConfig(negation_window_tokens=0))
        assert scanner.scan("I will never hurt myself").severity == 2


class TestAdversarialEvasion:
    """Obfuscated crisis language must still be detected."""

    def test_leetspeak(self, scanner):
        assert scanner.scan("I want to k1ll mys3lf").severity == 3

    def test_dotted_letters(self, scanner):
        assert scanner.scan("I will k.i.l.l myself").severity == 3

    def test_zero_width_characters(self, scanner):
        result = scanner.scan("sui\u200bcide")
        assert result.severity == 3
        assert result.signals[0].span == (0, 8)

    def test_fullwidth(self, scanner):
        assert scanner.scan("ｓｕｉｃｉｄｅ").severity == 3

    def test_hyphenated_phrase(self, scanner):
        assert scanner.scan("thinking about self-harm").severity == 2

    def test_phrase_broken_by_line_wrap(self, scanner):
        result = scanner.scan("I want to end\nmy life")
        assert result.severity == 3
        assert result.signals[0].span == (10, 21)

    def test_phrase_broken_by_ellipsis(self, scanner):
        result = scanner.scan("I just want to end... my life")
        assert result.severity == 3
        assert result.signals[0].span == (15, 29)

    def test_phrase_across_transcript_segments(self, scanner):
        assert scanner.scan("i keep thinking i want to kill.\r\nmyself").severity == 3

    def test_decomposed_accent(self, scanner):
        result = scanner.scan("thinking about sui\u0301cide")
        assert result.severity == 3
        assert result.signals[0].span == (15, 23)


class TestDeterminism:
    def test_same_text_same_result(self, scanner):
        text = "I feel worthless and I want to end it all"
        first = scanner.scan(text)
        second = scanner.scan(text)
        assert first.signals == second.signals
        assert first.severity == second.severity
        assert first.lexicon_version == second.lexicon_version == "2026.10.01"


class TestAssess:
    def test_assessment_carries_revision(self, scanner):
        revision = JournalRevision(entry_id="entry_1", text="I want to die", revision_seq=7)
        assessment = scanner.assess(revision)

        assert assessment.entry_id == "entry_1"
        assert assessment.revision_seq == 7
        assert assessment.severity == 3
        assert assessment.available is True

    def test_clear_assessment(self, scanner):
        revision = JournalRevision(entry_id="entry_1", text="Nice walk today", revision_seq=1)
        assessment = scanner.assess(revision)
        assert assessment.severity is None


class TestUnavailable:
    """A missing lexicon yields 'could not check', never 'clear'."""

    def test_scanner_reports_unavailable(self, unavailable_scanner):
        assert unavailable_scanner.available is False
        assert unavailable_scanner.load_error is not None
        assert unavailable_scanner.lexicon_version == "1999.01.01"

    def test_scan_unavailable(self, unavailable_scanner):
        result = unavailable_scanner.scan("I want to end my life")
        assert result.available is False
        assert result.severity is None
        assert result.unavailable_reason == "lexicon_unavailable"

    def test_assess_returns_sentinel(self, unavailable_scanner):
        revision = JournalRevision(entry_id="entry_1", text="I want to die", revision_seq=3)
        assessment = unavailable_scanner.assess(revision)
        assert assessment.available is False
        assert assessment.revision_seq == 3
        assert assessment.signals == ()

    def test_load_failure_logged_critical(self, tmp_path, caplog):
        SignalScanner(EngineConfig(lexicon_version="1999.01.01", lexicon_dir=tmp_path))
        records = [r for r in caplog.records if r.getMessage() == "SIGNAL_SCANNER_LEXICON_UNAVAILABLE"]
        assert records and records[0].levelno == logging.CRITICAL


class TestInjectedLexicon:
    def test_custom_lexicon(self):
        lexicon, _ = Lexicon.from_dict({
            "version": "custom",
            "negation_cues": ["not"],
            "entries": [
                {"id": "x1", "category": "acute_despair", "tier": 1, "phrase": "so tired"},
            ],
        })
        scanner = SignalScanner(lexicon=lexicon)
        result = scanner.scan("I am so tired")
        assert result.severity == 1
        assert result.lexicon_version == "custom"
        assert scanner.scan("I am not so tired").severity is None


class TestLogging:
    def test_raw_text_never_logged(self, scanner, caplog):
        caplog.set_level(logging.DEBUG)
        secret = "my secret plan to end my life"
        scanner.scan(secret)
        for record in caplog.records:
            assert secret not in str(record.__dict__)

    def test_tier_three_logged_critical(self, scanner, caplog):
        caplog.set_level(logging.INFO)
        scanner.scan("I want to end my life")
        crisis = [r for r in caplog.records if r.getMessage() == "SIGNAL_SCAN_CRISIS"]
        assert crisis and crisis[0].levelno == logging.CRITICAL

    def test_tier_one_not_critical(self, scanner, caplog):
        caplog.set_level(logging.INFO)
        scanner.scan("I feel hopeless")
        assert not any(r.getMessage() == "SIGNAL_SCAN_CRISIS" for r in caplog.records)


class TestAggregateSeverity:
    def test_empty(self):
        assert aggregate_severity([]) is None
