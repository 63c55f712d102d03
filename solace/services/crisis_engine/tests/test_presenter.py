"""Tests for the presenter adapter."""
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from solace.shared.models import AlertState, AlertStateName, TriggerSource, UserIntent
from solace.services.crisis_engine.presenter import (
    CRISIS_RESOURCES,
    CrisisModalBindings,
    NullPresenter,
    PresentationSurface,
    support_message,
    surface_for,
)


def alert(state, severity=2):
    return AlertState(
        entry_id="entry_1",
        state=state,
        trigger_source=TriggerSource.JOURNAL,
        last_transition_at=datetime(2026, 10, 1),
        last_severity=severity,
    )


class TestSurfaceFor:
    @pytest.mark.parametrize("state,surface", [
        (AlertStateName.CLEAR, PresentationSurface.NONE),
        (AlertStateName.FLAGGED, PresentationSurface.BANNER),
        (AlertStateName.BANNER_SHOWN, PresentationSurface.BANNER),
        (AlertStateName.MODAL_OPEN, PresentationSurface.MODAL),
        (AlertStateName.RESOLVED, PresentationSurface.NONE),
        (AlertStateName.SUPPRESSED, PresentationSurface.NONE),
    ])
    def test_mapping(self, state, surface):
        assert surface_for(alert(state)) == surface

    def test_tier_three_modal_is_full_screen(self):
        assert surface_for(alert(AlertStateName.MODAL_OPEN, severity=3)) == PresentationSurface.FULL_SCREEN

    def test_interrupting_states(self):
        assert alert(AlertStateName.BANNER_SHOWN).is_interrupting
        assert not alert(AlertStateName.SUPPRESSED).is_interrupting


class TestCrisisResources:
    def test_lifeline_first(self):
        assert CRISIS_RESOURCES[0].value == "988"
        assert CRISIS_RESOURCES[0].url == "tel:988"

    def test_text_line_url(self):
        text_line = next(r for r in CRISIS_RESOURCES if r.resource_type == "sms")
        assert text_line.url == "sms:741741?body=HOME"

    def test_web_resource_url(self):
        web = next(r for r in CRISIS_RESOURCES if r.resource_type == "url")
        assert web.url == "https://findahelpline.com"

    def test_to_dict(self):
        data = CRISIS_RESOURCES[0].to_dict()
        assert data["type"] == "phone"
        assert data["available_24_7"] is True


class TestSupportMessage:
    def test_every_source_has_copy(self):
        for source in TriggerSource:
            assert support_message(source)

    def test_chat_copy(self):
        assert support_message(TriggerSource.CHAT) == "We're here to support you through difficult moments."


class TestModalBindings:
    @pytest.fixture
    def engine(self):
        return MagicMock()

    @pytest.mark.parametrize("callback,intent", [
        ("on_open_modal", UserIntent.OPEN_MODAL),
        ("on_crisis_support", UserIntent.ACCESS_SUPPORT),
        ("on_call_for_help", UserIntent.CALL_FOR_HELP),
        ("on_acknowledge", UserIntent.ACKNOWLEDGE),
        ("on_dismiss", UserIntent.DISMISS),
        ("on_close", UserIntent.CLOSE),
    ])
    def test_callbacks_map_to_intents(self, engine, callback, intent):
        bindings = CrisisModalBindings(engine, "entry_1")
        getattr(bindings, callback)()
        engine.handle_intent.assert_called_once_with("entry_1", intent)

    def test_banner_shown_presents(self, engine):
        CrisisModalBindings(engine, "entry_1").on_banner_shown()
        engine.present.assert_called_once_with("entry_1")


class TestNullPresenter:
    def test_accepts_everything(self):
        presenter = NullPresenter()
        presenter.on_alert_state_changed("entry_1", alert(AlertStateName.FLAGGED))
        presenter.on_assessment_unavailable("entry_1", 1, "lexicon_unavailable")
