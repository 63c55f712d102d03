"""Presenter boundary between the crisis engine and the app's UI.

The engine never renders anything. A presenter observes AlertState
changes, picks a surface (banner, modal, full-screen alert) and forwards
the user's taps back as intents through CrisisModalBindings.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple

from solace.shared.models import AlertState, AlertStateName, TriggerSource, UserIntent

logger = logging.getLogger(__name__)


class PresentationSurface(Enum):
    """UI surface a presenter should show for an alert."""
    NONE = "none"
    BANNER = "banner"
    MODAL = "modal"
    FULL_SCREEN = "full_screen"


def surface_for(state: AlertState) -> PresentationSurface:
    """Map an alert state to the surface that should be visible.

    Tier-3 severity in the modal stage uses the full-screen support alert.
    """
    if state.state in (AlertStateName.FLAGGED, AlertStateName.BANNER_SHOWN):
        return PresentationSurface.BANNER
    if state.state == AlertStateName.MODAL_OPEN:
        if state.last_severity == 3:
            return PresentationSurface.FULL_SCREEN
        return PresentationSurface.MODAL
    return PresentationSurface.NONE


class AlertPresenter(ABC):
    """Receives engine output. Implementations must not block."""

    @abstractmethod
    def on_alert_state_changed(self, entry_id: str, state: AlertState) -> None:
        """Render the new state."""

    def on_assessment_unavailable(self, entry_id: str, revision_seq: int, reason: str) -> None:
        """Show a soft "couldn't check this entry" indicator."""


class NullPresenter(AlertPresenter):
    """Presenter for headless use (HTTP service, batch jobs)."""

    def on_alert_state_changed(self, entry_id: str, state: AlertState) -> None:
        logger.debug(
            "PRESENTER_STATE_IGNORED",
            extra={"entry_id": entry_id, "state": state.state.value}
        )


@dataclass(frozen=True)
class CrisisResource:
    """A support line offered in the crisis modal."""
    name: str
    description: str
    resource_type: str  # phone, sms or url
    value: str
    button_text: str
    available_24_7: bool = True

    @property
    def url(self) -> str:
        if self.resource_type == "phone":
            return f"tel:{self.value}"
        if self.resource_type == "sms":
            return f"sms:{self.value}?body=HOME"
        return self.value

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "description": self.description,
            "type": self.resource_type,
            "value": self.value,
            "button_text": self.button_text,
            "available_24_7": self.available_24_7,
            "url": self.url,
        }


# Verify accuracy before each release
CRISIS_RESOURCES: Tuple[CrisisResource, ...] = (
    CrisisResource(
        name="988 Suicide & Crisis Lifeline",
        description="24/7 confidential support for people in distress",
        resource_type="phone",
        value="988",
        button_text="Call 988 Now",
    ),
    CrisisResource(
        name="Crisis Text Line",
        description="Text HOME to connect with a crisis counselor",
        resource_type="sms",
        value="741741",
        button_text="Text HOME to 741741",
    ),
    CrisisResource(
        name="International Resources",
        description="Find crisis support in your country",
        resource_type="url",
        value="https://findahelpline.com",
        button_text="View International Resources",
    ),
)

SUPPORT_MESSAGES: Dict[TriggerSource, str] = {
    TriggerSource.ASSESSMENT: "We noticed you might be going through a difficult time.",
    TriggerSource.JOURNAL: "Thank you for sharing your feelings with us.",
    TriggerSource.VOICE: "Thank you for sharing your feelings with us.",
    TriggerSource.CHAT: "We're here to support you through difficult moments.",
    TriggerSource.SCORE: "Your wellbeing is important to us.",
    TriggerSource.MANUAL: "You've taken an important step by reaching out.",
}


def support_message(trigger_source: TriggerSource) -> str:
    """Supportive copy for the modal header."""
    return SUPPORT_MESSAGES.get(trigger_source, SUPPORT_MESSAGES[TriggerSource.MANUAL])


class CrisisModalBindings:
    """Wires the modal's button callbacks 1:1 to engine intents.

    Usage:
        bindings = CrisisModalBindings(engine, entry_id)
        modal.on_call_for_help = bindings.on_call_for_help
    """

    def __init__(self, engine, entry_id: str):
        """Initialize bindings.

        Args:
            engine: Anything with handle_intent(entry_id, intent) and
                present(entry_id), normally a CrisisEngine
            entry_id: Entry the modal belongs to
        """
        self._engine = engine
        self.entry_id = entry_id

    def on_banner_shown(self):
        return self._engine.present(self.entry_id)

    def on_open_modal(self):
        return self._engine.handle_intent(self.entry_id, UserIntent.OPEN_MODAL)

    def on_crisis_support(self):
        return self._engine.handle_intent(self.entry_id, UserIntent.ACCESS_SUPPORT)

    def on_call_for_help(self):
        return self._engine.handle_intent(self.entry_id, UserIntent.CALL_FOR_HELP)

    def on_acknowledge(self):
        return self._engine.handle_intent(self.entry_id, UserIntent.ACKNOWLEDGE)

    def on_dismiss(self):
        return self._engine.handle_intent(self.entry_id, UserIntent.DISMISS)

    def on_close(self):
        return self._engine.handle_intent(self.entry_id, UserIntent.CLOSE)
