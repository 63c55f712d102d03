"""Crisis Engine: debounced scanning and alert escalation.

Turns journal edits into at most one visible alert per entry and walks
that alert through its lifecycle as the user responds.

This engine:
1. Debounces text revisions so each burst of typing is scanned once
2. Applies assessments in revision order, discarding stale ones
3. Escalates Clear -> Flagged -> BannerShown -> ModalOpen -> Resolved
4. Suppresses repeat alerts during the post-resolution cooldown
5. Audits every transition

Endpoints (http_handler):
- POST /scan - Stateless scan
- POST /entries/<id>/start - Register entry
- POST /entries/<id>/revisions - Assess and apply a revision
- POST /entries/<id>/present - Banner shown
- POST /entries/<id>/intents - User intent
- GET /entries/<id>/alert - Current alert state
- DELETE /entries/<id> - Archive entry
"""

from .debounce import DebounceGate
from .engine import CrisisEngine
from .presenter import (
    AlertPresenter,
    CrisisModalBindings,
    CrisisResource,
    CRISIS_RESOURCES,
    NullPresenter,
    PresentationSurface,
    support_message,
    surface_for,
)
from .state_machine import EscalationStateMachine

__all__ = [
    "CrisisEngine",
    "DebounceGate",
    "EscalationStateMachine",
    "AlertPresenter",
    "NullPresenter",
    "CrisisModalBindings",
    "CrisisResource",
    "CRISIS_RESOURCES",
    "PresentationSurface",
    "support_message",
    "surface_for",
]
