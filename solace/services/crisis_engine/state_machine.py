"""Escalation state machine for one journal entry's crisis alert.

Lifecycle:
    Clear -> Flagged -> BannerShown -> ModalOpen -> Resolved
                                                 -> Suppressed (cooldown)

Transitions are the only place an AlertState changes. Each one emits an
AuditRecord and notifies the state-change listener. Events that are not
defined for the current state are no-ops: logged, never raised, so a
double-tapped button or a stale screen cannot corrupt the alert.
"""
import logging
import threading
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple

from solace.shared.models import (
    AlertState,
    AlertStateName,
    CrisisAssessment,
    ResolvedAction,
    TriggerSource,
    UserIntent,
)
from solace.services.audit_service import AuditRecord, AuditSink

logger = logging.getLogger(__name__)

EVENT_ASSESSMENT = "assessment"
EVENT_PRESENT = "present"
EVENT_ARCHIVED = "archived"

StateListener = Callable[[str, AlertState], None]


class EscalationStateMachine:
    """Owns one entry's AlertState and its transition table.

    All operations on one machine are serialized by a lock; machines for
    different entries are independent.
    """

    def __init__(
        self,
        entry_id: str,
        trigger_source: TriggerSource = TriggerSource.JOURNAL,
        require_acknowledge: bool = True,
        cooldown_window: timedelta = timedelta(minutes=10),
        audit_sink: Optional[AuditSink] = None,
        on_change: Optional[StateListener] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize machine in the Clear state.

        Args:
            entry_id: Journal entry this alert belongs to
            trigger_source: Feature that produced the entry's text
            require_acknowledge: Whether dismissing the modal needs a
                prior acknowledge intent
            cooldown_window: Suppression period after resolution
            audit_sink: Receives one AuditRecord per transition
            on_change: Called with (entry_id, new AlertState)
            clock: Source of "now" (defaults to datetime.utcnow)
        """
        self.entry_id = entry_id
        self.cooldown_window = cooldown_window
        self._audit_sink = audit_sink
        self._on_change = on_change
        self._clock = clock or datetime.utcnow
        self._lock = threading.RLock()
        self._last_applied_revision: Optional[int] = None
        self._archived = False
        self._state = AlertState(
            entry_id=entry_id,
            state=AlertStateName.CLEAR,
            trigger_source=trigger_source,
            last_transition_at=self._clock(),
            require_acknowledge=require_acknowledge,
        )

    @property
    def state(self) -> AlertState:
        return self._state

    @property
    def last_applied_revision(self) -> Optional[int]:
        return self._last_applied_revision

    @property
    def archived(self) -> bool:
        return self._archived

    # ------------------------------------------------------------------
    # Assessments
    # ------------------------------------------------------------------

    def apply_assessment(self, assessment: CrisisAssessment) -> AlertState:
        """Feed a completed scan into the machine.

        Assessments older than the last applied revision are discarded.
        Unavailable assessments never change state and never advance the
        revision watermark.

        Returns:
            The current AlertState after the assessment
        """
        with self._lock:
            if self._archived:
                return self._ignore(EVENT_ASSESSMENT, "entry_archived")
            if assessment.entry_id != self.entry_id:
                return self._ignore(EVENT_ASSESSMENT, "entry_mismatch")
            if not assessment.available:
                logger.warning(
                    "ALERT_ASSESSMENT_UNAVAILABLE",
                    extra={
                        "entry_id": self.entry_id,
                        "revision_seq": assessment.revision_seq,
                        "reason": assessment.unavailable_reason,
                    }
                )
                return self._state

            if (
                self._last_applied_revision is not None
                and assessment.revision_seq < self._last_applied_revision
            ):
                logger.debug(
                    "ALERT_ASSESSMENT_STALE",
                    extra={
                        "entry_id": self.entry_id,
                        "revision_seq": assessment.revision_seq,
                        "last_applied_revision": self._last_applied_revision,
                    }
                )
                return self._state

            self._last_applied_revision = assessment.revision_seq
            severity = assessment.severity
            if severity is None:
                return self._state

            decision = self._assessment_target(severity)
            if decision is None:
                logger.debug(
                    "ALERT_ASSESSMENT_NO_CHANGE",
                    extra={
                        "entry_id": self.entry_id,
                        "state": self._state.state.value,
                        "severity": severity,
                        "last_severity": self._state.last_severity,
                    }
                )
                return self._state

            target, changes = decision
            return self._transition(
                target,
                event=EVENT_ASSESSMENT,
                severity=severity,
                revision_seq=assessment.revision_seq,
                **changes,
            )

    def _assessment_target(self, severity: int) -> Optional[Tuple[AlertStateName, dict]]:
        """Destination state for an assessment of the given severity."""
        current = self._state
        state = current.state
        worse = current.last_severity is None or severity > current.last_severity
        new_cycle = {
            "last_severity": severity,
            "acknowledged_at": None,
            "resolved_action": None,
            "cooldown_until": None,
        }

        if state == AlertStateName.CLEAR:
            return AlertStateName.FLAGGED, new_cycle

        if state == AlertStateName.FLAGGED:
            if worse:
                return state, {"last_severity": severity}
            return None

        if state == AlertStateName.MODAL_OPEN:
            if worse:
                # A worse signal needs its own acknowledgement
                return state, {"last_severity": severity, "acknowledged_at": None}
            return None

        if state == AlertStateName.BANNER_SHOWN:
            if worse:
                # Worsening signal while the banner is up opens the modal
                return AlertStateName.MODAL_OPEN, {"last_severity": severity}
            return None

        cooling = self._in_cooldown()
        if state == AlertStateName.RESOLVED:
            if worse or not cooling:
                return AlertStateName.FLAGGED, new_cycle
            return AlertStateName.SUPPRESSED, {}

        if state == AlertStateName.SUPPRESSED:
            if worse or not cooling:
                return AlertStateName.FLAGGED, new_cycle
            return None

        return None

    def _in_cooldown(self) -> bool:
        cooldown_until = self._state.cooldown_until
        return cooldown_until is not None and self._clock() < cooldown_until

    # ------------------------------------------------------------------
    # Presenter and user events
    # ------------------------------------------------------------------

    def present(self) -> AlertState:
        """The presenter has shown the banner for a Flagged alert."""
        with self._lock:
            if self._archived:
                return self._ignore(EVENT_PRESENT, "entry_archived")
            if self._state.state != AlertStateName.FLAGGED:
                return self._ignore(EVENT_PRESENT, "not_flagged")
            return self._transition(
                AlertStateName.BANNER_SHOWN,
                event=EVENT_PRESENT,
                severity=self._state.last_severity,
            )

    def handle_intent(self, intent: UserIntent) -> AlertState:
        """Apply a user intent forwarded by the presenter.

        Returns:
            The current AlertState after the intent
        """
        with self._lock:
            event = intent.value
            if self._archived:
                return self._ignore(event, "entry_archived")

            state = self._state.state

            if intent == UserIntent.ACKNOWLEDGE:
                if state != AlertStateName.MODAL_OPEN:
                    return self._ignore(event, "modal_not_open")
                if self._state.acknowledged_at is not None:
                    return self._ignore(event, "already_acknowledged")
                return self._transition(
                    AlertStateName.MODAL_OPEN,
                    event=event,
                    severity=self._state.last_severity,
                    acknowledged_at=self._clock(),
                )

            if intent == UserIntent.OPEN_MODAL:
                if state != AlertStateName.BANNER_SHOWN:
                    return self._ignore(event, "banner_not_shown")
                return self._transition(
                    AlertStateName.MODAL_OPEN,
                    event=event,
                    severity=self._state.last_severity,
                )

            if intent in (UserIntent.ACCESS_SUPPORT, UserIntent.CALL_FOR_HELP):
                if state not in (AlertStateName.BANNER_SHOWN, AlertStateName.MODAL_OPEN):
                    return self._ignore(event, "no_open_alert")
                return self._resolve(intent.resolved_action, event)

            if intent == UserIntent.DISMISS:
                if state != AlertStateName.MODAL_OPEN:
                    return self._ignore(event, "modal_not_open")
                if self._state.require_acknowledge and self._state.acknowledged_at is None:
                    logger.warning(
                        "ALERT_DISMISS_REJECTED",
                        extra={
                            "entry_id": self.entry_id,
                            "reason": "acknowledge_required",
                        }
                    )
                    return self._state
                return self._resolve(ResolvedAction.DISMISS, event)

            if intent == UserIntent.CLOSE:
                if state != AlertStateName.MODAL_OPEN:
                    return self._ignore(event, "modal_not_open")
                return self._resolve(ResolvedAction.CLOSE, event)

            return self._ignore(event, "unknown_intent")

    def _resolve(self, action: ResolvedAction, event: str) -> AlertState:
        now = self._clock()
        return self._transition(
            AlertStateName.RESOLVED,
            event=event,
            severity=self._state.last_severity,
            resolved_action=action,
            cooldown_until=now + self.cooldown_window,
        )

    def archive(self) -> AlertState:
        """Hand the final state to the audit sink and stop accepting events.

        Called when the entry is deleted or the session ends.
        """
        with self._lock:
            if self._archived:
                return self._state
            self._archived = True
            self._emit(AuditRecord(
                entry_id=self.entry_id,
                from_state=self._state.state,
                to_state=self._state.state,
                trigger_source=self._state.trigger_source,
                timestamp=self._clock(),
                severity=self._state.last_severity,
                event=EVENT_ARCHIVED,
                revision_seq=self._last_applied_revision,
                resolved_action=self._state.resolved_action,
            ))
            logger.info(
                "ALERT_ARCHIVED",
                extra={
                    "entry_id": self.entry_id,
                    "state": self._state.state.value,
                    "last_severity": self._state.last_severity,
                }
            )
            return self._state

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _transition(
        self,
        to_state: AlertStateName,
        event: str,
        severity: Optional[int],
        revision_seq: Optional[int] = None,
        **changes,
    ) -> AlertState:
        previous = self._state
        now = self._clock()
        self._state = replace(
            previous,
            state=to_state,
            last_transition_at=now,
            last_revision_seq=(
                revision_seq if revision_seq is not None else previous.last_revision_seq
            ),
            **changes,
        )

        log = logger.critical if (
            to_state == AlertStateName.FLAGGED and previous.state != AlertStateName.FLAGGED
        ) else logger.info
        log(
            "ALERT_STATE_TRANSITION",
            extra={
                "entry_id": self.entry_id,
                "from_state": previous.state.value,
                "to_state": to_state.value,
                "event": event,
                "severity": severity,
                "trigger_source": previous.trigger_source.value,
                "revision_seq": revision_seq,
            }
        )

        self._emit(AuditRecord(
            entry_id=self.entry_id,
            from_state=previous.state,
            to_state=to_state,
            trigger_source=previous.trigger_source,
            timestamp=now,
            severity=severity,
            event=event,
            revision_seq=revision_seq,
            resolved_action=self._state.resolved_action if to_state == AlertStateName.RESOLVED else None,
        ))

        if self._on_change is not None:
            try:
                self._on_change(self.entry_id, self._state)
            except Exception as e:
                logger.error(
                    "ALERT_LISTENER_FAILED",
                    extra={
                        "entry_id": self.entry_id,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    }
                )
        return self._state

    def _emit(self, record: AuditRecord) -> None:
        """Deliver an audit record; failure never blocks the transition."""
        if self._audit_sink is None:
            return
        try:
            self._audit_sink.append(record)
        except Exception as e:
            logger.critical(
                "ALERT_AUDIT_DELIVERY_FAILED",
                extra={
                    "entry_id": record.entry_id,
                    "record_id": record.record_id,
                    "from_state": record.from_state.value,
                    "to_state": record.to_state.value,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "action": "MANUAL_REVIEW_REQUIRED",
                }
            )

    def _ignore(self, event: str, reason: str) -> AlertState:
        logger.warning(
            "ALERT_TRANSITION_IGNORED",
            extra={
                "entry_id": self.entry_id,
                "state": self._state.state.value,
                "event": event,
                "reason": reason,
            }
        )
        return self._state
