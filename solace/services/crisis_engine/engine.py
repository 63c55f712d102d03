"""Crisis engine - wires debouncing, scanning and escalation together.

Text edits -> DebounceGate -> SignalScanner -> CrisisAssessment ->
EscalationStateMachine -> AlertState -> AlertPresenter

User intents flow the other way: presenter -> engine -> state machine.
The host app talks only to CrisisEngine.
"""
import asyncio
import logging
import threading
from concurrent.futures import Executor
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Union

from solace.shared.models import (
    AlertState,
    CrisisAssessment,
    JournalRevision,
    TriggerSource,
    UserIntent,
)
from solace.services.audit_service import AuditLogger, AuditSink
from solace.services.safety_service import EngineConfig, SignalScanner
from .debounce import DebounceGate
from .presenter import AlertPresenter, NullPresenter
from .state_machine import EscalationStateMachine

logger = logging.getLogger(__name__)


class CrisisEngine:
    """Per-session crisis detection and escalation.

    Owns one EscalationStateMachine per journal entry. Entries are fully
    independent; operations on one entry are serialized by its machine.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        scanner: Optional[SignalScanner] = None,
        presenter: Optional[AlertPresenter] = None,
        audit_sink: Optional[AuditSink] = None,
        clock: Optional[Callable[[], datetime]] = None,
        executor: Optional[Executor] = None,
    ):
        """Initialize engine with its collaborators.

        Args:
            config: Engine configuration
            scanner: Signal scanner (built from config when omitted)
            presenter: UI adapter receiving state changes
            audit_sink: Receives every transition record
            clock: Source of "now" for revisions and cooldowns
            executor: Where scans run; the loop's default executor if None
        """
        self.config = config or EngineConfig()
        self.scanner = scanner or SignalScanner(self.config)
        self.presenter = presenter or NullPresenter()
        self.audit_sink = audit_sink if audit_sink is not None else AuditLogger()
        self._clock = clock or datetime.utcnow
        self._executor = executor
        self._machines: Dict[str, EscalationStateMachine] = {}
        self._lock = threading.Lock()
        self.gate = DebounceGate(
            self._scan_revision,
            window_seconds=self.config.debounce_window_seconds,
        )

        logger.info(
            "CRISIS_ENGINE_INITIALIZED",
            extra={
                "lexicon_version": self.scanner.lexicon_version,
                "scanner_available": self.scanner.available,
                "debounce_window_ms": self.config.debounce_window_ms,
                "cooldown_window_ms": self.config.cooldown_window_ms,
                "negation_window_tokens": self.config.negation_window_tokens,
            }
        )

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def start_entry(
        self,
        entry_id: str,
        trigger_source: Optional[TriggerSource] = None,
        require_acknowledge: Optional[bool] = None,
    ) -> AlertState:
        """Register an entry and its presentation context.

        Starting an entry twice keeps the original machine.
        """
        with self._lock:
            machine = self._machines.get(entry_id)
            if machine is not None:
                logger.warning("ENTRY_ALREADY_STARTED", extra={"entry_id": entry_id})
                return machine.state
            machine = EscalationStateMachine(
                entry_id=entry_id,
                trigger_source=trigger_source or self.config.default_trigger_source,
                require_acknowledge=(
                    self.config.require_acknowledge
                    if require_acknowledge is None else require_acknowledge
                ),
                cooldown_window=timedelta(seconds=self.config.cooldown_window_seconds),
                audit_sink=self.audit_sink,
                on_change=self._notify_state,
                clock=self._clock,
            )
            self._machines[entry_id] = machine

        logger.info(
            "ENTRY_STARTED",
            extra={
                "entry_id": entry_id,
                "trigger_source": machine.state.trigger_source.value,
                "require_acknowledge": machine.state.require_acknowledge,
            }
        )
        return machine.state

    def _machine(self, entry_id: str) -> EscalationStateMachine:
        machine = self._machines.get(entry_id)
        if machine is None:
            self.start_entry(entry_id)
            machine = self._machines[entry_id]
        return machine

    def alert_state(self, entry_id: str) -> Optional[AlertState]:
        machine = self._machines.get(entry_id)
        return machine.state if machine else None

    def active_entries(self) -> List[str]:
        return list(self._machines)

    def end_entry(self, entry_id: str) -> Optional[AlertState]:
        """Entry deleted: drop pending work and archive its alert.

        Returns:
            Final AlertState, or None for an unknown entry
        """
        self.gate.discard(entry_id)
        with self._lock:
            machine = self._machines.pop(entry_id, None)
        if machine is None:
            logger.warning("ENTRY_NOT_FOUND", extra={"entry_id": entry_id, "event": "end_entry"})
            return None
        return machine.archive()

    async def close_session(self) -> List[AlertState]:
        """Scan every pending revision, then archive all entries."""
        self.gate.flush()
        await self.gate.drain()
        with self._lock:
            machines = list(self._machines.values())
            self._machines.clear()
        final_states = [m.archive() for m in machines]
        logger.info("SESSION_CLOSED", extra={"entry_count": len(final_states)})
        return final_states

    # ------------------------------------------------------------------
    # Text revisions and assessments
    # ------------------------------------------------------------------

    def on_text_revision(self, entry_id: str, text: str, revision_seq: int) -> JournalRevision:
        """Debounced entry point for every text change.

        Must be called from a running event loop. Unknown entries are
        started with the configured defaults.
        """
        machine = self._machine(entry_id)
        revision = JournalRevision(
            entry_id=entry_id,
            text=text,
            revision_seq=revision_seq,
            edited_at=self._clock(),
            trigger_source=machine.state.trigger_source,
        )
        self.gate.submit(revision)
        return revision

    async def _scan_revision(self, revision: JournalRevision) -> None:
        loop = asyncio.get_running_loop()
        assessment = await loop.run_in_executor(self._executor, self.scanner.assess, revision)
        self.apply_assessment(assessment)

    def assess_now(self, entry_id: str, text: str, revision_seq: int) -> AlertState:
        """Scan and apply synchronously, bypassing the debounce gate."""
        machine = self._machine(entry_id)
        revision = JournalRevision(
            entry_id=entry_id,
            text=text,
            revision_seq=revision_seq,
            edited_at=self._clock(),
            trigger_source=machine.state.trigger_source,
        )
        self.apply_assessment(self.scanner.assess(revision))
        return machine.state

    def apply_assessment(self, assessment: CrisisAssessment) -> Optional[AlertState]:
        """Route an assessment to its entry's machine.

        Returns:
            The entry's AlertState, or None if the entry has ended
        """
        machine = self._machines.get(assessment.entry_id)
        if machine is None:
            logger.warning(
                "ENTRY_NOT_FOUND",
                extra={
                    "entry_id": assessment.entry_id,
                    "event": "assessment",
                    "revision_seq": assessment.revision_seq,
                }
            )
            return None
        if not assessment.available:
            last_applied = machine.last_applied_revision
            if last_applied is None or assessment.revision_seq >= last_applied:
                self._notify_unavailable(assessment)
        return machine.apply_assessment(assessment)

    # ------------------------------------------------------------------
    # Presenter events and user intents
    # ------------------------------------------------------------------

    def present(self, entry_id: str) -> Optional[AlertState]:
        """The presenter has shown the banner."""
        machine = self._machines.get(entry_id)
        if machine is None:
            logger.warning("ENTRY_NOT_FOUND", extra={"entry_id": entry_id, "event": "present"})
            return None
        return machine.present()

    def handle_intent(
        self,
        entry_id: str,
        intent: Union[UserIntent, str],
    ) -> Optional[AlertState]:
        """Apply a user intent forwarded by the presenter.

        Raises:
            ValueError: If intent is not a known intent name
        """
        if not isinstance(intent, UserIntent):
            intent = UserIntent(intent)
        machine = self._machines.get(entry_id)
        if machine is None:
            logger.warning(
                "ENTRY_NOT_FOUND",
                extra={"entry_id": entry_id, "event": intent.value}
            )
            return None
        return machine.handle_intent(intent)

    # ------------------------------------------------------------------
    # Presenter notifications
    # ------------------------------------------------------------------

    def _notify_state(self, entry_id: str, state: AlertState) -> None:
        try:
            self.presenter.on_alert_state_changed(entry_id, state)
        except Exception as e:
            logger.error(
                "PRESENTER_NOTIFY_FAILED",
                extra={
                    "entry_id": entry_id,
                    "state": state.state.value,
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )

    def _notify_unavailable(self, assessment: CrisisAssessment) -> None:
        try:
            self.presenter.on_assessment_unavailable(
                assessment.entry_id,
                assessment.revision_seq,
                assessment.unavailable_reason or "unavailable",
            )
        except Exception as e:
            logger.error(
                "PRESENTER_NOTIFY_FAILED",
                extra={
                    "entry_id": assessment.entry_id,
                    "state": "assessment_unavailable",
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )
