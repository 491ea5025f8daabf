"""
Interview orchestrator: the runtime shell around the turn-taking machine.

The orchestrator owns the single `CallState`, feeds every collaborator
callback and timer into `machine.reduce` one message at a time, and carries
out the effects each transition asks for. All of its methods must be called
on the scheduler's loop thread; collaborator threads reach it only through
`Scheduler.call_soon`.
"""
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Optional

from . import machine
from .coordinator import ResponseCoordinator, GeneratedUtterance
from .events import (
    InterviewEventBus, EventLogger, InterviewMetrics,
    SessionStartedEvent, StatusChangedEvent, TurnAppendedEvent,
    PlaybackForcedEvent, FallbackUsedEvent, SessionFinishedEvent,
    ErrorOccurredEvent
)
from .messages import (
    Message, Effect, TimerKind,
    StartRequested, PermissionResolved, EndRequested, FeedbackCompleted,
    ListenRequested, CaptureStarted, CaptureResult, CaptureFailed, CaptureEnded,
    SilenceElapsed, UtteranceEnqueued, PlaybackStarted, PlaybackEnded,
    PlaybackFailed, SafetyTimeoutElapsed, WatchdogTick, GenerationCompleted,
    AcquirePermission, StartCapture, StopCapture, AbortCapture, Speak,
    CancelPlayback, ScheduleTimer, CancelTimer, RequestGeneration,
    SubmitFeedback, PersistTranscript, ReportError, ForcedPlaybackEnd
)
from .models import FeedbackOutcome, InterviewSetup, Transcript
from .prompts import InterviewPrompts
from .schemas import (
    CallState, Context, ListenRejection, SessionState, Status,
    FeedbackRequest, TranscriptSnapshot, TurnRecord
)
from .services import (
    CaptureErrorKind, CaptureListener, PermissionAcquirer, PermissionOutcome,
    PlaybackErrorKind, PlaybackListener, SpeechCaptureService,
    SpeechPlaybackService, TextGenerator, FeedbackService, TranscriptStore
)
from .timers import Scheduler, AsyncioScheduler
from ..config import InterviewerPersona, TurnTakingPolicy

logger = logging.getLogger("orchestrator")


class _CaptureBridge(CaptureListener):
    """Tags capture callbacks with their attempt and posts them to the loop."""

    def __init__(self, orchestrator: "InterviewOrchestrator", attempt: int):
        self.orchestrator = orchestrator
        self.attempt = attempt

    def started(self) -> None:
        self.orchestrator.post(CaptureStarted(self.attempt))

    def result(self, text: str, is_final: bool) -> None:
        self.orchestrator.post(CaptureResult(self.attempt, text, is_final))

    def error(self, kind: CaptureErrorKind) -> None:
        self.orchestrator.post(CaptureFailed(self.attempt, kind))

    def ended(self) -> None:
        self.orchestrator.post(CaptureEnded(self.attempt))


class _PlaybackBridge(PlaybackListener):
    """Tags playback callbacks with their utterance and posts them to the loop."""

    def __init__(self, orchestrator: "InterviewOrchestrator", utterance: int):
        self.orchestrator = orchestrator
        self.utterance = utterance

    def started(self) -> None:
        self.orchestrator.post(PlaybackStarted(self.utterance))

    def ended(self) -> None:
        self.orchestrator.post(PlaybackEnded(self.utterance))

    def error(self, kind: PlaybackErrorKind) -> None:
        self.orchestrator.post(PlaybackFailed(self.utterance, kind))


class InterviewOrchestrator:
    """
    Voice interview session using a message-driven state machine.

    Collaborators are injected so the same orchestrator drives real Google
    speech services in production and the mocks in
    `mock_interviewer.interview.testing` under test.
    """

    def __init__(self,
                 setup: InterviewSetup,
                 capture_service: SpeechCaptureService,
                 playback_service: SpeechPlaybackService,
                 permission_acquirer: PermissionAcquirer,
                 generator: TextGenerator,
                 feedback_service: FeedbackService,
                 transcript_store: Optional[TranscriptStore] = None,
                 scheduler: Optional[Scheduler] = None,
                 policy: Optional[TurnTakingPolicy] = None,
                 persona: Optional[InterviewerPersona] = None,
                 event_bus: Optional[InterviewEventBus] = None):

        self.setup = setup
        self.capture_service = capture_service
        self.playback_service = playback_service
        self.permission_acquirer = permission_acquirer
        self.feedback_service = feedback_service
        self.transcript_store = transcript_store
        self.scheduler = scheduler or AsyncioScheduler()
        self.policy = policy or TurnTakingPolicy()
        self.coordinator = ResponseCoordinator(generator, setup, persona)

        # Initialize event system
        self.event_bus = event_bus or InterviewEventBus()
        self.event_logger = EventLogger()
        self.metrics = InterviewMetrics()
        self.event_bus.subscribe_all(self.event_logger.handle_event)
        self.event_bus.subscribe_all(self.metrics.handle_event)

        self._state = CallState()
        self._inbox: Deque[Message] = deque()
        self._dispatching = False
        self._timers: Dict[TimerKind, Any] = {}

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    @property
    def state(self) -> CallState:
        return self._state

    @property
    def transcript(self) -> Transcript:
        return self._state.transcript

    @property
    def status(self) -> Status:
        return self._state.status

    def start(self) -> None:
        """Request microphone access and, once granted, speak the opening line."""
        opening = InterviewPrompts.opening_line(self.setup.user_name, self.setup.interview_type)
        self.dispatch(StartRequested(opening))

    def begin_listening(self) -> Optional[ListenRejection]:
        """
        Start a listening attempt.

        Returns:
            The reason the attempt was refused, or None if it started (or was
            queued behind the message currently being handled)
        """
        transition = self.dispatch(ListenRequested())
        return transition.rejection if transition is not None else None

    def say(self, text: str) -> None:
        """Queue an extra interviewer utterance."""
        self.dispatch(UtteranceEnqueued(text))

    def end(self) -> None:
        """End the session and hand the transcript to the feedback service."""
        self.dispatch(EndRequested())

    def request_permission(self) -> None:
        """Ask for microphone access again after it was revoked mid-session."""
        if not self._state.capture.permission_revoked:
            logger.info("Microphone permission is not revoked; nothing to re-authorize")
            return
        self._acquire_permission()

    def post(self, message: Message) -> None:
        """Hand a message to the loop thread. Safe to call from any thread."""
        self.scheduler.call_soon(lambda: self.dispatch(message))

    def dispatch(self, message: Message) -> Optional[machine.Transition]:
        """
        Feed one message to the state machine and run its effects.

        Messages raised while another is being handled are queued and run
        afterwards, in order.

        Returns:
            The transition for `message`, or None if it was queued
        """
        self._inbox.append(message)
        if self._dispatching:
            return None

        first: Optional[machine.Transition] = None
        self._dispatching = True
        try:
            while self._inbox:
                transition = self._step(self._inbox.popleft())
                if first is None:
                    first = transition
        finally:
            self._dispatching = False
        return first

    # -------------------------------------------------------------------------
    # Dispatch internals
    # -------------------------------------------------------------------------

    def _context(self) -> Context:
        return Context(
            now=self.scheduler.now(),
            policy=self.policy,
            wall_time=datetime.now(timezone.utc),
        )

    def _step(self, message: Message) -> machine.Transition:
        previous = self._state
        transition = machine.reduce(previous, message, self._context())
        self._state = transition.state
        self._notify(previous, transition.state)
        for effect in transition.effects:
            self._run_effect(effect)
        return transition

    def _notify(self, previous: CallState, current: CallState) -> None:
        now = self.scheduler.now()
        session_id = self.setup.session_id

        if previous.session is not SessionState.ACTIVE and current.is_active:
            self.event_bus.emit(SessionStartedEvent(
                session_id, now, self.setup.user_id, len(self.setup.questions)
            ))

        for idx in range(len(previous.transcript), len(current.transcript)):
            turn = current.transcript[idx]
            self.event_bus.emit(TurnAppendedEvent(
                session_id, now, idx, turn.speaker.value, turn.text
            ))

        if current.status != previous.status:
            self.event_bus.emit(StatusChangedEvent(
                session_id, now, current.status.kind.value, current.status.message
            ))

        if previous.feedback is None and current.feedback is not None:
            self.event_bus.emit(SessionFinishedEvent(
                session_id, now, len(current.transcript),
                current.feedback.success, current.feedback.new_session_id
            ))

    def _run_effect(self, effect: Effect) -> None:
        if isinstance(effect, ScheduleTimer):
            self._schedule_timer(effect)
        elif isinstance(effect, CancelTimer):
            self._cancel_timer(effect.kind)
        elif isinstance(effect, AcquirePermission):
            self._acquire_permission()
        elif isinstance(effect, StartCapture):
            self._start_capture(effect.attempt)
        elif isinstance(effect, StopCapture):
            self._call_service("capture", self.capture_service.stop)
        elif isinstance(effect, AbortCapture):
            self._call_service("capture", self.capture_service.abort)
        elif isinstance(effect, Speak):
            self._speak(effect)
        elif isinstance(effect, CancelPlayback):
            self._call_service("playback", self.playback_service.cancel)
        elif isinstance(effect, RequestGeneration):
            self._request_generation(effect.transcript)
        elif isinstance(effect, SubmitFeedback):
            self._submit_feedback(effect.transcript)
        elif isinstance(effect, PersistTranscript):
            self._persist_transcript(effect)
        elif isinstance(effect, ReportError):
            self._report_error(effect.component, effect.error_type, effect.message)
        elif isinstance(effect, ForcedPlaybackEnd):
            self.event_bus.emit(PlaybackForcedEvent(
                self.setup.session_id, self.scheduler.now(), effect.reason, effect.elapsed
            ))
        else:
            raise TypeError(f"Unknown effect {effect!r}")

    def _report_error(self, component: str, error_type: str, message: str) -> None:
        self.event_bus.emit(ErrorOccurredEvent(
            self.setup.session_id, self.scheduler.now(), error_type, message, component
        ))

    def _call_service(self, component: str, func) -> None:
        try:
            func()
        except Exception as e:
            logger.error(f"{component} service call {getattr(func, '__name__', func)} failed: {e}")
            self._report_error(component, type(e).__name__, str(e))

    # -------------------------------------------------------------------------
    # Timers
    # -------------------------------------------------------------------------

    def _schedule_timer(self, effect: ScheduleTimer) -> None:
        self._cancel_timer(effect.kind)
        kind, token = effect.kind, effect.token

        def fire():
            self._timers.pop(kind, None)
            self.dispatch(self._timer_message(kind, token))

        self._timers[kind] = self.scheduler.call_later(effect.delay, fire)

    def _cancel_timer(self, kind: TimerKind) -> None:
        handle = self._timers.pop(kind, None)
        if handle is not None:
            handle.cancel()

    @staticmethod
    def _timer_message(kind: TimerKind, token: int) -> Message:
        if kind is TimerKind.SILENCE:
            return SilenceElapsed(token)
        if kind is TimerKind.PLAYBACK_SAFETY:
            return SafetyTimeoutElapsed(token)
        return WatchdogTick()

    # -------------------------------------------------------------------------
    # Collaborators
    # -------------------------------------------------------------------------

    def _acquire_permission(self) -> None:
        def acquire() -> PermissionOutcome:
            if not self.capture_service.is_supported():
                return PermissionOutcome.UNSUPPORTED
            return self.permission_acquirer.acquire()

        def on_done(outcome: Optional[PermissionOutcome], error: Optional[BaseException]):
            if error is not None:
                logger.error(f"Permission request failed: {error}")
                outcome = PermissionOutcome.DENIED
            logger.info(f"Microphone permission: {outcome.value}")
            self.dispatch(PermissionResolved(outcome))

        self.scheduler.run_blocking(acquire, None, on_done)

    def _start_capture(self, attempt: int) -> None:
        try:
            self.capture_service.start(_CaptureBridge(self, attempt))
        except Exception as e:
            logger.error(f"Capture service failed to start: {e}")
            self.dispatch(CaptureFailed(attempt, CaptureErrorKind.AUDIO_CAPTURE))

    def _speak(self, effect: Speak) -> None:
        try:
            self.playback_service.speak(effect.text, _PlaybackBridge(self, effect.utterance))
        except Exception as e:
            logger.error(f"Playback service failed to speak: {e}")
            self.dispatch(PlaybackFailed(effect.utterance, PlaybackErrorKind.UNKNOWN))

    def _request_generation(self, transcript: Transcript) -> None:
        def on_done(result: Optional[GeneratedUtterance], error: Optional[BaseException]):
            if error is not None:
                logger.error(f"Generation did not complete: {error!r}")
                result = self.coordinator.fallback_utterance()
                reason = "timeout" if isinstance(error, TimeoutError) else type(error).__name__
            else:
                reason = "generation_failed"

            if result.is_fallback:
                self.event_bus.emit(FallbackUsedEvent(
                    self.setup.session_id, self.scheduler.now(), result.text, reason
                ))
            self.dispatch(GenerationCompleted(result.text, result.is_fallback))

        self.scheduler.run_blocking(
            lambda: self.coordinator.request_next_utterance(transcript),
            self.policy.generation_timeout,
            on_done,
        )

    def _submit_feedback(self, transcript: Transcript) -> None:
        request = FeedbackRequest(
            session_id=self.setup.session_id,
            user_id=self.setup.user_id,
            transcript=[TurnRecord.from_turn(turn) for turn in transcript],
            candidate_questions=list(self.setup.questions),
            feedback_id=self.setup.feedback_id,
        )

        def on_done(response, error: Optional[BaseException]):
            if error is not None:
                logger.error(f"Feedback submission failed: {error}")
                self._report_error("feedback", type(error).__name__, str(error))
                outcome = FeedbackOutcome(success=False, error=str(error))
            elif not response.success:
                outcome = FeedbackOutcome(success=False, error="Feedback service reported failure")
            else:
                outcome = FeedbackOutcome(success=True, new_session_id=response.new_session_id)
            self.dispatch(FeedbackCompleted(outcome))

        logger.info(f"Submitting {len(transcript)} turns for feedback")
        self.scheduler.run_blocking(lambda: self.feedback_service.submit(request), None, on_done)

    def _persist_transcript(self, effect: PersistTranscript) -> None:
        if self.transcript_store is None:
            return

        snapshot = TranscriptSnapshot(
            session_id=self.setup.session_id,
            transcript=[TurnRecord.from_turn(turn) for turn in effect.transcript],
            ended_at=effect.ended_at,
        )

        def on_done(_result, error: Optional[BaseException]):
            if error is not None:
                logger.error(f"Failed to persist transcript: {error}")
                self._report_error("transcript_store", type(error).__name__, str(error))

        self.scheduler.run_blocking(lambda: self.transcript_store.save(snapshot), None, on_done)
