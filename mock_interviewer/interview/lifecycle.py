"""
Call lifecycle controller: idle -> connecting -> active -> finished.

Requests that are not legal from the current state are ignored rather than
treated as errors, so UI code never has to track lifecycle ordering.
"""
import logging
from dataclasses import replace

from . import playback
from .messages import (
    Step, AcquirePermission, AbortCapture, CancelPlayback, CancelTimer,
    ScheduleTimer, TimerKind, SubmitFeedback, PersistTranscript, ReportError,
    StartRequested, PermissionResolved, EndRequested, FeedbackCompleted
)
from .models import Speaker
from .schemas import CallState, Context, SessionState, Status, StatusKind
from .services import PermissionOutcome

logger = logging.getLogger("lifecycle")


_DENIED_MESSAGES = {
    PermissionOutcome.DENIED: (
        "Microphone access denied. Allow microphone access for this app and start again."
    ),
    PermissionOutcome.UNSUPPORTED: (
        "Speech recognition is not supported in this environment."
    ),
}


def on_start_requested(state: CallState, msg: StartRequested, ctx: Context) -> Step:
    if state.session is not SessionState.IDLE:
        logger.info(f"Ignoring start request while {state.session.value}")
        return state, []

    logger.info("Session connecting")
    state = CallState(
        session=SessionState.CONNECTING,
        opening_line=msg.opening_line,
        status=Status(StatusKind.CONNECTING, "Requesting microphone permission..."),
    )
    return state, [AcquirePermission()]


def on_permission_resolved(state: CallState, msg: PermissionResolved, ctx: Context) -> Step:
    if state.session is SessionState.CONNECTING:
        return _connect(state, msg.outcome, ctx)
    if state.is_active and state.capture.permission_revoked:
        return _reauthorize(state, msg.outcome)
    logger.debug(f"Dropping permission result {msg.outcome.value} while {state.session.value}")
    return state, []


def _connect(state: CallState, outcome: PermissionOutcome, ctx: Context) -> Step:
    if outcome is not PermissionOutcome.GRANTED:
        logger.error(f"Cannot start session: permission {outcome.value}")
        state = replace(
            state,
            session=SessionState.IDLE,
            status=Status(StatusKind.FATAL, _DENIED_MESSAGES[outcome]),
        )
        return state, [ReportError("lifecycle", outcome.value, _DENIED_MESSAGES[outcome])]

    logger.info("Permission granted - session active")
    state = replace(
        state,
        session=SessionState.ACTIVE,
        status=Status(StatusKind.CONNECTING, "Permission granted. Starting interview..."),
    ).with_turn(Speaker.INTERVIEWER, state.opening_line)

    effects = [ScheduleTimer(TimerKind.WATCHDOG, ctx.policy.watchdog_interval)]
    state, more = playback.enqueue(state, state.opening_line, ctx)
    return state, effects + more


def _reauthorize(state: CallState, outcome: PermissionOutcome) -> Step:
    if outcome is not PermissionOutcome.GRANTED:
        logger.warning(f"Re-authorization failed: {outcome.value}")
        return replace(state, status=Status(StatusKind.FATAL, _DENIED_MESSAGES[outcome])), []

    logger.info("Microphone permission restored")
    state = replace(
        state,
        capture=replace(state.capture, permission_revoked=False),
        status=Status(StatusKind.READY, "Microphone access restored. Tap mic to respond."),
    )
    return state, []


def on_end_requested(state: CallState, msg: EndRequested, ctx: Context) -> Step:
    if not state.is_active:
        logger.info(f"Ignoring end request while {state.session.value}")
        return state, []

    logger.info(f"Ending session with {len(state.transcript)} turns")
    effects = []
    if state.is_listening:
        effects.append(AbortCapture())
    if state.is_speaking:
        effects.append(CancelPlayback())
    effects.extend(CancelTimer(kind) for kind in TimerKind)

    state = replace(
        state,
        session=SessionState.FINISHED,
        capture=replace(
            state.capture, is_listening=False, accumulated_text="", silence_armed=False
        ),
        playback=replace(
            state.playback, is_speaking=False, queue=(), speaking_since=None
        ),
        generating=False,
        status=Status(StatusKind.FINISHED, "Generating feedback..."),
    )
    effects.append(SubmitFeedback(state.transcript))
    effects.append(PersistTranscript(state.transcript, ctx.wall_time))
    return state, effects


def on_feedback_completed(state: CallState, msg: FeedbackCompleted, ctx: Context) -> Step:
    if state.session is not SessionState.FINISHED or state.feedback is not None:
        logger.debug("Dropping unexpected feedback result")
        return state, []

    outcome = msg.outcome
    if outcome.success:
        logger.info(f"Feedback ready: {outcome.new_session_id}")
        status = Status(StatusKind.FINISHED, "Interview ended.")
    else:
        logger.warning(f"Feedback generation failed: {outcome.error}")
        status = Status(StatusKind.FINISHED, "Interview ended. Feedback could not be generated.")
    return replace(state, feedback=outcome, status=status), []
