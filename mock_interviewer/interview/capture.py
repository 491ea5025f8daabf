"""
Speech capture unit with silence-based endpointing.

One listening attempt produces exactly one user turn, or none if it is
aborted. Recognition results restart a silence timer; when the timer
expires with finalized text the utterance is complete.
"""
import logging
from dataclasses import replace
from typing import Optional

from . import playback
from .messages import (
    Step, StartCapture, StopCapture, ScheduleTimer, CancelTimer, TimerKind,
    RequestGeneration, ReportError,
    CaptureStarted, CaptureResult, CaptureFailed, CaptureEnded, SilenceElapsed
)
from .models import Speaker
from .schemas import CallState, CaptureState, Context, ListenRejection, Status, StatusKind
from .services import CaptureErrorKind

logger = logging.getLogger("capture")


def check_listen(state: CallState) -> Optional[ListenRejection]:
    """Return the first failed precondition for a new listening attempt."""
    if not state.is_active:
        return ListenRejection.NOT_ACTIVE
    if state.capture.permission_revoked:
        return ListenRejection.PERMISSION_REVOKED
    if state.is_speaking:
        return ListenRejection.SPEAKING
    if state.is_listening:
        return ListenRejection.ALREADY_LISTENING
    if state.generating:
        return ListenRejection.THINKING
    return None


def begin_listening(state: CallState, ctx: Context) -> Step:
    """Start a fresh listening attempt. Callers must run `check_listen` first."""
    attempt = state.capture.attempt + 1
    state = replace(
        state,
        capture=CaptureState(is_listening=True, attempt=attempt),
        status=Status(StatusKind.LISTENING, "Listening... Speak now!"),
    )
    logger.info(f"Listening attempt {attempt} started")
    return state, [StartCapture(attempt)]


def _is_current(state: CallState, attempt: int) -> bool:
    return state.capture.is_listening and state.capture.attempt == attempt


def _release(state: CallState, status: Status) -> CallState:
    """Leave the listening state, keeping the attempt counter."""
    capture = replace(
        state.capture, is_listening=False, accumulated_text="", silence_armed=False
    )
    return replace(state, capture=capture, status=status)


def _finalize(state: CallState, ctx: Context, stop_service: bool) -> Step:
    text = state.capture.accumulated_text
    logger.info(f"User turn complete: {text}")

    state = _release(state, Status(StatusKind.THINKING, "AI thinking..."))
    state = replace(state.with_turn(Speaker.USER, text), generating=True)

    effects = [CancelTimer(TimerKind.SILENCE)]
    if stop_service:
        effects.append(StopCapture())
    # The request carries the transcript that already ends with this turn
    effects.append(RequestGeneration(state.transcript))

    state, more = playback.play_next(state, ctx)
    return state, effects + more


def on_started(state: CallState, msg: CaptureStarted, ctx: Context) -> Step:
    if _is_current(state, msg.attempt):
        logger.debug(f"Capture service started for attempt {msg.attempt}")
    return state, []


def on_result(state: CallState, msg: CaptureResult, ctx: Context) -> Step:
    if not _is_current(state, msg.attempt):
        logger.debug(f"Dropping late result for attempt {msg.attempt}")
        return state, []

    capture = state.capture
    text = msg.text.strip()
    if msg.is_final and text:
        accumulated = f"{capture.accumulated_text} {text}".strip()
        capture = replace(capture, accumulated_text=accumulated)
        logger.debug(f"Final segment: {text!r}")
    else:
        logger.debug(f"Interim segment: {text!r}")

    state = replace(state, capture=replace(capture, silence_armed=True))
    return state, [ScheduleTimer(TimerKind.SILENCE, ctx.policy.silence_timeout, msg.attempt)]


def on_silence(state: CallState, msg: SilenceElapsed, ctx: Context) -> Step:
    if not _is_current(state, msg.attempt):
        logger.debug(f"Dropping stale silence timer for attempt {msg.attempt}")
        return state, []

    if not state.capture.accumulated_text:
        logger.debug("Silence elapsed with no finalized text; still listening")
        return replace(state, capture=replace(state.capture, silence_armed=False)), []

    return _finalize(state, ctx, stop_service=True)


def on_failed(state: CallState, msg: CaptureFailed, ctx: Context) -> Step:
    if not _is_current(state, msg.attempt):
        logger.debug(f"Dropping late {msg.kind.value} error for attempt {msg.attempt}")
        return state, []

    effects = [CancelTimer(TimerKind.SILENCE)]
    if msg.kind is CaptureErrorKind.PERMISSION_REVOKED:
        logger.error("Microphone permission revoked during capture")
        state = _release(state, Status(
            StatusKind.FATAL, "Mic access denied. Enable it in your settings and re-authorize."
        ))
        state = replace(state, capture=replace(state.capture, permission_revoked=True))
        effects.append(ReportError("capture", msg.kind.value, "Microphone permission revoked"))
    elif msg.kind is CaptureErrorKind.ABORTED:
        logger.info(f"Listening attempt {msg.attempt} aborted")
        state = _release(state, Status(StatusKind.RETRY, "Listening stopped. Tap mic to retry."))
    else:
        logger.warning(f"Capture error on attempt {msg.attempt}: {msg.kind.value}")
        state = _release(state, Status(
            StatusKind.ERROR, f"Listening error: {msg.kind.value}. Tap to retry."
        ))
        effects.append(ReportError("capture", msg.kind.value, "Listening error"))

    state, more = playback.play_next(state, ctx)
    return state, effects + more


def on_ended(state: CallState, msg: CaptureEnded, ctx: Context) -> Step:
    if not _is_current(state, msg.attempt):
        logger.debug(f"Dropping late end-of-stream for attempt {msg.attempt}")
        return state, []

    if state.capture.accumulated_text:
        # Stream closed inside the silence window; keep what was said
        return _finalize(state, ctx, stop_service=False)

    logger.info(f"Listening attempt {msg.attempt} ended without speech")
    state = _release(state, Status(StatusKind.RETRY, "Ready to speak? Tap the mic."))
    state, more = playback.play_next(state, ctx)
    return state, [CancelTimer(TimerKind.SILENCE)] + more
