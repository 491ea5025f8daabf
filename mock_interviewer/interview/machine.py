"""
The turn-taking state machine.

`reduce` is a pure function of (state, message, context) that returns the
next state and the effects the orchestrator must perform. It never touches
a collaborator, a timer or the clock directly, so ordering and idempotency
can be tested by feeding it messages.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Type

from . import capture, coordinator, lifecycle, playback
from .messages import (
    Message, Effect, Step,
    StartRequested, PermissionResolved, EndRequested, FeedbackCompleted,
    ListenRequested, CaptureStarted, CaptureResult, CaptureFailed, CaptureEnded,
    SilenceElapsed, UtteranceEnqueued, PlaybackStarted, PlaybackEnded,
    PlaybackFailed, SafetyTimeoutElapsed, WatchdogTick, GenerationCompleted
)
from .schemas import CallState, Context, ListenRejection

logger = logging.getLogger("machine")


Handler = Callable[[CallState, Message, Context], Step]

_HANDLERS: Dict[Type[Message], Handler] = {
    StartRequested: lifecycle.on_start_requested,
    PermissionResolved: lifecycle.on_permission_resolved,
    EndRequested: lifecycle.on_end_requested,
    FeedbackCompleted: lifecycle.on_feedback_completed,
    CaptureStarted: capture.on_started,
    CaptureResult: capture.on_result,
    CaptureFailed: capture.on_failed,
    CaptureEnded: capture.on_ended,
    SilenceElapsed: capture.on_silence,
    UtteranceEnqueued: playback.on_enqueued,
    PlaybackStarted: playback.on_started,
    PlaybackEnded: playback.on_ended,
    PlaybackFailed: playback.on_failed,
    SafetyTimeoutElapsed: playback.on_safety_timeout,
    WatchdogTick: playback.on_watchdog_tick,
    GenerationCompleted: coordinator.on_generation_completed,
}

# Events from services, timers and the generator only matter while active;
# anything arriving after the session ended is a late event.
_ACTIVE_ONLY = frozenset({
    CaptureStarted, CaptureResult, CaptureFailed, CaptureEnded, SilenceElapsed,
    PlaybackStarted, PlaybackEnded, PlaybackFailed, SafetyTimeoutElapsed,
    WatchdogTick, GenerationCompleted,
})


@dataclass(frozen=True)
class Transition:
    """Outcome of feeding one message into the machine."""
    state: CallState
    effects: List[Effect] = field(default_factory=list)
    rejection: Optional[ListenRejection] = None


def reduce(state: CallState, message: Message, ctx: Context) -> Transition:
    """
    Apply one message to the state.

    Args:
        state: Current call state
        message: Incoming message
        ctx: Clock reading, policy and wall time for this dispatch

    Returns:
        Transition with the next state, effects to run in order, and the
        rejection reason when a listening request was refused

    Raises:
        TypeError: If the message type has no handler
        RuntimeError: If a transition would leave both microphone and
            speaker active
    """
    if isinstance(message, ListenRequested):
        rejection = capture.check_listen(state)
        if rejection is not None:
            logger.info(f"Listening request rejected: {rejection.value}")
            return Transition(state, [], rejection)
        next_state, effects = capture.begin_listening(state, ctx)
        return _checked(Transition(next_state, effects))

    message_type = type(message)
    handler = _HANDLERS.get(message_type)
    if handler is None:
        raise TypeError(f"No handler for message {message!r}")

    if message_type in _ACTIVE_ONLY and not state.is_active:
        logger.debug(f"Dropping {message_type.__name__} while {state.session.value}")
        return Transition(state, [])

    next_state, effects = handler(state, message, ctx)
    return _checked(Transition(next_state, effects))


def _checked(transition: Transition) -> Transition:
    state = transition.state
    if state.is_listening and state.is_speaking:
        raise RuntimeError("Invariant violated: listening and speaking at the same time")
    return transition
