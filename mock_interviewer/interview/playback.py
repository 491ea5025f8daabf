"""
Speech playback queue.

Interviewer utterances are spoken strictly one at a time, in enqueue order.
Playback services are not trusted to report completion, so every utterance
is guarded twice: a per-utterance safety timeout sized to the text, and a
global watchdog that ends any utterance running longer than the policy
allows.
"""
import logging
from dataclasses import replace

from .messages import (
    Step, Speak, CancelPlayback, ScheduleTimer, CancelTimer, TimerKind,
    ReportError, ForcedPlaybackEnd,
    PlaybackStarted, PlaybackEnded, PlaybackFailed,
    SafetyTimeoutElapsed, WatchdogTick, UtteranceEnqueued
)
from .schemas import CallState, Context, PlaybackState, Status, StatusKind
from .services import PlaybackErrorKind
from ..config import TurnTakingPolicy

logger = logging.getLogger("playback")


def safety_timeout(text: str, policy: TurnTakingPolicy) -> float:
    """
    Seconds to wait for natural completion before forcing an utterance to end.

    Args:
        text: Utterance being spoken
        policy: Timing policy with the minimum and per-word/per-char rates

    Returns:
        max(min_timeout, per_word * words + per_char * chars)
    """
    word_count = len(text.split())
    estimate = (policy.playback_seconds_per_word * word_count
                + policy.playback_seconds_per_char * len(text))
    return max(policy.playback_min_timeout, estimate)


def enqueue(state: CallState, text: str, ctx: Context) -> Step:
    """Append an utterance and start playback if the speaker is free."""
    if not state.is_active:
        logger.warning(f"Ignoring utterance while session is {state.session.value}: {text!r}")
        return state, []

    playback = replace(state.playback, queue=state.playback.queue + (text,))
    logger.debug(f"Enqueued utterance ({len(playback.queue)} pending)")
    return play_next(replace(state, playback=playback), ctx)


def play_next(state: CallState, ctx: Context) -> Step:
    """Start the head of the queue. Silent no-op unless the speaker is free."""
    playback = state.playback
    if playback.is_speaking or not playback.queue:
        return state, []
    if state.is_listening or not state.is_active:
        # Resumed by the capture unit once the microphone is released
        return state, []

    text = playback.queue[0]
    utterance = playback.utterance + 1
    timeout = safety_timeout(text, ctx.policy)

    state = replace(
        state,
        playback=PlaybackState(
            is_speaking=True,
            queue=playback.queue[1:],
            speaking_since=ctx.now,
            utterance=utterance,
        ),
        status=Status(StatusKind.SPEAKING, "Interviewer responding..."),
    )
    logger.info(f"Speaking utterance {utterance} (safety timeout {timeout:.1f}s): {text}")
    return state, [
        Speak(text=text, utterance=utterance),
        ScheduleTimer(TimerKind.PLAYBACK_SAFETY, timeout, utterance),
    ]


def _is_current(state: CallState, utterance: int) -> bool:
    return state.playback.is_speaking and state.playback.utterance == utterance


def _complete(state: CallState, ctx: Context, forced: bool) -> Step:
    """Shared completion path: natural end, non-fatal error, or timeout."""
    effects = [CancelTimer(TimerKind.PLAYBACK_SAFETY)]
    if forced:
        effects.append(CancelPlayback())

    state = replace(
        state,
        playback=replace(state.playback, is_speaking=False, speaking_since=None),
    )

    if state.playback.queue:
        state, more = play_next(state, ctx)
        return state, effects + more

    state, more = ready_for_user(state, ctx)
    return state, effects + more


def ready_for_user(state: CallState, ctx: Context) -> Step:
    """Hand the floor to the user once the queue has drained."""
    from . import capture

    logger.info("Interviewer finished speaking")
    if state.generating:
        return replace(state, status=Status(StatusKind.THINKING, "AI thinking...")), []
    state = replace(state, status=Status(StatusKind.READY, "Your turn. Tap mic to respond."))
    if ctx.policy.auto_listen and capture.check_listen(state) is None:
        return capture.begin_listening(state, ctx)
    return state, []


def on_enqueued(state: CallState, msg: UtteranceEnqueued, ctx: Context) -> Step:
    return enqueue(state, msg.text, ctx)


def on_started(state: CallState, msg: PlaybackStarted, ctx: Context) -> Step:
    if not _is_current(state, msg.utterance):
        logger.debug(f"Dropping late start for utterance {msg.utterance}")
        return state, []
    logger.debug(f"Playback started for utterance {msg.utterance}")
    return replace(state, status=Status(StatusKind.SPEAKING, "Interviewer speaking...")), []


def on_ended(state: CallState, msg: PlaybackEnded, ctx: Context) -> Step:
    if not _is_current(state, msg.utterance):
        logger.debug(f"Dropping late end for utterance {msg.utterance}")
        return state, []
    logger.info(f"Utterance {msg.utterance} completed")
    return _complete(state, ctx, forced=False)


def on_failed(state: CallState, msg: PlaybackFailed, ctx: Context) -> Step:
    if not _is_current(state, msg.utterance):
        logger.debug(f"Dropping late {msg.kind.value} error for utterance {msg.utterance}")
        return state, []

    if msg.kind is PlaybackErrorKind.INTERRUPTED:
        dropped = len(state.playback.queue)
        logger.info(f"Utterance {msg.utterance} interrupted; discarding {dropped} pending")
        state = replace(
            state,
            playback=replace(state.playback, is_speaking=False, speaking_since=None, queue=()),
            status=Status(StatusKind.INTERRUPTED, "Speech interrupted. Tap mic to continue."),
        )
        return state, [CancelTimer(TimerKind.PLAYBACK_SAFETY)]

    logger.warning(f"Playback error on utterance {msg.utterance}: {msg.kind.value}")
    state, effects = _complete(state, ctx, forced=False)
    return state, [ReportError("playback", msg.kind.value, "Speech error, continuing")] + effects


def on_safety_timeout(state: CallState, msg: SafetyTimeoutElapsed, ctx: Context) -> Step:
    if not _is_current(state, msg.utterance):
        logger.debug(f"Dropping stale safety timeout for utterance {msg.utterance}")
        return state, []

    elapsed = ctx.now - state.playback.speaking_since
    logger.warning(f"Playback safety timeout after {elapsed:.1f}s - forcing end")
    state, effects = _complete(state, ctx, forced=True)
    return state, [ForcedPlaybackEnd("safety_timeout", elapsed)] + effects


def on_watchdog_tick(state: CallState, msg: WatchdogTick, ctx: Context) -> Step:
    effects = [ScheduleTimer(TimerKind.WATCHDOG, ctx.policy.watchdog_interval)]
    playback = state.playback
    if not playback.is_speaking or playback.speaking_since is None:
        return state, effects

    elapsed = ctx.now - playback.speaking_since
    if elapsed <= ctx.policy.max_speaking_seconds:
        return state, effects

    logger.warning(f"Global speaking watchdog tripped after {elapsed:.1f}s - forcing end")
    state, more = _complete(state, ctx, forced=True)
    return state, effects + [ForcedPlaybackEnd("watchdog", elapsed)] + more
