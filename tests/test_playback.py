"""Speech playback queue: ordering, timeouts and the watchdog."""
from dataclasses import replace

import pytest

from conftest import make_context
from mock_interviewer.config import TurnTakingPolicy
from mock_interviewer.interview.machine import reduce
from mock_interviewer.interview.messages import (
    UtteranceEnqueued, PlaybackEnded, PlaybackFailed, SafetyTimeoutElapsed,
    WatchdogTick, ListenRequested, CaptureFailed, CaptureResult, SilenceElapsed,
    Speak, CancelPlayback, ScheduleTimer, StartCapture, ForcedPlaybackEnd,
    ReportError, RequestGeneration, TimerKind
)
from mock_interviewer.interview.playback import safety_timeout
from mock_interviewer.interview.schemas import CallState, StatusKind
from mock_interviewer.interview.services import CaptureErrorKind, PlaybackErrorKind


def spoken(effects):
    return [e.text for e in effects if isinstance(e, Speak)]


def test_safety_timeout_has_a_floor():
    assert safety_timeout("Tell me about yourself.", TurnTakingPolicy()) == 12.0


def test_safety_timeout_scales_with_words_and_characters():
    text = " ".join(["word"] * 50)  # 249 characters
    assert safety_timeout(text, TurnTakingPolicy()) == pytest.approx(0.5 * 50 + 0.02 * 249)


def test_enqueue_plays_in_order_without_capture(active_state, manual_ctx):
    transition = reduce(active_state, UtteranceEnqueued("A"), manual_ctx)
    order = spoken(transition.effects)
    state = reduce(transition.state, UtteranceEnqueued("B"), manual_ctx).state
    state = reduce(state, UtteranceEnqueued("C"), manual_ctx).state
    assert state.playback.queue == ("B", "C")

    effects = []
    for utterance in (1, 2, 3):
        transition = reduce(state, PlaybackEnded(utterance), manual_ctx)
        state = transition.state
        effects.extend(transition.effects)
        order.extend(spoken(transition.effects))

    assert order == ["A", "B", "C"]
    assert not any(isinstance(e, StartCapture) for e in effects)
    assert not state.is_speaking
    assert state.status.kind is StatusKind.READY


def test_auto_listen_starts_after_the_queue_drains(active_state, ctx):
    state = reduce(active_state, UtteranceEnqueued("A"), ctx).state
    state = reduce(state, UtteranceEnqueued("B"), ctx).state

    transition = reduce(state, PlaybackEnded(1), ctx)
    assert not any(isinstance(e, StartCapture) for e in transition.effects)

    transition = reduce(transition.state, PlaybackEnded(2), ctx)
    assert StartCapture(1) in transition.effects
    assert transition.state.is_listening
    assert not transition.state.is_speaking


def test_speaking_records_start_time_and_arms_safety_timer(active_state):
    ctx = make_context(now=42.0)
    transition = reduce(active_state, UtteranceEnqueued("Hello"), ctx)
    assert transition.state.playback.speaking_since == 42.0
    assert transition.effects == [
        Speak("Hello", 1),
        ScheduleTimer(TimerKind.PLAYBACK_SAFETY, 12.0, 1),
    ]


def test_safety_timeout_forces_completion_and_advances(active_state, manual_ctx):
    state = reduce(active_state, UtteranceEnqueued("A"), manual_ctx).state
    state = reduce(state, UtteranceEnqueued("B"), manual_ctx).state

    transition = reduce(state, SafetyTimeoutElapsed(1), make_context(now=12.0, auto_listen=False))
    assert isinstance(transition.effects[0], ForcedPlaybackEnd)
    assert transition.effects[0].elapsed == 12.0
    assert CancelPlayback() in transition.effects
    assert spoken(transition.effects) == ["B"]

    # The late natural end of the first utterance changes nothing
    late = reduce(transition.state, PlaybackEnded(1), manual_ctx)
    assert late.state is transition.state


def test_watchdog_forces_completion_after_max_speaking_time(active_state):
    policy = dict(auto_listen=False, playback_min_timeout=100.0)
    state = reduce(active_state, UtteranceEnqueued("A"), make_context(**policy)).state

    under = reduce(state, WatchdogTick(), make_context(now=30.0, **policy))
    assert under.state is state
    assert under.effects == [ScheduleTimer(TimerKind.WATCHDOG, 1.0)]

    over = reduce(state, WatchdogTick(), make_context(now=31.0, **policy))
    assert not over.state.is_speaking
    forced = [e for e in over.effects if isinstance(e, ForcedPlaybackEnd)]
    assert forced == [ForcedPlaybackEnd("watchdog", 31.0)]
    assert ScheduleTimer(TimerKind.WATCHDOG, 1.0) in over.effects


def test_interruption_discards_pending_utterances(active_state, ctx):
    state = reduce(active_state, UtteranceEnqueued("A"), ctx).state
    state = reduce(state, UtteranceEnqueued("B"), ctx).state

    transition = reduce(state, PlaybackFailed(1, PlaybackErrorKind.INTERRUPTED), ctx)
    assert not transition.state.is_speaking
    assert transition.state.playback.queue == ()
    assert transition.state.status.kind is StatusKind.INTERRUPTED
    assert spoken(transition.effects) == []
    assert not transition.state.is_listening


def test_other_playback_errors_continue_with_the_queue(active_state, manual_ctx):
    state = reduce(active_state, UtteranceEnqueued("A"), manual_ctx).state
    state = reduce(state, UtteranceEnqueued("B"), manual_ctx).state

    transition = reduce(state, PlaybackFailed(1, PlaybackErrorKind.SYNTHESIS_FAILED), manual_ctx)
    assert spoken(transition.effects) == ["B"]
    assert any(isinstance(e, ReportError) for e in transition.effects)


def test_enqueue_while_listening_waits_for_the_microphone(active_state, ctx):
    state = reduce(active_state, ListenRequested(), ctx).state

    transition = reduce(state, UtteranceEnqueued("Are you still there?"), ctx)
    assert spoken(transition.effects) == []
    assert transition.state.playback.queue == ("Are you still there?",)
    assert not transition.state.is_speaking

    transition = reduce(transition.state, CaptureFailed(1, CaptureErrorKind.ABORTED), ctx)
    assert spoken(transition.effects) == ["Are you still there?"]


def test_queued_line_plays_when_silence_completes_the_turn(active_state, ctx):
    state = reduce(active_state, ListenRequested(), ctx).state
    state = reduce(state, UtteranceEnqueued("Are you still there?"), ctx).state
    state = reduce(state, CaptureResult(1, "hello there", True), ctx).state

    transition = reduce(state, SilenceElapsed(1), ctx)
    state = transition.state
    assert spoken(transition.effects) == ["Are you still there?"]
    assert any(isinstance(e, RequestGeneration) for e in transition.effects)
    assert state.is_speaking and not state.is_listening
    assert state.playback.queue == ()

    transition = reduce(state, PlaybackEnded(1), ctx)
    assert not any(isinstance(e, StartCapture) for e in transition.effects)
    assert transition.state.status.kind is StatusKind.THINKING


def test_enqueue_is_ignored_when_not_active(ctx):
    transition = reduce(CallState(), UtteranceEnqueued("A"), ctx)
    assert transition.effects == []
    assert transition.state.playback.queue == ()


def test_both_units_active_is_rejected(active_state, ctx):
    broken = replace(
        active_state,
        capture=replace(active_state.capture, is_listening=True),
        playback=replace(active_state.playback, is_speaking=True),
    )
    with pytest.raises(RuntimeError):
        reduce(broken, WatchdogTick(), ctx)
