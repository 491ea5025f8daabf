"""Speech capture unit: endpointing, errors and stale events."""
from mock_interviewer.interview.machine import reduce
from mock_interviewer.interview.messages import (
    ListenRequested, CaptureResult, CaptureFailed, CaptureEnded, SilenceElapsed,
    PermissionResolved, StartCapture, StopCapture, ScheduleTimer, RequestGeneration,
    ReportError, TimerKind
)
from mock_interviewer.interview.models import ConversationTurn, Speaker
from mock_interviewer.interview.schemas import ListenRejection, StatusKind
from mock_interviewer.interview.services import CaptureErrorKind, PermissionOutcome


def listening(state, ctx):
    transition = reduce(state, ListenRequested(), ctx)
    assert transition.rejection is None
    return transition.state


def test_begin_listening_starts_a_fresh_attempt(active_state, ctx):
    transition = reduce(active_state, ListenRequested(), ctx)
    assert transition.state.is_listening
    assert transition.state.capture.attempt == 1
    assert transition.state.capture.accumulated_text == ""
    assert transition.state.status.kind is StatusKind.LISTENING
    assert transition.effects == [StartCapture(1)]


def test_interim_then_final_then_silence_appends_exactly_one_turn(active_state, ctx):
    state = listening(active_state, ctx)

    transition = reduce(state, CaptureResult(1, "hel", False), ctx)
    assert transition.effects == [ScheduleTimer(TimerKind.SILENCE, 3.0, 1)]
    assert transition.state.capture.accumulated_text == ""

    state = reduce(transition.state, CaptureResult(1, "hello there", True), ctx).state
    assert state.capture.accumulated_text == "hello there"

    transition = reduce(state, SilenceElapsed(1), ctx)
    state = transition.state
    assert state.transcript == (ConversationTurn(Speaker.USER, "hello there"),)
    assert not state.is_listening
    assert state.generating
    assert state.status.kind is StatusKind.THINKING
    assert StopCapture() in transition.effects
    assert RequestGeneration(state.transcript) in transition.effects

    # A second expiry for the same attempt is stale
    late = reduce(state, SilenceElapsed(1), ctx)
    assert late.state is state
    assert late.effects == []


def test_final_segments_are_joined_with_spaces(active_state, ctx):
    state = listening(active_state, ctx)
    state = reduce(state, CaptureResult(1, "I led the", True), ctx).state
    state = reduce(state, CaptureResult(1, " migration ", True), ctx).state
    assert state.capture.accumulated_text == "I led the migration"


def test_silence_with_no_text_keeps_listening(active_state, ctx):
    state = listening(active_state, ctx)
    state = reduce(state, CaptureResult(1, "um", False), ctx).state

    transition = reduce(state, SilenceElapsed(1), ctx)
    assert transition.state.is_listening
    assert transition.state.transcript == ()
    assert transition.effects == []


def test_results_from_an_earlier_attempt_are_dropped(active_state, ctx):
    state = listening(active_state, ctx)
    state = reduce(state, CaptureFailed(1, CaptureErrorKind.ABORTED), ctx).state
    state = listening(state, ctx)
    assert state.capture.attempt == 2

    transition = reduce(state, CaptureResult(1, "old words", True), ctx)
    assert transition.state.capture.accumulated_text == ""
    assert transition.effects == []


def test_recoverable_error_allows_retry(active_state, ctx):
    state = listening(active_state, ctx)
    transition = reduce(state, CaptureFailed(1, CaptureErrorKind.NETWORK), ctx)

    assert not transition.state.is_listening
    assert transition.state.status.kind is StatusKind.ERROR
    assert "network" in transition.state.status.message
    assert any(isinstance(e, ReportError) for e in transition.effects)
    assert reduce(transition.state, ListenRequested(), ctx).rejection is None


def test_permission_revoked_blocks_listening_until_reauthorized(active_state, ctx):
    state = listening(active_state, ctx)
    state = reduce(state, CaptureFailed(1, CaptureErrorKind.PERMISSION_REVOKED), ctx).state

    assert state.status.kind is StatusKind.FATAL
    assert state.capture.permission_revoked
    assert reduce(state, ListenRequested(), ctx).rejection is ListenRejection.PERMISSION_REVOKED

    state = reduce(state, PermissionResolved(PermissionOutcome.GRANTED), ctx).state
    assert not state.capture.permission_revoked
    assert state.status.kind is StatusKind.READY
    assert reduce(state, ListenRequested(), ctx).rejection is None


def test_end_of_stream_without_text_is_ready_to_retry(active_state, ctx):
    state = listening(active_state, ctx)
    transition = reduce(state, CaptureEnded(1), ctx)
    assert not transition.state.is_listening
    assert transition.state.status.kind is StatusKind.RETRY
    assert transition.state.transcript == ()


def test_end_of_stream_inside_silence_window_keeps_the_utterance(active_state, ctx):
    state = listening(active_state, ctx)
    state = reduce(state, CaptureResult(1, "done talking", True), ctx).state

    transition = reduce(state, CaptureEnded(1), ctx)
    assert transition.state.transcript == (ConversationTurn(Speaker.USER, "done talking"),)
    # The service already stopped itself
    assert StopCapture() not in transition.effects


def test_listen_rejections(active_state, ctx):
    from mock_interviewer.interview.schemas import CallState
    from dataclasses import replace

    assert reduce(CallState(), ListenRequested(), ctx).rejection is ListenRejection.NOT_ACTIVE

    state = listening(active_state, ctx)
    assert reduce(state, ListenRequested(), ctx).rejection is ListenRejection.ALREADY_LISTENING

    thinking = replace(active_state, generating=True)
    transition = reduce(thinking, ListenRequested(), ctx)
    assert transition.rejection is ListenRejection.THINKING
    assert transition.state is thinking
