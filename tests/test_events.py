"""Event bus delivery and metrics."""
from mock_interviewer.interview.events import (
    EventType, InterviewEventBus, InterviewMetrics, StatusChangedEvent, TurnAppendedEvent
)


def status_event(message="Listening... Speak now!"):
    return StatusChangedEvent("s-1", 0.0, "listening", message)


def test_unsubscribed_handler_stops_receiving_events():
    bus = InterviewEventBus()
    received = []
    bus.subscribe(EventType.STATUS_CHANGED, received.append)

    bus.emit(status_event("first"))
    bus.unsubscribe(EventType.STATUS_CHANGED, received.append)
    bus.emit(status_event("second"))

    assert [e.data["message"] for e in received] == ["first"]


def test_unsubscribing_an_unknown_handler_is_harmless():
    bus = InterviewEventBus()
    bus.unsubscribe(EventType.TURN_APPENDED, print)
    bus.subscribe(EventType.TURN_APPENDED, print)
    bus.unsubscribe(EventType.TURN_APPENDED, len)


def test_failing_handler_does_not_block_others():
    bus = InterviewEventBus()
    received = []

    def broken(event):
        raise ValueError("boom")

    bus.subscribe(EventType.STATUS_CHANGED, broken)
    bus.subscribe(EventType.STATUS_CHANGED, received.append)
    bus.subscribe_all(received.append)
    bus.emit(status_event())

    assert len(received) == 2


def test_detached_handler_misses_later_status_changes(make_orchestrator, mocks):
    orchestrator = make_orchestrator(auto_listen=False)
    printed = []

    def on_status(event):
        printed.append(event.data["kind"])

    orchestrator.event_bus.subscribe(EventType.STATUS_CHANGED, on_status)
    orchestrator.start()
    mocks["scheduler"].flush()
    orchestrator.event_bus.unsubscribe(EventType.STATUS_CHANGED, on_status)
    seen = list(printed)

    mocks["playback_service"].finish()
    mocks["scheduler"].run_soon()

    assert "speaking" in seen
    assert printed == seen
    assert orchestrator.status.kind.value == "ready"


def test_metrics_count_turns_by_speaker():
    metrics = InterviewMetrics()
    metrics.handle_event(TurnAppendedEvent("s-1", 0.0, 0, "interviewer", "Hello"))
    metrics.handle_event(TurnAppendedEvent("s-1", 1.0, 1, "user", "Hi"))
    metrics.handle_event(TurnAppendedEvent("s-1", 2.0, 2, "user", "More"))

    counts = metrics.get_metrics()
    assert counts["user_turns"] == 2
    assert counts["interviewer_turns"] == 1
