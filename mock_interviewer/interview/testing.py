"""
Testing infrastructure with mock services for the interview system.
"""
import heapq
import itertools
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from .models import ConversationTurn, InterviewSetup, Speaker, Transcript
from .schemas import (
    GenerationRequest, GenerationResponse,
    FeedbackRequest, FeedbackResponse, TranscriptSnapshot
)
from .services import (
    CaptureErrorKind, CaptureListener, PermissionAcquirer, PermissionOutcome,
    PlaybackErrorKind, PlaybackListener, SpeechCaptureService,
    SpeechPlaybackService, TextGenerator, FeedbackService, TranscriptStore
)
from .timers import Scheduler, CompletionCallback


class ManualHandle:
    """Timer handle for the manual scheduler."""

    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """
    Deterministic scheduler with a virtual clock.

    Nothing runs on its own: `advance` moves the clock and fires due timers,
    `run_soon` drains callbacks posted from collaborators, `run_jobs` runs
    queued blocking calls and `flush` repeats the last two until idle.
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self._seq = itertools.count()
        self._timers: List[Tuple[float, int, ManualHandle]] = []
        self._soon: Deque[Callable[[], None]] = deque()
        self.jobs: Deque[Tuple[Callable[[], Any], Optional[float], CompletionCallback]] = deque()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualHandle:
        handle = ManualHandle(self._now + delay, callback)
        heapq.heappush(self._timers, (handle.when, next(self._seq), handle))
        return handle

    def call_soon(self, callback: Callable[[], None]) -> None:
        self._soon.append(callback)

    def run_blocking(self, func: Callable[[], Any], timeout: Optional[float],
                     on_done: CompletionCallback) -> None:
        self.jobs.append((func, timeout, on_done))

    @property
    def pending_timers(self) -> int:
        return sum(1 for _, _, handle in self._timers if not handle.cancelled)

    def run_soon(self) -> None:
        while self._soon:
            self._soon.popleft()()

    def run_jobs(self) -> None:
        """Run every queued blocking call, including ones queued meanwhile."""
        while self.jobs:
            func, _timeout, on_done = self.jobs.popleft()
            try:
                result = func()
            except Exception as e:
                on_done(None, e)
            else:
                on_done(result, None)
            self.run_soon()

    def time_out_jobs(self) -> None:
        """Fail every queued blocking call as if it exceeded its timeout."""
        while self.jobs:
            _func, timeout, on_done = self.jobs.popleft()
            on_done(None, TimeoutError(f"timed out after {timeout}s"))
            self.run_soon()

    def flush(self) -> None:
        self.run_soon()
        while self.jobs or self._soon:
            self.run_jobs()
            self.run_soon()

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due timers in deadline order."""
        target = self._now + seconds
        while self._timers and self._timers[0][0] <= target:
            when, _, handle = heapq.heappop(self._timers)
            if handle.cancelled:
                continue
            self._now = when
            handle.callback()
            self.run_soon()
        self._now = target


class MockCaptureService(SpeechCaptureService):
    """Mock speech capture service driven by the test."""

    def __init__(self, supported: bool = True, echo_terminal_events: bool = True):
        self.supported = supported
        self.echo_terminal_events = echo_terminal_events
        self.listeners: List[CaptureListener] = []
        self.stop_calls = 0
        self.abort_calls = 0
        self.start_error: Optional[Exception] = None

    @property
    def listener(self) -> CaptureListener:
        return self.listeners[-1]

    @property
    def start_calls(self) -> int:
        return len(self.listeners)

    def is_supported(self) -> bool:
        return self.supported

    def start(self, listener: CaptureListener) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.listeners.append(listener)
        listener.started()

    def stop(self) -> None:
        self.stop_calls += 1
        if self.echo_terminal_events and self.listeners:
            self.listener.ended()

    def abort(self) -> None:
        self.abort_calls += 1
        if self.echo_terminal_events and self.listeners:
            self.listener.error(CaptureErrorKind.ABORTED)

    # Helpers for tests
    def say(self, text: str, is_final: bool = True) -> None:
        self.listener.result(text, is_final)

    def fail(self, kind: CaptureErrorKind) -> None:
        self.listener.error(kind)

    def end_stream(self) -> None:
        self.listener.ended()


class MockPlaybackService(SpeechPlaybackService):
    """Mock playback service. Utterances finish only when the test says so."""

    def __init__(self, auto_complete: bool = False, echo_interrupt_on_cancel: bool = True):
        self.auto_complete = auto_complete
        self.echo_interrupt_on_cancel = echo_interrupt_on_cancel
        self.spoken_messages: List[str] = []
        self.listeners: List[PlaybackListener] = []
        self.cancel_calls = 0
        self.speak_error: Optional[Exception] = None

    @property
    def listener(self) -> PlaybackListener:
        return self.listeners[-1]

    def speak(self, text: str, listener: PlaybackListener) -> None:
        if self.speak_error is not None:
            raise self.speak_error
        self.spoken_messages.append(text)
        self.listeners.append(listener)
        listener.started()
        if self.auto_complete:
            listener.ended()

    def cancel(self) -> None:
        self.cancel_calls += 1
        if self.echo_interrupt_on_cancel and self.listeners:
            self.listener.error(PlaybackErrorKind.INTERRUPTED)

    # Helpers for tests
    def finish(self) -> None:
        self.listener.ended()

    def fail(self, kind: PlaybackErrorKind) -> None:
        self.listener.error(kind)


class MockPermissionAcquirer(PermissionAcquirer):
    """Mock permission prompt with a fixed answer."""

    def __init__(self, outcome: PermissionOutcome = PermissionOutcome.GRANTED,
                 error: Optional[Exception] = None):
        self.outcome = outcome
        self.error = error
        self.calls = 0

    def acquire(self) -> PermissionOutcome:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.outcome


class MockTextGenerator(TextGenerator):
    """Mock LLM client for testing."""

    def __init__(self, mock_responses: Optional[List[str]] = None,
                 error: Optional[Exception] = None):
        self.mock_responses = list(mock_responses or [])
        self.current_response_idx = 0
        self.error = error
        self.request_history: List[GenerationRequest] = []

    def generate(self, request: GenerationRequest) -> GenerationResponse:
        self.request_history.append(request)
        if self.error is not None:
            raise self.error

        if self.current_response_idx < len(self.mock_responses):
            text = self.mock_responses[self.current_response_idx]
            self.current_response_idx += 1
            return GenerationResponse(text=text)
        # Default follow-up once the scripted responses run out
        return GenerationResponse(text="Can you tell me more about that?")


class MockFeedbackService(FeedbackService):
    """Mock scoring service recording every submission."""

    def __init__(self, response: Optional[FeedbackResponse] = None,
                 error: Optional[Exception] = None):
        self.response = response or FeedbackResponse(success=True, new_session_id="feedback-123")
        self.error = error
        self.requests: List[FeedbackRequest] = []

    def submit(self, request: FeedbackRequest) -> FeedbackResponse:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response


class MockTranscriptStore(TranscriptStore):
    """In-memory transcript store."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.snapshots: List[TranscriptSnapshot] = []

    def save(self, snapshot: TranscriptSnapshot) -> None:
        if self.error is not None:
            raise self.error
        self.snapshots.append(snapshot)


def create_mock_interview_setup() -> Dict[str, Any]:
    """Create a complete mock interview setup for testing."""
    setup = InterviewSetup(
        session_id="session-1",
        user_id="user-1",
        user_name="Alice",
        interview_type="backend engineering",
        questions=["Describe a system you designed.", "How do you handle outages?"],
        feedback_id="fb-1",
    )

    mock_llm_responses = [
        "Interesting. What trade-offs did you make in that design?",
        "How did you measure whether it worked?",
    ]

    return {
        "setup": setup,
        "scheduler": ManualScheduler(),
        "capture_service": MockCaptureService(),
        "playback_service": MockPlaybackService(),
        "permission_acquirer": MockPermissionAcquirer(),
        "generator": MockTextGenerator(mock_llm_responses),
        "feedback_service": MockFeedbackService(),
        "transcript_store": MockTranscriptStore(),
    }


def create_test_transcript() -> Transcript:
    """Create a short finished conversation."""
    return (
        ConversationTurn(Speaker.INTERVIEWER, "Hello Alice! Ready? Start speaking after I finish."),
        ConversationTurn(Speaker.USER, "I built a queue-backed ingestion service."),
        ConversationTurn(Speaker.INTERVIEWER, "What trade-offs did you make?"),
        ConversationTurn(Speaker.USER, "We chose at-least-once delivery."),
    )
