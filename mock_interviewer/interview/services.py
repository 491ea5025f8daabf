"""
Collaborator interfaces for the interview system.

The orchestrator only talks to the outside world through these classes.
Concrete implementations live in `mock_interviewer.infrastructure`; mock
implementations for tests live in `mock_interviewer.interview.testing`.

Capture and playback services are callback driven: they may call their
listener from any thread, any number of times, or never. The orchestrator
is responsible for making that safe.
"""
from abc import ABC, abstractmethod
from enum import Enum

from .schemas import (
    GenerationRequest, GenerationResponse,
    FeedbackRequest, FeedbackResponse, TranscriptSnapshot
)


class PermissionOutcome(str, Enum):
    """Result of asking for microphone access."""
    GRANTED = "granted"
    DENIED = "denied"
    UNSUPPORTED = "unsupported"


class CaptureErrorKind(str, Enum):
    """Terminal error kinds reported by a capture service."""
    PERMISSION_REVOKED = "not-allowed"
    ABORTED = "aborted"
    NO_SPEECH = "no-speech"
    NETWORK = "network"
    AUDIO_CAPTURE = "audio-capture"
    UNKNOWN = "unknown"


class PlaybackErrorKind(str, Enum):
    """Terminal error kinds reported by a playback service."""
    INTERRUPTED = "interrupted"
    SYNTHESIS_FAILED = "synthesis-failed"
    AUDIO_BUSY = "audio-busy"
    NETWORK = "network"
    UNKNOWN = "unknown"


class CaptureListener(ABC):
    """Receives the event stream of one listening attempt."""

    @abstractmethod
    def started(self) -> None: ...

    @abstractmethod
    def result(self, text: str, is_final: bool) -> None: ...

    @abstractmethod
    def error(self, kind: CaptureErrorKind) -> None: ...

    @abstractmethod
    def ended(self) -> None: ...


class PlaybackListener(ABC):
    """Receives the event stream of one spoken utterance."""

    @abstractmethod
    def started(self) -> None: ...

    @abstractmethod
    def ended(self) -> None: ...

    @abstractmethod
    def error(self, kind: PlaybackErrorKind) -> None: ...


class PermissionAcquirer(ABC):
    """Asks the environment for microphone access. May block."""

    @abstractmethod
    def acquire(self) -> PermissionOutcome: ...


class SpeechCaptureService(ABC):
    """Continuous speech-to-text with interim and final results.

    Exactly one terminal event (`error` or `ended`) is expected per `start`,
    but callers must not rely on it.
    """

    def is_supported(self) -> bool:
        """Whether the environment can run this service at all."""
        return True

    @abstractmethod
    def start(self, listener: CaptureListener) -> None: ...

    @abstractmethod
    def stop(self) -> None:
        """Stop gracefully after an utterance has been finalized."""

    @abstractmethod
    def abort(self) -> None:
        """Stop immediately, discarding pending results."""


class SpeechPlaybackService(ABC):
    """Text-to-speech output, one utterance at a time."""

    @abstractmethod
    def speak(self, text: str, listener: PlaybackListener) -> None: ...

    @abstractmethod
    def cancel(self) -> None: ...


class TextGenerator(ABC):
    """Produces the next interviewer line. Raises on failure. May block."""

    @abstractmethod
    def generate(self, request: GenerationRequest) -> GenerationResponse: ...


class FeedbackService(ABC):
    """Scores a finished transcript. May block."""

    @abstractmethod
    def submit(self, request: FeedbackRequest) -> FeedbackResponse: ...


class TranscriptStore(ABC):
    """Persists the final transcript snapshot. May block."""

    @abstractmethod
    def save(self, snapshot: TranscriptSnapshot) -> None: ...
