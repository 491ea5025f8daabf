"""
Messages dispatched into the turn-taking machine, and the effects it returns.

Every callback from a collaborator or a timer is turned into one of the
message types below before it reaches the state machine. Capture messages
carry the listening `attempt` and playback messages the `utterance` token
they belong to, so late events from an earlier attempt can be recognised.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from .models import FeedbackOutcome, Transcript
from .schemas import CallState
from .services import CaptureErrorKind, PermissionOutcome, PlaybackErrorKind


class TimerKind(str, Enum):
    """Timers owned by the machine. At most one of each kind is armed."""
    SILENCE = "silence"
    PLAYBACK_SAFETY = "playback_safety"
    WATCHDOG = "watchdog"


class Message:
    """Base class for all machine inputs."""


# Lifecycle -------------------------------------------------------------------

@dataclass(frozen=True)
class StartRequested(Message):
    opening_line: str


@dataclass(frozen=True)
class PermissionResolved(Message):
    outcome: PermissionOutcome


@dataclass(frozen=True)
class EndRequested(Message):
    pass


@dataclass(frozen=True)
class FeedbackCompleted(Message):
    outcome: FeedbackOutcome


# Capture ---------------------------------------------------------------------

@dataclass(frozen=True)
class ListenRequested(Message):
    pass


@dataclass(frozen=True)
class CaptureStarted(Message):
    attempt: int


@dataclass(frozen=True)
class CaptureResult(Message):
    attempt: int
    text: str
    is_final: bool


@dataclass(frozen=True)
class CaptureFailed(Message):
    attempt: int
    kind: CaptureErrorKind


@dataclass(frozen=True)
class CaptureEnded(Message):
    attempt: int


@dataclass(frozen=True)
class SilenceElapsed(Message):
    attempt: int


# Playback --------------------------------------------------------------------

@dataclass(frozen=True)
class UtteranceEnqueued(Message):
    text: str


@dataclass(frozen=True)
class PlaybackStarted(Message):
    utterance: int


@dataclass(frozen=True)
class PlaybackEnded(Message):
    utterance: int


@dataclass(frozen=True)
class PlaybackFailed(Message):
    utterance: int
    kind: PlaybackErrorKind


@dataclass(frozen=True)
class SafetyTimeoutElapsed(Message):
    utterance: int


@dataclass(frozen=True)
class WatchdogTick(Message):
    pass


# Generation ------------------------------------------------------------------

@dataclass(frozen=True)
class GenerationCompleted(Message):
    text: str
    is_fallback: bool = False


# =============================================================================
# Effects
# =============================================================================

class Effect:
    """Base class for all machine outputs."""


@dataclass(frozen=True)
class AcquirePermission(Effect):
    pass


@dataclass(frozen=True)
class StartCapture(Effect):
    attempt: int


@dataclass(frozen=True)
class StopCapture(Effect):
    pass


@dataclass(frozen=True)
class AbortCapture(Effect):
    pass


@dataclass(frozen=True)
class Speak(Effect):
    text: str
    utterance: int


@dataclass(frozen=True)
class CancelPlayback(Effect):
    pass


@dataclass(frozen=True)
class ScheduleTimer(Effect):
    kind: TimerKind
    delay: float
    token: int = 0


@dataclass(frozen=True)
class CancelTimer(Effect):
    kind: TimerKind


@dataclass(frozen=True)
class RequestGeneration(Effect):
    transcript: Transcript


@dataclass(frozen=True)
class SubmitFeedback(Effect):
    transcript: Transcript


@dataclass(frozen=True)
class PersistTranscript(Effect):
    transcript: Transcript
    ended_at: datetime


@dataclass(frozen=True)
class ReportError(Effect):
    """Publish an error that was absorbed into a status or fallback."""
    component: str
    error_type: str
    message: str


@dataclass(frozen=True)
class ForcedPlaybackEnd(Effect):
    """Publish that a watchdog, not the service, ended an utterance."""
    reason: str
    elapsed: Optional[float] = None


# The result of one reducer: the next state and what to do about it
Step = Tuple[CallState, List[Effect]]
