"""
Structured state and wire schemas for the interview system.

The dataclasses below form the single state object of the turn-taking
machine. They are frozen: every transition builds a new value with
`dataclasses.replace`, which keeps transitions pure and easy to test.

The pydantic models describe the payloads exchanged with external
collaborators (generation, scoring and persistence services).
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional, List, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .models import ConversationTurn, FeedbackOutcome, Speaker, Transcript
from ..config import TurnTakingPolicy


class SessionState(str, Enum):
    """Top-level call lifecycle."""
    IDLE = "idle"
    CONNECTING = "connecting"
    ACTIVE = "active"
    FINISHED = "finished"


class StatusKind(str, Enum):
    """User-facing status categories."""
    IDLE = "idle"
    CONNECTING = "connecting"
    SPEAKING = "speaking"
    LISTENING = "listening"
    THINKING = "thinking"
    READY = "ready"
    RETRY = "retry"
    INTERRUPTED = "interrupted"
    ERROR = "error"
    FATAL = "fatal"
    FINISHED = "finished"


@dataclass(frozen=True)
class Status:
    """Concrete status shown to the user after every transition."""
    kind: StatusKind
    message: str = ""

    @property
    def is_error(self) -> bool:
        return self.kind in (StatusKind.ERROR, StatusKind.FATAL)


class ListenRejection(str, Enum):
    """Why a listening attempt was refused."""
    NOT_ACTIVE = "session is not active"
    SPEAKING = "interviewer is speaking"
    ALREADY_LISTENING = "already listening"
    THINKING = "interviewer is preparing a response"
    PERMISSION_REVOKED = "microphone permission was revoked"


@dataclass(frozen=True)
class CaptureState:
    """Speech capture unit state for the current listening attempt."""
    is_listening: bool = False
    accumulated_text: str = ""
    attempt: int = 0
    silence_armed: bool = False
    permission_revoked: bool = False


@dataclass(frozen=True)
class PlaybackState:
    """Speech playback queue state."""
    is_speaking: bool = False
    queue: Tuple[str, ...] = ()
    speaking_since: Optional[float] = None
    utterance: int = 0


@dataclass(frozen=True)
class CallState:
    """The one state object owned by the orchestrator."""
    session: SessionState = SessionState.IDLE
    capture: CaptureState = field(default_factory=CaptureState)
    playback: PlaybackState = field(default_factory=PlaybackState)
    transcript: Transcript = ()
    generating: bool = False
    status: Status = field(default_factory=lambda: Status(StatusKind.IDLE))
    opening_line: str = ""
    feedback: Optional[FeedbackOutcome] = None

    @property
    def is_active(self) -> bool:
        return self.session is SessionState.ACTIVE

    @property
    def is_listening(self) -> bool:
        return self.capture.is_listening

    @property
    def is_speaking(self) -> bool:
        return self.playback.is_speaking

    def with_turn(self, speaker: Speaker, text: str) -> "CallState":
        """Return a copy with one more transcript entry."""
        turn = ConversationTurn(speaker=speaker, text=text)
        return replace(self, transcript=self.transcript + (turn,))


@dataclass(frozen=True)
class Context:
    """Inputs a transition may read besides the state and the message."""
    now: float
    policy: TurnTakingPolicy
    wall_time: datetime


# =============================================================================
# Collaborator payloads
# =============================================================================

class WireModel(BaseModel):
    """Base for payloads that travel with camelCase keys."""
    model_config = ConfigDict(populate_by_name=True)


class TurnRecord(WireModel):
    """A transcript entry as sent over the wire."""
    speaker: Speaker
    text: str

    @classmethod
    def from_turn(cls, turn: ConversationTurn) -> "TurnRecord":
        return cls(speaker=turn.speaker, text=turn.text)


class GenerationRequest(WireModel):
    prompt: str
    context: str = ""


class GenerationResponse(WireModel):
    text: str = ""


class FeedbackRequest(WireModel):
    session_id: str = Field(alias="sessionId")
    user_id: str = Field(alias="userId")
    transcript: List[TurnRecord]
    candidate_questions: List[str] = Field(default_factory=list, alias="candidateQuestions")
    feedback_id: Optional[str] = Field(default=None, alias="feedbackId")


class FeedbackResponse(WireModel):
    success: bool
    new_session_id: Optional[str] = Field(default=None, alias="newSessionId")


class TranscriptSnapshot(WireModel):
    session_id: str = Field(alias="sessionId")
    transcript: List[TurnRecord]
    status: str = "completed"
    ended_at: datetime = Field(alias="endedAt")
