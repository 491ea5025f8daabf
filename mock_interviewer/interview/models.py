"""
Data models for the interview system.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Tuple


class Speaker(str, Enum):
    """Who produced a turn."""
    USER = "user"
    INTERVIEWER = "interviewer"


@dataclass(frozen=True)
class ConversationTurn:
    """Represents a single conversation turn."""
    speaker: Speaker
    text: str


# Append-only, ordered record of a session
Transcript = Tuple[ConversationTurn, ...]


def render_transcript(transcript: Transcript) -> str:
    """Render a transcript as one `speaker: text` line per turn."""
    return "\n".join(f"{turn.speaker.value}: {turn.text}" for turn in transcript)


@dataclass
class InterviewSetup:
    """Identifiers and content fixed at session start."""
    session_id: str
    user_id: str
    user_name: str = "Candidate"
    interview_type: str = "technical"
    questions: List[str] = field(default_factory=list)
    feedback_id: Optional[str] = None


@dataclass(frozen=True)
class FeedbackOutcome:
    """Result of handing the finished transcript to the scoring service."""
    success: bool
    new_session_id: Optional[str] = None
    error: Optional[str] = None
