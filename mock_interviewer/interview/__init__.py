"""Interview system components.

This module contains the turn-taking logic for conducting spoken mock
interviews: the state machine, its runtime orchestrator, collaborator
interfaces and the event system.
"""

# Core orchestrator class
from .orchestrator import InterviewOrchestrator

# Data models
from .models import ConversationTurn, FeedbackOutcome, InterviewSetup, Speaker, Transcript

# Structured state and wire schemas
from .schemas import (
    CallState, CaptureState, PlaybackState, SessionState, Status, StatusKind,
    ListenRejection, GenerationRequest, GenerationResponse,
    FeedbackRequest, FeedbackResponse, TranscriptSnapshot, TurnRecord
)

# Collaborator interfaces
from .services import (
    PermissionOutcome, CaptureErrorKind, PlaybackErrorKind,
    CaptureListener, PlaybackListener, PermissionAcquirer,
    SpeechCaptureService, SpeechPlaybackService,
    TextGenerator, FeedbackService, TranscriptStore
)

# State machine
from .machine import reduce, Transition
from .coordinator import ResponseCoordinator
from .timers import Scheduler, AsyncioScheduler

# Event system
from .events import (
    InterviewEventBus, EventLogger, InterviewMetrics,
    EventType, InterviewEvent, SessionStartedEvent, StatusChangedEvent,
    TurnAppendedEvent, PlaybackForcedEvent, FallbackUsedEvent,
    SessionFinishedEvent, ErrorOccurredEvent
)

__all__ = [
    # Orchestrator
    "InterviewOrchestrator",

    # Data models
    "ConversationTurn", "FeedbackOutcome", "InterviewSetup", "Speaker", "Transcript",

    # Schemas and state
    "CallState", "CaptureState", "PlaybackState", "SessionState", "Status",
    "StatusKind", "ListenRejection", "GenerationRequest", "GenerationResponse",
    "FeedbackRequest", "FeedbackResponse", "TranscriptSnapshot", "TurnRecord",

    # Services
    "PermissionOutcome", "CaptureErrorKind", "PlaybackErrorKind",
    "CaptureListener", "PlaybackListener", "PermissionAcquirer",
    "SpeechCaptureService", "SpeechPlaybackService",
    "TextGenerator", "FeedbackService", "TranscriptStore",

    # State machine
    "reduce", "Transition", "ResponseCoordinator", "Scheduler", "AsyncioScheduler",

    # Events
    "InterviewEventBus", "EventLogger", "InterviewMetrics",
    "EventType", "InterviewEvent", "SessionStartedEvent", "StatusChangedEvent",
    "TurnAppendedEvent", "PlaybackForcedEvent", "FallbackUsedEvent",
    "SessionFinishedEvent", "ErrorOccurredEvent",
]
