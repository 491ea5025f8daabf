"""
Event-driven notifications for the interview system.

The orchestrator publishes these after each transition has been applied,
so subscribers always observe committed state.
"""
import logging
from abc import ABC
from typing import Dict, Any, List, Callable, Optional
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger("events")


class EventType(str, Enum):
    """Types of interview events."""
    SESSION_STARTED = "session_started"
    STATUS_CHANGED = "status_changed"
    TURN_APPENDED = "turn_appended"
    PLAYBACK_FORCED = "playback_forced"
    FALLBACK_USED = "fallback_used"
    SESSION_FINISHED = "session_finished"
    ERROR_OCCURRED = "error_occurred"


@dataclass
class InterviewEvent(ABC):
    """Base class for all interview events."""
    event_type: EventType
    session_id: str
    timestamp: float
    data: Dict[str, Any]


@dataclass
class SessionStartedEvent(InterviewEvent):
    """Event fired when permission is granted and the session goes active."""
    def __init__(self, session_id: str, timestamp: float, user_id: str, question_count: int):
        super().__init__(
            event_type=EventType.SESSION_STARTED,
            session_id=session_id,
            timestamp=timestamp,
            data={"user_id": user_id, "question_count": question_count}
        )


@dataclass
class StatusChangedEvent(InterviewEvent):
    """Event fired whenever the user-facing status changes."""
    def __init__(self, session_id: str, timestamp: float, kind: str, message: str):
        super().__init__(
            event_type=EventType.STATUS_CHANGED,
            session_id=session_id,
            timestamp=timestamp,
            data={"kind": kind, "message": message}
        )


@dataclass
class TurnAppendedEvent(InterviewEvent):
    """Event fired when a turn is appended to the transcript."""
    def __init__(self, session_id: str, timestamp: float, turn_idx: int,
                 speaker: str, text: str):
        super().__init__(
            event_type=EventType.TURN_APPENDED,
            session_id=session_id,
            timestamp=timestamp,
            data={"turn_idx": turn_idx, "speaker": speaker, "text": text}
        )


@dataclass
class PlaybackForcedEvent(InterviewEvent):
    """Event fired when a timer, not the playback service, ended an utterance."""
    def __init__(self, session_id: str, timestamp: float, reason: str,
                 elapsed: Optional[float]):
        super().__init__(
            event_type=EventType.PLAYBACK_FORCED,
            session_id=session_id,
            timestamp=timestamp,
            data={"reason": reason, "elapsed": elapsed}
        )


@dataclass
class FallbackUsedEvent(InterviewEvent):
    """Event fired when the fallback line replaced a generated one."""
    def __init__(self, session_id: str, timestamp: float, text: str, reason: str):
        super().__init__(
            event_type=EventType.FALLBACK_USED,
            session_id=session_id,
            timestamp=timestamp,
            data={"text": text, "reason": reason}
        )


@dataclass
class SessionFinishedEvent(InterviewEvent):
    """Event fired once the feedback handoff has an outcome."""
    def __init__(self, session_id: str, timestamp: float, turn_count: int,
                 success: bool, new_session_id: Optional[str]):
        super().__init__(
            event_type=EventType.SESSION_FINISHED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "turn_count": turn_count,
                "success": success,
                "new_session_id": new_session_id
            }
        )


@dataclass
class ErrorOccurredEvent(InterviewEvent):
    """Event fired when an error is absorbed by the orchestrator."""
    def __init__(self, session_id: str, timestamp: float, error_type: str,
                 error_message: str, component: str):
        super().__init__(
            event_type=EventType.ERROR_OCCURRED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "error_type": error_type,
                "error_message": error_message,
                "component": component
            }
        )


EventHandler = Callable[[InterviewEvent], None]


class InterviewEventBus:
    """Event bus for interview system communication."""

    def __init__(self):
        self._handlers: Dict[EventType, List[EventHandler]] = {}
        self._global_handlers: List[EventHandler] = []

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """
        Subscribe to specific event type.

        Args:
            event_type: Type of event to listen for
            handler: Function to call when event occurs
        """
        if event_type not in self._handlers:
            self._handlers[event_type] = []
        self._handlers[event_type].append(handler)
        logger.debug(f"Subscribed handler to {event_type}")

    def subscribe_all(self, handler: EventHandler) -> None:
        """Subscribe to all events."""
        self._global_handlers.append(handler)
        logger.debug("Subscribed global handler")

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Unsubscribe from specific event type."""
        if event_type in self._handlers:
            try:
                self._handlers[event_type].remove(handler)
                logger.debug(f"Unsubscribed handler from {event_type}")
            except ValueError:
                logger.warning(f"Handler not found for {event_type}")

    def emit(self, event: InterviewEvent) -> None:
        """
        Emit an event to all subscribers.

        A failing handler is logged and does not stop the others.
        """
        logger.debug(f"Emitting event: {event.event_type} for session {event.session_id}")

        for handler in self._handlers.get(event.event_type, []):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in event handler for {event.event_type}: {e}")

        for handler in self._global_handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in global event handler: {e}")


class EventLogger:
    """Logs all events for debugging and analysis."""

    def __init__(self, log_level: int = logging.INFO):
        self.logger = logging.getLogger("event_logger")
        self.logger.setLevel(log_level)

    def handle_event(self, event: InterviewEvent) -> None:
        """Log event details."""
        self.logger.info(f"Event: {event.event_type} | Session: {event.session_id} | Data: {event.data}")


class InterviewMetrics:
    """Collects metrics from interview events."""

    def __init__(self):
        self.reset()

    def handle_event(self, event: InterviewEvent) -> None:
        """Update metrics based on event."""
        if event.event_type == EventType.SESSION_STARTED:
            self.sessions_started += 1
        elif event.event_type == EventType.SESSION_FINISHED:
            self.sessions_finished += 1
        elif event.event_type == EventType.TURN_APPENDED:
            if event.data["speaker"] == "user":
                self.user_turns += 1
            else:
                self.interviewer_turns += 1
        elif event.event_type == EventType.PLAYBACK_FORCED:
            self.forced_playback_ends += 1
        elif event.event_type == EventType.FALLBACK_USED:
            self.fallbacks_used += 1
        elif event.event_type == EventType.ERROR_OCCURRED:
            self.errors_occurred += 1

    def get_metrics(self) -> Dict[str, int]:
        """Get current metrics snapshot."""
        return {
            "sessions_started": self.sessions_started,
            "sessions_finished": self.sessions_finished,
            "user_turns": self.user_turns,
            "interviewer_turns": self.interviewer_turns,
            "forced_playback_ends": self.forced_playback_ends,
            "fallbacks_used": self.fallbacks_used,
            "errors_occurred": self.errors_occurred
        }

    def reset(self) -> None:
        """Reset all metrics to zero."""
        self.sessions_started = 0
        self.sessions_finished = 0
        self.user_turns = 0
        self.interviewer_turns = 0
        self.forced_playback_ends = 0
        self.fallbacks_used = 0
        self.errors_occurred = 0
