"""
Mock Interviewer: a spoken mock-interview agent.

Alternates strictly between listening to the candidate and speaking
LLM-generated interviewer lines, then hands the transcript to a scoring
service for feedback.
"""

__version__ = "1.0.0"

# Main entry points
from .interview.orchestrator import InterviewOrchestrator
from .interview.models import ConversationTurn, InterviewSetup

__all__ = ["InterviewOrchestrator", "ConversationTurn", "InterviewSetup"]
