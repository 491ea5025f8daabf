"""
Data management infrastructure for feedback handoff and transcripts.
"""

from .feedback import HttpFeedbackClient
from .transcripts import JsonTranscriptStore

__all__ = [
    'HttpFeedbackClient',
    'JsonTranscriptStore'
]
