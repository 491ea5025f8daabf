"""Shared fixtures for the interview tests."""
from datetime import datetime, timezone

import pytest

from mock_interviewer.config import TurnTakingPolicy
from mock_interviewer.interview.orchestrator import InterviewOrchestrator
from mock_interviewer.interview.schemas import CallState, Context, SessionState
from mock_interviewer.interview.testing import create_mock_interview_setup

WALL_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_context(now: float = 0.0, **policy_overrides) -> Context:
    return Context(now=now, policy=TurnTakingPolicy(**policy_overrides), wall_time=WALL_TIME)


@pytest.fixture
def ctx():
    return make_context()


@pytest.fixture
def manual_ctx():
    """Context with auto-listen disabled, for tests that drive capture by hand."""
    return make_context(auto_listen=False)


@pytest.fixture
def active_state():
    return CallState(session=SessionState.ACTIVE)


@pytest.fixture
def mocks():
    return create_mock_interview_setup()


@pytest.fixture
def make_orchestrator(mocks):
    """Factory building an orchestrator on the mock collaborators."""
    def build(**policy_overrides):
        orchestrator = InterviewOrchestrator(
            setup=mocks["setup"],
            capture_service=mocks["capture_service"],
            playback_service=mocks["playback_service"],
            permission_acquirer=mocks["permission_acquirer"],
            generator=mocks["generator"],
            feedback_service=mocks["feedback_service"],
            transcript_store=mocks["transcript_store"],
            scheduler=mocks["scheduler"],
            policy=TurnTakingPolicy(**policy_overrides),
        )
        events = []
        orchestrator.event_bus.subscribe_all(events.append)
        orchestrator.recorded_events = events
        return orchestrator
    return build
