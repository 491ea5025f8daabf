"""Wire schemas and the HTTP/file/audio collaborators."""
import errno
import io
import sys
import threading
import wave
from datetime import datetime, timezone
from unittest.mock import Mock, patch

import pytest

from mock_interviewer.infrastructure.data import HttpFeedbackClient, JsonTranscriptStore
from mock_interviewer.infrastructure.llm import VertexRestClient
from mock_interviewer.infrastructure.speech import GoogleTTSPlayback
from mock_interviewer.infrastructure.speech.stt import is_device_lost
from mock_interviewer.interview.models import Speaker
from mock_interviewer.interview.schemas import (
    FeedbackRequest, FeedbackResponse, GenerationRequest, TranscriptSnapshot, TurnRecord
)
from mock_interviewer.interview.testing import create_test_transcript


def _response(status_code=200, payload=None, text=""):
    resp = Mock()
    resp.status_code = status_code
    resp.json.return_value = payload or {}
    resp.text = text
    return resp


def _feedback_request():
    return FeedbackRequest(
        session_id="s-1",
        user_id="u-1",
        transcript=[TurnRecord.from_turn(t) for t in create_test_transcript()],
        candidate_questions=["Describe a system you designed."],
    )


def test_feedback_request_uses_camel_case_keys():
    payload = _feedback_request().model_dump(mode="json", by_alias=True)
    assert set(payload) == {"sessionId", "userId", "transcript", "candidateQuestions", "feedbackId"}
    assert payload["transcript"][1] == {"speaker": "user", "text": "I built a queue-backed ingestion service."}


def test_feedback_response_accepts_wire_names():
    response = FeedbackResponse.model_validate({"success": True, "newSessionId": "abc"})
    assert response.new_session_id == "abc"


@pytest.fixture
def vertex():
    client = VertexRestClient(project="demo-project")
    client._token = "test-token"
    return client


def test_vertex_client_sends_prompt_and_context_as_parts(vertex):
    payload = {"candidates": [{"content": {"parts": [{"text": " What went wrong? "}]}}]}
    with patch("mock_interviewer.infrastructure.llm.client.requests.post",
               return_value=_response(payload=payload)) as post:
        result = vertex.generate(GenerationRequest(prompt="Ask a question.", context="user: hi"))

    assert result.text == "What went wrong?"
    body = post.call_args.kwargs["json"]
    parts = body["contents"][0]["parts"]
    assert parts[0] == {"text": "Ask a question."}
    assert "user: hi" in parts[1]["text"]
    assert post.call_args.kwargs["headers"]["Authorization"] == "Bearer test-token"
    assert "demo-project" in post.call_args.args[0]


def test_vertex_client_raises_on_http_error(vertex):
    with patch("mock_interviewer.infrastructure.llm.client.requests.post",
               return_value=_response(500, text="internal")):
        with pytest.raises(RuntimeError, match="500"):
            vertex.generate(GenerationRequest(prompt="Ask a question."))


def test_vertex_client_returns_empty_text_for_unexpected_payload(vertex):
    with patch("mock_interviewer.infrastructure.llm.client.requests.post",
               return_value=_response(payload={"candidates": [{"finishReason": "SAFETY"}]})):
        assert vertex.generate(GenerationRequest(prompt="Ask a question.")).text == ""


def test_vertex_client_refreshes_rejected_token(vertex):
    payload = {"candidates": [{"content": {"parts": [{"text": "Hi"}]}}]}
    responses = [_response(401, text="expired"), _response(payload=payload)]

    def refresh():
        vertex._token = "fresh-token"

    with patch("mock_interviewer.infrastructure.llm.client.requests.post", side_effect=responses) as post, \
            patch.object(vertex, "_refresh_token", side_effect=refresh):
        assert vertex.generate(GenerationRequest(prompt="Ask.")).text == "Hi"

    assert post.call_count == 2
    assert post.call_args.kwargs["headers"]["Authorization"] == "Bearer fresh-token"


def test_feedback_client_posts_transcript():
    session = Mock()
    session.post.return_value = _response(payload={"success": True, "newSessionId": "fb-7"})
    client = HttpFeedbackClient("http://scoring.local/", session=session)

    response = client.submit(_feedback_request())

    assert response.success and response.new_session_id == "fb-7"
    url = session.post.call_args.args[0]
    assert url == "http://scoring.local/feedback"
    assert session.post.call_args.kwargs["json"]["sessionId"] == "s-1"


def test_feedback_client_raises_on_http_error():
    session = Mock()
    session.post.return_value = _response(503, text="unavailable")
    client = HttpFeedbackClient("http://scoring.local", session=session)
    with pytest.raises(RuntimeError, match="503"):
        client.submit(_feedback_request())


def test_transcript_store_writes_one_file_per_session(tmp_path):
    store = JsonTranscriptStore(str(tmp_path / "sessions"))
    snapshot = TranscriptSnapshot(
        session_id="s-1",
        transcript=[TurnRecord.from_turn(t) for t in create_test_transcript()],
        ended_at=datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc),
    )
    store.save(snapshot)

    raw = (tmp_path / "sessions" / "s-1.json").read_text(encoding="utf-8")
    assert '"sessionId": "s-1"' in raw
    assert '"endedAt"' in raw

    loaded = store.load("s-1")
    assert loaded.status == "completed"
    assert loaded.transcript[0].speaker is Speaker.INTERVIEWER
    assert len(loaded.transcript) == 4


def test_lost_input_device_counts_as_revoked_access():
    assert is_device_lost(OSError(errno.EACCES, "Permission denied"))
    assert is_device_lost(OSError("Device unavailable", -9985))
    assert is_device_lost(OSError("Invalid device", -9996))
    assert not is_device_lost(OSError("Input overflowed", -9981))


def _silent_wav():
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(16000)
        wav.writeframes(b"\x00\x00" * 160)
    return buffer.getvalue()


def test_tts_releases_audio_when_output_cannot_open():
    fake_pyaudio = Mock()
    audio = fake_pyaudio.PyAudio.return_value
    audio.open.side_effect = OSError("Device unavailable", -9985)
    listener = Mock()

    with patch.dict(sys.modules, {"pyaudio": fake_pyaudio}):
        with pytest.raises(OSError):
            GoogleTTSPlayback()._play(_silent_wav(), threading.Event(), listener)

    audio.terminate.assert_called_once()
    listener.started.assert_not_called()
