"""REST client behavior against a fake HTTP session."""

import time

import pytest
import requests

from ascend_interview.errors import ApiError
from ascend_interview.infrastructure.api import AscendApiClient


class FakeResponse:
    def __init__(self, status_code=200, body=None, content=b"", reason="OK"):
        self.status_code = status_code
        self._body = body
        self.content = content
        self.reason = reason

    def json(self):
        if self._body is None:
            raise ValueError("No JSON body")
        return self._body


class FakeSession:
    """Returns queued responses and records each request."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        reply = self.responses.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def _client(*responses) -> AscendApiClient:
    return AscendApiClient("tok", base_url="http://api.test/api/", session=FakeSession(*responses))


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr(time, "sleep", lambda seconds: None)


class TestRequests:
    def test_start_interview_sends_json_with_bearer(self) -> None:
        client = _client(FakeResponse(body={"success": True, "data": {"interviewId": "x"}}))
        data = client.start_interview({"type": "technical"})
        method, url, kwargs = client.session.requests[0]
        assert data == {"interviewId": "x"}
        assert (method, url) == ("POST", "http://api.test/api/interview/ai/start")
        assert kwargs["headers"]["Authorization"] == "Bearer tok"
        assert kwargs["headers"]["Content-Type"] == "application/json"
        assert kwargs["json"] == {"type": "technical"}

    def test_submit_is_multipart(self) -> None:
        client = _client(FakeResponse(body={"success": True, "data": {}}))
        client.submit_response("iv", 2, "my answer", b"jpeg")
        method, url, kwargs = client.session.requests[0]
        assert url == "http://api.test/api/interview/ai/iv/submit/2"
        assert "Content-Type" not in kwargs["headers"]
        assert kwargs["files"]["textResponse"] == (None, "my answer")
        assert kwargs["files"]["image"] == ("frame.jpg", b"jpeg", "image/jpeg")

    def test_follow_up_path(self) -> None:
        client = _client(FakeResponse(body={"data": {}}))
        client.submit_follow_up("iv", 1, 0, "text")
        assert client.session.requests[0][1] == "http://api.test/api/interview/ai/iv/submit-followup/1/0"
        assert "image" not in client.session.requests[0][2]["files"]

    def test_missing_data_envelope(self) -> None:
        client = _client(FakeResponse(body={"success": True}))
        assert client.get_interview("iv") == {}

    def test_tts_returns_raw_bytes(self) -> None:
        client = _client(FakeResponse(content=b"RIFF...."))
        assert client.text_to_speech("Hello") == b"RIFF...."


class TestErrors:
    def test_server_message_is_used(self) -> None:
        client = _client(FakeResponse(404, body={"success": False, "message": "Interview not found"}))
        with pytest.raises(ApiError) as exc:
            client.get_interview("nope")
        assert exc.value.message == "Interview not found"
        assert exc.value.status == 404

    def test_reason_phrase_without_body(self) -> None:
        client = _client(FakeResponse(500, reason="Internal Server Error"))
        with pytest.raises(ApiError) as exc:
            client.generate_assessment("iv")
        assert exc.value.message == "Internal Server Error"

    def test_transport_failure(self) -> None:
        client = _client(requests.ConnectionError("refused"))
        with pytest.raises(ApiError) as exc:
            client.get_profile()
        assert exc.value.is_transport_failure

    def test_submit_is_not_retried(self) -> None:
        client = _client(FakeResponse(503, reason="Unavailable"), FakeResponse(body={"data": {}}))
        with pytest.raises(ApiError):
            client.submit_response("iv", 0, "text")
        assert len(client.session.requests) == 1


class TestRetry:
    def test_non_critical_call_retried_on_server_error(self) -> None:
        client = _client(
            FakeResponse(503, reason="Unavailable"),
            FakeResponse(body={"data": {"isSecure": True}}),
        )
        assert client.monitor_frame("iv", b"jpeg") == {"isSecure": True}
        assert len(client.session.requests) == 2

    def test_gives_up_after_three_attempts(self) -> None:
        client = _client(*[FakeResponse(502, reason="Bad Gateway") for _ in range(3)])
        with pytest.raises(ApiError):
            client.analyze_response("text", "Q", "behavioral")
        assert len(client.session.requests) == 3

    def test_client_error_not_retried(self) -> None:
        client = _client(FakeResponse(400, body={"message": "Bad text"}), FakeResponse(content=b"x"))
        with pytest.raises(ApiError):
            client.text_to_speech("")
        assert len(client.session.requests) == 1
