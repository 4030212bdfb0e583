from __future__ import annotations

import pytest
import requests

from src.concierge.config import load_settings
from src.concierge.errors import ConfigurationError, UpstreamError, UpstreamStatusError
from src.concierge.services.chat_ai import CompletionClient, CompletionPayload


class FakeResponse:
    def __init__(self, status_code=200, chunks=(), text="", reason="OK", fail_after=None):
        self.status_code = status_code
        self._chunks = list(chunks)
        self.text = text
        self.reason = reason
        self.closed = False
        self._fail_after = fail_after

    def iter_content(self, chunk_size=None):
        for idx, chunk in enumerate(self._chunks):
            if self._fail_after is not None and idx >= self._fail_after:
                raise requests.exceptions.ChunkedEncodingError("connection reset")
            yield chunk

    def close(self):
        self.closed = True


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.exc:
            raise self.exc
        return self.response


def _client(session, **env):
    env.setdefault("OPENAI_API_KEY", "sk-test")
    return CompletionClient(load_settings(env), session=session)


def _payload():
    return CompletionPayload(model="gpt-4o-mini", messages=[{"role": "user", "content": "Hi"}])


def test_open_stream_posts_payload_with_bearer_token():
    session = FakeSession(FakeResponse(chunks=[b"data: a\n\n", b"", b"data: b\n\n"]))
    stream = _client(session).open_stream(_payload())

    url, kwargs = session.calls[0]
    assert url == "https://api.openai.com/v1/chat/completions"
    assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
    assert kwargs["json"]["stream"] is True
    assert kwargs["json"]["n"] == 1
    assert kwargs["stream"] is True
    assert kwargs["timeout"] == (3.0, 60.0)

    assert list(stream.chunks()) == [b"data: a\n\n", b"data: b\n\n"]
    assert session.response.closed is True


def test_payload_without_n_omits_field():
    body = CompletionPayload(model="m", n=None).to_json()
    assert "n" not in body
    assert body["max_tokens"] == 800


def test_non_success_status_raises_and_closes():
    response = FakeResponse(status_code=401, text='{"error": "bad key"}', reason="Unauthorized")
    with pytest.raises(UpstreamStatusError) as excinfo:
        _client(FakeSession(response)).open_stream(_payload())
    assert excinfo.value.status_code == 401
    assert "bad key" in excinfo.value.body
    assert response.closed is True


def test_transport_failure_raises_upstream_error():
    session = FakeSession(exc=requests.exceptions.ConnectTimeout("timed out"))
    with pytest.raises(UpstreamError):
        _client(session).open_stream(_payload())
    assert len(session.calls) == 1


def test_interrupted_stream_raises_upstream_error():
    response = FakeResponse(chunks=[b"data: a\n\n", b"data: b\n\n"], fail_after=1)
    stream = _client(FakeSession(response)).open_stream(_payload())
    chunks = stream.chunks()
    assert next(chunks) == b"data: a\n\n"
    with pytest.raises(UpstreamError):
        next(chunks)
    assert response.closed is True


def test_missing_key_fails_before_any_request():
    session = FakeSession(FakeResponse())
    client = CompletionClient(load_settings({}), session=session)
    with pytest.raises(ConfigurationError):
        client.open_stream(_payload())
    assert session.calls == []
