from __future__ import annotations

import json
import logging

import httpx
import openai
import pytest

import trip_planner.services.llm.client as client_module
from trip_planner.core.config import Settings
from trip_planner.services.llm.client import LLMClient, outcome_from_body
from trip_planner.services.llm.errors import LLMConfigError, TransportError
from trip_planner.services.llm.recovery import Failed, Parsed
from trip_planner.services.llm.session import ChunkEvent, CompletedEvent, FailedEvent

logger = logging.getLogger("test-llm-client")


def _frame(text: str) -> bytes:
    return f"data: {json.dumps({'choices': [{'delta': {'content': text}}]})}\n\n".encode("utf-8")


def _completion(content: str) -> dict:
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 0,
        "model": "gpt-4",
        "choices": [
            {"index": 0, "finish_reason": "stop", "message": {"role": "assistant", "content": content}}
        ],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    }


class _FakeStreamResponse:
    def __init__(self, parts, error=None):
        self._parts = parts
        self._error = error
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self.closed = True
        return False

    async def iter_bytes(self):
        for part in self._parts:
            yield part
        if self._error is not None:
            raise self._error


class _FakeStreaming:
    def __init__(self, owner):
        self._owner = owner

    def create(self, **kwargs):
        self._owner.requests.append(kwargs)
        if self._owner.create_error is not None:
            raise self._owner.create_error
        self._owner.response = _FakeStreamResponse(self._owner.parts, self._owner.stream_error)
        return self._owner.response


class _FakeCompletions:
    def __init__(self, owner):
        self.with_streaming_response = _FakeStreaming(owner)


class _FakeChat:
    def __init__(self, owner):
        self.completions = _FakeCompletions(owner)


class _FakeAsyncOpenAI:
    instances: list["_FakeAsyncOpenAI"] = []
    parts: list[bytes] = []
    stream_error = None
    create_error = None

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.requests = []
        self.response = None
        self.chat = _FakeChat(self)
        _FakeAsyncOpenAI.instances.append(self)

    async def close(self):
        pass


@pytest.fixture
def fake_openai(monkeypatch):
    _FakeAsyncOpenAI.instances = []
    _FakeAsyncOpenAI.parts = []
    _FakeAsyncOpenAI.stream_error = None
    _FakeAsyncOpenAI.create_error = None
    monkeypatch.setattr(client_module, "AsyncOpenAI", _FakeAsyncOpenAI)
    return _FakeAsyncOpenAI


def _client(**kwargs) -> LLMClient:
    return LLMClient("https://llm.example.com/v1", "test-key", "gpt-4", logger, **kwargs)


def _status_error(status: int) -> openai.APIStatusError:
    request = httpx.Request("POST", "https://llm.example.com/v1/chat/completions")
    return openai.APIStatusError(
        "upstream failure", response=httpx.Response(status, request=request), body=None
    )


def test_client_disables_sdk_retries(fake_openai):
    _client(timeout=30)
    kwargs = fake_openai.instances[0].kwargs
    assert kwargs["max_retries"] == 0
    assert kwargs["base_url"] == "https://llm.example.com/v1"
    assert kwargs["timeout"] == 30


def test_from_settings_requires_llm_configuration():
    settings = Settings(llm_base_url=None, llm_api_key=None, llm_model="gpt-4")
    with pytest.raises(LLMConfigError) as exc:
        LLMClient.from_settings(settings, logger)
    assert exc.value.missing == ["LLM_BASE_URL", "LLM_API_KEY"]


def test_from_settings_builds_independent_clients(fake_openai):
    settings = Settings(llm_base_url="https://a.example/v1", llm_api_key="k", llm_model="m")
    first = LLMClient.from_settings(settings, logger)
    second = LLMClient.from_settings(settings, logger)
    assert first is not second
    assert first.model == "m"
    assert len(fake_openai.instances) == 2


@pytest.mark.asyncio
async def test_stream_events_delivers_chunks_then_result(fake_openai):
    fake_openai.parts = [_frame("```json\n{\"total_budget\": "), _frame("900}\n```"), b"data: [DONE]\n\n"]
    client = _client()
    chunks = []

    events = [e async for e in client.stream_events("plan", on_chunk=chunks.append)]

    assert events == [
        ChunkEvent("```json\n{\"total_budget\": "),
        ChunkEvent("900}\n```"),
        CompletedEvent({"total_budget": 900}),
    ]
    assert chunks == ["```json\n{\"total_budget\": ", "900}\n```"]
    request = fake_openai.instances[0].requests[0]
    assert request["stream"] is True
    assert request["model"] == "gpt-4"
    assert request["messages"][-1] == {"role": "user", "content": "plan"}
    assert fake_openai.instances[0].response.closed


@pytest.mark.asyncio
async def test_http_error_status_fails_session(fake_openai):
    fake_openai.create_error = _status_error(401)
    client = _client()
    errors = []

    events = [e async for e in client.stream_events("plan", on_error=errors.append)]

    assert events == [FailedEvent("The language model returned HTTP 401")]
    assert errors == ["The language model returned HTTP 401"]


@pytest.mark.asyncio
async def test_connection_drop_mid_stream_fails_once(fake_openai):
    fake_openai.parts = [_frame('{"a": ')]
    fake_openai.stream_error = httpx.ReadError("connection reset")
    client = _client()
    calls = []

    await client.stream(
        "plan",
        on_chunk=lambda t: calls.append(("chunk", t)),
        on_complete=lambda v: calls.append(("complete", v)),
        on_error=lambda m: calls.append(("error", m)),
    )

    assert calls[0] == ("chunk", '{"a": ')
    assert calls[1][0] == "error"
    assert "connection reset" in calls[1][1]
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_closing_event_iterator_stops_delivery(fake_openai):
    fake_openai.parts = [_frame("{"), _frame("}"), b"data: [DONE]\n\n"]
    client = _client()
    calls = []

    events = client.stream_events("plan", on_chunk=calls.append, on_complete=calls.append, on_error=calls.append)
    assert await events.__anext__() == ChunkEvent("{")
    await events.aclose()

    assert calls == ["{"]
    assert fake_openai.instances[0].response.closed


@pytest.mark.asyncio
async def test_complete_json_recovers_from_prose():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["response_format"] == {"type": "json_object"}
        assert "stream" not in body or body["stream"] is False
        return httpx.Response(200, json=_completion('Here is your plan: {"days": []} Enjoy!'))

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = _client(http_client=http_client)

    outcome = await client.complete_json("plan")

    assert outcome == Parsed({"days": []}, "brace")
    await client.aclose()


@pytest.mark.asyncio
async def test_complete_json_without_json_returns_failed():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_completion("No JSON here at all."))

    client = _client(
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        json_response_format=False,
    )

    assert await client.complete_json("plan") == Failed("No JSON here at all.")


@pytest.mark.asyncio
async def test_complete_json_raises_transport_error_without_retry():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        return httpx.Response(500, json={"error": {"message": "boom"}})

    client = _client(http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    with pytest.raises(TransportError) as exc:
        await client.complete_json("plan")
    assert str(exc.value) == "The language model returned HTTP 500"
    assert len(attempts) == 1


def test_outcome_from_body_matches_streamed_text():
    text = '```json\n{"a": 1}\n```'
    assert outcome_from_body(json.dumps(_completion(text))) == Parsed({"a": 1}, "fenced")
    assert outcome_from_body("<html>Bad gateway</html>") == Failed("<html>Bad gateway</html>")
