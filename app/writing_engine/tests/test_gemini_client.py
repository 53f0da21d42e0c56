from unittest import mock

import pytest
import requests
from flask import Flask

from app.writing_engine.services.errors import ProviderUnavailable
from app.writing_engine.services.gemini_client import GeminiClient
from app.writing_engine.services.prompt_builder import build_analysis_prompt


class _Resp:
    def __init__(self, status_code: int, payload):
        self.status_code = status_code
        self._payload = payload

    def raise_for_status(self):
        if 400 <= self.status_code:
            raise requests.exceptions.HTTPError(response=self)

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


@pytest.fixture(autouse=True)
def app_context():
    app = Flask(__name__)
    with app.app_context():
        yield


@pytest.fixture
def prompt():
    return build_analysis_prompt("Public transport reduces traffic.", "Should cities ban cars?", "Intermediate (B1)", 120)


def _ok(text, finish="STOP"):
    return _Resp(200, {"candidates": [{"finishReason": finish, "content": {"parts": [{"text": text}]}}]})


def test_generate_posts_once_and_returns_text(monkeypatch, prompt):
    monkeypatch.setenv("GEMINI_MODEL", "gemini-2.5-flash")
    monkeypatch.delenv("GEMINI_API_URL", raising=False)
    monkeypatch.delenv("GEMINI_TIMEOUT_SECONDS", raising=False)
    client = GeminiClient(api_key="test-key")
    calls = []

    def fake_post(url, json=None, timeout=None):  # noqa: A002 - shadowing builtin allowed in tests
        calls.append((url, json, timeout))
        return _ok('{"overallScore": 70}')

    with mock.patch("app.writing_engine.services.gemini_client.requests.post", side_effect=fake_post):
        text = client.generate(prompt)

    assert text == '{"overallScore": 70}'
    assert len(calls) == 1
    url, payload, timeout = calls[0]
    assert "gemini-2.5-flash:generateContent" in url
    assert url.endswith("?key=test-key")
    assert payload["contents"][0]["parts"][0]["text"] == prompt.prompt
    assert payload["systemInstruction"]["parts"][0]["text"] == prompt.system_instruction
    assert payload["generationConfig"] == {"temperature": 0.3, "responseMimeType": "application/json"}
    assert timeout == GeminiClient.DEFAULT_TIMEOUT


def test_timeout_is_configurable(monkeypatch):
    monkeypatch.setenv("GEMINI_TIMEOUT_SECONDS", "7")
    assert GeminiClient(api_key="k").timeout == 7
    monkeypatch.setenv("GEMINI_TIMEOUT_SECONDS", "soon")
    assert GeminiClient(api_key="k").timeout == GeminiClient.DEFAULT_TIMEOUT


@pytest.mark.parametrize("key", ["", "   ", "your_gemini_api_key_here"])
def test_missing_or_placeholder_key_never_calls_network(prompt, key):
    client = GeminiClient(api_key=key)
    assert client.is_configured is False

    with mock.patch("app.writing_engine.services.gemini_client.requests.post") as post:
        with pytest.raises(ProviderUnavailable):
            client.generate(prompt)
    post.assert_not_called()


@pytest.mark.parametrize("outcome", [
    requests.exceptions.Timeout("slow"),
    requests.exceptions.ConnectionError("down"),
    _Resp(429, {"error": "quota"}),
    _Resp(500, {}),
    _Resp(200, ValueError("not json")),
    _Resp(200, {"candidates": []}),
    _Resp(200, {"promptFeedback": {"blockReason": "SAFETY"}}),
    _ok("", finish="MAX_TOKENS"),
])
def test_transport_and_empty_responses_raise_unavailable(prompt, outcome):
    client = GeminiClient(api_key="test-key")
    kwargs = {"side_effect": outcome} if isinstance(outcome, Exception) else {"return_value": outcome}

    with mock.patch("app.writing_engine.services.gemini_client.requests.post", **kwargs) as post:
        with pytest.raises(ProviderUnavailable):
            client.generate(prompt)
    assert post.call_count == 1


def test_function_call_arguments_are_accepted_as_text(prompt):
    client = GeminiClient(api_key="test-key")
    response = _Resp(200, {
        "candidates": [
            {"finishReason": "STOP", "content": {"parts": [{"functionCall": {"argsJson": '{"a": 1}'}}]}}
        ]
    })
    with mock.patch("app.writing_engine.services.gemini_client.requests.post", return_value=response):
        assert client.generate(prompt) == '{"a": 1}'


def test_text_parts_are_joined_from_first_candidate_with_text(prompt):
    client = GeminiClient(api_key="test-key")
    response = _Resp(200, {
        "candidates": [
            {"finishReason": "SAFETY", "content": {"parts": [{"text": "  "}, {"functionCall": "bad"}]}},
            {"finishReason": "STOP", "content": {"parts": ["junk", {"text": '{"overallScore": '}, {"text": "70}"}]}},
        ]
    })
    with mock.patch("app.writing_engine.services.gemini_client.requests.post", return_value=response):
        assert client.generate(prompt) == '{"overallScore": 70}'
