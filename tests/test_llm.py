"""Tests for LLM clients and structured output."""

import io
import json
import urllib.error
from unittest.mock import MagicMock, patch

import pytest
from pydantic import BaseModel

from lorekeeper.llm import (
    LLMResponse,
    Message,
    MockLLMClient,
    OpenRouterClient,
    StructuredOutputError,
    create_llm_client,
    create_openrouter_client,
    extract_json_object,
)


class Answer(BaseModel):
    value: int


def http_response(payload: dict) -> MagicMock:
    """Context-manager mock standing in for urlopen's response."""
    resp = MagicMock()
    resp.read.return_value = json.dumps(payload).encode("utf-8")
    resp.__enter__.return_value = resp
    return resp


class TestExtractJsonObject:
    """Test extract_json_object."""

    def test_bare_object(self):
        assert extract_json_object('{"a": 1}') == '{"a": 1}'

    def test_object_in_prose(self):
        assert extract_json_object('Here you go: {"a": {"b": 2}} hope that helps') == '{"a": {"b": 2}}'

    def test_fenced_block_preferred(self):
        text = 'Ignore {this}\n```json\n{"a": 1}\n```'
        assert extract_json_object(text) == '{"a": 1}'

    def test_no_object(self):
        assert extract_json_object("no json here") is None
        assert extract_json_object("} backwards {") is None


class TestCompleteStructured:
    """Test LLMClient.complete_structured through the mock client."""

    def test_valid_reply(self):
        client = MockLLMClient(['{"value": 4}'])
        assert client.complete_structured("sys", "prompt", Answer).value == 4

    def test_prompt_includes_schema(self):
        client = MockLLMClient(['{"value": 4}'])
        client.complete_structured("sys", "What is 2+2?", Answer, temperature=0.0, max_tokens=10)

        call = client.calls[0]
        assert call["system"] == "sys"
        assert call["messages"][0].role == "user"
        assert call["messages"][0].content.startswith("What is 2+2?")
        assert '"value"' in call["messages"][0].content
        assert (call["temperature"], call["max_tokens"]) == (0.0, 10)

    def test_no_json(self):
        client = MockLLMClient(["four"])
        with pytest.raises(StructuredOutputError) as exc:
            client.complete_structured("sys", "prompt", Answer)
        assert exc.value.raw == "four"

    def test_schema_mismatch(self):
        client = MockLLMClient(['{"value": "many"}'])
        with pytest.raises(StructuredOutputError, match="schema validation"):
            client.complete_structured("sys", "prompt", Answer)


class TestMockLLMClient:
    """Test MockLLMClient scripting."""

    def test_cycles_responses(self):
        client = MockLLMClient(["a", "b"])
        replies = [client.chat([Message(role="user", content="x")]).content for _ in range(3)]
        assert replies == ["a", "b", "a"]

    def test_raises_scripted_exception(self):
        client = MockLLMClient([ConnectionError("down")])
        with pytest.raises(ConnectionError):
            client.chat([])

    def test_set_responses_and_reset(self):
        client = MockLLMClient(["a"])
        client.chat([])
        client.set_responses(["z"])
        assert client.chat([]).content == "z"
        client.reset()
        assert client.calls == []

    def test_default_selects_nothing(self):
        assert json.loads(MockLLMClient().chat([]).content) == {"selectedIds": []}


class TestOpenRouterClient:
    """Test OpenRouterClient with the HTTP layer mocked."""

    def test_model_aliases(self):
        client = OpenRouterClient(api_key="k", model="gpt-4o-mini")
        assert client.model_name == "openai/gpt-4o-mini"
        client.set_model("vendor/custom")
        assert client.model_name == "vendor/custom"

    @patch("urllib.request.urlopen")
    def test_chat(self, mock_urlopen):
        mock_urlopen.return_value = http_response({
            "choices": [{"message": {"content": '{"selectedIds": ["1"]}'}, "finish_reason": "stop"}],
        })
        client = OpenRouterClient(api_key="k")

        response = client.chat([Message(role="user", content="hi")], system="sys", temperature=0.2, max_tokens=50)

        assert isinstance(response, LLMResponse)
        assert response.content == '{"selectedIds": ["1"]}'
        request = mock_urlopen.call_args[0][0]
        body = json.loads(request.data.decode("utf-8"))
        assert body["model"] == "x-ai/grok-4.1-fast"
        assert body["messages"][0] == {"role": "system", "content": "sys"}
        assert body["max_tokens"] == 50
        assert request.get_header("Authorization") == "Bearer k"

    @patch("urllib.request.urlopen")
    def test_http_error_is_connection_error(self, mock_urlopen):
        mock_urlopen.side_effect = urllib.error.HTTPError(
            "url", 429, "Too Many Requests", {}, io.BytesIO(b"rate limited"),
        )
        with pytest.raises(ConnectionError, match="429"):
            OpenRouterClient(api_key="k").chat([Message(role="user", content="hi")])

    @patch("urllib.request.urlopen")
    def test_unexpected_payload(self, mock_urlopen):
        mock_urlopen.return_value = http_response({"error": "nope"})
        with pytest.raises(ConnectionError, match="Unexpected"):
            OpenRouterClient(api_key="k").chat([Message(role="user", content="hi")])

    def test_no_key(self, monkeypatch):
        monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
        assert not OpenRouterClient().is_available()
        with pytest.raises(ValueError):
            create_openrouter_client()

    @patch("urllib.request.urlopen")
    def test_is_available(self, mock_urlopen):
        mock_urlopen.return_value = http_response({"data": []})
        assert OpenRouterClient(api_key="k").is_available()

    @patch("urllib.request.urlopen")
    def test_unreachable_is_unavailable(self, mock_urlopen):
        mock_urlopen.side_effect = urllib.error.URLError("no route")
        assert not OpenRouterClient(api_key="k").is_available()
        assert mock_urlopen.call_args[0][0].get_method() == "GET"


class TestCreateLLMClient:
    """Test create_llm_client factory."""

    def test_mock(self):
        name, client = create_llm_client("mock", model="m1")
        assert name == "mock"
        assert client.model_name == "m1"

    def test_openrouter_without_key(self, monkeypatch):
        monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
        assert create_llm_client("openrouter") == ("openrouter", None)

    def test_openrouter_with_key(self, monkeypatch):
        monkeypatch.setenv("OPENROUTER_API_KEY", "k")
        name, client = create_llm_client("openrouter", model="claude-3.5-haiku")
        assert name == "openrouter"
        assert client.model_name == "anthropic/claude-3.5-haiku"

    def test_unknown_backend(self):
        assert create_llm_client("carrier-pigeon") == ("carrier-pigeon", None)
