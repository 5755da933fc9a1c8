# /tests/test_llm_client.py
import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from stepengine.llm import llm_client as llm_client_module
from stepengine.llm.clients import openai_client as openai_client_module
from stepengine.llm.clients.openai_client import OpenAIClient
from stepengine.llm.llm_client import LLMClient
from stepengine.llm.suggestion_client import LLMSelectorSuggestion


@pytest.fixture
def llm_env(monkeypatch):
    monkeypatch.setenv("LLM_API_KEY", "sk-test")
    monkeypatch.setenv("LLM_MODEL", "test-model")
    monkeypatch.setenv("LLM_BASE_URL", "")


def tool_response(name, arguments, finish_reason="tool_calls"):
    call = SimpleNamespace(function=SimpleNamespace(name=name, arguments=arguments))
    message = SimpleNamespace(tool_calls=[call] if name else None, content=None)
    return SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason=finish_reason)])


@pytest.fixture
def openai_client(llm_env, monkeypatch):
    sdk = MagicMock()
    monkeypatch.setattr(openai_client_module, "OpenAI", MagicMock(return_value=sdk))
    return OpenAIClient(), sdk


class TestLLMClient:
    def test_unsupported_provider(self):
        with pytest.raises(ValueError, match="Unsupported provider"):
            LLMClient(provider="mystery")

    def test_delegates_json_generation(self, monkeypatch):
        backend = MagicMock()
        backend.generate_json.return_value = {"suggested_selector": "#a"}
        monkeypatch.setattr(llm_client_module, "OpenAIClient", MagicMock(return_value=backend))
        monkeypatch.setattr(LLMClient, "MIN_REQUEST_INTERVAL_SECONDS", 0.0)

        client = LLMClient(provider="OpenAI")

        assert client.provider == "openai"
        assert client.generate_json(LLMSelectorSuggestion, "find it") == {"suggested_selector": "#a"}
        backend.generate_json.assert_called_once_with(LLMSelectorSuggestion, "find it", timeout_s=None)

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.setenv("LLM_API_KEY", "")
        with pytest.raises(ValueError, match="LLM_API_KEY"):
            LLMClient(provider="openai")


class TestOpenAIClient:
    def test_tool_arguments_are_validated_into_the_schema(self, openai_client):
        client, sdk = openai_client
        sdk.chat.completions.create.return_value = tool_response(
            "LLMSelectorSuggestion",
            json.dumps({"suggested_selector": "#login", "suggested_strategy": "css", "reasoning": "id"}),
        )

        result = client.generate_json(LLMSelectorSuggestion, "Find the login button")

        assert isinstance(result, LLMSelectorSuggestion)
        assert result.suggested_selector == "#login"
        kwargs = sdk.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["tool_choice"]["function"]["name"] == "LLMSelectorSuggestion"

    def test_per_call_timeout_is_forwarded(self, openai_client):
        client, sdk = openai_client
        sdk.chat.completions.create.return_value = tool_response(
            "LLMSelectorSuggestion", json.dumps({"suggested_selector": "#a", "reasoning": "id"}))

        client.generate_json(LLMSelectorSuggestion, "Find it", timeout_s=7.5)

        assert sdk.chat.completions.create.call_args.kwargs["timeout"] == 7.5

    def test_model_skipping_the_tool(self, openai_client):
        client, sdk = openai_client
        sdk.chat.completions.create.return_value = tool_response(None, None, finish_reason="stop")
        result = client.generate_json(LLMSelectorSuggestion, "Find it")
        assert result.startswith("Error:")

    def test_malformed_arguments(self, openai_client):
        client, sdk = openai_client
        sdk.chat.completions.create.return_value = tool_response("LLMSelectorSuggestion", "{not json")
        result = client.generate_json(LLMSelectorSuggestion, "Find it")
        assert "Failed to parse JSON arguments" in result

    def test_non_pydantic_schema(self, openai_client):
        client, _ = openai_client
        assert client.generate_json(dict, "Find it").startswith("Error:")
