"""Tests for the provider-switching completion client."""

from unittest.mock import MagicMock, patch

import pytest

from agentic_pipeline.capabilities.exceptions import CompletionError
from agentic_pipeline.capabilities.llm_client import OPENAI_FALLBACK_MODEL, LLMClient


def anthropic_returning(text):
    client = MagicMock()
    block = MagicMock(type="text", text=text)
    client.messages.create.return_value = MagicMock(content=[block])
    return client


def openai_returning(text):
    client = MagicMock()
    choice = MagicMock()
    choice.message.content = text
    client.chat.completions.create.return_value = MagicMock(choices=[choice])
    return client


@pytest.fixture(autouse=True)
def no_env_keys(monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)


class TestConstruction:
    def test_no_keys(self):
        with pytest.raises(CompletionError, match="No Anthropic or OpenAI API key found"):
            LLMClient()

    def test_clients_built_from_environment(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "ant-key")
        monkeypatch.setenv("OPENAI_API_KEY", "oai-key")
        with patch("agentic_pipeline.capabilities.llm_client.Anthropic") as anthropic_cls, \
                patch("openai.OpenAI") as openai_cls:
            LLMClient()
        anthropic_cls.assert_called_once_with(api_key="ant-key")
        openai_cls.assert_called_once_with(api_key="oai-key")

    def test_unsupported_provider(self):
        with pytest.raises(CompletionError, match="Unsupported provider: gemini"):
            LLMClient(anthropic_client=MagicMock(), llm_provider="gemini")

    def test_requested_provider_must_be_configured(self):
        with pytest.raises(CompletionError, match="OPENAI_API_KEY is not set"):
            LLMClient(anthropic_client=MagicMock(), llm_provider="openai")

    def test_fallback_provider_must_be_configured(self):
        with pytest.raises(CompletionError, match="ANTHROPIC_API_KEY is not set"):
            LLMClient(
                openai_client=MagicMock(),
                llm_provider="openai",
                llm_fallback_provider="anthropic",
                allow_fallback=True,
            )


class TestComplete:
    def test_anthropic_text_blocks_joined(self):
        client = MagicMock()
        client.messages.create.return_value = MagicMock(content=[
            MagicMock(type="text", text="Hello "),
            MagicMock(type="tool_use", text="ignored"),
            MagicMock(type="text", text="world"),
        ])
        llm = LLMClient(anthropic_client=client, max_tokens=256)

        assert llm.complete("Say hi") == "Hello world"
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["max_tokens"] == 256
        assert kwargs["messages"] == [{"role": "user", "content": "Say hi"}]

    def test_auto_prefers_anthropic(self):
        anthropic = anthropic_returning("from claude")
        openai_client = openai_returning("from gpt")
        llm = LLMClient(anthropic_client=anthropic, openai_client=openai_client)
        assert llm.complete("x") == "from claude"
        openai_client.chat.completions.create.assert_not_called()

    def test_openai_maps_claude_model(self):
        openai_client = openai_returning("ok")
        llm = LLMClient(openai_client=openai_client, llm_provider="openai")
        assert llm.complete("x") == "ok"
        assert openai_client.chat.completions.create.call_args.kwargs["model"] == OPENAI_FALLBACK_MODEL

    def test_openai_keeps_its_own_model(self):
        openai_client = openai_returning("ok")
        llm = LLMClient(openai_client=openai_client, llm_provider="openai", model="gpt-4o")
        llm.complete("x")
        assert openai_client.chat.completions.create.call_args.kwargs["model"] == "gpt-4o"

    def test_fallback_after_failure(self, caplog):
        anthropic = MagicMock()
        anthropic.messages.create.side_effect = RuntimeError("overloaded")
        llm = LLMClient(
            anthropic_client=anthropic,
            openai_client=openai_returning("fallback answer"),
            llm_provider="anthropic",
            llm_fallback_provider="auto",
            allow_fallback=True,
        )
        assert llm.complete("x") == "fallback answer"
        assert "Completion via anthropic failed: overloaded" in caplog.text

    def test_no_fallback_without_permission(self):
        anthropic = MagicMock()
        anthropic.messages.create.side_effect = RuntimeError("overloaded")
        openai_client = openai_returning("unused")
        llm = LLMClient(
            anthropic_client=anthropic,
            openai_client=openai_client,
            llm_provider="anthropic",
            llm_fallback_provider="openai",
        )
        with pytest.raises(CompletionError, match="overloaded"):
            llm.complete("x")
        openai_client.chat.completions.create.assert_not_called()

    def test_empty_completion_is_error(self):
        llm = LLMClient(anthropic_client=anthropic_returning("   "))
        with pytest.raises(CompletionError, match="anthropic returned an empty completion"):
            llm.complete("x")

    def test_openai_without_choices(self):
        client = MagicMock()
        client.chat.completions.create.return_value = MagicMock(choices=[])
        llm = LLMClient(openai_client=client)
        with pytest.raises(CompletionError, match="empty completion"):
            llm.complete("x")
