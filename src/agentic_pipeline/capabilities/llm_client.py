"""Text-completion client over the Anthropic and OpenAI SDKs."""

import logging
import os
from typing import Any, Literal

import openai
from anthropic import Anthropic

from agentic_pipeline.capabilities.exceptions import CompletionError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
OPENAI_FALLBACK_MODEL = "gpt-4o-mini"
DEFAULT_MAX_TOKENS = 4096


class LLMClient:
    """Answers prompts with the configured provider, optionally falling back to the other."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        llm_provider: str = "auto",
        llm_fallback_provider: str | None = None,
        allow_fallback: bool = False,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        anthropic_client: Any = None,
        openai_client: Any = None,
    ):
        """Initialize the client.

        Args:
            api_key: Anthropic API key (falls back to ANTHROPIC_API_KEY env var)
            model: Model ID; claude-* models map to gpt-4o-mini on OpenAI
            llm_provider: "auto", "anthropic" or "openai"
            llm_fallback_provider: Provider tried when the primary one fails
            allow_fallback: Whether the fallback provider may be used at all
            max_tokens: Completion token limit per request
            anthropic_client: Pre-built Anthropic client (tests)
            openai_client: Pre-built OpenAI client (tests)

        Raises:
            CompletionError: If no provider is configured or the selection is invalid
        """
        self.model = model
        self.max_tokens = max_tokens
        self._anthropic_client = anthropic_client
        self._openai_client = openai_client

        anthropic_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        openai_key = os.getenv("OPENAI_API_KEY")
        if self._anthropic_client is None and anthropic_key:
            self._anthropic_client = Anthropic(api_key=anthropic_key)
        if self._openai_client is None and openai_key:
            self._openai_client = openai.OpenAI(api_key=openai_key)
        if not (self._anthropic_client or self._openai_client):
            raise CompletionError(
                "No Anthropic or OpenAI API key found. "
                "Provide via parameters, ANTHROPIC_API_KEY or OPENAI_API_KEY env vars."
            )

        self.llm_provider = self._normalize_provider(llm_provider)
        self.llm_fallback_provider = (
            self._normalize_provider(llm_fallback_provider)
            if llm_fallback_provider
            else None
        )
        self.allow_fallback = bool(allow_fallback)
        self._check_providers()

    def _normalize_provider(self, value: str) -> Literal["anthropic", "openai", "auto"]:
        if value not in {"auto", "anthropic", "openai"}:
            raise CompletionError(f"Unsupported provider: {value}")
        return value  # type: ignore[return-value]

    def _check_providers(self) -> None:
        required = {self.llm_provider}
        if self.allow_fallback and self.llm_fallback_provider:
            required.add(self.llm_fallback_provider)
        if "anthropic" in required and self._anthropic_client is None:
            raise CompletionError("Anthropic provider requested but ANTHROPIC_API_KEY is not set.")
        if "openai" in required and self._openai_client is None:
            raise CompletionError("OpenAI provider requested but OPENAI_API_KEY is not set.")

    def _primary_provider(self) -> Literal["anthropic", "openai"]:
        if self.llm_provider == "auto":
            return "anthropic" if self._anthropic_client is not None else "openai"
        return self.llm_provider  # type: ignore[return-value]

    def _resolve_model(self, provider: str) -> str:
        if provider == "openai" and self.model.startswith("claude-"):
            return OPENAI_FALLBACK_MODEL
        return self.model

    def _provider_chain(self) -> list[str]:
        chain: list[str] = [self._primary_provider()]
        if self.allow_fallback and self.llm_fallback_provider:
            fallback = self.llm_fallback_provider
            if fallback == "auto":
                fallback = "openai" if chain[0] == "anthropic" else "anthropic"
            if fallback != chain[0]:
                chain.append(fallback)
        return chain

    def complete(self, prompt: str) -> str:
        """Return the model's text answer to ``prompt``.

        Raises:
            CompletionError: If every provider in the chain fails or returns no text
        """
        last_error: Exception | None = None
        for provider in self._provider_chain():
            try:
                if provider == "anthropic":
                    text = self._complete_anthropic(prompt)
                else:
                    text = self._complete_openai(prompt)
            except Exception as error:
                logger.warning("Completion via %s failed: %s", provider, error)
                last_error = error
                continue
            if text.strip():
                return text
            last_error = CompletionError(f"{provider} returned an empty completion")

        raise CompletionError(f"Failed to get completion: {last_error}") from last_error

    def _complete_anthropic(self, prompt: str) -> str:
        if self._anthropic_client is None:
            raise CompletionError("Anthropic client unavailable")
        response = self._anthropic_client.messages.create(
            model=self._resolve_model("anthropic"),
            max_tokens=self.max_tokens,
            messages=[{"role": "user", "content": prompt}],
        )
        parts = [
            block.text
            for block in response.content
            if getattr(block, "type", None) == "text"
        ]
        return "".join(parts)

    def _complete_openai(self, prompt: str) -> str:
        if self._openai_client is None:
            raise CompletionError("OpenAI client unavailable")
        response = self._openai_client.chat.completions.create(
            model=self._resolve_model("openai"),
            max_tokens=self.max_tokens,
            messages=[{"role": "user", "content": prompt}],
        )
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""
