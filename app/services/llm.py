# =============================================================================
# LLM Providers — Narrative Section Generation
# =============================================================================
#
# The LLM report writer (agents/writers.py) needs one operation: "complete
# this prompt under this system prompt, within N tokens". Two vendors can
# answer it:
#
#   LLMProvider (Protocol)
#   ├── AnthropicProvider        — native SDK, system prompt as a kwarg
#   └── OpenAICompatibleProvider — OpenAI / DeepSeek / Qwen via base_url,
#                                  system prompt as the first message
#   get_llm_provider()           — process-wide instance, built on first use
#
# Credentials are checked when a provider is built: a missing key raises
# LLMConfigurationError (reports API → 503). Errors from the vendor call
# itself propagate unchanged (reports API → 502).
#
# Each report section is a single completion; LangGraph orchestrates the
# report, so no chat-model wrapper library is involved.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from app.config import settings

logger = logging.getLogger(__name__)


class LLMConfigurationError(RuntimeError):
    """No usable credentials for the configured LLM provider."""


@dataclass
class LLMResponse:
    """Provider-neutral completion result."""

    content: str
    model: str
    input_tokens: int
    output_tokens: int


class LLMProvider(Protocol):
    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """
        Generate a completion.

        Args:
            messages: {"role", "content"} dicts; roles "user"/"assistant".
            system: System prompt, placed the way each provider expects.
            temperature: Sampling temperature; config default when None.
            max_tokens: Output token cap; config default when None.
        """
        ...


def _require_key(explicit: str | None, fallback: str | None, setting_names: str) -> str:
    key = explicit or settings.llm_api_key or fallback
    if not key:
        raise LLMConfigurationError(f"No LLM API key configured. Set {setting_names}.")
    return key


def _sampling(temperature: float | None, max_tokens: int | None) -> dict:
    return {
        "temperature": settings.llm_temperature if temperature is None else temperature,
        "max_tokens": max_tokens or settings.llm_max_tokens,
    }


class AnthropicProvider:
    """Claude through AsyncAnthropic."""

    def __init__(self, api_key: str | None = None, model: str | None = None) -> None:
        from anthropic import AsyncAnthropic

        self._client = AsyncAnthropic(api_key=_require_key(
            api_key, settings.anthropic_api_key, "LLM_API_KEY or ANTHROPIC_API_KEY",
        ))
        self._model = model or settings.llm_model
        logger.info("LLM provider: anthropic (model=%s)", self._model)

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        extra = {"system": system} if system else {}
        response = await self._client.messages.create(
            model=self._model,
            messages=messages,
            **_sampling(temperature, max_tokens),
            **extra,
        )
        text_blocks = [b.text for b in response.content if b.type == "text"]
        return LLMResponse(
            content=text_blocks[0] if text_blocks else "",
            model=response.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )


class OpenAICompatibleProvider:
    """
    Any endpoint following the OpenAI chat-completions contract:

        LLM_PROVIDER=openai_compatible
        LLM_BASE_URL=https://api.deepseek.com/v1
        LLM_API_KEY=your-key
        LLM_MODEL=deepseek-chat
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
    ) -> None:
        from openai import AsyncOpenAI

        resolved_base_url = base_url or settings.llm_base_url
        self._client = AsyncOpenAI(
            api_key=_require_key(api_key, settings.openai_api_key, "LLM_API_KEY"),
            base_url=resolved_base_url or None,
        )
        self._model = model or settings.llm_model
        logger.info(
            "LLM provider: openai_compatible (model=%s, base_url=%s)",
            self._model, resolved_base_url or "default",
        )

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        prefix = [{"role": "system", "content": system}] if system else []
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=prefix + messages,
            **_sampling(temperature, max_tokens),
        )
        usage = response.usage
        return LLMResponse(
            content=response.choices[0].message.content or "",
            model=response.model or self._model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )


_provider: AnthropicProvider | OpenAICompatibleProvider | None = None


def get_llm_provider() -> AnthropicProvider | OpenAICompatibleProvider:
    """Configured provider ("anthropic" or "openai_compatible"), built once."""
    global _provider
    if _provider is None:
        if settings.llm_provider == "openai_compatible":
            _provider = OpenAICompatibleProvider()
        else:
            _provider = AnthropicProvider()
    return _provider
