"""OpenAI-style chat completions adapter (OpenAI, DeepSeek, xAI) using the openai SDK."""

import logging
from collections.abc import Sequence
from typing import Any

import openai
from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from dialectic.errors import ProviderCallError, ProviderError, ProviderTimeoutError, TransportError
from dialectic.models import ChatMessage, Reply
from dialectic.providers.base import WireAdapter, extract_error_message
from dialectic.usage import build_usage

logger = logging.getLogger(__name__)

_LENGTH_FINISH = "length"


class OpenAIAdapter(WireAdapter):
    """Chat completions: instructions travel as a leading "system" message."""

    family = "openai"

    def create_client(self, config: ModelConfig) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=config.api_key, base_url=config.base_url or None, max_retries=0)

    def serialize(
        self,
        config: ModelConfig,
        messages: Sequence[ChatMessage],
        max_tokens: int,
        temperature: float,
    ) -> dict[str, Any]:
        return {
            "model": config.model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            # reasoning models spend part of the ceiling on hidden chain of thought
            "max_tokens": max_tokens + (config.thinking_budget or 0),
            "temperature": temperature,
        }

    async def send(self, client: AsyncOpenAI, payload: dict[str, Any]) -> Any:
        return await client.chat.completions.create(**payload)

    def parse(self, config: ModelConfig, response: Any, messages: Sequence[ChatMessage]) -> Reply:
        choice = response.choices[0] if response.choices else None
        if not choice:
            raise ProviderError(config.name, "Empty response content")
        text = choice.message.content or ""
        truncated = choice.finish_reason == _LENGTH_FINISH
        if not text and not truncated:
            raise ProviderError(config.name, "Empty response content")

        usage = response.usage
        return Reply(
            model_id=config.name,
            text=text,
            usage=build_usage(
                usage.prompt_tokens if usage else None,
                usage.completion_tokens if usage else None,
                cost_input_per_1k=config.cost_input_per_1k,
                cost_output_per_1k=config.cost_output_per_1k,
                messages=messages,
                reply_text=text,
            ),
            truncated=truncated,
            finish_reason=choice.finish_reason,
        )

    def classify_error(self, provider_name: str, exc: Exception) -> ProviderCallError:
        if isinstance(exc, openai.APITimeoutError):
            return ProviderTimeoutError(provider_name, "Request timed out")
        if isinstance(exc, openai.APIConnectionError):
            return TransportError(provider_name, f"Connection failed: {exc}")
        if isinstance(exc, openai.APIStatusError):
            message = extract_error_message(exc.body) or exc.message
            return ProviderError(
                provider_name,
                f"API error {exc.status_code}: {message}",
                status_code=exc.status_code,
            )
        return super().classify_error(provider_name, exc)
