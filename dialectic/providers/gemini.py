"""Gemini adapter using google-genai SDK with native async."""

import logging
from collections.abc import Sequence
from typing import Any

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from config.config_loader import ModelConfig
from dialectic.errors import ProviderCallError, ProviderError, ProviderTimeoutError, TransportError
from dialectic.models import ChatMessage, Reply
from dialectic.providers.base import WireAdapter
from dialectic.usage import build_usage

logger = logging.getLogger(__name__)

_LENGTH_FINISH = "MAX_TOKENS"


def flatten_messages(messages: Sequence[ChatMessage]) -> str:
    """Render the whole conversation as one "role: content" text block."""
    return "\n\n".join(f"{m.role}: {m.content}" for m in messages)


def _finish_name(reason: Any) -> str | None:
    if reason is None:
        return None
    return str(getattr(reason, "name", reason))


class GeminiAdapter(WireAdapter):
    """generateContent: every turn is flattened into a single user part."""

    family = "google"

    def create_client(self, config: ModelConfig) -> genai.Client:
        if config.base_url:
            return genai.Client(
                api_key=config.api_key,
                http_options=genai_types.HttpOptions(base_url=config.base_url),
            )
        return genai.Client(api_key=config.api_key)

    def serialize(
        self,
        config: ModelConfig,
        messages: Sequence[ChatMessage],
        max_tokens: int,
        temperature: float,
    ) -> dict[str, Any]:
        options: dict[str, Any] = {"max_output_tokens": max_tokens, "temperature": temperature}
        # thinking tokens are billed against max_output_tokens
        if config.thinking_budget is not None:
            options["max_output_tokens"] = max_tokens + config.thinking_budget
            options["thinking_config"] = genai_types.ThinkingConfig(thinking_budget=config.thinking_budget)
        generation = genai_types.GenerateContentConfig(**options)
        return {
            "model": config.model,
            "contents": [{"role": "user", "parts": [{"text": flatten_messages(messages)}]}],
            "config": generation,
        }

    async def send(self, client: genai.Client, payload: dict[str, Any]) -> Any:
        return await client.aio.models.generate_content(**payload)

    def parse(self, config: ModelConfig, response: Any, messages: Sequence[ChatMessage]) -> Reply:
        candidate = response.candidates[0] if response.candidates else None
        parts = candidate.content.parts if candidate and candidate.content else None
        text = "".join(p.text for p in parts or [] if p.text)
        finish = _finish_name(candidate.finish_reason) if candidate else None
        truncated = finish == _LENGTH_FINISH
        if not text and not truncated:
            raise ProviderError(config.name, f"Empty response text (finish reason {finish})")

        meta = response.usage_metadata
        return Reply(
            model_id=config.name,
            text=text,
            usage=build_usage(
                meta.prompt_token_count if meta else None,
                meta.candidates_token_count if meta else None,
                cost_input_per_1k=config.cost_input_per_1k,
                cost_output_per_1k=config.cost_output_per_1k,
                messages=messages,
                reply_text=text,
            ),
            truncated=truncated,
            finish_reason=finish,
        )

    def classify_error(self, provider_name: str, exc: Exception) -> ProviderCallError:
        if isinstance(exc, httpx.TimeoutException):
            return ProviderTimeoutError(provider_name, "Request timed out")
        if isinstance(exc, genai_errors.APIError):
            return ProviderError(
                provider_name,
                f"API error {exc.code}: {exc.message or exc}",
                status_code=exc.code,
            )
        return TransportError(provider_name, f"API call failed: {exc}")
