"""Anthropic Messages adapter using the anthropic SDK."""

import logging
from collections.abc import Sequence
from typing import Any

import anthropic as anthropic_sdk

from config.config_loader import ModelConfig
from dialectic.errors import ProviderCallError, ProviderError, ProviderTimeoutError, TransportError
from dialectic.models import ChatMessage, Reply
from dialectic.providers.base import WireAdapter, extract_error_message, split_system
from dialectic.usage import build_usage

logger = logging.getLogger(__name__)

_LENGTH_STOP = "max_tokens"


def _merge_consecutive(turns: Sequence[ChatMessage]) -> list[dict[str, str]]:
    """Collapse runs of same-role turns; the Messages API wants strict alternation."""
    merged: list[dict[str, str]] = []
    for turn in turns:
        if merged and merged[-1]["role"] == turn.role:
            merged[-1]["content"] += "\n\n" + turn.content
        else:
            merged.append({"role": turn.role, "content": turn.content})
    return merged


class AnthropicAdapter(WireAdapter):
    """Messages API: instructions travel in the separate top-level `system` field."""

    family = "anthropic"

    def create_client(self, config: ModelConfig) -> anthropic_sdk.AsyncAnthropic:
        return anthropic_sdk.AsyncAnthropic(
            api_key=config.api_key,
            base_url=config.base_url or None,
            max_retries=0,
        )

    def serialize(
        self,
        config: ModelConfig,
        messages: Sequence[ChatMessage],
        max_tokens: int,
        temperature: float,
    ) -> dict[str, Any]:
        system, turns = split_system(messages)
        payload: dict[str, Any] = {
            "model": config.model,
            "messages": _merge_consecutive(turns),
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if system:
            payload["system"] = system
        return payload

    async def send(self, client: anthropic_sdk.AsyncAnthropic, payload: dict[str, Any]) -> Any:
        return await client.messages.create(**payload)

    def parse(self, config: ModelConfig, response: Any, messages: Sequence[ChatMessage]) -> Reply:
        truncated = response.stop_reason == _LENGTH_STOP
        text_blocks = [b.text for b in response.content or [] if b.type == "text" and b.text]
        if not text_blocks and not truncated:
            raise ProviderError(config.name, "No text blocks in response")

        text = "\n".join(text_blocks)
        usage = response.usage
        return Reply(
            model_id=config.name,
            text=text,
            usage=build_usage(
                usage.input_tokens if usage else None,
                usage.output_tokens if usage else None,
                cost_input_per_1k=config.cost_input_per_1k,
                cost_output_per_1k=config.cost_output_per_1k,
                messages=messages,
                reply_text=text,
            ),
            truncated=truncated,
            finish_reason=response.stop_reason,
        )

    def classify_error(self, provider_name: str, exc: Exception) -> ProviderCallError:
        if isinstance(exc, anthropic_sdk.APITimeoutError):
            return ProviderTimeoutError(provider_name, "Request timed out")
        if isinstance(exc, anthropic_sdk.APIConnectionError):
            return TransportError(provider_name, f"Connection failed: {exc}")
        if isinstance(exc, anthropic_sdk.APIStatusError):
            message = extract_error_message(exc.body) or exc.message
            return ProviderError(
                provider_name,
                f"API error {exc.status_code}: {message}",
                status_code=exc.status_code,
            )
        return super().classify_error(provider_name, exc)
