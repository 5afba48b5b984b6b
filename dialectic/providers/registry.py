"""Provider registry: ModelIdentifier lookup, credential gate, timeout and accounting."""

import asyncio
import logging
import time
from collections.abc import Mapping, Sequence
from typing import Any

from config.config_loader import ModelConfig
from dialectic.errors import ConfigurationError, ProviderCallError, ProviderTimeoutError
from dialectic.models import ChatMessage, Reply
from dialectic.providers.anthropic import AnthropicAdapter
from dialectic.providers.base import WireAdapter
from dialectic.providers.gemini import GeminiAdapter
from dialectic.providers.openai_provider import OpenAIAdapter
from dialectic.usage import estimate_messages_tokens

logger = logging.getLogger(__name__)

INTERACTIVE_TIMEOUT_SEC = 60.0
ANALYSIS_TIMEOUT_SEC = 90.0


def default_adapters() -> dict[str, WireAdapter]:
    adapters: list[WireAdapter] = [OpenAIAdapter(), AnthropicAdapter(), GeminiAdapter()]
    return {a.family: a for a in adapters}


class ProviderRegistry:
    """Routes a common request to the adapter registered for a model's family.

    Adding a provider means registering a WireAdapter here; callers only
    ever see ChatMessage lists going in and Reply objects coming out.
    """

    def __init__(
        self,
        models: Mapping[str, ModelConfig],
        adapters: Mapping[str, WireAdapter] | None = None,
        aliases: Mapping[str, str] | None = None,
    ) -> None:
        self._models = dict(models)
        self._adapters = dict(adapters) if adapters is not None else default_adapters()
        self._aliases = {k.upper(): v for k, v in (aliases or {}).items()}
        self._clients: dict[str, Any] = {}

        for model_id, config in self._models.items():
            if config.family not in self._adapters:
                raise ConfigurationError(
                    f"No wire adapter registered for family {config.family!r} (model {model_id!r})"
                )

    @property
    def model_ids(self) -> list[str]:
        return list(self._models)

    def available(self) -> list[str]:
        """Models whose credential resolved at load time."""
        return [m for m, c in self._models.items() if c.api_key]

    def resolve(self, name: str) -> str:
        """Normalize a free-form model name or alias to a ModelIdentifier.

        Raises:
            ConfigurationError: If the name matches neither a model nor an alias.
        """
        key = name.strip()
        if key in self._models:
            return key
        for model_id in self._models:
            if model_id.lower() == key.lower():
                return model_id
        target = self._aliases.get(key.upper())
        if target is not None and target in self._models:
            return target
        raise ConfigurationError(f"Unknown model {name!r}")

    def descriptor(self, model_id: str) -> ModelConfig:
        try:
            return self._models[model_id]
        except KeyError:
            raise ConfigurationError(f"Unknown model {model_id!r}") from None

    def _client_for(self, config: ModelConfig, adapter: WireAdapter) -> Any:
        client = self._clients.get(config.name)
        if client is None:
            client = adapter.create_client(config)
            self._clients[config.name] = client
        return client

    async def generate(
        self,
        model_id: str,
        messages: Sequence[ChatMessage],
        max_tokens: int | None = None,
        *,
        temperature: float = 0.7,
        timeout: float = INTERACTIVE_TIMEOUT_SEC,
    ) -> Reply:
        """Send one request and return the normalized Reply.

        Raises:
            ConfigurationError: Unknown model or no resolved credential. No
                network attempt is made.
            ProviderTimeoutError: The call exceeded `timeout` seconds.
            TransportError: The network call failed.
            ProviderError: The service answered with an error or unusable body.
        """
        config = self.descriptor(model_id)
        if not config.api_key:
            raise ConfigurationError(
                f"[{model_id}] Missing API key: set {config.api_key_env}"
            )

        adapter = self._adapters[config.family]
        ceiling = max_tokens if max_tokens is not None else config.max_tokens
        payload = adapter.serialize(config, messages, ceiling, temperature)
        logger.debug(
            "%s pre-flight: ~%d input tokens, ceiling %d",
            model_id,
            estimate_messages_tokens(messages),
            ceiling,
        )

        client = self._client_for(config, adapter)
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(adapter.send(client, payload), timeout=timeout)
        except TimeoutError as exc:
            raise ProviderTimeoutError(model_id, f"Request timed out after {timeout}s") from exc
        except ProviderCallError:
            raise
        except Exception as exc:
            raise adapter.classify_error(model_id, exc) from exc

        latency = time.monotonic() - start
        reply = adapter.parse(config, response, messages)

        logger.info(
            "%s: %.2fs, %d tokens (%s), $%.5f%s",
            model_id,
            latency,
            reply.usage.total_tokens,
            "estimated" if reply.usage.estimated else "reported",
            reply.usage.estimated_cost,
            ", truncated" if reply.truncated else "",
        )
        return Reply(
            model_id=reply.model_id,
            text=reply.text,
            usage=reply.usage,
            truncated=reply.truncated,
            finish_reason=reply.finish_reason,
            latency_sec=latency,
        )
