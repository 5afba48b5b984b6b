"""Model health checks: ping each model before starting a debate."""

import asyncio
import logging
from collections.abc import Iterable

from dialectic.models import ChatMessage
from dialectic.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)

_PING_MESSAGES = [ChatMessage("user", "Reply with the word OK only.")]
_PING_MAX_TOKENS = 16
_TIMEOUT_SEC = 15.0


async def _check_one(registry: ProviderRegistry, model_id: str) -> tuple[str, bool, str]:
    """Ping a single model. Returns (model_id, ok, error_message)."""
    try:
        await registry.generate(model_id, _PING_MESSAGES, _PING_MAX_TOKENS, timeout=_TIMEOUT_SEC)
        return model_id, True, ""
    except Exception as exc:
        logger.warning("Health check failed for %s: %s", model_id, exc)
        return model_id, False, str(exc)


async def run_health_checks(
    registry: ProviderRegistry,
    model_ids: Iterable[str],
) -> dict[str, tuple[bool, str]]:
    """Ping all models in parallel.

    Returns:
        Dict mapping model id -> (ok, error_message).
        error_message is "" when ok is True.
    """
    unique = list(dict.fromkeys(model_ids))
    results = await asyncio.gather(*(_check_one(registry, m) for m in unique))
    return {model_id: (ok, err) for model_id, ok, err in results}
