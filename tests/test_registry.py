"""Tests for dialectic/providers/registry.py using the fake wire adapter."""

import pytest

from dialectic.errors import ConfigurationError, ProviderError, ProviderTimeoutError, TransportError
from dialectic.models import ChatMessage
from dialectic.providers.registry import ProviderRegistry, default_adapters
from tests.conftest import FakeAdapter, FakeResponse, Slow, make_model_config

_MESSAGES = [ChatMessage("system", "Be brief."), ChatMessage("user", "Hello there")]


def test_resolve_exact_and_case_insensitive(registry):
    assert registry.resolve("fake-a") == "fake-a"
    assert registry.resolve("FAKE-B") == "fake-b"
    assert registry.resolve("  fake-a ") == "fake-a"


def test_resolve_alias(registry):
    assert registry.resolve("fa") == "fake-a"
    assert registry.resolve("FA") == "fake-a"


def test_resolve_unknown_raises(registry):
    with pytest.raises(ConfigurationError, match="gpt-17"):
        registry.resolve("gpt-17")


def test_descriptor_unknown_raises(registry):
    with pytest.raises(ConfigurationError):
        registry.descriptor("nope")


def test_available_lists_only_models_with_keys(registry):
    assert sorted(registry.available()) == ["fake-a", "fake-b"]


def test_unknown_family_rejected_at_construction():
    with pytest.raises(ConfigurationError, match="smoke-signal"):
        ProviderRegistry({"m": make_model_config("m", family="smoke-signal")}, adapters={"fake": FakeAdapter()})


def test_default_adapters_cover_every_family():
    assert set(default_adapters()) == {"openai", "anthropic", "google"}


async def test_generate_returns_reply(registry, fake_adapter):
    fake_adapter.script = ["Hi!"]
    reply = await registry.generate("fake-a", _MESSAGES)
    assert reply.text == "Hi!"
    assert reply.model_id == "fake-a"
    assert reply.latency_sec >= 0
    assert reply.usage.total_tokens > 0


async def test_generate_defaults_to_descriptor_ceiling(registry, fake_adapter):
    await registry.generate("fake-a", _MESSAGES)
    await registry.generate("fake-a", _MESSAGES, 75, temperature=0.1)
    assert fake_adapter.payloads[0]["max_tokens"] == 200
    assert fake_adapter.payloads[1]["max_tokens"] == 75
    assert fake_adapter.payloads[1]["temperature"] == 0.1


async def test_missing_credential_fails_before_network(registry, fake_adapter):
    with pytest.raises(ConfigurationError, match="FAKE_NOKEY_KEY"):
        await registry.generate("fake-nokey", _MESSAGES)
    assert fake_adapter.payloads == []
    assert fake_adapter.clients_created == 0


async def test_timeout_is_its_own_error_kind(registry, fake_adapter):
    fake_adapter.script = [Slow(1.0)]
    with pytest.raises(ProviderTimeoutError, match="timed out") as exc_info:
        await registry.generate("fake-a", _MESSAGES, timeout=0.05)
    assert isinstance(exc_info.value, TransportError)
    assert not isinstance(exc_info.value, ProviderError)


async def test_sdk_exception_classified_and_chained(registry, fake_adapter):
    boom = RuntimeError("socket closed")
    fake_adapter.script = [boom]
    with pytest.raises(TransportError, match="socket closed") as exc_info:
        await registry.generate("fake-a", _MESSAGES)
    assert exc_info.value.__cause__ is boom


async def test_provider_errors_pass_through(registry, fake_adapter):
    raised = ProviderError("fake-a", "API error 500: overloaded", status_code=500)
    fake_adapter.script = [raised]
    with pytest.raises(ProviderError) as exc_info:
        await registry.generate("fake-a", _MESSAGES)
    assert exc_info.value is raised


async def test_truncation_flag_survives(registry, fake_adapter):
    fake_adapter.script = [FakeResponse("and so", "length")]
    reply = await registry.generate("fake-a", _MESSAGES)
    assert reply.truncated is True
    assert reply.text == "and so"


async def test_client_created_once_per_model(registry, fake_adapter):
    await registry.generate("fake-a", _MESSAGES)
    await registry.generate("fake-a", _MESSAGES)
    await registry.generate("fake-b", _MESSAGES)
    assert fake_adapter.clients_created == 2


async def test_logs_one_line_per_call(registry, caplog):
    with caplog.at_level("INFO"):
        await registry.generate("fake-a", _MESSAGES)
    lines = [m for m in caplog.messages if m.startswith("fake-a:")]
    assert len(lines) == 1
    assert "tokens (estimated)" in lines[0]
