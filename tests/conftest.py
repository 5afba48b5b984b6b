"""Shared pytest fixtures and test doubles."""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest
import yaml

from config.config_loader import ModelConfig
from dialectic.models import (
    ChatMessage,
    Debater,
    PersonaOverride,
    PersonalityParameters,
    Position,
    PresentationComplete,
    Reply,
    Side,
    Utterance,
)
from dialectic.orchestrator import TurnOrchestrator
from dialectic.providers.base import WireAdapter
from dialectic.providers.registry import ProviderRegistry
from dialectic.usage import build_usage


@dataclass
class FakeResponse:
    text: str
    finish_reason: str = "stop"


@dataclass
class Slow:
    """Scripted reply that arrives only after `seconds`."""

    seconds: float
    text: str = "Slow reply"


class FakeAdapter(WireAdapter):
    """Test double wire adapter driven by a script of replies.

    Each script entry is a reply string, a FakeResponse, a Slow reply, or an
    exception to raise. Once the script runs out every call answers
    "Default reply".
    """

    family = "fake"

    def __init__(self, script: Sequence[Any] = ()) -> None:
        self.script = list(script)
        self.payloads: list[dict[str, Any]] = []
        self.clients_created = 0

    def create_client(self, config: ModelConfig) -> Any:
        self.clients_created += 1
        return object()

    def serialize(
        self,
        config: ModelConfig,
        messages: Sequence[ChatMessage],
        max_tokens: int,
        temperature: float,
    ) -> dict[str, Any]:
        return {
            "model": config.model,
            "messages": list(messages),
            "max_tokens": max_tokens,
            "temperature": temperature,
        }

    async def send(self, client: Any, payload: dict[str, Any]) -> Any:
        self.payloads.append(payload)
        item = self.script.pop(0) if self.script else "Default reply"
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, Slow):
            await asyncio.sleep(item.seconds)
            return FakeResponse(item.text)
        if isinstance(item, str):
            return FakeResponse(item)
        return item

    def parse(self, config: ModelConfig, response: Any, messages: Sequence[ChatMessage]) -> Reply:
        return Reply(
            model_id=config.name,
            text=response.text,
            usage=build_usage(
                None,
                None,
                cost_input_per_1k=config.cost_input_per_1k,
                cost_output_per_1k=config.cost_output_per_1k,
                messages=messages,
                reply_text=response.text,
            ),
            truncated=response.finish_reason == "length",
            finish_reason=response.finish_reason,
        )


def make_model_config(name: str, api_key: str | None = "test-key", family: str = "fake") -> ModelConfig:
    return ModelConfig(
        name=name,
        family=family,
        model=f"{name}-v1",
        api_key_env=f"{name.upper().replace('-', '_')}_KEY",
        max_tokens=200,
        display_name=name.title(),
        api_key=api_key,
        cost_input_per_1k=0.001,
        cost_output_per_1k=0.002,
        analysis_max_tokens=4000,
    )


@pytest.fixture
def fake_adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def registry(fake_adapter: FakeAdapter) -> ProviderRegistry:
    models = {
        "fake-a": make_model_config("fake-a"),
        "fake-b": make_model_config("fake-b"),
        "fake-nokey": make_model_config("fake-nokey", api_key=None),
    }
    return ProviderRegistry(models, adapters={"fake": fake_adapter}, aliases={"FA": "fake-a"})


@pytest.fixture
def philosopher() -> PersonaOverride:
    return PersonaOverride(
        id="philosopher",
        name="The Philosopher",
        identity="You are a patient philosopher who believes the opposite of whatever you are told.",
        turn_rules="Ask questions. Use homely analogies.",
        stubbornness=1,
        response_length=2,
    )


@pytest.fixture
def debaters() -> dict[Side, Debater]:
    return {
        Side.A: Debater(Side.A, "fake-a", PersonalityParameters(3, Position.PRO), "Fake A"),
        Side.B: Debater(Side.B, "fake-b", PersonalityParameters(6, Position.CON), "Fake B"),
    }


def make_orchestrator(
    registry: ProviderRegistry,
    debaters: dict[Side, Debater],
    *,
    auto_present: bool = True,
    **kwargs: Any,
) -> tuple[TurnOrchestrator, list[Utterance]]:
    """Orchestrator whose presentation layer (optionally) reports each turn immediately."""
    completed: list[Utterance] = []
    holder: dict[str, TurnOrchestrator] = {}

    def on_turn(utterance: Utterance) -> None:
        completed.append(utterance)
        if auto_present:
            holder["orchestrator"].resume(PresentationComplete(utterance.turn_index))

    kwargs.setdefault("max_turns", 4)
    kwargs.setdefault("settle_delay", 0)
    kwargs.setdefault("presentation_timeout", 5.0)
    orchestrator = TurnOrchestrator(registry, debaters, on_turn_complete=on_turn, **kwargs)
    holder["orchestrator"] = orchestrator
    return orchestrator, completed


@pytest.fixture
def settings_data() -> dict:
    """Minimal valid settings.yaml content."""
    return {
        "defaults": {"max_turns": 4, "first_speaker": "A"},
        "models": {
            "gpt": {
                "family": "openai",
                "model": "gpt-4o",
                "display_name": "GPT-4o",
                "api_key_env": "TEST_OPENAI_KEY",
                "max_tokens": 200,
                "cost_per_1k": {"input": 0.0025, "output": 0.01},
            },
            "claude": {
                "family": "anthropic",
                "model": "claude-haiku-4-5-20251001",
                "api_key_env": "TEST_ANTHROPIC_KEY",
                "max_tokens": 200,
            },
        },
        "aliases": {"g": "gpt"},
        "debaters": {
            "A": {"model": "gpt", "position": "pro", "agreeability": 2},
            "B": {"model": "G", "position": "con", "persona": "sage"},
        },
        "personas": {
            "sage": {
                "name": "Sage",
                "identity": "You are a sage.",
                "turn_rules": "Speak in riddles.",
                "stubbornness": 3,
                "response_length": 4,
            }
        },
    }


def write_settings(tmp_path: Path, data: dict) -> Path:
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.dump(data), encoding="utf-8")
    return path
