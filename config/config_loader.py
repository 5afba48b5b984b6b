"""Load settings.yaml into typed dataclasses. Resolves API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from dialectic.errors import ConfigurationError
from dialectic.models import BiasCheck, Lens, OutputFormat, PersonaOverride, Position, Side, VerdictScope

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"
_FAMILIES = frozenset({"openai", "anthropic", "google"})


@dataclass
class ModelConfig:
    """Provider descriptor for one ModelIdentifier."""

    name: str
    family: str
    model: str
    api_key_env: str
    max_tokens: int
    display_name: str = ""
    base_url: str | None = None
    api_key: str | None = None
    cost_input_per_1k: float = 0.0
    cost_output_per_1k: float = 0.0
    analysis_max_tokens: int = 8000
    thinking_budget: int | None = None  # reasoning tokens granted on top of the reply ceiling


@dataclass
class DefaultsConfig:
    max_turns: int
    first_speaker: Side = Side.A
    temperature: float = 0.7
    turn_timeout_sec: float = 60.0
    settle_delay_sec: float = 2.0
    presentation_timeout_sec: float = 30.0
    quota: int | None = None


@dataclass
class DebaterConfig:
    model: str
    position: Position
    agreeability: int = 5
    extensiveness: int = 3
    persona: str | None = None


@dataclass
class AnalysisConfig:
    model: str
    timeout_sec: float = 90.0
    temperature: float = 0.1
    lens: Lens = Lens.LOGICAL
    depth: int = 3
    output_format: OutputFormat = OutputFormat.NARRATIVE
    verdict: VerdictScope = VerdictScope.LENS
    bias_checks: list[BiasCheck] = field(default_factory=list)


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    debaters: dict[Side, DebaterConfig]
    analysis: AnalysisConfig
    personas: dict[str, PersonaOverride] = field(default_factory=dict)
    aliases: dict[str, str] = field(default_factory=dict)
    available_models: set[str] = field(default_factory=set)


def _check_range(label: str, value: int, low: int, high: int) -> int:
    if not low <= value <= high:
        raise ConfigurationError(f"{label} must be {low}-{high}, got {value}")
    return value


def _parse_side(value: object, label: str) -> Side:
    try:
        return Side(str(value).upper())
    except ValueError as exc:
        raise ConfigurationError(f"{label} must be 'A' or 'B', got {value!r}") from exc


def _parse_position(value: object, label: str) -> Position:
    try:
        return Position(str(value).lower())
    except ValueError as exc:
        raise ConfigurationError(f"{label} must be 'pro' or 'con', got {value!r}") from exc


def _parse_choice(enum_cls, value: object, label: str):
    try:
        return enum_cls(str(value).lower())
    except ValueError as exc:
        choices = ", ".join(m.value for m in enum_cls)
        raise ConfigurationError(f"{label} must be one of: {choices}; got {value!r}") from exc


def _check_model_ref(name: str, models: dict[str, ModelConfig], aliases: dict[str, str], label: str) -> str:
    if name in models or name.upper() in aliases:
        return name
    raise ConfigurationError(f"{label} references unknown model {name!r}")


def _optional_int(value: object, label: str) -> int | None:
    if value is None:
        return None
    number = int(value)
    if number < 0:
        raise ConfigurationError(f"{label} must be >= 0, got {number}")
    return number


def _load_personas(raw: dict) -> dict[str, PersonaOverride]:
    personas: dict[str, PersonaOverride] = {}
    for persona_id, p in raw.items():
        personas[persona_id] = PersonaOverride(
            id=persona_id,
            name=str(p.get("name", persona_id)),
            identity=str(p["identity"]).strip(),
            turn_rules=str(p["turn_rules"]).strip(),
            stubbornness=_check_range(f"personas.{persona_id}.stubbornness", int(p["stubbornness"]), 0, 10),
            response_length=_check_range(
                f"personas.{persona_id}.response_length", int(p["response_length"]), 1, 5
            ),
        )
    return personas


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing and ConfigurationError
    for invalid values. Missing API keys are logged but do not raise; the
    model is left out of available_models and the registry refuses to call it.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    quota_raw = defaults_raw.get("quota")
    defaults = DefaultsConfig(
        max_turns=_check_range("defaults.max_turns", int(defaults_raw["max_turns"]), 1, 100),
        first_speaker=_parse_side(defaults_raw.get("first_speaker", "A"), "defaults.first_speaker"),
        temperature=float(defaults_raw.get("temperature", 0.7)),
        turn_timeout_sec=float(defaults_raw.get("turn_timeout_sec", 60)),
        settle_delay_sec=float(defaults_raw.get("settle_delay_sec", 2.0)),
        presentation_timeout_sec=float(defaults_raw.get("presentation_timeout_sec", 30.0)),
        quota=int(quota_raw) if quota_raw is not None else None,
    )

    models: dict[str, ModelConfig] = {}
    available_models: set[str] = set()

    for model_id, model_raw in raw["models"].items():
        family = str(model_raw["family"])
        if family not in _FAMILIES:
            raise ConfigurationError(f"Model {model_id!r} has unknown family {family!r}")
        costs = model_raw.get("cost_per_1k", {})
        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        models[model_id] = ModelConfig(
            name=model_id,
            family=family,
            model=str(model_raw["model"]),
            api_key_env=model_raw["api_key_env"],
            max_tokens=int(model_raw["max_tokens"]),
            display_name=str(model_raw.get("display_name", model_id)),
            base_url=model_raw.get("base_url"),
            api_key=api_key or None,
            cost_input_per_1k=float(costs.get("input", 0.0)),
            cost_output_per_1k=float(costs.get("output", 0.0)),
            analysis_max_tokens=int(model_raw.get("analysis_max_tokens", 8000)),
            thinking_budget=_optional_int(model_raw.get("thinking_budget"), f"models.{model_id}.thinking_budget"),
        )

        if api_key:
            available_models.add(model_id)
            logger.info("Model available: %s", model_id)
        else:
            logger.info(
                "Model skipped (no API key): %s, set %s in .env",
                model_id,
                model_raw["api_key_env"],
            )

    aliases = {str(k).upper(): str(v) for k, v in raw.get("aliases", {}).items()}
    for alias, target in aliases.items():
        if target not in models:
            raise ConfigurationError(f"Alias {alias!r} points to unknown model {target!r}")

    personas = _load_personas(raw.get("personas", {}))

    debaters: dict[Side, DebaterConfig] = {}
    for side_raw, d in raw["debaters"].items():
        side = _parse_side(side_raw, "debaters key")
        persona = d.get("persona")
        if persona is not None and persona not in personas:
            raise ConfigurationError(f"Debater {side} references unknown persona {persona!r}")
        debaters[side] = DebaterConfig(
            model=_check_model_ref(str(d["model"]), models, aliases, f"debaters.{side}.model"),
            position=_parse_position(d["position"], f"debaters.{side}.position"),
            agreeability=_check_range(f"debaters.{side}.agreeability", int(d.get("agreeability", 5)), 0, 10),
            extensiveness=_check_range(f"debaters.{side}.extensiveness", int(d.get("extensiveness", 3)), 1, 5),
            persona=persona,
        )
    if set(debaters) != {Side.A, Side.B}:
        raise ConfigurationError("debaters section must define both A and B")
    if debaters[Side.A].position is debaters[Side.B].position:
        raise ConfigurationError(
            f"debaters A and B must take opposite positions, both are {debaters[Side.A].position.value!r}"
        )

    analysis_raw = raw.get("analysis", {})
    analysis = AnalysisConfig(
        model=_check_model_ref(
            str(analysis_raw.get("model", debaters[Side.A].model)), models, aliases, "analysis.model"
        ),
        timeout_sec=float(analysis_raw.get("timeout_sec", 90)),
        temperature=float(analysis_raw.get("temperature", 0.1)),
        lens=_parse_choice(Lens, analysis_raw.get("lens", "logical"), "analysis.lens"),
        depth=_check_range("analysis.depth", int(analysis_raw.get("depth", 3)), 1, 5),
        output_format=_parse_choice(
            OutputFormat, analysis_raw.get("output_format", "narrative"), "analysis.output_format"
        ),
        verdict=_parse_choice(VerdictScope, analysis_raw.get("verdict", "lens"), "analysis.verdict"),
        bias_checks=[
            _parse_choice(BiasCheck, b, "analysis.bias_checks") for b in analysis_raw.get("bias_checks") or []
        ],
    )

    return AppConfig(
        defaults=defaults,
        models=models,
        debaters=debaters,
        analysis=analysis,
        personas=personas,
        aliases=aliases,
        available_models=available_models,
    )
