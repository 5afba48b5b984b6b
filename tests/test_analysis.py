"""Tests for dialectic/analysis.py."""

import dataclasses

import pytest

from dialectic.analysis import (
    ANALYSIS_TEMPERATURE,
    BIAS_PROMPTS,
    NEUTRALITY_DIRECTIVE,
    AnalysisRequest,
    ParseError,
    analyze,
    build_analysis_prompt,
    parse_analysis,
    parse_bias,
    parse_verdict,
)
from dialectic.errors import ConfigurationError, ProviderError
from dialectic.models import BiasCheck, Lens, OutputFormat, Side, Utterance, VerdictScope

_ANALYSIS_TEXT = """The debate turned on what counts as a definition.

Winner: **B**
Confidence: 140%
Reasoning: B exposed the circular premise in A's opening.

Cultural bias: Both sides assumed Western legal norms.

That is all."""


@pytest.fixture
def request_(debaters) -> AnalysisRequest:
    logs = {
        Side.A: [
            Utterance(Side.A, "fake-a", 0, "Cats are independent."),
            Utterance(Side.A, "fake-a", 2, "Error: [fake-a] Request timed out", is_error=True),
        ],
        Side.B: [Utterance(Side.B, "fake-b", 1, "Dogs are loyal.")],
    }
    return AnalysisRequest(topic="Cats beat dogs", debaters=debaters, logs=logs, total_turns=3)


def _with(request: AnalysisRequest, **changes) -> AnalysisRequest:
    return dataclasses.replace(request, **changes)


# --- prompt ---


def test_prompt_contains_topic_and_transcript(request_):
    prompt = build_analysis_prompt(request_)
    assert 'DEBATE TOPIC: "Cats beat dogs"' in prompt
    assert "TOTAL TURNS: 3" in prompt
    assert "DEBATER A (Fake A, PRO) RESPONSES:" in prompt
    assert "DEBATER B (Fake B, CON) RESPONSES:" in prompt
    assert "Turn 1: Cats are independent." in prompt
    assert "Turn 1: Dogs are loyal." in prompt


def test_prompt_skips_error_turns(request_):
    assert "timed out" not in build_analysis_prompt(request_)


def test_prompt_lens_depth_and_format(request_):
    prompt = build_analysis_prompt(
        _with(request_, lens=Lens.SCIENTIFIC, depth=9, output_format=OutputFormat.GAP_ANALYSIS)
    )
    assert "SCIENTIFIC lens" in prompt
    assert "exhaustive analysis" in prompt
    assert "What's Missing:" in prompt


def test_prompt_lens_verdict_block(request_):
    prompt = build_analysis_prompt(_with(request_, lens=Lens.PRACTICAL))
    assert "LENS-SPECIFIC VERDICT" in prompt
    assert "Based SOLELY on PRACTICAL criteria" in prompt
    assert "Winner: [A/B/Aligned]" in prompt


def test_prompt_meta_verdict_block(request_):
    prompt = build_analysis_prompt(_with(request_, verdict=VerdictScope.META))
    assert "META VERDICT" in prompt
    assert "LENS-SPECIFIC VERDICT" not in prompt


def test_prompt_without_verdict(request_):
    prompt = build_analysis_prompt(_with(request_, verdict=VerdictScope.DISABLED))
    assert "Winner:" not in prompt


def test_prompt_bias_sections(request_):
    prompt = build_analysis_prompt(
        _with(request_, bias_checks=frozenset({BiasCheck.POLITICAL, BiasCheck.CENSORSHIP}))
    )
    assert "EXPERIMENTAL BIAS ANALYSIS:" in prompt
    assert BIAS_PROMPTS[BiasCheck.POLITICAL] in prompt
    assert BIAS_PROMPTS[BiasCheck.CENSORSHIP] in prompt
    assert BIAS_PROMPTS[BiasCheck.CULTURAL] not in prompt


def test_prompt_is_deterministic(request_):
    assert build_analysis_prompt(request_) == build_analysis_prompt(request_)


# --- parsing ---


def test_parse_verdict_caps_confidence():
    verdict = parse_verdict(_ANALYSIS_TEXT, VerdictScope.LENS)
    assert verdict.winner == "B"
    assert verdict.confidence == 100
    assert verdict.reasoning == "B exposed the circular premise in A's opening."
    assert verdict.scope is VerdictScope.LENS


def test_parse_verdict_aligned_case_insensitive():
    verdict = parse_verdict("winner: aligned\nconfidence: 55%\nreasoning: Both converged.", VerdictScope.META)
    assert verdict.winner == "Aligned"
    assert verdict.confidence == 55


def test_parse_verdict_missing_raises():
    with pytest.raises(ParseError):
        parse_verdict("A thoughtful essay with no verdict.", VerdictScope.LENS)


def test_parse_bias_found_and_missing():
    assert parse_bias(_ANALYSIS_TEXT, BiasCheck.CULTURAL) == "Both sides assumed Western legal norms."
    with pytest.raises(ParseError):
        parse_bias(_ANALYSIS_TEXT, BiasCheck.CENSORSHIP)


def test_parse_analysis_collects_misses(request_, caplog):
    request = _with(request_, bias_checks=frozenset({BiasCheck.CULTURAL, BiasCheck.POLITICAL}))
    with caplog.at_level("INFO"):
        verdict, bias, omitted = parse_analysis(_ANALYSIS_TEXT, request)
    assert verdict is not None and verdict.winner == "B"
    assert bias is not None
    assert bias.cultural == "Both sides assumed Western legal norms."
    assert bias.political is None
    assert omitted == ["bias.political"]
    assert any("Bias field omitted" in m for m in caplog.messages)


def test_parse_analysis_never_raises_on_free_text(request_):
    request = _with(request_, bias_checks=frozenset(BiasCheck))
    verdict, bias, omitted = parse_analysis("Nothing structured here", request)
    assert verdict is None
    assert bias is None
    assert omitted == ["verdict", "bias.debater", "bias.censorship", "bias.cultural", "bias.political"]


def test_parse_analysis_verdict_disabled(request_):
    verdict, _, omitted = parse_analysis("no verdict", _with(request_, verdict=VerdictScope.DISABLED))
    assert verdict is None
    assert omitted == []


# --- analyze ---


async def test_analyze_uses_analysis_budget(registry, fake_adapter, request_):
    fake_adapter.script = [_ANALYSIS_TEXT]
    result = await analyze(registry, "fake-b", request_)

    payload = fake_adapter.payloads[0]
    assert payload["max_tokens"] == 4000
    assert payload["temperature"] == ANALYSIS_TEMPERATURE
    assert payload["messages"][0].role == "system"
    assert payload["messages"][0].content == NEUTRALITY_DIRECTIVE
    assert payload["messages"][1].content == build_analysis_prompt(request_)

    assert result.model_id == "fake-b"
    assert result.analysis == _ANALYSIS_TEXT
    assert result.verdict is not None and result.verdict.winner == "B"
    assert result.duration_sec >= 0
    assert result.omitted_fields == []


async def test_analyze_returns_text_when_nothing_parses(registry, fake_adapter, request_):
    fake_adapter.script = ["Just prose."]
    result = await analyze(registry, "fake-a", request_)
    assert result.analysis == "Just prose."
    assert result.verdict is None
    assert result.omitted_fields == ["verdict"]


async def test_analyze_propagates_provider_errors(registry, fake_adapter, request_):
    fake_adapter.script = [ProviderError("fake-a", "API error 503: overloaded", status_code=503)]
    with pytest.raises(ProviderError):
        await analyze(registry, "fake-a", request_)


async def test_analyze_missing_credential(registry, request_):
    with pytest.raises(ConfigurationError):
        await analyze(registry, "fake-nokey", request_)
