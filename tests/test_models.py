"""Tests for dialectic/models.py dataclasses."""

from dialectic.models import (
    DebatePhase,
    DebateState,
    PersonaOverride,
    PersonalityParameters,
    Position,
    Side,
    Utterance,
)


def test_side_opponent():
    assert Side.A.opponent is Side.B
    assert Side.B.opponent is Side.A


def test_side_is_str_enum():
    assert Side("A") is Side.A
    assert f"{Side.B}" == "B"


def test_persona_agreeability_is_inverse_of_stubbornness():
    persona = PersonaOverride("p", "P", "identity", "rules", stubbornness=7, response_length=2)
    assert persona.agreeability == 3


def test_personality_defaults():
    params = PersonalityParameters(agreeability=5, position=Position.CON)
    assert params.extensiveness == 3
    assert params.persona is None


def test_debate_state_defaults():
    state = DebateState(max_turns=6)
    assert state.turn_index == 0
    assert state.is_running is False
    assert state.phase is DebatePhase.IDLE
    assert state.logs == {Side.A: [], Side.B: []}


def test_debate_state_logs_not_shared():
    first = DebateState(max_turns=2)
    second = DebateState(max_turns=2)
    first.logs[Side.A].append(Utterance(Side.A, "m", 0, "hello"))
    assert second.logs[Side.A] == []


def test_utterance_defaults():
    u = Utterance(Side.B, "fake-b", 3, "text")
    assert u.is_error is False
    assert u.truncated is False
    assert u.usage is None
