"""Compile personality parameters into the system-level instruction block.

Everything here is pure: the same parameters, turn index and prior
utterances always produce the same instruction string.
"""

import math
import re
from collections import Counter
from collections.abc import Sequence

from dialectic.models import PersonalityParameters

CONCESSION_FRACTION = 0.3
CONCESSION_GATE = "Do not concede the debate yet, regardless of how strong the opposing case appears."
POSITION_PRECEDENCE = (
    "Your assigned position takes precedence over any belief this character would "
    "typically hold. Argue the assigned side in the character's voice."
)
COMPLETION_GUARD = "Complete the thought: never stop mid-sentence, finish your final sentence cleanly."

_REPEAT_MIN_LENGTH = 5
_REPEAT_MIN_COUNT = 2
_REPEAT_TOP = 8
_WORD = re.compile(r"[\w'-]+")

_DESCRIPTIONS = {
    0: "Blue Pill Warrior - Defends position at all costs, any argument goes",
    1: "Relentless Fighter - Attacks opposing views with fierce determination",
    2: "Tactical Defender - Uses strategic arguments to fortify position",
    3: "Stubborn Contrarian - Questions everything but rarely changes mind",
    4: "Cautious Guardian - Protects stance while considering some evidence",
    5: "Matrix Balanced - Equally weighs truth-seeking vs position-holding",
    6: "Diplomatic Inquirer - Seeks truth while maintaining respect",
    7: "Collaborative Seeker - Prioritizes understanding over being right",
    8: "Constructive Builder - Builds on ideas, acknowledges opponent truths",
    9: "Integrative Synthesizer - Weaves opposing views into higher understanding",
    10: "Red Pill Awakened - Transcends positions to find deeper truths",
}

_BEHAVIOR_TIERS = (
    (2, (
        "Defend your position with unwavering conviction, using any valid argument available",
        "Maintain your stance even when facing strong opposing evidence",
        "Find creative angles and alternative interpretations to support your position",
        "Challenge the opponent's reasoning and assumptions at every opportunity",
    )),
    (4, (
        "Be highly committed to your position and require overwhelming evidence to change stance",
        "Challenge most opposing points but occasionally acknowledge minor valid points",
        "Focus on finding flaws in opposing arguments while strengthening your own",
    )),
    (6, (
        "Weigh evidence objectively while maintaining your assigned position",
        "Acknowledge valid opposing points but counter with your own evidence",
        "Balance position loyalty with fair consideration of facts",
    )),
    (8, (
        "Acknowledge when the opponent makes strong points and build upon them",
        "Update your position when presented with compelling evidence",
        "Prioritize understanding over winning the argument",
    )),
    (10, (
        "Prioritize finding truth over defending your initial position",
        "Synthesize the best ideas from both sides to reach a higher understanding",
        "Transcend positional thinking to discover new perspectives",
    )),
)

_LENGTH_TIERS = {
    1: ("Aim for 1-2 sentences, powerfully concise", "Every word must count, state your point directly"),
    2: ("Aim for 2-3 sentences, brief but complete", "Cover essential points only"),
    3: ("Aim for 3-4 sentences, balanced length", "Give key arguments with some supporting context"),
    4: ("Aim for 4-6 sentences, detailed analysis", "Develop arguments with supporting evidence", COMPLETION_GUARD),
    5: ("Aim for 6-8 sentences, academic depth", "Explore implications with nuanced reasoning", COMPLETION_GUARD),
}

_FIRST_TURN = (
    "FIRST TURN:",
    "- Establish 2-3 distinct founding arguments for your position",
    "- Use specific examples or evidence",
    "- Set up arguments you can build on in later turns",
)

_LATER_TURN = (
    "MANDATORY STRUCTURE:",
    "1. Quote your opponent's most recent specific claim, e.g. \"You argue that X, but...\"",
    "2. Respond to that exact claim, not a generic restatement of your own position",
    "3. Introduce at least one concretely sourced reference: a named study, culture, "
    "principle or historical figure",
    "   Generic hedges such as \"studies show\", \"many people believe\" or \"it's well known\" "
    "are not allowed",
    "4. Do not reuse a core argument or example from your previous turns",
)


def describe_agreeability(level: int) -> str:
    """Human-readable label for an agreeability level 0-10."""
    return _DESCRIPTIONS[min(max(round(level), 0), 10)]


def personality_params(level: float) -> tuple[float, float]:
    """(stubbornness, cooperation) for an agreeability level, rounded to one decimal."""
    return round(1 - level / 10, 1), round(level / 10, 1)


def effective_traits(params: PersonalityParameters) -> tuple[int, int]:
    """(agreeability, extensiveness) after a persona override, if any.

    A persona replaces both values outright; the live slider is ignored.
    """
    if params.persona is not None:
        return params.persona.agreeability, params.persona.response_length
    return params.agreeability, params.extensiveness


def min_turns(max_turns: int) -> int:
    return math.ceil(max_turns * CONCESSION_FRACTION)


def repeated_terms(own_utterances: Sequence[str]) -> list[str]:
    """Words over five characters used more than twice across one side's turns."""
    words = _WORD.findall(" ".join(own_utterances).lower())
    counts = Counter(w.strip("'-") for w in words)
    return [
        word
        for word, count in counts.most_common()
        if len(word) > _REPEAT_MIN_LENGTH and count > _REPEAT_MIN_COUNT
    ][:_REPEAT_TOP]


def _behavior_block(agreeability: int) -> list[str]:
    for ceiling, lines in _BEHAVIOR_TIERS:
        if agreeability <= ceiling:
            return [f"- {line}" for line in lines]
    return [f"- {line}" for line in _BEHAVIOR_TIERS[-1][1]]


def _length_block(extensiveness: int) -> list[str]:
    tier = min(max(extensiveness, 1), 5)
    return [f"- {line}" for line in _LENGTH_TIERS[tier]]


def compile_instructions(
    params: PersonalityParameters,
    *,
    topic: str,
    max_turns: int,
    turn_index: int,
    own_utterances: Sequence[str] = (),
    speaker_name: str = "a debater",
) -> str:
    """Build the instruction string sent as system context for one turn."""
    agreeability, extensiveness = effective_traits(params)
    stubbornness, cooperation = personality_params(agreeability)
    gate = min_turns(max_turns)

    lines: list[str] = []
    if params.persona is not None:
        lines += [
            params.persona.identity,
            "",
            f"Behavioral Anchors: {params.persona.turn_rules}",
            "",
            POSITION_PRECEDENCE,
            "",
        ]

    lines += [
        f"You are {speaker_name} participating in a structured debate focused on truth-seeking through discourse.",
        "",
        f"- Stubbornness level S = {stubbornness:.1f}",
        f"- Cooperation level C = {cooperation:.1f}",
        f'You must advocate **{params.position.upper()}** regarding the statement: "{topic}".',
        "",
        f"The debate will last no more than {max_turns} turns.",
    ]
    if turn_index < gate:
        lines.append(f"{CONCESSION_GATE} You must argue your position until at least turn {gate}.")
    else:
        lines.append("If the evidence overwhelmingly refutes your position, you may concede.")

    lines += [
        "",
        f"1. Behavioral Parameters (agreeability {agreeability}/10):",
        *_behavior_block(agreeability),
        "",
        f"2. Response Length (extensiveness {extensiveness}/5):",
        *_length_block(extensiveness),
        "",
    ]

    if turn_index == 0:
        lines += _FIRST_TURN
    else:
        repeated = repeated_terms(own_utterances)
        if repeated:
            lines += [
                f"AVOID REPETITION: you have heavily used these terms: {', '.join(repeated)}",
                "Find different terminology and angles this turn.",
                "",
            ]
        lines.append(f"TURN {turn_index + 1} INSTRUCTIONS:")
        lines += _LATER_TURN

    return "\n".join(lines)
