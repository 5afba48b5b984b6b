"""Post-debate analysis: build the analysis prompt, call the analyst, extract fields."""

import logging
import re
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from dialectic.errors import DialecticError
from dialectic.models import (
    BiasCheck,
    ChatMessage,
    Debater,
    Lens,
    OutputFormat,
    Side,
    TokenUsage,
    Utterance,
    VerdictScope,
)
from dialectic.providers.registry import ANALYSIS_TIMEOUT_SEC, ProviderRegistry

logger = logging.getLogger(__name__)

ANALYSIS_TEMPERATURE = 0.1


class ParseError(DialecticError):
    """A structured field could not be found in the analysis text."""


NEUTRALITY_DIRECTIVE = """You are an objective analytical engine. Your analysis must be:
- Culturally neutral (avoid Western/American/European bias)
- Politically neutral (no left/right/liberal/conservative leaning)
- Methodologically rigorous (evidence-based conclusions only)
- Focused on structural and logical qualities of arguments

Analyze purely based on the specified lens criteria without injecting your own biases."""

LENS_PROMPTS: dict[Lens, str] = {
    Lens.SCIENTIFIC: """Analyze this debate through a SCIENTIFIC lens:
- What empirical claims were made? Are they supported by credible evidence?
- What methodologies, studies, or data were referenced?
- Which arguments rely on verifiable facts vs opinions or speculation?
- What specific research would be needed to settle disputed claims?
Focus purely on scientific merit and evidence quality.""",
    Lens.PHILOSOPHICAL: """Examine this debate through a PHILOSOPHICAL lens:
- What fundamental assumptions about reality, knowledge, or ethics underlie each position?
- How do their core worldviews and value systems differ?
- Which philosophical frameworks or traditions are reflected in their reasoning?
- What implications extend beyond the immediate topic?
Focus purely on philosophical depth and conceptual rigor.""",
    Lens.LOGICAL: """Analyze this debate through a LOGICAL lens:
- Map the logical structure of each participant's arguments.
- Identify any logical fallacies, weak reasoning, or invalid inferences.
- Are conclusions properly supported by the presented premises?
- Where did reasoning become circular, inconsistent, or break down?
Focus purely on reasoning quality and logical soundness.""",
    Lens.PRACTICAL: """Examine this debate through a PRACTICAL lens:
- How do these ideas translate into real-world applications and consequences?
- Which approach would be more effective or beneficial in practice?
- What are the concrete costs, benefits, and trade-offs of each position?
- What are the actionable takeaways?
Focus purely on real-world applicability and practical value.""",
    Lens.FACTUAL: """Analyze this debate through a FACTUAL lens:
- Extract only verifiable, objective claims made by each participant.
- What supporting evidence was provided for factual assertions?
- Separate facts from opinions, interpretations, and speculation.
- Note any factual errors, inconsistencies, or unsupported claims.
Focus purely on factual accuracy and evidence quality.""",
    Lens.META: """Examine this debate through a META lens (analyzing the process itself):
- How did the structure and flow of the debate affect the outcomes?
- What important topics or angles were avoided or insufficiently explored?
- Where did participants talk past each other or miss key points?
- How did their personality settings affect their engagement style?
Focus purely on the debate process and structural dynamics.""",
}

DEPTH_MODIFIERS: dict[int, str] = {
    1: "Provide a concise analysis focusing only on the most obvious main points.",
    2: "Give a straightforward analysis covering key insights without excessive detail.",
    3: "Conduct a thorough analysis with supporting context and explanations.",
    4: "Provide a comprehensive analysis exploring nuances, implications, and deeper layers.",
    5: "Conduct an exhaustive analysis leaving no aspect unexplored, including subtle implications and edge cases.",
}

FORMAT_INSTRUCTIONS: dict[OutputFormat, str] = {
    OutputFormat.NARRATIVE: (
        "Present your analysis as a flowing 2-3 paragraph narrative summary that "
        "integrates all insights from the lens perspective."
    ),
    OutputFormat.BULLETS: """Structure your analysis as clear bullet points:
- Key Discovery 1: [specific insight from lens analysis]
- Key Discovery 2: [specific insight from lens analysis]
- Main Takeaway: [overall conclusion from lens perspective]""",
    OutputFormat.MAIN_ARGUMENT: (
        "Distill your entire analysis into ONE core argument or conclusion from the lens "
        "perspective, presented as a clear thesis statement with brief supporting reasoning."
    ),
    OutputFormat.PUZZLE_PIECES: """Present your insights as distinct, standalone pieces:
Insight 1: [independent discovery from lens perspective]
Insight 2: [independent discovery from lens perspective]
Insight 3: [independent discovery from lens perspective]""",
    OutputFormat.GAP_ANALYSIS: """Analyze what's problematic, missing, or inadequate from the lens perspective:
What's Wrong: [flaws, errors, or weak reasoning]
What's Missing: [important aspects not addressed]
What's Questionable: [claims needing more scrutiny]
Deeper Issues: [underlying problems]""",
}

BIAS_PROMPTS: dict[BiasCheck, str] = {
    BiasCheck.DEBATER: """DEBATER BIAS ANALYSIS:
- Did either debater show ideological assumptions or value judgments?
- Did either debater avoid certain perspectives unfairly?""",
    BiasCheck.CENSORSHIP: """CENSORSHIP ANALYSIS:
- Were any topics avoided or sanitized due to safety filters?
- Were there signs of training limitations or guardrail interference?""",
    BiasCheck.CULTURAL: """CULTURAL BIAS ANALYSIS:
- Were there Western-centric or culturally specific assumptions?
- Were diverse global perspectives considered?""",
    BiasCheck.POLITICAL: """POLITICAL BIAS ANALYSIS:
- Did responses lean left/right politically?
- How did the debaters handle politically charged aspects?""",
}

_VERDICT_RE = re.compile(
    r"Winner:\s*\**\s*(A|B|Aligned)\b[\s\S]*?Confidence:\s*\**\s*(\d+)\s*%[\s\S]*?Reasoning:\s*\**\s*([^\n]+)",
    re.IGNORECASE,
)

_BIAS_RES: dict[BiasCheck, re.Pattern[str]] = {
    BiasCheck.DEBATER: re.compile(r"(?:debater bias|political bias)[:\s]*(.*?)(?:\n\n|\n[A-Z]|$)", re.IGNORECASE),
    BiasCheck.CENSORSHIP: re.compile(r"(?:censorship|topic avoided?)[:\s]*(.*?)(?:\n\n|\n[A-Z]|$)", re.IGNORECASE),
    BiasCheck.CULTURAL: re.compile(r"(?:cultural bias|western.{0,20}centric)[:\s]*(.*?)(?:\n\n|\n[A-Z]|$)", re.IGNORECASE),
    BiasCheck.POLITICAL: re.compile(r"(?:political bias|left.{0,10}right)[:\s]*(.*?)(?:\n\n|\n[A-Z]|$)", re.IGNORECASE),
}


@dataclass(frozen=True)
class AnalysisRequest:
    topic: str
    debaters: Mapping[Side, Debater]
    logs: Mapping[Side, Sequence[Utterance]]
    total_turns: int
    lens: Lens = Lens.LOGICAL
    depth: int = 3
    output_format: OutputFormat = OutputFormat.NARRATIVE
    verdict: VerdictScope = VerdictScope.LENS
    bias_checks: frozenset[BiasCheck] = frozenset()


@dataclass(frozen=True)
class Verdict:
    winner: str            # "A", "B" or "Aligned"
    confidence: int        # 0-100
    reasoning: str
    scope: VerdictScope


@dataclass(frozen=True)
class BiasAnalysis:
    debater: str | None = None
    censorship: str | None = None
    cultural: str | None = None
    political: str | None = None


@dataclass
class AnalysisResult:
    model_id: str
    analysis: str
    usage: TokenUsage
    duration_sec: float
    verdict: Verdict | None = None
    bias: BiasAnalysis | None = None
    omitted_fields: list[str] = field(default_factory=list)


def _verdict_prompt(scope: VerdictScope, lens: Lens) -> str:
    if scope is VerdictScope.LENS:
        return f"""LENS-SPECIFIC VERDICT:
Based SOLELY on {lens.upper()} criteria from your analysis above, decide which debater performed better.
Provide a confidence percentage (0-100%) and reasoning based only on {lens} factors.

Format as:
Winner: [A/B/Aligned]
Confidence: [X]%
Reasoning: [Brief explanation focused only on {lens} criteria]"""
    if scope is VerdictScope.META:
        return """META VERDICT:
Step back and weigh factual accuracy, logical coherence, philosophical depth and practical value together.
Provide a confidence percentage (0-100%) and reasoning that synthesizes across these perspectives.

Format as:
Winner: [A/B/Aligned]
Confidence: [X]%
Reasoning: [Brief explanation considering multiple analytical dimensions]"""
    return ""


def _format_transcript(request: AnalysisRequest) -> str:
    parts: list[str] = []
    for side in (Side.A, Side.B):
        debater = request.debaters[side]
        label = debater.display_name or debater.model_id
        parts.append(f"DEBATER {side} ({label}, {debater.personality.position.upper()}) RESPONSES:")
        turns = [u for u in request.logs.get(side, []) if not u.is_error]
        for number, utterance in enumerate(turns, start=1):
            parts.append(f"Turn {number}: {utterance.text}")
        parts.append("")
    return "\n\n".join(parts).rstrip()


def build_analysis_prompt(request: AnalysisRequest) -> str:
    """Compose the analysis instructions and transcript into one prompt."""
    sections = [
        LENS_PROMPTS[request.lens],
        DEPTH_MODIFIERS[min(max(request.depth, 1), 5)],
        FORMAT_INSTRUCTIONS[request.output_format],
        f'DEBATE TOPIC: "{request.topic}"',
        f"TOTAL TURNS: {request.total_turns}",
        _format_transcript(request),
    ]
    if request.verdict is not VerdictScope.DISABLED:
        sections.append(_verdict_prompt(request.verdict, request.lens))
    if request.bias_checks:
        sections.append("EXPERIMENTAL BIAS ANALYSIS:")
        sections += [BIAS_PROMPTS[check] for check in BiasCheck if check in request.bias_checks]
    return "\n\n".join(sections)


def parse_verdict(text: str, scope: VerdictScope) -> Verdict:
    """Raises ParseError when no Winner/Confidence/Reasoning block is present."""
    match = _VERDICT_RE.search(text)
    if not match:
        raise ParseError("No verdict block found")
    winner = match.group(1)
    return Verdict(
        winner="Aligned" if winner.lower() == "aligned" else winner.upper(),
        confidence=min(int(match.group(2)), 100),
        reasoning=match.group(3).strip().strip("*").strip(),
        scope=scope,
    )


def parse_bias(text: str, check: BiasCheck) -> str:
    """Raises ParseError when the bias category is not discussed."""
    match = _BIAS_RES[check].search(text)
    if not match or not match.group(1).strip():
        raise ParseError(f"No {check} bias section found")
    return match.group(1).strip()


def parse_analysis(
    text: str,
    request: AnalysisRequest,
) -> tuple[Verdict | None, BiasAnalysis | None, list[str]]:
    """Best-effort extraction of structured fields.

    Returns:
        (verdict, bias analysis, names of requested fields that were omitted).
        A miss never raises; it only leaves that field out.
    """
    omitted: list[str] = []

    verdict: Verdict | None = None
    if request.verdict is not VerdictScope.DISABLED:
        try:
            verdict = parse_verdict(text, request.verdict)
        except ParseError as exc:
            logger.info("Verdict omitted: %s", exc)
            omitted.append("verdict")

    found: dict[str, str] = {}
    for check in BiasCheck:
        if check not in request.bias_checks:
            continue
        try:
            found[check.value] = parse_bias(text, check)
        except ParseError as exc:
            logger.info("Bias field omitted: %s", exc)
            omitted.append(f"bias.{check}")

    bias = BiasAnalysis(**found) if found else None
    return verdict, bias, omitted


async def analyze(
    registry: ProviderRegistry,
    model_id: str,
    request: AnalysisRequest,
    *,
    timeout: float = ANALYSIS_TIMEOUT_SEC,
    temperature: float = ANALYSIS_TEMPERATURE,
) -> AnalysisResult:
    """Run one analysis call and return the raw text plus whatever fields parsed.

    Raises:
        ConfigurationError, TransportError, ProviderError: From the registry call.
    """
    start = time.monotonic()
    descriptor = registry.descriptor(model_id)
    prompt = build_analysis_prompt(request)

    logger.info(
        "Running %s analysis via %s (depth %d, %s)",
        request.lens,
        model_id,
        request.depth,
        request.output_format,
    )
    reply = await registry.generate(
        model_id,
        [ChatMessage("system", NEUTRALITY_DIRECTIVE), ChatMessage("user", prompt)],
        descriptor.analysis_max_tokens,
        temperature=temperature,
        timeout=timeout,
    )

    verdict, bias, omitted = parse_analysis(reply.text, request)
    return AnalysisResult(
        model_id=model_id,
        analysis=reply.text,
        usage=reply.usage,
        duration_sec=time.monotonic() - start,
        verdict=verdict,
        bias=bias,
        omitted_fields=omitted,
    )
