"""Pure dataclasses for the dialectic debate engine. No logic, no deps."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


class Side(StrEnum):
    A = "A"
    B = "B"

    @property
    def opponent(self) -> "Side":
        return Side.B if self is Side.A else Side.A


class Position(StrEnum):
    PRO = "pro"
    CON = "con"


class DebatePhase(StrEnum):
    IDLE = "idle"
    WAITING_FOR_REPLY = "waiting_for_reply"
    WAITING_FOR_PRESENTATION = "waiting_for_presentation"
    STOPPED = "stopped"
    COMPLETED = "completed"


@dataclass(frozen=True)
class ChatMessage:
    role: str              # "system", "user" (other-authored) or "assistant" (self-authored)
    content: str


@dataclass(frozen=True)
class TokenUsage:
    input_tokens: int
    output_tokens: int
    total_tokens: int
    estimated_cost: float
    estimated: bool = False  # True when approximated from text length


@dataclass(frozen=True)
class Reply:
    model_id: str
    text: str
    usage: TokenUsage
    truncated: bool = False
    finish_reason: str | None = None
    latency_sec: float = 0.0


@dataclass(frozen=True)
class PersonaOverride:
    id: str
    name: str
    identity: str
    turn_rules: str        # behavioral anchors
    stubbornness: int      # 0-10, fixed
    response_length: int   # 1-5, fixed

    @property
    def agreeability(self) -> int:
        return 10 - self.stubbornness


@dataclass(frozen=True)
class PersonalityParameters:
    agreeability: int                  # 0-10 live slider
    position: Position
    extensiveness: int = 3             # 1-5
    persona: PersonaOverride | None = None


@dataclass(frozen=True)
class Debater:
    side: Side
    model_id: str
    personality: PersonalityParameters
    display_name: str = ""


@dataclass
class Utterance:
    side: Side
    model_id: str
    turn_index: int
    text: str
    is_error: bool = False
    truncated: bool = False
    usage: TokenUsage | None = None
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class TurnContext:
    topic: str
    max_turns: int
    turn_index: int
    history: list[Utterance]
    active_side: Side
    prompt: str            # opponent's latest utterance, or the topic on turn 0


@dataclass
class DebateState:
    max_turns: int
    topic: str = ""
    active_side: Side = Side.B
    turn_index: int = 0
    is_running: bool = False
    is_waiting_for_presentation: bool = False
    phase: DebatePhase = DebatePhase.IDLE
    stop_reason: str = ""
    logs: dict[Side, list[Utterance]] = field(
        default_factory=lambda: {Side.A: [], Side.B: []}
    )


@dataclass(frozen=True)
class PresentationComplete:
    """Reported by the presentation layer once a turn is fully revealed."""

    turn_index: int


class Lens(StrEnum):
    SCIENTIFIC = "scientific"
    PHILOSOPHICAL = "philosophical"
    LOGICAL = "logical"
    PRACTICAL = "practical"
    FACTUAL = "factual"
    META = "meta"


class OutputFormat(StrEnum):
    NARRATIVE = "narrative"
    BULLETS = "bullets"
    MAIN_ARGUMENT = "main_argument"
    PUZZLE_PIECES = "puzzle_pieces"
    GAP_ANALYSIS = "gap_analysis"


class VerdictScope(StrEnum):
    LENS = "lens"
    META = "meta"
    DISABLED = "disabled"


class BiasCheck(StrEnum):
    DEBATER = "debater"
    CENSORSHIP = "censorship"
    CULTURAL = "cultural"
    POLITICAL = "political"
