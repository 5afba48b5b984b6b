"""Rich console rendering for debate turns, analysis and the closing summary."""

import asyncio
import logging

from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from dialectic.analysis import AnalysisResult
from dialectic.models import Debater, DebateState, Side, Utterance
from dialectic.personality import describe_agreeability, effective_traits

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_SIDE_STYLES = {Side.A: "cyan", Side.B: "magenta"}


def debater_label(debater: Debater) -> str:
    if debater.personality.persona is not None:
        return f"{debater.personality.persona.name} ({debater.display_name or debater.model_id})"
    return debater.display_name or debater.model_id


def _turn_panel(utterance: Utterance, label: str, body: Text) -> Panel:
    style = "red" if utterance.is_error else _SIDE_STYLES[utterance.side]
    subtitle = None
    if utterance.usage is not None:
        subtitle = f"{utterance.usage.total_tokens} tokens, ${utterance.usage.estimated_cost:.4f}"
    return Panel(
        body,
        title=f"[bold]Turn {utterance.turn_index + 1}[/bold] {utterance.side}: {escape(label)}",
        subtitle=subtitle,
        border_style=style,
    )


def print_debate_header(topic: str, debaters: dict[Side, Debater], max_turns: int, first: Side) -> None:
    console.print(Rule("[bold cyan]Dialectic[/bold cyan]"))
    console.print(f"Topic: [italic]{escape(topic)}[/italic]")
    console.print(f"Turns: {max_turns}, {first} speaks first")
    for side in (Side.A, Side.B):
        debater = debaters[side]
        agreeability, extensiveness = effective_traits(debater.personality)
        console.print(
            f"  [{_SIDE_STYLES[side]}]{side}[/{_SIDE_STYLES[side]}] {escape(debater_label(debater))}: "
            f"{debater.personality.position.upper()}, agreeability {agreeability} "
            f"({describe_agreeability(agreeability)}), length {extensiveness}/5"
        )
    console.print()


async def reveal_turn(utterance: Utterance, label: str, word_delay: float = 0.03) -> None:
    """Reveal a turn word by word. Returns once the full text is on screen."""
    if word_delay <= 0:
        console.print(_turn_panel(utterance, label, Text(utterance.text)))
        return

    body = Text()
    words = utterance.text.split(" ")
    with Live(_turn_panel(utterance, label, body), console=console, refresh_per_second=20) as live:
        for i, word in enumerate(words):
            body.append(word if i == 0 else f" {word}")
            live.update(_turn_panel(utterance, label, body))
            await asyncio.sleep(word_delay)


def print_analysis(result: AnalysisResult) -> None:
    console.print(Rule("[bold green]Analysis[/bold green]"))
    console.print(Text(f"Analyst: {result.model_id} | Duration: {result.duration_sec:.1f}s", style="dim"))
    console.print(Markdown(result.analysis))

    if result.verdict is not None:
        v = result.verdict
        console.print(
            Panel(
                f"Winner: [bold]{escape(v.winner)}[/bold]  Confidence: {v.confidence}%\n{escape(v.reasoning)}",
                title=f"Verdict ({v.scope})",
                border_style="green",
            )
        )

    if result.bias is not None:
        table = Table(title="Bias analysis", show_header=True)
        table.add_column("Category")
        table.add_column("Finding")
        for category in ("debater", "censorship", "cultural", "political"):
            finding = getattr(result.bias, category)
            if finding:
                table.add_row(category, Text(finding))
        console.print(table)

    if result.omitted_fields:
        console.print(Text(f"Not found in analysis: {', '.join(result.omitted_fields)}", style="dim"))


def print_summary(state: DebateState) -> None:
    """Closing line: turns taken, token totals and cost across both sides."""
    utterances = state.logs[Side.A] + state.logs[Side.B]
    tokens = sum(u.usage.total_tokens for u in utterances if u.usage)
    cost = sum(u.usage.estimated_cost for u in utterances if u.usage)
    errors = sum(1 for u in utterances if u.is_error)

    console.print(Rule(f"[bold]Debate {state.phase}[/bold]"))
    line = f"Turns: {state.turn_index}/{state.max_turns} | Tokens: {tokens} | Cost: ${cost:.4f}"
    if errors:
        line += f" | Failed turns: {errors}"
    if state.stop_reason:
        line += f" | Stopped: {state.stop_reason}"
    console.print(Text(line, style="dim"))
