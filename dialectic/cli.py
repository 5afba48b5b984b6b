"""Click CLI: loads config, builds the two debaters, runs and renders one debate."""

import asyncio
import logging
import sys

import click
from dotenv import load_dotenv
from rich.logging import RichHandler
from rich.markup import escape

from config.config_loader import AppConfig, load_config
from dialectic.analysis import AnalysisRequest, analyze
from dialectic.errors import ConfigurationError, ProviderCallError
from dialectic.healthcheck import run_health_checks
from dialectic.models import (
    BiasCheck,
    Debater,
    DebateState,
    Lens,
    OutputFormat,
    PersonalityParameters,
    Position,
    PresentationComplete,
    Side,
    Utterance,
    VerdictScope,
)
from dialectic.orchestrator import TurnOrchestrator
from dialectic.output import console, debater_label, print_analysis, print_debate_header, print_summary, reveal_turn
from dialectic.providers.registry import ProviderRegistry
from dialectic.quota import InMemoryQuota

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _build_debater(
    config: AppConfig,
    registry: ProviderRegistry,
    side: Side,
    model: str | None,
    position: str | None,
    agreeability: int | None,
    extensiveness: int | None,
    persona: str | None,
) -> Debater:
    """Merge CLI overrides onto the configured debater. CLI flags win."""
    base = config.debaters[side]
    model_id = registry.resolve(model or base.model)

    persona_id = persona if persona is not None else base.persona
    persona_obj = None
    if persona_id:
        if persona_id not in config.personas:
            raise ConfigurationError(
                f"Unknown persona {persona_id!r}; choose from {', '.join(sorted(config.personas))}"
            )
        persona_obj = config.personas[persona_id]

    return Debater(
        side=side,
        model_id=model_id,
        personality=PersonalityParameters(
            agreeability=agreeability if agreeability is not None else base.agreeability,
            position=Position(position) if position else base.position,
            extensiveness=extensiveness if extensiveness is not None else base.extensiveness,
            persona=persona_obj,
        ),
        display_name=registry.descriptor(model_id).display_name,
    )


def _check_models(config: AppConfig, model_ids: list[str]) -> None:
    """Run health checks, print results, and ask whether to continue on failures."""
    console.print("\n[bold]Checking models...[/bold]")
    registry = ProviderRegistry(config.models, aliases=config.aliases)
    results = asyncio.run(run_health_checks(registry, model_ids))

    failed = []
    for model_id in sorted(results):
        ok, err = results[model_id]
        if ok:
            console.print(f"  [green]OK  [/green] {model_id}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {model_id}: {escape(short_err)}")
            failed.append(model_id)

    console.print()
    if failed and not click.confirm(
        f"{len(failed)} model(s) failed, failed turns will be recorded as errors. Continue?",
        default=False,
    ):
        sys.exit(0)


async def _present(
    orchestrator: TurnOrchestrator,
    topic: str,
    labels: dict[Side, str],
    word_delay: float,
    pending: asyncio.Queue[Utterance],
) -> DebateState:
    """Reveal each finished turn, then report it back so the next turn can start."""
    task = orchestrator.start(topic)
    try:
        while not (task.done() and pending.empty()):
            getter = asyncio.ensure_future(pending.get())
            done, _ = await asyncio.wait({getter, task}, return_when=asyncio.FIRST_COMPLETED)
            if getter not in done:
                getter.cancel()
                continue
            utterance = getter.result()
            await reveal_turn(utterance, labels[utterance.side], word_delay)
            orchestrator.resume(PresentationComplete(utterance.turn_index))
    except asyncio.CancelledError:
        orchestrator.stop("interrupted")
        raise
    return await orchestrator.wait_finished()


async def _run_session(
    config: AppConfig,
    debaters: dict[Side, Debater],
    topic: str,
    max_turns: int,
    first: Side,
    quota: int | None,
    word_delay: float,
    analysis_request: dict | None,
    analysis_model: str | None,
) -> None:
    registry = ProviderRegistry(config.models, aliases=config.aliases)
    pending: asyncio.Queue[Utterance] = asyncio.Queue()
    orchestrator = TurnOrchestrator(
        registry,
        debaters,
        max_turns=max_turns,
        first_speaker=first,
        temperature=config.defaults.temperature,
        turn_timeout=config.defaults.turn_timeout_sec,
        settle_delay=config.defaults.settle_delay_sec,
        presentation_timeout=config.defaults.presentation_timeout_sec,
        on_turn_complete=pending.put_nowait,
        quota=InMemoryQuota(quota) if quota is not None else None,
    )
    labels = {side: debater_label(d) for side, d in debaters.items()}

    print_debate_header(topic, debaters, max_turns, first)
    state = await _present(orchestrator, topic, labels, word_delay, pending)
    print_summary(state)

    if analysis_request is None or analysis_model is None:
        return

    request = AnalysisRequest(
        topic=topic,
        debaters=debaters,
        logs=state.logs,
        total_turns=state.turn_index,
        **analysis_request,
    )
    with console.status("Running analysis..."):
        try:
            result = await analyze(
                registry,
                analysis_model,
                request,
                timeout=config.analysis.timeout_sec,
                temperature=config.analysis.temperature,
            )
        except (ConfigurationError, ProviderCallError) as exc:
            console.print(f"[bold red]Analysis failed:[/bold red] {escape(str(exc))}")
            return
    print_analysis(result)


@click.command()
@click.argument("topic")
@click.option("--model-a", default=None, help="Model or alias for side A (default: from config)")
@click.option("--model-b", default=None, help="Model or alias for side B (default: from config)")
@click.option("--position-a", type=click.Choice(["pro", "con"]), default=None,
              help="Position for side A; side B takes the opposite")
@click.option("--agree-a", type=click.IntRange(0, 10), default=None, help="Agreeability 0-10 for side A")
@click.option("--agree-b", type=click.IntRange(0, 10), default=None, help="Agreeability 0-10 for side B")
@click.option("--length-a", type=click.IntRange(1, 5), default=None, help="Extensiveness 1-5 for side A")
@click.option("--length-b", type=click.IntRange(1, 5), default=None, help="Extensiveness 1-5 for side B")
@click.option("--persona-a", default=None, help="Persona id for side A (overrides agreeability and length)")
@click.option("--persona-b", default=None, help="Persona id for side B (overrides agreeability and length)")
@click.option("--first", "first_speaker", type=click.Choice(["A", "B"], case_sensitive=False), default=None,
              help="Side that speaks first (default: from config)")
@click.option("--turns", type=click.IntRange(1, 100), default=None, help="Total turns (default: from config)")
@click.option("--quota", type=click.IntRange(0), default=None, help="Turn allowance for this debate")
@click.option("--analyze", "run_analysis", is_flag=True, help="Run a post-debate analysis")
@click.option("--analysis-model", default=None, help="Model or alias for the analysis (default: from config)")
@click.option("--lens", type=click.Choice([lens.value for lens in Lens]), default=None)
@click.option("--depth", type=click.IntRange(1, 5), default=None)
@click.option("--format", "output_format", type=click.Choice([f.value for f in OutputFormat]), default=None)
@click.option("--verdict", type=click.Choice([v.value for v in VerdictScope]), default=None)
@click.option("--bias", multiple=True, type=click.Choice([b.value for b in BiasCheck]),
              help="Bias category to check; repeatable")
@click.option("--reveal-delay", type=float, default=0.03, show_default=True,
              help="Seconds between revealed words; 0 prints each turn at once")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
def main(
    topic: str,
    model_a: str | None,
    model_b: str | None,
    position_a: str | None,
    agree_a: int | None,
    agree_b: int | None,
    length_a: int | None,
    length_b: int | None,
    persona_a: str | None,
    persona_b: str | None,
    first_speaker: str | None,
    turns: int | None,
    quota: int | None,
    run_analysis: bool,
    analysis_model: str | None,
    lens: str | None,
    depth: int | None,
    output_format: str | None,
    verdict: str | None,
    bias: tuple[str, ...],
    reveal_delay: float,
    verbose: bool,
    skip_health_check: bool,
) -> None:
    """Dialectic -- two models debate a topic, turn by turn.

    \b
    Examples:
      dialectic "Free will is an illusion" --turns 6
      dialectic "Cities should ban cars" --model-a claude --model-b flash --agree-a 2
      dialectic "AI art is art" --persona-a diogenes --persona-b socrates --analyze --lens philosophical
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, ConfigurationError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    position_b = None
    if position_a is not None:
        position_b = Position.CON if position_a == Position.PRO else Position.PRO

    try:
        lookup = ProviderRegistry(config.models, aliases=config.aliases)
        debaters = {
            Side.A: _build_debater(config, lookup, Side.A, model_a, position_a, agree_a, length_a, persona_a),
            Side.B: _build_debater(config, lookup, Side.B, model_b, position_b, agree_b, length_b, persona_b),
        }
        analyst = lookup.resolve(analysis_model or config.analysis.model) if run_analysis else None
    except ConfigurationError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    needed = [d.model_id for d in debaters.values()] + ([analyst] if analyst else [])
    missing = sorted({m for m in needed if m not in config.available_models})
    if missing:
        console.print(
            f"[bold red]Error:[/bold red] No API key for: {', '.join(missing)}. Check API keys in .env."
        )
        sys.exit(1)

    if not skip_health_check:
        _check_models(config, needed)

    analysis_request = None
    if run_analysis:
        analysis_request = {
            "lens": Lens(lens or config.analysis.lens),
            "depth": depth or config.analysis.depth,
            "output_format": OutputFormat(output_format or config.analysis.output_format),
            "verdict": VerdictScope(verdict or config.analysis.verdict),
            "bias_checks": frozenset(BiasCheck(b) for b in (bias or config.analysis.bias_checks)),
        }

    try:
        asyncio.run(
            _run_session(
                config=config,
                debaters=debaters,
                topic=topic,
                max_turns=turns or config.defaults.max_turns,
                first=Side(first_speaker.upper()) if first_speaker else config.defaults.first_speaker,
                quota=quota if quota is not None else config.defaults.quota,
                word_delay=reveal_delay,
                analysis_request=analysis_request,
                analysis_model=analyst,
            )
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Debate stopped.[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()
