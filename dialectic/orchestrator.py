"""Turn orchestration: strict alternation paced by presentation-complete events."""

import asyncio
import logging
from collections.abc import Callable, Mapping

from dialectic.budget import ceiling_for, mark_truncation
from dialectic.errors import ConfigurationError, ProviderCallError
from dialectic.models import (
    Debater,
    DebatePhase,
    DebateState,
    PresentationComplete,
    Side,
    TurnContext,
    Utterance,
)
from dialectic.personality import compile_instructions, effective_traits
from dialectic.providers.base import remap_roles
from dialectic.providers.registry import INTERACTIVE_TIMEOUT_SEC, ProviderRegistry
from dialectic.quota import QuotaCounter

logger = logging.getLogger(__name__)


class TurnOrchestrator:
    """Owns debate progress for one pair of debaters.

    Each tick issues exactly one provider call for the active side, records
    the reply (or a visible error in its place), then waits for the
    presentation layer to report the turn as revealed before scheduling the
    next tick. `stop()` is the only cancellation entry point: a call already
    in flight finishes, but its result is discarded.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        debaters: Mapping[Side, Debater],
        *,
        max_turns: int,
        first_speaker: Side = Side.A,
        temperature: float = 0.7,
        turn_timeout: float = INTERACTIVE_TIMEOUT_SEC,
        settle_delay: float = 2.0,
        presentation_timeout: float = 30.0,
        on_turn_complete: Callable[[Utterance], None] | None = None,
        quota: QuotaCounter | None = None,
    ) -> None:
        if set(debaters) != {Side.A, Side.B}:
            raise ConfigurationError("Both sides A and B need a debater")
        if max_turns < 1:
            raise ConfigurationError(f"max_turns must be >= 1, got {max_turns}")

        self._registry = registry
        self._debaters = dict(debaters)
        self._max_turns = max_turns
        self._first_speaker = first_speaker
        self._temperature = temperature
        self._turn_timeout = turn_timeout
        self._settle_delay = settle_delay
        self._presentation_timeout = presentation_timeout
        self._on_turn_complete = on_turn_complete
        self._quota = quota

        self._state = DebateState(max_turns=max_turns)
        self._generation = 0
        self._events: asyncio.Queue[PresentationComplete | None] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> DebateState:
        return self._state

    def history(self) -> list[Utterance]:
        """Both logs merged in turn order."""
        return sorted(
            self._state.logs[Side.A] + self._state.logs[Side.B],
            key=lambda u: u.turn_index,
        )

    def start(self, topic: str) -> asyncio.Task[None]:
        """Begin a fresh debate. Any previous debate's state is discarded.

        Must be called from within a running event loop.
        """
        if self._state.is_running:
            self.stop()

        self._generation += 1
        self._state = DebateState(
            max_turns=self._max_turns,
            topic=topic,
            active_side=self._first_speaker.opponent,
            is_running=True,
            phase=DebatePhase.IDLE,
        )
        self._events = asyncio.Queue()
        logger.info(
            "Debate started: %r, %d turns, %s speaks first",
            topic,
            self._max_turns,
            self._first_speaker,
        )
        self._task = asyncio.create_task(self._drive(self._generation, self._state, self._events))
        return self._task

    def stop(self, reason: str = "stopped") -> None:
        """Halt the debate. A reply still in flight will not be recorded."""
        state = self._state
        if not state.is_running:
            return
        self._halt(state, reason)
        logger.info("Debate stopped at turn %d: %s", state.turn_index, reason)
        self._events.put_nowait(None)

    def resume(self, event: PresentationComplete) -> None:
        """Report that the presentation layer has fully revealed a turn."""
        self._events.put_nowait(event)

    async def wait_finished(self) -> DebateState:
        if self._task is not None:
            await self._task
        return self._state

    def _is_current(self, generation: int, state: DebateState) -> bool:
        return generation == self._generation and state.is_running

    @staticmethod
    def _halt(state: DebateState, reason: str) -> None:
        state.is_running = False
        state.is_waiting_for_presentation = False
        state.phase = DebatePhase.STOPPED
        state.stop_reason = reason

    def _build_context(self, state: DebateState) -> TurnContext:
        history = sorted(state.logs[Side.A] + state.logs[Side.B], key=lambda u: u.turn_index)
        opponent_said = [u for u in state.logs[state.active_side.opponent] if not u.is_error]
        prompt = opponent_said[-1].text if state.turn_index > 0 and opponent_said else state.topic
        return TurnContext(
            topic=state.topic,
            max_turns=state.max_turns,
            turn_index=state.turn_index,
            history=history,
            active_side=state.active_side,
            prompt=prompt,
        )

    async def _take_turn(self, debater: Debater, context: TurnContext, own: list[str]) -> Utterance:
        _, extensiveness = effective_traits(debater.personality)
        instructions = compile_instructions(
            debater.personality,
            topic=context.topic,
            max_turns=context.max_turns,
            turn_index=context.turn_index,
            own_utterances=own,
            speaker_name=debater.display_name or debater.model_id,
        )
        logger.debug("Instructions for side %s, turn %d:\n%s", debater.side, context.turn_index, instructions)
        messages = remap_roles(instructions, context.topic, context.history, debater.side)

        try:
            reply = await self._registry.generate(
                debater.model_id,
                messages,
                ceiling_for(extensiveness),
                temperature=self._temperature,
                timeout=self._turn_timeout,
            )
        except (ConfigurationError, ProviderCallError) as exc:
            logger.warning("Turn %d (%s) failed, recording error: %s", context.turn_index, debater.side, exc)
            return Utterance(
                side=debater.side,
                model_id=debater.model_id,
                turn_index=context.turn_index,
                text=f"Error: {exc}",
                is_error=True,
            )

        reply = mark_truncation(reply)
        return Utterance(
            side=debater.side,
            model_id=debater.model_id,
            turn_index=context.turn_index,
            text=reply.text,
            truncated=reply.truncated,
            usage=reply.usage,
        )

    async def _await_presentation(
        self,
        generation: int,
        state: DebateState,
        events: asyncio.Queue[PresentationComplete | None],
        turn_index: int,
    ) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._presentation_timeout
        while self._is_current(generation, state):
            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.warning(
                    "No presentation-complete for turn %d after %.1fs, advancing",
                    turn_index,
                    self._presentation_timeout,
                )
                return
            try:
                event = await asyncio.wait_for(events.get(), timeout=remaining)
            except TimeoutError:
                continue
            if event is None:
                continue
            if event.turn_index == turn_index:
                return
            logger.debug("Ignoring stale presentation-complete for turn %d", event.turn_index)

    async def _drive(
        self,
        generation: int,
        state: DebateState,
        events: asyncio.Queue[PresentationComplete | None],
    ) -> None:
        while self._is_current(generation, state) and state.turn_index < state.max_turns:
            if self._quota is not None and self._quota.remaining() <= 0:
                logger.warning("Quota exhausted before turn %d, stopping", state.turn_index)
                self._halt(state, "quota exhausted")
                return

            state.active_side = state.active_side.opponent
            side = state.active_side
            debater = self._debaters[side]
            context = self._build_context(state)
            own = [u.text for u in state.logs[side] if not u.is_error]

            state.phase = DebatePhase.WAITING_FOR_REPLY
            logger.info("Turn %d: side %s (%s)", state.turn_index, side, debater.model_id)
            utterance = await self._take_turn(debater, context, own)

            if not self._is_current(generation, state):
                logger.info("Discarding side %s reply for turn %d: debate no longer running", side, utterance.turn_index)
                return

            state.logs[side].append(utterance)
            state.turn_index += 1
            if self._quota is not None:
                self._quota.consume()

            finished = state.turn_index >= state.max_turns
            if finished:
                state.is_running = False
                state.phase = DebatePhase.COMPLETED
            else:
                state.phase = DebatePhase.WAITING_FOR_PRESENTATION
                state.is_waiting_for_presentation = True

            if self._on_turn_complete is not None:
                self._on_turn_complete(utterance)

            if finished:
                logger.info("Debate completed after %d turns", state.turn_index)
                return

            await self._await_presentation(generation, state, events, utterance.turn_index)
            state.is_waiting_for_presentation = False
            if not self._is_current(generation, state):
                return
            await asyncio.sleep(self._settle_delay)
