"""Abstract wire adapter shared by all provider families, plus role remapping."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from config.config_loader import ModelConfig
from dialectic.errors import ProviderCallError, TransportError
from dialectic.models import ChatMessage, Reply, Side, Utterance


def remap_roles(
    instructions: str,
    topic: str,
    history: Sequence[Utterance],
    speaker: Side,
) -> list[ChatMessage]:
    """Build the role-tagged message list as seen by `speaker`.

    The speaker's own prior utterances become "assistant" turns and the
    opponent's become "user" turns. The mapping is computed fresh on every
    call because the speaker flips between calls. Error-substituted
    utterances never reach a provider.
    """
    messages = [
        ChatMessage("system", instructions),
        ChatMessage("user", f'Debate topic: "{topic}"'),
    ]
    for utterance in sorted(history, key=lambda u: u.turn_index):
        if utterance.is_error:
            continue
        role = "assistant" if utterance.side is speaker else "user"
        messages.append(ChatMessage(role, utterance.text))
    return messages


def split_system(messages: Sequence[ChatMessage]) -> tuple[str, list[ChatMessage]]:
    """Separate system instructions from the conversational turns."""
    system = "\n\n".join(m.content for m in messages if m.role == "system")
    turns = [m for m in messages if m.role != "system"]
    return system, turns


def extract_error_message(body: Any) -> str | None:
    """Pull the human-readable message out of a structured error body.

    Handles both {"message": ...} and {"error": {"message": ...}} shapes.
    """
    if not isinstance(body, dict):
        return None
    message = body.get("message")
    if isinstance(message, str) and message:
        return message
    inner = body.get("error")
    if isinstance(inner, dict):
        message = inner.get("message")
        if isinstance(message, str) and message:
            return message
    return None


class WireAdapter(ABC):
    """Translate between the common request/Reply shape and one service's wire format.

    Every provider family must implement this capability before its models
    can be registered.
    """

    family: str = ""

    @abstractmethod
    def create_client(self, config: ModelConfig) -> Any:
        """Build the SDK client for a model whose credential is already resolved."""
        ...

    @abstractmethod
    def serialize(
        self,
        config: ModelConfig,
        messages: Sequence[ChatMessage],
        max_tokens: int,
        temperature: float,
    ) -> dict[str, Any]:
        """Turn the common message list into the service's request arguments."""
        ...

    @abstractmethod
    async def send(self, client: Any, payload: dict[str, Any]) -> Any:
        """Issue the request. Timeouts are enforced by the caller."""
        ...

    @abstractmethod
    def parse(
        self,
        config: ModelConfig,
        response: Any,
        messages: Sequence[ChatMessage],
    ) -> Reply:
        """Read reply text, finish signal and usage back into a Reply.

        Raises:
            ProviderError: When the body carries no usable text.
        """
        ...

    def classify_error(self, provider_name: str, exc: Exception) -> ProviderCallError:
        """Map an SDK exception onto the error taxonomy.

        Families override this for their SDK's exception types; anything
        unrecognised is treated as a transport failure.
        """
        return TransportError(provider_name, f"API call failed: {exc}")
