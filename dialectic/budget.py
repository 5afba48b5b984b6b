"""Output-token ceilings per extensiveness tier, and truncation repair."""

import dataclasses
import logging
import warnings

from dialectic.errors import TruncationWarning
from dialectic.models import Reply

logger = logging.getLogger(__name__)

# Target reply length per extensiveness tier, in tokens.
TIER_TARGET_TOKENS: dict[int, int] = {1: 50, 2: 100, 3: 150, 4: 250, 5: 350}
HEADROOM_TOKENS = 50
TOKEN_CEILINGS: dict[int, int] = {
    tier: target + HEADROOM_TOKENS for tier, target in TIER_TARGET_TOKENS.items()
}

ELLIPSIS = "…"


def ceiling_for(extensiveness: int) -> int:
    """Output-token ceiling for an extensiveness level (clamped to 1..5)."""
    tier = min(max(extensiveness, 1), 5)
    return TOKEN_CEILINGS[tier]


def mark_truncation(reply: Reply) -> Reply:
    """Return the reply with a visible ellipsis when the provider cut it short.

    Non-truncated replies are returned unchanged.
    """
    if not reply.truncated:
        return reply

    warnings.warn(
        f"{reply.model_id} reply hit its output ceiling ({reply.finish_reason})",
        TruncationWarning,
        stacklevel=2,
    )
    logger.info("%s reply truncated, appending ellipsis", reply.model_id)
    return dataclasses.replace(reply, text=reply.text.rstrip() + ELLIPSIS)
