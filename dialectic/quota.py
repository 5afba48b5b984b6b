"""Per-debate turn allowance."""

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class QuotaCounter(Protocol):
    def remaining(self) -> int: ...

    def consume(self) -> int:
        """Charge one accepted turn and return the allowance left."""
        ...


class InMemoryQuota:
    """Turn allowance held in process memory."""

    def __init__(self, allowance: int) -> None:
        if allowance < 0:
            raise ValueError(f"allowance must be >= 0, got {allowance}")
        self._remaining = allowance

    def remaining(self) -> int:
        return self._remaining

    def consume(self) -> int:
        if self._remaining <= 0:
            raise RuntimeError("Quota already exhausted")
        self._remaining -= 1
        logger.debug("Quota consumed, %d remaining", self._remaining)
        return self._remaining
