"""Pacing policy between batched external requests."""

import asyncio
import logging
from dataclasses import dataclass, field

from config.settings import settings

logger = logging.getLogger(__name__)


@dataclass
class PacingPolicy:
    """Fixed delay inserted after each batched external request.

    This is backpressure against the external services' rate limits, not a
    correctness requirement; an interval of zero disables it.
    """

    interval: float = field(default_factory=lambda: settings.pacing_delay)

    def __post_init__(self):
        if self.interval < 0:
            raise ValueError("Pacing interval cannot be negative")

    async def pause(self) -> None:
        if self.interval > 0:
            logger.debug(f"Pacing for {self.interval:.2f}s")
            await asyncio.sleep(self.interval)
