"""Human-like pre-request delay"""

import asyncio
import math
import random
from typing import Optional

from ..utils.config import Config
from ..utils.logger import logger


class HumanDelay:
    """Normally distributed delay, bounded to mean +/- 5 standard deviations"""

    def __init__(
        self,
        base_ms: float = 0.0,
        std_dev_ms: float = 0.0,
        max_attempts: int = Config.DELAY_MAX_ATTEMPTS,
        rng: Optional[random.Random] = None
    ):
        """
        Args:
            base_ms: Mean delay in milliseconds (0 disables waiting)
            std_dev_ms: Standard deviation in milliseconds
            max_attempts: Resample limit before clamping
            rng: Random source (for reproducible tests)
        """
        if base_ms < 0 or std_dev_ms < 0:
            raise ValueError("Delay and standard deviation must be non-negative")
        self.base_ms = base_ms
        self.std_dev_ms = std_dev_ms
        self.max_attempts = max(1, max_attempts)
        self._rng = rng or random.Random()

    @property
    def bounds(self):
        spread = Config.DELAY_SIGMA_BOUND * self.std_dev_ms
        return max(0.0, self.base_ms - spread), self.base_ms + spread

    def _gaussian(self) -> float:
        # Box-Muller; 1 - random() keeps u1 in (0, 1]
        u1 = 1.0 - self._rng.random()
        u2 = self._rng.random()
        return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)

    def sample(self) -> float:
        """Draw one delay in milliseconds"""
        if self.base_ms == 0:
            return 0.0

        low, high = self.bounds
        delay = self.base_ms
        for _ in range(self.max_attempts):
            delay = self.base_ms + self._gaussian() * self.std_dev_ms
            if low <= delay <= high:
                return delay

        logger.debug(f"Delay outside bounds after {self.max_attempts} attempts, clamping")
        return min(high, max(low, delay))

    async def wait(self) -> float:
        """Sleep for one sampled delay; returns the delay in milliseconds"""
        delay = self.sample()
        if delay > 0:
            logger.debug(f"Delay: {delay:.0f}ms (base: {self.base_ms:.0f}ms +/- {self.std_dev_ms:.0f}ms)")
            await asyncio.sleep(delay / 1000.0)
        return delay
