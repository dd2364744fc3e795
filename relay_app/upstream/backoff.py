"""Exponential reconnect backoff with a cap and proportional jitter."""

import math
import random
from typing import Optional

from ..config.defaults import BackoffParams


class ExponentialBackoff:
    """
    Delay sequence base, base*factor, base*factor^2, ... capped at cap.

    Each delay is spread by +/- ``jitter`` of its value so that several
    relays restarting together don't reconnect in lockstep. ``reset`` is
    called after a successful connection.
    """

    def __init__(
        self,
        base_ms: int = 500,
        cap_ms: int = 30_000,
        factor: float = 2.0,
        jitter: float = 0.2,
        rng: Optional[random.Random] = None,
    ) -> None:
        if base_ms <= 0 or cap_ms < base_ms:
            raise ValueError("backoff requires 0 < base_ms <= cap_ms")
        if factor < 1:
            raise ValueError("backoff factor must be >= 1")
        if not 0 <= jitter <= 1:
            raise ValueError("backoff jitter must be within [0, 1]")

        self.base = base_ms / 1000.0
        self.cap = cap_ms / 1000.0
        self.factor = factor
        self.jitter = jitter
        self.attempts = 0
        self._rng = rng or random.Random()

        # past this exponent every delay is the cap
        if factor == 1:
            self._max_exponent = 0
        else:
            self._max_exponent = math.ceil(math.log(self.cap / self.base, factor))

    @classmethod
    def from_params(cls, params: BackoffParams, rng: Optional[random.Random] = None) -> "ExponentialBackoff":
        return cls(
            base_ms=params.base_ms,
            cap_ms=params.cap_ms,
            factor=params.factor,
            jitter=params.jitter,
            rng=rng,
        )

    def next_delay(self) -> float:
        """Seconds to wait before the next attempt."""
        exponent = min(self.attempts, self._max_exponent)
        delay = min(self.cap, self.base * (self.factor ** exponent))
        self.attempts += 1

        if self.jitter:
            spread = delay * self.jitter
            delay += self._rng.uniform(-spread, spread)

        return max(0.0, min(self.cap, delay))

    def reset(self) -> None:
        """Start over from the base delay."""
        self.attempts = 0
