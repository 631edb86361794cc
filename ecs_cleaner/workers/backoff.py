"""Exponential backoff with jitter."""

import random

from ecs_cleaner.core.config import settings


class Backoff:
    """
    Exponential backoff counter.

    Every call to ``duration()`` returns the next delay and advances the
    attempt counter: ``min * factor ** attempt``, capped at ``max``. With
    jitter the delay is drawn uniformly between ``min`` and that value, so the
    first delay after ``reset()`` is always exactly ``min``.

    Not thread-safe; the retirement dispatcher is its only user.
    """

    def __init__(
        self,
        min: float | None = None,
        max: float | None = None,
        factor: float | None = None,
        jitter: bool | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.min = settings.BACKOFF_MIN_SECONDS if min is None else min
        self.max = settings.BACKOFF_MAX_SECONDS if max is None else max
        self.factor = settings.BACKOFF_FACTOR if factor is None else factor
        self.jitter = settings.BACKOFF_JITTER if jitter is None else jitter
        self.rng = rng or random.Random()
        self.attempt = 0

        if self.max < self.min:
            raise ValueError(f"Backoff max ({self.max}) must be >= min ({self.min})")

    def duration(self) -> float:
        """Return the delay for the current attempt and advance to the next one."""
        delay = self.for_attempt(self.attempt)
        self.attempt += 1
        return delay

    def for_attempt(self, attempt: int) -> float:
        """Delay for a given attempt number, without touching the counter."""
        try:
            delay = self.min * self.factor**attempt
        except OverflowError:
            delay = self.max
        delay = min(delay, self.max)

        if self.jitter:
            delay = self.rng.uniform(self.min, delay)

        return delay

    def reset(self) -> None:
        """Go back to the minimum delay."""
        self.attempt = 0
