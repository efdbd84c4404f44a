"""
Exponential backoff with jitter for spacing out retry attempts.

``BackoffPolicy`` is the default wait-time generator used by
``Transport``. Each call to ``next_interval()`` returns the next delay
in milliseconds and advances an internal attempt counter; ``reset()``
puts the counter back to zero so independent batches start fresh.

Formula for attempt *n* (starting at 0)::

    base = min_timeout_ms * multiplier ** n
    base +/- random() * base * randomization_factor
    capped at max_timeout_ms

Any object with ``next_interval()`` and ``reset()`` can be passed to
``Transport`` instead (see the ``Backoff`` protocol).

CHANGELOG:
- 2026-10-18: Initial creation (STORY-004)

TODO:
- None
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from courier.src.config import TransportSettings

MIN_TIMEOUT_MS = 100
MAX_TIMEOUT_MS = 10_000
MULTIPLIER = 1.5
RANDOMIZATION_FACTOR = 0.5


class Backoff(Protocol):
    """Wait-time generator contract consumed by ``Transport``."""

    def next_interval(self) -> int: ...

    def reset(self) -> None: ...


class BackoffPolicy:
    """Stateful exponential backoff with randomized jitter.

    Args:
        min_timeout_ms: Base delay for the first retry.
        max_timeout_ms: Upper bound for any returned delay.
        multiplier: Growth factor applied per attempt (>= 1).
        randomization_factor: Fraction of the base delay used as the
            jitter range, between 0 and 1.
        rng: Random source, injectable for deterministic tests.

    Raises:
        ValueError: If any parameter is out of range.
    """

    def __init__(
        self,
        min_timeout_ms: int = MIN_TIMEOUT_MS,
        max_timeout_ms: int = MAX_TIMEOUT_MS,
        multiplier: float = MULTIPLIER,
        randomization_factor: float = RANDOMIZATION_FACTOR,
        rng: random.Random | None = None,
    ) -> None:
        if min_timeout_ms < 0:
            raise ValueError(
                f"min_timeout_ms must be >= 0 (got: {min_timeout_ms})"
            )
        if max_timeout_ms < min_timeout_ms:
            raise ValueError(
                "max_timeout_ms must be >= min_timeout_ms "
                f"(got: {max_timeout_ms} < {min_timeout_ms})"
            )
        if multiplier < 1:
            raise ValueError(f"multiplier must be >= 1 (got: {multiplier})")
        if not 0 <= randomization_factor <= 1:
            raise ValueError(
                "randomization_factor must be between 0 and 1 "
                f"(got: {randomization_factor})"
            )

        self._min_timeout_ms = min_timeout_ms
        self._max_timeout_ms = max_timeout_ms
        self._multiplier = multiplier
        self._randomization_factor = randomization_factor
        self._rng = rng or random.Random()
        self._attempts: int = 0

    @classmethod
    def from_settings(cls, settings: TransportSettings) -> BackoffPolicy:
        """Build a policy from the ``backoff_*`` fields of *settings*."""
        return cls(
            min_timeout_ms=settings.backoff_min_timeout_ms,
            max_timeout_ms=settings.backoff_max_timeout_ms,
            multiplier=settings.backoff_multiplier,
            randomization_factor=settings.backoff_randomization_factor,
        )

    @property
    def attempts(self) -> int:
        """Number of intervals handed out since the last reset."""
        return self._attempts

    def next_interval(self) -> int:
        """Return the next delay in milliseconds and advance the counter."""
        interval = self._min_timeout_ms * (self._multiplier**self._attempts)
        interval = self._add_jitter(interval)
        self._attempts += 1
        return max(0, int(min(interval, self._max_timeout_ms)))

    def reset(self) -> None:
        """Forget previous attempts so the next delay is the base delay."""
        self._attempts = 0

    def _add_jitter(self, base: float) -> float:
        random_number = self._rng.random()
        deviation = random_number * base * self._randomization_factor
        if random_number < 0.5:
            return base - deviation
        return base + deviation
