"""
Random Range Sampler

Uniform draws within inclusive bounds:
- sample_int: plain bounded integers (quota, delay seconds)
- sample_wide_amount: wei-scale integers beyond float precision
"""

import random
from dataclasses import dataclass
from typing import Optional

from .errors import ConfigurationError


WORD_BITS = 32
WORD_MASK = (1 << WORD_BITS) - 1
MIN_WORDS = 2


def _check_bounds(minimum: int, maximum: int, label: str, allow_negative: bool = True):
    if not isinstance(minimum, int) or not isinstance(maximum, int):
        raise ConfigurationError(f"{label} bounds must be integers, got {minimum!r}..{maximum!r}")
    if maximum < minimum:
        raise ConfigurationError(f"{label} range inverted: min={minimum} > max={maximum}")
    if not allow_negative and minimum < 0:
        raise ConfigurationError(f"{label} range must be non-negative, got min={minimum}")


@dataclass(frozen=True)
class AmountRange:
    """Transfer amount bounds in wei"""
    minimum: int
    maximum: int

    def __post_init__(self):
        _check_bounds(self.minimum, self.maximum, "amount", allow_negative=False)


@dataclass(frozen=True)
class DelayRange:
    """Pacing delay bounds in seconds"""
    minimum: int
    maximum: int

    def __post_init__(self):
        _check_bounds(self.minimum, self.maximum, "delay", allow_negative=False)


@dataclass(frozen=True)
class QuotaRange:
    """Transfers per day bounds"""
    minimum: int
    maximum: int

    def __post_init__(self):
        _check_bounds(self.minimum, self.maximum, "quota", allow_negative=False)


class RandomRangeSampler:
    """
    Uniform integer sampler over an injectable random source

    Uses random.SystemRandom by default. Pass a seeded random.Random
    for reproducible draws.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng if rng is not None else random.SystemRandom()

    def sample_int(self, minimum: int, maximum: int) -> int:
        """Uniform integer in [minimum, maximum]"""
        _check_bounds(minimum, maximum, "sample")
        if minimum == maximum:
            return minimum
        return self.rng.randint(minimum, maximum)

    def sample_wide_amount(self, minimum: int, maximum: int) -> int:
        """
        Uniform wide integer in [minimum, maximum]

        Builds a random value from independent 32-bit words (at least two,
        more when the span needs them) and reduces it modulo span + 1.
        Draws that fall in the incomplete top block of the word range are
        redrawn, so every value in the span is equally likely. No float
        scaling is involved, so 10**18-scale bounds stay exact.

        Args:
            minimum: Lower bound (wei)
            maximum: Upper bound (wei)

        Returns:
            Sampled amount
        """
        _check_bounds(minimum, maximum, "amount", allow_negative=False)

        modulus = maximum - minimum + 1
        if modulus == 1:
            return minimum

        words = max(MIN_WORDS, -(-modulus.bit_length() // WORD_BITS))
        limit = 1 << (words * WORD_BITS)
        accept_below = limit - limit % modulus

        while True:
            value = 0
            for _ in range(words):
                value = (value << WORD_BITS) | self._draw_word()
            if value < accept_below:
                return minimum + value % modulus

    def _draw_word(self) -> int:
        return self.rng.getrandbits(WORD_BITS) & WORD_MASK
