"""
Unit Tests for RandomRangeSampler

Tests bounds, degenerate ranges, fail-fast on inverted ranges and
distribution uniformity.
"""

import random

import pytest

from transfer_pacer.errors import ConfigurationError
from transfer_pacer.range_sampler import WORD_MASK, AmountRange, DelayRange, QuotaRange, RandomRangeSampler
from transfer_pacer.units import parse_ether


# Chi-square critical value, 9 degrees of freedom, alpha = 0.001
CHI_SQUARE_CRITICAL_DF9 = 27.877
# Chi-square critical value, 2 degrees of freedom, alpha = 0.001
CHI_SQUARE_CRITICAL_DF2 = 13.816
DRAWS = 20_000
BUCKETS = 10


def chi_square(counts, expected):
    return sum((c - expected) ** 2 / expected for c in counts)


class CountingRandom(random.Random):
    """Seeded random source counting getrandbits calls"""

    def __init__(self, seed):
        super().__init__(seed)
        self.word_draws = 0

    def getrandbits(self, k):
        self.word_draws += 1
        return super().getrandbits(k)


class ScriptedWords(random.Random):
    """Returns a fixed sequence of 32-bit words"""

    def __init__(self, words):
        super().__init__(0)
        self.words = list(words)
        self.word_draws = 0

    def getrandbits(self, k):
        self.word_draws += 1
        return self.words.pop(0)


@pytest.fixture
def sampler():
    return RandomRangeSampler(random.Random(20240601))


class TestSampleInt:

    def test_within_bounds(self, sampler):
        for _ in range(2000):
            assert 3 <= sampler.sample_int(3, 6) <= 6

    def test_all_values_reachable(self, sampler):
        seen = {sampler.sample_int(3, 6) for _ in range(500)}
        assert seen == {3, 4, 5, 6}

    def test_equal_bounds_is_constant(self, sampler):
        assert all(sampler.sample_int(60, 60) == 60 for _ in range(50))

    def test_inverted_bounds_fail_fast(self, sampler):
        with pytest.raises(ConfigurationError):
            sampler.sample_int(10, 9)

    def test_uniformity(self, sampler):
        counts = [0] * BUCKETS
        for _ in range(DRAWS):
            counts[sampler.sample_int(0, BUCKETS - 1)] += 1

        assert chi_square(counts, DRAWS / BUCKETS) < CHI_SQUARE_CRITICAL_DF9

    def test_default_source_is_system_random(self):
        assert isinstance(RandomRangeSampler().rng, random.SystemRandom)


class TestSampleWideAmount:

    def test_within_wei_bounds(self, sampler):
        low, high = parse_ether("0.0001"), parse_ether("0.001")
        for _ in range(2000):
            assert low <= sampler.sample_wide_amount(low, high) <= high

    def test_equal_bounds_returns_min(self, sampler):
        amount = parse_ether("1")
        assert all(sampler.sample_wide_amount(amount, amount) == amount for _ in range(50))

    def test_inverted_bounds_fail_fast(self, sampler):
        with pytest.raises(ConfigurationError):
            sampler.sample_wide_amount(parse_ether("0.001"), parse_ether("0.0001"))

    def test_negative_bounds_rejected(self, sampler):
        with pytest.raises(ConfigurationError):
            sampler.sample_wide_amount(-1, 10)

    def test_composes_at_least_two_words(self):
        rng = CountingRandom(7)
        RandomRangeSampler(rng).sample_wide_amount(0, 9)
        assert rng.word_draws == 2

    def test_equal_bounds_draws_nothing(self):
        rng = CountingRandom(7)
        RandomRangeSampler(rng).sample_wide_amount(5, 5)
        assert rng.word_draws == 0

    def test_span_beyond_64_bits_is_reachable(self, sampler):
        values = [sampler.sample_wide_amount(0, 2 ** 80) for _ in range(50)]
        assert all(0 <= v <= 2 ** 80 for v in values)
        assert any(v > 2 ** 64 for v in values)

    def test_uniformity_near_word_boundary(self, sampler):
        # two words cover this span with only a quarter of the range to spare
        modulus = 3 * 2 ** 62
        counts = [0] * 3
        for _ in range(DRAWS):
            counts[sampler.sample_wide_amount(0, modulus - 1) * 3 // modulus] += 1

        assert chi_square(counts, DRAWS / 3) < CHI_SQUARE_CRITICAL_DF2

    def test_draw_above_last_full_block_is_redrawn(self):
        rng = ScriptedWords([WORD_MASK, WORD_MASK, 0, 5])
        value = RandomRangeSampler(rng).sample_wide_amount(0, 3 * 2 ** 62 - 1)

        assert value == 5
        assert rng.word_draws == 4

    def test_uniformity_small_span(self, sampler):
        base = 10 ** 18
        counts = [0] * BUCKETS
        for _ in range(DRAWS):
            counts[sampler.sample_wide_amount(base, base + BUCKETS - 1) - base] += 1

        assert chi_square(counts, DRAWS / BUCKETS) < CHI_SQUARE_CRITICAL_DF9

    def test_uniformity_wei_span(self, sampler):
        low, high = parse_ether("0.0001"), parse_ether("0.001")
        modulus = high - low + 1
        counts = [0] * BUCKETS
        for _ in range(DRAWS):
            value = sampler.sample_wide_amount(low, high)
            counts[(value - low) * BUCKETS // modulus] += 1

        assert chi_square(counts, DRAWS / BUCKETS) < CHI_SQUARE_CRITICAL_DF9


class TestRangeTypes:

    def test_valid_ranges(self):
        assert QuotaRange(3, 6).maximum == 6
        assert DelayRange(60, 60).minimum == 60
        assert AmountRange(0, 10 ** 30).maximum == 10 ** 30

    @pytest.mark.parametrize("range_type", [QuotaRange, DelayRange, AmountRange])
    def test_inverted_range_rejected(self, range_type):
        with pytest.raises(ConfigurationError, match="inverted"):
            range_type(5, 4)

    @pytest.mark.parametrize("range_type", [QuotaRange, DelayRange, AmountRange])
    def test_negative_range_rejected(self, range_type):
        with pytest.raises(ConfigurationError):
            range_type(-1, 4)

    def test_non_integer_rejected(self):
        with pytest.raises(ConfigurationError):
            DelayRange(1.5, 3)
