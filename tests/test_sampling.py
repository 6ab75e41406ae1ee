import random
import statistics

from slamkit.sampling import rand_double, rand_normal


class _ScriptedRng:
    """Deterministic stand-in that hands out a fixed sequence of values."""

    def __init__(self, values):
        self._values = iter(values)
        self.calls = 0

    def random(self):
        self.calls += 1
        return next(self._values)


def test_rand_double_in_unit_interval():
    rng = random.Random(7)
    samples = [rand_double(rng) for _ in range(1000)]
    assert all(0.0 <= s <= 1.0 for s in samples)


def test_rand_double_passes_through_generator_value():
    rng = _ScriptedRng([0.25])
    assert rand_double(rng) == 0.25


def test_rand_normal_is_reproducible_with_seed():
    a = [rand_normal(random.Random(42)) for _ in range(5)]
    b = [rand_normal(random.Random(42)) for _ in range(5)]
    assert a == b


def test_rand_normal_rejects_zero_and_outside_unit_circle():
    # (0.5, 0.5) -> w == 0, (1.0, 1.0) -> w >= 1, then (0.75, 0.5) is accepted.
    rng = _ScriptedRng([0.5, 0.5, 1.0, 1.0, 0.75, 0.5])
    value = rand_normal(rng)
    assert rng.calls == 6
    assert value > 0.0


def test_rand_normal_moments():
    rng = random.Random(1234)
    samples = [rand_normal(rng) for _ in range(20000)]
    assert abs(statistics.fmean(samples)) < 0.05
    assert abs(statistics.pstdev(samples) - 1.0) < 0.05