"""Random sampling helpers used to perturb bundle-adjustment problems."""

from __future__ import annotations

import math
import random


def rand_double(rng: random.Random) -> float:
    """Return a uniformly distributed number in [0, 1]."""
    return rng.random()


def rand_normal(rng: random.Random) -> float:
    """Return a standard normal sample using the Marsaglia polar method."""
    while True:
        x1 = 2.0 * rand_double(rng) - 1.0
        x2 = 2.0 * rand_double(rng) - 1.0
        w = x1 * x1 + x2 * x2
        if 0.0 < w < 1.0:
            break
    return x1 * math.sqrt((-2.0 * math.log(w)) / w)