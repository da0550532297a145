"""
Randomized exponential backoff.

Full jitter: the delay is drawn uniformly from [0, min(cap, base * 2 ** (attempt - 1))]
so that workers racing for the same rows do not retry in lockstep.
"""

import random


def compute_backoff(
    attempt: int,
    base: float,
    cap: float,
    rng: random.Random | None = None,
) -> float:
    """
    Compute the delay before retry number `attempt`.

    Args:
        attempt: 1-based attempt number that just failed.
        base: Delay ceiling for the first attempt, in seconds.
        cap: Upper bound for any delay, in seconds.
        rng: Optional random source (tests pass a seeded one).

    Returns:
        Delay in seconds, within [0, cap].
    """
    exponent = max(0, attempt - 1)
    ceiling = min(cap, base * (2 ** exponent))
    return (rng or random).uniform(0, ceiling)
