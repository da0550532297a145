"""
Unit tests for jittered backoff.
"""

import random

from cronlease.lease.backoff import compute_backoff


class TestComputeBackoff:
    """Tests for compute_backoff."""

    def test_within_exponential_ceiling(self):
        rng = random.Random(7)
        for attempt in range(1, 6):
            delay = compute_backoff(attempt, 0.1, 10.0, rng)
            assert 0 <= delay <= 0.1 * 2 ** (attempt - 1)

    def test_capped(self):
        rng = random.Random(7)
        delays = [compute_backoff(30, 0.1, 0.5, rng) for _ in range(50)]
        assert max(delays) <= 0.5

    def test_zero_base(self):
        assert compute_backoff(3, 0.0, 1.0) == 0.0

    def test_jitter_varies(self):
        rng = random.Random(11)
        delays = {compute_backoff(4, 1.0, 10.0, rng) for _ in range(10)}
        assert len(delays) > 1
