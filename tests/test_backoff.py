import random

import pytest

from dynamodb_clone.backoff import ExponentialBackoff


class TestExponentialBackoff:

    def test_delays_never_decrease_until_ceiling(self):
        boff = ExponentialBackoff(rng=random.Random(7))
        delays = [boff.next_delay() for _ in range(20)]

        for prior, following in zip(delays, delays[1:]):
            assert following >= prior
        assert delays[-1] == pytest.approx(1.5)
        assert all(d <= 1.5 for d in delays)

    def test_growth_without_jitter(self):
        boff = ExponentialBackoff(jitter=0)
        delays = [boff.next_delay() for _ in range(5)]
        assert delays == pytest.approx([0.5, 0.75, 1.125, 1.5, 1.5])

    def test_reset_returns_to_base_interval(self):
        boff = ExponentialBackoff(jitter=0)
        for _ in range(4):
            boff.next_delay()
        boff.reset()
        assert boff.current_interval == 0.5
        assert boff.next_delay() == pytest.approx(0.5)

    def test_jittered_delay_after_reset_stays_near_base(self):
        boff = ExponentialBackoff(rng=random.Random(3))
        for _ in range(6):
            boff.next_delay()
        boff.reset()
        assert 0.5 <= boff.next_delay() <= 0.75

    def test_delay_truncated_to_deadline(self, clock):
        boff = ExponentialBackoff(deadline=clock.deadline(0.3), jitter=0)
        assert boff.next_delay() == pytest.approx(0.3)

    def test_wait_gives_up_at_deadline(self, clock):
        boff = ExponentialBackoff(deadline=clock.deadline(0.6), jitter=0)

        assert boff.wait() is True
        assert clock.now == pytest.approx(0.5)
        # second delay (0.75) would overrun the 0.1s left
        assert boff.wait() is False
        assert clock.now == pytest.approx(0.6)

    def test_wait_after_deadline_does_not_sleep(self, clock):
        deadline = clock.deadline(1.0)
        clock.advance(2.0)
        boff = ExponentialBackoff(deadline=deadline)
        assert boff.wait() is False
        assert clock.sleeps == []

    def test_rejects_multiplier_that_breaks_ordering(self):
        with pytest.raises(ValueError):
            ExponentialBackoff(multiplier=1.2, jitter=0.5)

    def test_rejects_inverted_intervals(self):
        with pytest.raises(ValueError):
            ExponentialBackoff(initial_interval=2.0, max_interval=1.0)
