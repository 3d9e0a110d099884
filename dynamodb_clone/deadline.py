"""
Wall-clock budget for a single invocation.

A Deadline is an absolute point on a monotonic clock. Engines take one as an
argument instead of reading it from the invocation context, so tests can
drive time with a fake clock.
"""

import time
from typing import Callable, Optional


class Deadline:

    def __init__(self, at: float, clock: Callable[[], float] = time.monotonic,
                 sleeper: Optional[Callable[[float], None]] = None):
        self.at = at
        self.clock = clock
        self.sleeper = sleeper or time.sleep

    @classmethod
    def after(cls, seconds, clock=time.monotonic, sleeper=None):
        return cls(clock() + seconds, clock=clock, sleeper=sleeper)

    @classmethod
    def from_lambda_context(cls, context, clock=time.monotonic):
        return cls.after(context.get_remaining_time_in_millis() / 1000.0, clock=clock)

    def remaining(self) -> float:
        return max(0.0, self.at - self.clock())

    def expired(self) -> bool:
        return self.clock() >= self.at

    def shrink(self, margin: float) -> 'Deadline':
        """A deadline `margin` seconds earlier, sharing this clock."""
        return Deadline(self.at - margin, clock=self.clock, sleeper=self.sleeper)

    def sleep(self, seconds: float) -> bool:
        """Sleep for up to `seconds`, never past the deadline.

        Returns False when the deadline was reached instead of the full wait.
        """
        remaining = self.remaining()
        if seconds >= remaining:
            if remaining > 0:
                self.sleeper(remaining)
            return False
        if seconds > 0:
            self.sleeper(seconds)
        return not self.expired()

    def __repr__(self):
        return f"Deadline(remaining={self.remaining():.3f}s)"
