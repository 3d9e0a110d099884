import random
import time

from dynamodb_clone import config


class ExponentialBackoff:
    """
    Exponential delays for throttled DynamoDB calls.

    The interval starts at `initial_interval` and is multiplied by
    `multiplier` after every delay, up to `max_interval`. Jitter only ever
    adds to the interval, so successive delays never shrink until reset().

    When bound to a Deadline, delays are truncated to the time left and
    wait() gives up (returns False) once the deadline is reached.
    """

    def __init__(self, deadline=None,
                 initial_interval=config.BACKOFF_INITIAL_INTERVAL,
                 multiplier=config.BACKOFF_MULTIPLIER,
                 max_interval=config.BACKOFF_MAX_INTERVAL,
                 jitter=config.BACKOFF_JITTER,
                 rng=None):
        if initial_interval <= 0 or max_interval < initial_interval:
            raise ValueError("backoff intervals must satisfy 0 < initial <= max")
        if multiplier < 1 + jitter:
            # a smaller multiplier lets a low draw follow a high one
            raise ValueError("multiplier must be at least 1 + jitter")
        self.deadline = deadline
        self.initial_interval = initial_interval
        self.multiplier = multiplier
        self.max_interval = max_interval
        self.jitter = jitter
        self.rng = rng or random.Random()
        self.current_interval = initial_interval

    def reset(self):
        self.current_interval = self.initial_interval

    def next_delay(self) -> float:
        delay = self.current_interval * (1 + self.jitter * self.rng.random())
        delay = min(delay, self.max_interval)
        self.current_interval = min(self.current_interval * self.multiplier, self.max_interval)
        if self.deadline is not None:
            delay = min(delay, self.deadline.remaining())
        return delay

    def wait(self) -> bool:
        """Sleep for the next delay. False means the deadline cut it short."""
        delay = self.next_delay()
        if self.deadline is None:
            time.sleep(delay)
            return True
        return self.deadline.sleep(delay)
