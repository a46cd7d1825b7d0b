# --- Standard library imports ---
import random

# --- Project imports ---
from .logger import get_logger


class SchedulingPolicy:
    """
    Paces the health-check loop.

    A cycle that overruns the interval yields a zero sleep, so the next
    cycle starts right after it instead of stacking up behind it.
    """

    def __init__(self, interval_s: float, jitter_s: float = 0.0):
        self.interval_s = interval_s
        self.jitter_s = jitter_s
        self.logger = get_logger("scheduling_policy")

    def next_sleep(self, elapsed: float) -> float:
        remaining = self.interval_s - elapsed
        if self.jitter_s:
            remaining += random.uniform(-self.jitter_s, self.jitter_s)

        if remaining <= 0:
            self.logger.warning(
                f"Health check took {elapsed:.1f}s (interval {self.interval_s:g}s); "
                "starting next cycle immediately"
            )
            return 0.0

        return remaining
