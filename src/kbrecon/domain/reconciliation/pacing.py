"""Adaptive pacing between property buckets and between windows."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class BucketTally:
    """Running outcome counts for the property bucket being processed."""

    successes: int = 0
    no_matches: int = 0
    errors: int = 0

    @property
    def error_rate(self) -> float:
        total = self.errors + self.successes + self.no_matches
        return self.errors / total if total else 0.0


@dataclass(frozen=True, slots=True)
class PacingPolicy:
    """Delays, in seconds, applied by the batch coordinator.

    The bucket delay grows with the bucket index and is capped; the window
    delay doubles when the running error rate of the bucket exceeds
    ``high_error_rate``. The two are independent.
    """

    bucket_base: float = 0.5
    bucket_step: float = 0.1
    bucket_max: float = 2.0
    window_delay: float = 0.1
    window_delay_high_error: float = 0.2
    high_error_rate: float = 0.5

    def bucket_delay(self, bucket_index: int) -> float:
        if bucket_index <= 0:
            return 0.0
        return min(self.bucket_base + self.bucket_step * bucket_index, self.bucket_max)

    def window_pause(self, tally: BucketTally) -> float:
        if tally.error_rate > self.high_error_rate:
            return self.window_delay_high_error
        return self.window_delay


NO_PACING = PacingPolicy(
    bucket_base=0.0,
    bucket_step=0.0,
    bucket_max=0.0,
    window_delay=0.0,
    window_delay_high_error=0.0,
)
