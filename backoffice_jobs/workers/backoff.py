from datetime import datetime, timedelta
from typing import Optional


class RetryPolicy:
    """
    Exponential retry delay.

    After the k-th failed attempt the job waits ``unit * base**k``: with the
    defaults that is 4, 16, 64... minutes, measured from when the failed
    attempt started. The wait never exceeds ``max_delay``.
    """

    def __init__(
            self,
            base: int = 4,
            unit: timedelta = timedelta(minutes=1),
            max_delay: Optional[timedelta] = timedelta(days=7),
    ):
        if base < 2:
            raise ValueError("backoff base must be >= 2")
        if max_delay is not None and max_delay < unit:
            raise ValueError("max_delay must be >= unit")
        self.base = base
        self.unit = unit
        self.max_delay = max_delay

    def delay(self, retry_count: int) -> timedelta:
        factor = self.base ** retry_count
        if self.max_delay is not None and self.unit and factor > self.max_delay / self.unit:
            return self.max_delay
        return self.unit * factor

    def next_run_at(self, attempt_started_at: datetime, retry_count: int) -> datetime:
        try:
            return attempt_started_at + self.delay(retry_count)
        except OverflowError:
            # no cap configured; park the retry at the end of the representable range
            return datetime.max.replace(tzinfo=attempt_started_at.tzinfo)
