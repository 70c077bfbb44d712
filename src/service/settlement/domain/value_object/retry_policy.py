from datetime import datetime, timedelta

import attrs

from src.platform.config.core_setting import settings


@attrs.frozen
class RetryPolicy:
    """Exponential backoff for ledger calls that have not reached finality"""

    base_delay_seconds: float = 2.0
    max_delay_seconds: float = 300.0
    max_attempts: int = 10

    @classmethod
    def from_settings(cls) -> 'RetryPolicy':
        return cls(
            base_delay_seconds=settings.RETRY_BASE_DELAY_SECONDS,
            max_delay_seconds=settings.RETRY_MAX_DELAY_SECONDS,
            max_attempts=settings.MAX_LEDGER_ATTEMPTS,
        )

    def delay_for(self, attempt: int) -> timedelta:
        """attempt is 1-based: 1 -> base, 2 -> 2*base, ... capped at max_delay"""
        exponent = max(attempt - 1, 0)
        seconds = min(self.max_delay_seconds, self.base_delay_seconds * (2**exponent))
        return timedelta(seconds=seconds)

    def next_attempt_at(self, *, attempt: int, now: datetime) -> datetime:
        return now + self.delay_for(attempt)

    def is_exhausted(self, attempts: int) -> bool:
        return attempts >= self.max_attempts
