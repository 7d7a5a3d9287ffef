import logging
from datetime import timedelta
from enum import Enum

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import RateLimitExceededError
from app.models import RateLimitAttempt
from app.utils.time_utils import Clock, ensure_utc

logger = logging.getLogger(__name__)

class FailurePolicy(str, Enum):
    """What to do when the limiter itself cannot be consulted."""
    FAIL_OPEN = "fail_open"
    FAIL_CLOSED = "fail_closed"

class RateLimiter:
    """Sliding-window attempt counter backed by the rate_limit_attempts table."""

    def __init__(self, db: AsyncSession, clock: Clock):
        self.db = db
        self.clock = clock

    async def hit(
        self,
        key: str,
        max_attempts: int,
        window: timedelta,
        policy: FailurePolicy
    ) -> None:
        """
        Record an attempt for ``key`` or raise when the window is full.

        The attempt row is added to the current transaction and persists with
        the caller's commit. When counting fails, ``policy`` decides: open lets
        the call through, closed raises RateLimitExceededError.
        """
        now = self.clock.now()
        window_start = now - window
        try:
            result = await self.db.execute(
                select(func.count(), func.min(RateLimitAttempt.created_at)).where(
                    RateLimitAttempt.key == key,
                    RateLimitAttempt.created_at >= window_start
                )
            )
            count, oldest = result.one()
        except Exception as e:
            logger.error(f"Rate limit check failed for {key}: {e}")
            if policy == FailurePolicy.FAIL_CLOSED:
                raise RateLimitExceededError("Rate limiting unavailable, try again later", int(window.total_seconds()))
            return

        if count >= max_attempts:
            reset_at = ensure_utc(oldest) + window if oldest else now + window
            retry_after = max(1, int((reset_at - now).total_seconds()))
            logger.info(f"Rate limit exceeded for {key}: {count} attempts in window")
            raise RateLimitExceededError(f"Too many attempts. Try again in {retry_after} seconds.", retry_after)

        self.db.add(RateLimitAttempt(key=key, created_at=now))
