"""
Fixed-window rate limiter backed by the database.

The counter lives in storage, not in process memory, so every
worker shares it. One UPDATE both restarts an expired window
and increments the count; RETURNING hands back the value that
UPDATE produced, so two concurrent hits can never read the
same count.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog
from sqlalchemy import case, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from transaction_auth.errors import InternalError, RateLimitError
from transaction_auth.models.rate_limit import RateLimitWindow

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RateLimitStatus:
    key: str
    count: int
    limit: int
    reset_at: datetime
    now: datetime

    @property
    def allowed(self) -> bool:
        return self.count <= self.limit

    @property
    def retry_after(self) -> int:
        return max(1, math.ceil((self.reset_at - self.now).total_seconds()))

    def raise_for_limit(self) -> None:
        if not self.allowed:
            raise RateLimitError(
                "Too many requests, please try again later.",
                retry_after=self.retry_after,
            )


class RateLimiter:

    def __init__(self, db: Session):
        self.db = db

    def hit(
        self,
        key: str,
        limit: int,
        window_seconds: int,
        now: datetime | None = None,
    ) -> RateLimitStatus:
        """Count one request against `key` and report where it stands."""
        now = now or datetime.utcnow()
        window = timedelta(seconds=window_seconds)

        count, window_start = self._increment(key, now, window)

        status = RateLimitStatus(
            key=key,
            count=count,
            limit=limit,
            reset_at=window_start + window,
            now=now,
        )
        if not status.allowed:
            logger.warning("rate_limit_exceeded", key=key, count=count, limit=limit)
        return status

    def _increment(
        self, key: str, now: datetime, window: timedelta
    ) -> tuple[int, datetime]:
        expired = RateLimitWindow.window_start <= now - window
        stmt = (
            update(RateLimitWindow)
            .where(RateLimitWindow.key == key)
            .values(
                hit_count=case((expired, 1), else_=RateLimitWindow.hit_count + 1),
                window_start=case((expired, now), else_=RateLimitWindow.window_start),
            )
            .returning(RateLimitWindow.hit_count, RateLimitWindow.window_start)
            .execution_options(synchronize_session=False)
        )

        # Second pass covers losing the insert race for a brand-new key
        for _ in range(2):
            row = self.db.execute(stmt).first()
            if row is not None:
                return row.hit_count, row.window_start
            try:
                with self.db.begin_nested():
                    self.db.add(RateLimitWindow(key=key, window_start=now, hit_count=1))
                return 1, now
            except IntegrityError:
                continue

        raise InternalError(f"Could not update rate limit window for {key}")
