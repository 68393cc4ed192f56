"""
Tests for the fixed-window rate limiter.
"""

from datetime import datetime, timedelta

import pytest

from transaction_auth.errors import RateLimitError
from transaction_auth.models.rate_limit import RateLimitWindow
from transaction_auth.services.rate_limiter import RateLimiter


NOW = datetime(2026, 3, 2, 12, 0, 0)


class TestHit:

    def test_first_hit_creates_window(self, db_session):
        status = RateLimiter(db_session).hit("login:10.0.0.1", 5, 60, now=NOW)
        db_session.commit()

        assert status.count == 1
        assert status.allowed
        assert status.reset_at == NOW + timedelta(seconds=60)
        assert db_session.get(RateLimitWindow, "login:10.0.0.1").hit_count == 1

    def test_hits_accumulate_within_window(self, db_session):
        limiter = RateLimiter(db_session)
        for _ in range(3):
            status = limiter.hit("k", 5, 60, now=NOW)

        assert status.count == 3
        assert status.allowed

    def test_exceeding_limit(self, db_session):
        limiter = RateLimiter(db_session)
        for _ in range(2):
            limiter.hit("k", 2, 60, now=NOW)

        status = limiter.hit("k", 2, 60, now=NOW + timedelta(seconds=20))

        assert not status.allowed
        assert status.retry_after == 40
        with pytest.raises(RateLimitError) as exc_info:
            status.raise_for_limit()
        assert exc_info.value.retry_after == 40

    def test_window_restarts_after_expiry(self, db_session):
        limiter = RateLimiter(db_session)
        for _ in range(3):
            limiter.hit("k", 2, 60, now=NOW)

        later = NOW + timedelta(seconds=61)
        status = limiter.hit("k", 2, 60, now=later)

        assert status.count == 1
        assert status.allowed
        assert status.reset_at == later + timedelta(seconds=60)

    def test_keys_are_independent(self, db_session):
        limiter = RateLimiter(db_session)
        limiter.hit("login:a", 1, 60, now=NOW)

        assert limiter.hit("login:b", 1, 60, now=NOW).allowed
        assert not limiter.hit("login:a", 1, 60, now=NOW).allowed

    def test_count_is_shared_between_sessions(self, db_session, session_factory):
        RateLimiter(db_session).hit("shared", 5, 60, now=NOW)
        db_session.commit()

        other = session_factory()
        try:
            status = RateLimiter(other).hit("shared", 5, 60, now=NOW)
            other.commit()
        finally:
            other.close()

        assert status.count == 2
