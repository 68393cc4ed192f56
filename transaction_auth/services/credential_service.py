"""
Credential verifier and lockout guard.

Passwords are hashed with bcrypt. Failed attempts are
counted per user; reaching the threshold locks the account
for a fixed duration.

The counter and lock_until are a pair: they are always
written by one UPDATE statement, so concurrent login
attempts against the same user cannot lose an increment
and nobody can observe the counter at the threshold without
the lock being set.
"""

import enum
from datetime import datetime, timedelta

import bcrypt
import structlog
from sqlalchemy import and_, case, null, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from transaction_auth.config import get_settings
from transaction_auth.errors import InternalError
from transaction_auth.models.user import User

logger = structlog.get_logger(__name__)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))


class VerificationOutcome(str, enum.Enum):
    VALID = "valid"
    INVALID = "invalid"
    LOCKED = "locked"


class CredentialVerifier:

    def __init__(
        self,
        db: Session,
        max_attempts: int | None = None,
        lockout: timedelta | None = None,
    ):
        settings = get_settings()
        self.db = db
        self.max_attempts = max_attempts or settings.MAX_FAILED_LOGIN_ATTEMPTS
        self.lockout = lockout or timedelta(minutes=settings.LOCKOUT_MINUTES)

    def is_locked(self, user: User, now: datetime | None = None) -> bool:
        return user.is_locked(now)

    def verify(
        self, user: User, password: str, now: datetime | None = None
    ) -> VerificationOutcome:
        """
        Check a password and update the lockout counters.

        A locked user gets LOCKED without the password being
        looked at. Storage or hash errors raise InternalError;
        they are never reported as VALID.
        """
        now = now or datetime.utcnow()
        try:
            # Lockout state may have been changed by another request
            self.db.refresh(user)
            if self.is_locked(user, now):
                return VerificationOutcome.LOCKED

            if check_password(password, user.password_hash):
                self._record_success(user, now)
                return VerificationOutcome.VALID

            self._record_failure(user, now)
            return VerificationOutcome.INVALID
        except (SQLAlchemyError, ValueError) as e:
            logger.error("credential_check_failed", user_id=user.id, error=str(e))
            raise InternalError("Credential verification failed") from e

    def _record_failure(self, user: User, now: datetime) -> None:
        """
        Increment the failure counter and lock at the threshold.

        If an earlier lock has already expired the count starts
        over at 1. SQL evaluates every right-hand side against
        the row as it was before the UPDATE.
        """
        lock_expired = and_(
            User.lock_until.is_not(None),
            User.lock_until <= now,
        )
        next_count = case(
            (lock_expired, 1),
            else_=User.failed_login_attempts + 1,
        )
        next_lock = case(
            (next_count >= self.max_attempts, now + self.lockout),
            (lock_expired, null()),
            else_=User.lock_until,
        )
        self.db.execute(
            update(User)
            .where(User.id == user.id)
            .values(failed_login_attempts=next_count, lock_until=next_lock)
            .execution_options(synchronize_session=False)
        )
        self.db.flush()
        self.db.refresh(user)

        if user.lock_until is not None:
            logger.warning(
                "account_locked",
                user_id=user.id,
                failures=user.failed_login_attempts,
                lock_until=user.lock_until.isoformat(),
            )
        else:
            logger.info(
                "login_failed", user_id=user.id, failures=user.failed_login_attempts
            )

    def _record_success(self, user: User, now: datetime) -> None:
        self.db.execute(
            update(User)
            .where(User.id == user.id)
            .values(failed_login_attempts=0, lock_until=None, last_login_at=now)
            .execution_options(synchronize_session=False)
        )
        self.db.flush()
        self.db.refresh(user)
