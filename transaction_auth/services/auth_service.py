"""
Authentication service: registration, login and step-up.

Login goes: credential check (with lockout) → partial token.
A user with 2FA enabled then calls verify_step_up() with a
one-time code to trade up for a full token.

Failed logins still change state (the lockout counter), so
login() does not raise on bad credentials. It returns a
LoginOutcome; the caller commits the counter update first
and then calls outcome.raise_for_failure().
"""

from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from transaction_auth.errors import (
    AccountLockedError,
    AuthenticationError,
    ConflictError,
    InvalidCodeError,
    ValidationError,
)
from transaction_auth.models.enums import AuditAction
from transaction_auth.models.user import User
from transaction_auth.schemas.audit import AuditEventCreate
from transaction_auth.schemas.auth import (
    LoginRequest,
    Principal,
    RegisterRequest,
    TokenResponse,
)
from transaction_auth.services.credential_service import (
    CredentialVerifier,
    VerificationOutcome,
    hash_password,
)
from transaction_auth.services.step_up_service import StepUpAuthenticator
from transaction_auth.services.token_service import TokenIssuer

logger = structlog.get_logger(__name__)


@dataclass
class LoginOutcome:
    result: VerificationOutcome
    user: User | None = None
    token: str | None = None
    retry_after: int | None = None

    def raise_for_failure(self) -> None:
        if self.result == VerificationOutcome.LOCKED:
            raise AccountLockedError(
                "Account temporarily locked. Please try again later.",
                retry_after=self.retry_after,
            )
        if self.result == VerificationOutcome.INVALID:
            raise AuthenticationError("Invalid credentials")

    @property
    def requires_2fa(self) -> bool:
        return bool(self.user and self.user.two_factor_enabled)


class AuthService:

    def __init__(self, db: Session, token_issuer: TokenIssuer | None = None):
        self.db = db
        self.tokens = token_issuer or TokenIssuer()
        self.credentials = CredentialVerifier(db)
        self.step_up = StepUpAuthenticator(db)

    def get_user(self, user_id: int) -> User | None:
        return self.db.get(User, user_id)

    def get_user_by_email(self, email: str) -> User | None:
        return self.db.execute(
            select(User).where(User.email == email.lower())
        ).scalar_one_or_none()

    def register(self, request: RegisterRequest) -> tuple[User, AuditEventCreate]:
        """Create a new user."""
        if self.get_user_by_email(request.email):
            raise ConflictError("User already exists with this email")

        user = User(
            email=request.email,
            password_hash=hash_password(request.password),
            role=request.role,
        )
        self.db.add(user)
        self.db.flush()

        logger.info("user_registered", user_id=user.id, role=user.role.value)

        event = AuditEventCreate.for_actor(
            AuditAction.USER_CREATE, Principal.from_user(user),
            resource_type="User", resource_id=user.id,
        )
        return user, event

    def login(
        self, request: LoginRequest, now: datetime | None = None
    ) -> tuple[LoginOutcome, AuditEventCreate | None]:
        """
        Check credentials and mint a partial token on success.

        Unknown and inactive accounts look exactly like a wrong
        password to the caller, and leave no audit entry since
        there is no actor to attribute it to.
        """
        now = now or datetime.utcnow()
        user = self.get_user_by_email(request.email)
        if user is None or not user.is_active:
            logger.info("login_unknown_account")
            return LoginOutcome(VerificationOutcome.INVALID), None

        result = self.credentials.verify(user, request.password, now)
        principal = Principal.from_user(user)

        if result == VerificationOutcome.VALID:
            token, _ = self.tokens.issue_partial(principal, now)
            event = AuditEventCreate.for_actor(
                AuditAction.LOGIN, principal,
                resource_type="User", resource_id=user.id,
                requires_2fa=user.two_factor_enabled,
            )
            return LoginOutcome(result, user=user, token=token), event

        retry_after = None
        if user.lock_until is not None and user.is_locked(now):
            retry_after = max(1, int((user.lock_until - now).total_seconds()))
        event = AuditEventCreate.for_actor(
            AuditAction.LOGIN_FAILED, principal,
            resource_type="User", resource_id=user.id,
            reason=result.value,
            failed_attempts=user.failed_login_attempts,
        )
        return LoginOutcome(result, user=user, retry_after=retry_after), event

    def verify_step_up(
        self, user: User, code: str, at: datetime | float | None = None
    ) -> tuple[TokenResponse, AuditEventCreate]:
        """Trade a valid one-time code for a full (step-up) token."""
        if not user.two_factor_enabled:
            raise ValidationError("2FA is not enabled for this account")

        if not self.step_up.verify_code(user, code, at):
            logger.info("step_up_rejected", user_id=user.id)
            raise InvalidCodeError("Invalid 2FA code")

        principal = Principal.from_user(user)
        token, expires_at = self.tokens.issue_full(principal)

        event = AuditEventCreate.for_actor(
            AuditAction.TWO_FACTOR_VERIFY, principal,
            resource_type="User", resource_id=user.id,
        )
        return TokenResponse(token=token, expires_at=expires_at), event
