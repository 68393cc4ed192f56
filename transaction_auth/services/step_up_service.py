"""
Step-up authenticator: TOTP enrollment and verification.

Enrollment is a small state machine per user:

    NOT_ENROLLED --begin_enrollment--> SECRET_GENERATED
    SECRET_GENERATED --confirm_enrollment(valid code)--> ENABLED
    ENABLED --disable--> NOT_ENROLLED

Codes follow RFC 6238 (30-second steps, six digits) and are
accepted one step either side of the current one to absorb
clock drift between server and phone.
"""

from datetime import datetime

import pyotp
import structlog
from sqlalchemy.orm import Session

from transaction_auth.config import get_settings
from transaction_auth.errors import ConflictError, InvalidCodeError
from transaction_auth.models.enums import AuditAction, TwoFactorState
from transaction_auth.models.user import User
from transaction_auth.schemas.audit import AuditEventCreate
from transaction_auth.schemas.auth import EnrollmentResponse, Principal

logger = structlog.get_logger(__name__)


class StepUpAuthenticator:

    def __init__(self, db: Session, valid_window: int | None = None):
        settings = get_settings()
        self.db = db
        self.issuer = settings.TOTP_ISSUER
        self.valid_window = (
            settings.TOTP_VALID_WINDOW if valid_window is None else valid_window
        )

    def begin_enrollment(
        self, user: User
    ) -> tuple[EnrollmentResponse, AuditEventCreate]:
        """
        Generate a fresh shared secret and store it as pending.

        2FA stays disabled until confirm_enrollment() sees a
        valid code. Calling this again while pending replaces
        the pending secret.
        """
        if user.two_factor_state == TwoFactorState.ENABLED:
            raise ConflictError("2FA is already enabled; disable it first")

        secret = pyotp.random_base32()
        user.two_factor_secret = secret
        user.two_factor_enabled = False
        self.db.flush()

        uri = pyotp.TOTP(secret).provisioning_uri(
            name=user.email, issuer_name=self.issuer
        )
        logger.info("two_factor_secret_generated", user_id=user.id)

        event = AuditEventCreate.for_actor(
            AuditAction.TWO_FACTOR_SETUP, Principal.from_user(user),
            resource_type="User", resource_id=user.id,
        )
        return EnrollmentResponse(secret=secret, provisioning_uri=uri), event

    def verify_code(
        self, user: User, code: str, at: datetime | float | None = None
    ) -> bool:
        """Check a code against the stored secret. Never mutates."""
        if not user.two_factor_secret:
            return False
        totp = pyotp.TOTP(user.two_factor_secret)
        return totp.verify(code, for_time=at, valid_window=self.valid_window)

    def confirm_enrollment(
        self, user: User, code: str, at: datetime | float | None = None
    ) -> AuditEventCreate:
        state = user.two_factor_state
        if state == TwoFactorState.NOT_ENROLLED:
            raise ConflictError("2FA secret not generated")
        if state == TwoFactorState.ENABLED:
            raise ConflictError("2FA is already enabled")

        if not self.verify_code(user, code, at):
            logger.info("two_factor_confirm_rejected", user_id=user.id)
            raise InvalidCodeError("Invalid 2FA code")

        user.two_factor_enabled = True
        self.db.flush()
        logger.info("two_factor_enabled", user_id=user.id)

        return AuditEventCreate.for_actor(
            AuditAction.TWO_FACTOR_ENABLE, Principal.from_user(user),
            resource_type="User", resource_id=user.id,
        )

    def disable(self, user: User) -> AuditEventCreate:
        user.two_factor_secret = None
        user.two_factor_enabled = False
        self.db.flush()
        logger.info("two_factor_disabled", user_id=user.id)

        return AuditEventCreate.for_actor(
            AuditAction.TWO_FACTOR_DISABLE, Principal.from_user(user),
            resource_type="User", resource_id=user.id,
        )
