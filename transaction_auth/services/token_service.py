"""
Bearer token issuer.

HS256-signed JWTs in two tiers:

- partial: issued at login, two_factor_verified=False, 24h
- full:    issued after step-up, two_factor_verified=True, 12h

The full tier is deliberately shorter-lived so sustained
sensitive access needs a fresh step-up. Verification only
needs the signing key; it never touches the database.
"""

from datetime import datetime, timedelta, timezone

import structlog
from jose import ExpiredSignatureError, JWTError, jwt

from transaction_auth.config import get_settings
from transaction_auth.errors import (
    InvalidSignatureError,
    MalformedTokenError,
    TokenExpiredError,
)
from transaction_auth.models.enums import Role
from transaction_auth.schemas.auth import Principal, TokenClaims

logger = structlog.get_logger(__name__)

REQUIRED_CLAIMS = ("sub", "email", "role", "two_factor_verified", "iat", "exp")


def utc_from_timestamp(ts: float) -> datetime:
    """Naive UTC datetime, matching how the models store time."""
    return datetime.fromtimestamp(ts, timezone.utc).replace(tzinfo=None)


class TokenIssuer:

    def __init__(
        self,
        secret_key: str | None = None,
        algorithm: str | None = None,
        partial_ttl: timedelta | None = None,
        full_ttl: timedelta | None = None,
    ):
        settings = get_settings()
        self.secret_key = secret_key or settings.JWT_SECRET
        self.algorithm = algorithm or settings.JWT_ALGORITHM
        self.partial_ttl = partial_ttl or timedelta(hours=settings.PARTIAL_TOKEN_HOURS)
        self.full_ttl = full_ttl or timedelta(hours=settings.FULL_TOKEN_HOURS)

    def issue_partial(
        self, principal: Principal, now: datetime | None = None
    ) -> tuple[str, datetime]:
        return self._issue(principal, False, self.partial_ttl, now)

    def issue_full(
        self, principal: Principal, now: datetime | None = None
    ) -> tuple[str, datetime]:
        return self._issue(principal, True, self.full_ttl, now)

    def _issue(
        self,
        principal: Principal,
        two_factor_verified: bool,
        ttl: timedelta,
        now: datetime | None,
    ) -> tuple[str, datetime]:
        now = now or datetime.utcnow()
        expires_at = now + ttl
        payload = {
            "sub": str(principal.user_id),
            "email": principal.email,
            "role": principal.role.value,
            "two_factor_verified": two_factor_verified,
            "iat": now,
            "exp": expires_at,
        }
        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        return token, expires_at

    def verify(self, token: str) -> TokenClaims:
        """
        Decode and validate a token.

        Raises MalformedTokenError when the token cannot be
        parsed, InvalidSignatureError when it was not signed
        with our key, and TokenExpiredError once exp has passed.
        """
        try:
            jwt.get_unverified_claims(token)
        except JWTError as e:
            raise MalformedTokenError("Malformed token") from e

        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except JWTError as e:
            logger.warning("token_rejected", reason=str(e))
            raise InvalidSignatureError("Invalid token signature") from e

        missing = [claim for claim in REQUIRED_CLAIMS if claim not in payload]
        if missing:
            raise MalformedTokenError(f"Token missing claims: {', '.join(missing)}")

        try:
            return TokenClaims(
                user_id=int(payload["sub"]),
                email=payload["email"],
                role=Role(payload["role"]),
                two_factor_verified=bool(payload["two_factor_verified"]),
                issued_at=utc_from_timestamp(payload["iat"]),
                expires_at=utc_from_timestamp(payload["exp"]),
            )
        except (TypeError, ValueError) as e:
            raise MalformedTokenError("Token claims are invalid") from e
