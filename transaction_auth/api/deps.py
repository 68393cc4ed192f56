"""
Shared FastAPI dependencies: bearer auth, roles, rate limits.
"""

from datetime import datetime

from fastapi import Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from transaction_auth.config import get_settings
from transaction_auth.errors import (
    AccountLockedError,
    AuthenticationError,
    AuthorizationError,
)
from transaction_auth.models.base import get_db
from transaction_auth.models.enums import Role
from transaction_auth.models.user import User
from transaction_auth.schemas.audit import RequestContext
from transaction_auth.schemas.auth import TokenClaims
from transaction_auth.schemas.pagination import PageParams
from transaction_auth.services.rate_limiter import RateLimiter
from transaction_auth.services.token_service import TokenIssuer

bearer_scheme = HTTPBearer(auto_error=False)


def get_token_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> TokenClaims:
    if credentials is None:
        raise AuthenticationError("Access token required")
    return TokenIssuer().verify(credentials.credentials)


def get_current_user(
    claims: TokenClaims = Depends(get_token_claims),
    db: Session = Depends(get_db),
) -> User:
    """
    Load the user a token was issued to.

    A valid signature is not enough: the account must still
    exist, be active, and not be locked right now.
    """
    user = db.get(User, claims.user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("Invalid token")
    now = datetime.utcnow()
    if user.is_locked(now):
        retry_after = max(1, int((user.lock_until - now).total_seconds()))
        raise AccountLockedError("Account temporarily locked", retry_after=retry_after)
    return user


def require_roles(*roles: Role):
    def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise AuthorizationError("Insufficient permissions")
        return user
    return checker


def get_request_context(request: Request) -> RequestContext:
    return RequestContext(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def login_rate_limit(request: Request, db: Session = Depends(get_db)) -> None:
    """Count login attempts per client address."""
    settings = get_settings()
    ip = request.client.host if request.client else "unknown"
    status = RateLimiter(db).hit(
        f"login:{ip}",
        settings.LOGIN_RATE_LIMIT,
        settings.LOGIN_RATE_WINDOW_SECONDS,
    )
    db.commit()
    status.raise_for_limit()


def transaction_rate_limit(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> None:
    """Count transaction creations per user."""
    settings = get_settings()
    status = RateLimiter(db).hit(
        f"transactions:{user.id}",
        settings.TRANSACTION_RATE_LIMIT,
        settings.TRANSACTION_RATE_WINDOW_SECONDS,
    )
    db.commit()
    status.raise_for_limit()


def get_page_params(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> PageParams:
    return PageParams(page=page, limit=limit)
