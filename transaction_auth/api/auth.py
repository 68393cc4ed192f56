"""
Authentication API endpoints.

Registration, login, and the step-up (TOTP) lifecycle.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from transaction_auth.api.deps import (
    get_current_user,
    get_request_context,
    login_rate_limit,
)
from transaction_auth.errors import TransactionAuthError
from transaction_auth.models.base import get_db
from transaction_auth.models.user import User
from transaction_auth.schemas.audit import RequestContext
from transaction_auth.schemas.auth import (
    EnrollmentResponse,
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    StatusResponse,
    StepUpCodeRequest,
    TokenResponse,
    UserResponse,
)
from transaction_auth.services.audit_service import AuditService
from transaction_auth.services.auth_service import AuthService
from transaction_auth.services.step_up_service import StepUpAuthenticator

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=UserResponse, status_code=201)
def register(
    request: RegisterRequest,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
):
    """Create a new user account."""
    service = AuthService(db)
    try:
        user, event = service.register(request)
        db.commit()
    except TransactionAuthError:
        db.rollback()
        raise

    AuditService(db).record(event, context)
    db.refresh(user)
    return user


@router.post(
    "/login",
    response_model=LoginResponse,
    dependencies=[Depends(login_rate_limit)],
)
def login(
    request: LoginRequest,
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
):
    """
    Check credentials and return a partial token.

    The failed-attempt counter is committed before the error
    is raised, so a wrong password still counts toward the
    lockout.
    """
    service = AuthService(db)
    try:
        outcome, event = service.login(request)
        db.commit()
    except TransactionAuthError:
        db.rollback()
        raise

    AuditService(db).record(event, context)
    outcome.raise_for_failure()

    db.refresh(outcome.user)
    return LoginResponse(
        token=outcome.token,
        requires_2fa=outcome.requires_2fa,
        user=UserResponse.model_validate(outcome.user),
    )


@router.post("/setup-2fa", response_model=EnrollmentResponse)
def setup_two_factor(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
):
    """Generate a pending TOTP secret for the caller."""
    service = StepUpAuthenticator(db)
    try:
        enrollment, event = service.begin_enrollment(user)
        db.commit()
    except TransactionAuthError:
        db.rollback()
        raise

    AuditService(db).record(event, context)
    return enrollment


@router.post("/enable-2fa", response_model=StatusResponse)
def enable_two_factor(
    request: StepUpCodeRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
):
    """Confirm the pending secret with a first valid code."""
    service = StepUpAuthenticator(db)
    try:
        event = service.confirm_enrollment(user, request.code)
        db.commit()
    except TransactionAuthError:
        db.rollback()
        raise

    AuditService(db).record(event, context)
    return StatusResponse()


@router.post("/verify-2fa", response_model=TokenResponse)
def verify_two_factor(
    request: StepUpCodeRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
):
    """Trade a partial token plus a valid code for a full token."""
    service = AuthService(db)
    try:
        token, event = service.verify_step_up(user, request.code)
    except TransactionAuthError:
        db.rollback()
        raise

    AuditService(db).record(event, context)
    return token


@router.post("/disable-2fa", response_model=StatusResponse)
def disable_two_factor(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
):
    """Turn step-up off for the caller and discard the secret."""
    service = StepUpAuthenticator(db)
    try:
        event = service.disable(user)
        db.commit()
    except TransactionAuthError:
        db.rollback()
        raise

    AuditService(db).record(event, context)
    return StatusResponse()
