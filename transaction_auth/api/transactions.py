"""
Transaction API endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from transaction_auth.api.deps import (
    get_current_user,
    get_page_params,
    get_request_context,
    get_token_claims,
    transaction_rate_limit,
)
from transaction_auth.errors import TransactionAuthError
from transaction_auth.models.base import get_db
from transaction_auth.models.user import User
from transaction_auth.schemas.audit import RequestContext
from transaction_auth.schemas.auth import Principal, TokenClaims
from transaction_auth.schemas.pagination import PageParams
from transaction_auth.schemas.transaction import (
    TransactionCreate,
    TransactionPage,
    TransactionResponse,
)
from transaction_auth.services.audit_service import AuditService
from transaction_auth.services.transaction_service import TransactionService

router = APIRouter(prefix="/transactions", tags=["Transactions"])


@router.post(
    "",
    response_model=TransactionResponse,
    status_code=201,
    dependencies=[Depends(transaction_rate_limit)],
)
def create_transaction(
    request: TransactionCreate,
    claims: TokenClaims = Depends(get_token_claims),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
):
    """
    Create a transaction.

    Amounts above the step-up threshold need a full token.
    Amounts above the approval threshold start as pending.
    """
    service = TransactionService(db)
    try:
        txn, event = service.create(
            Principal.from_user(user), request, claims.two_factor_verified
        )
        db.commit()
    except TransactionAuthError:
        db.rollback()
        raise

    AuditService(db).record(event, context)
    db.refresh(txn)
    return txn


@router.get("/my-transactions", response_model=TransactionPage)
def list_my_transactions(
    params: PageParams = Depends(get_page_params),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List the caller's transactions, newest first."""
    service = TransactionService(db)
    items, pagination = service.list_for_owner(Principal.from_user(user), params)
    return TransactionPage(items=items, pagination=pagination)


@router.get("/pending/approvals", response_model=TransactionPage)
def list_pending_approvals(
    params: PageParams = Depends(get_page_params),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List transactions waiting for an approver."""
    service = TransactionService(db)
    items, pagination = service.list_pending(Principal.from_user(user), params)
    return TransactionPage(items=items, pagination=pagination)


@router.get("/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get transaction details."""
    service = TransactionService(db)
    return service.get(transaction_id, Principal.from_user(user))


@router.patch("/{transaction_id}/approve", response_model=TransactionResponse)
def approve_transaction(
    transaction_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
):
    """Approve a pending transaction."""
    service = TransactionService(db)
    try:
        txn, event = service.approve(transaction_id, Principal.from_user(user))
        db.commit()
    except TransactionAuthError:
        db.rollback()
        raise

    AuditService(db).record(event, context)
    db.refresh(txn)
    return txn


@router.patch("/{transaction_id}/reject", response_model=TransactionResponse)
def reject_transaction(
    transaction_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    context: RequestContext = Depends(get_request_context),
):
    """Reject a pending transaction."""
    service = TransactionService(db)
    try:
        txn, event = service.reject(transaction_id, Principal.from_user(user))
        db.commit()
    except TransactionAuthError:
        db.rollback()
        raise

    AuditService(db).record(event, context)
    db.refresh(txn)
    return txn
