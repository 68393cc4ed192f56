"""
Audit ledger API endpoints (admin only).
"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from transaction_auth.api.deps import get_page_params, require_roles
from transaction_auth.models.base import get_db
from transaction_auth.models.enums import AuditAction, Role
from transaction_auth.schemas.audit import (
    AuditLogPage,
    AuditLogQuery,
    ChainVerification,
)
from transaction_auth.schemas.pagination import PageParams
from transaction_auth.services.audit_service import AuditService

router = APIRouter(
    prefix="/audit",
    tags=["Audit"],
    dependencies=[Depends(require_roles(Role.ADMIN))],
)


@router.get("/logs", response_model=AuditLogPage)
def list_audit_logs(
    user_id: int | None = None,
    action: AuditAction | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    resource_type: str | None = None,
    resource_id: str | None = None,
    snapshot: int | None = Query(None, ge=0),
    params: PageParams = Depends(get_page_params),
    db: Session = Depends(get_db),
):
    """
    Query the audit ledger, newest first.

    The first page reports a snapshot id. Pass it back with
    later pages so entries written in the meantime do not
    shift the listing.
    """
    filters = AuditLogQuery(
        actor_id=user_id,
        action=action,
        start=start_date,
        end=end_date,
        resource_type=resource_type,
        resource_id=resource_id,
    )
    items, pagination = AuditService(db).query(filters, params, snapshot)
    return AuditLogPage(items=items, pagination=pagination)


@router.get("/user-activity/{user_id}", response_model=AuditLogPage)
def user_activity(
    user_id: int,
    snapshot: int | None = Query(None, ge=0),
    params: PageParams = Depends(get_page_params),
    db: Session = Depends(get_db),
):
    """Everything one user has done, newest first."""
    filters = AuditLogQuery(actor_id=user_id)
    items, pagination = AuditService(db).query(filters, params, snapshot)
    return AuditLogPage(items=items, pagination=pagination)


@router.get("/verify", response_model=ChainVerification)
def verify_chain(db: Session = Depends(get_db)):
    """Recompute the hash chain and report any broken links."""
    return AuditService(db).verify_chain()
