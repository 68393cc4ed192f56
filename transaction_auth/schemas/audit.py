"""
Pydantic schemas for the audit ledger.

AuditEventCreate is the descriptor every state-changing
service returns next to its result. The HTTP layer hands it
to AuditService.record() once the primary write is committed.
"""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from transaction_auth.models.enums import AuditAction, Role
from transaction_auth.schemas.auth import Principal
from transaction_auth.schemas.pagination import Pagination


class AuditEventCreate(BaseModel):
    action: AuditAction
    actor_id: int
    actor_email: str
    actor_role: Role
    resource_type: str | None = None
    resource_id: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def for_actor(
        cls,
        action: AuditAction,
        actor: Principal,
        resource_type: str | None = None,
        resource_id: int | str | None = None,
        **details: Any,
    ) -> "AuditEventCreate":
        return cls(
            action=action,
            actor_id=actor.user_id,
            actor_email=actor.email,
            actor_role=actor.role,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            details=details,
        )


class RequestContext(BaseModel):
    """Client details captured at the HTTP boundary."""
    ip_address: str | None = None
    user_agent: str | None = None


class AuditLogQuery(BaseModel):
    actor_id: int | None = None
    action: AuditAction | None = None
    start: datetime | None = None
    end: datetime | None = None
    resource_type: str | None = None
    resource_id: str | None = None


class AuditLogResponse(BaseModel):
    id: int
    external_id: uuid.UUID
    action: AuditAction
    actor_id: int
    actor_email: str
    actor_role: Role
    resource_type: str | None
    resource_id: str | None
    ip_address: str | None
    user_agent: str | None
    details: dict[str, Any]
    created_at: datetime
    entry_hash: str

    model_config = {"from_attributes": True}


class AuditPagination(Pagination):
    # Highest entry id visible to this listing; pass it back for later pages
    snapshot: int


class AuditLogPage(BaseModel):
    items: list[AuditLogResponse]
    pagination: AuditPagination


class ChainBreak(BaseModel):
    entry_id: int
    issue: str


class ChainVerification(BaseModel):
    total_entries: int
    chain_intact: bool
    breaks: list[ChainBreak]
