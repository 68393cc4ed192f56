"""
Audit log model.

Records security-relevant events for compliance and forensic
review. Every important action must be traceable, even after
the acting user changes role or email, so the actor's email
and role are copied onto the record at write time.
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    String, DateTime, ForeignKey, Index, JSON, event,
    Enum as SAEnum, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from transaction_auth.models.base import Base
from transaction_auth.models.enums import AuditAction, Role, enum_values


class AuditLog(Base):
    """
    Immutable record of a system event.

    Audit logs are append-only. You never update or delete an
    audit record. Each entry stores the hash of the entry
    before it, so any edit made behind the ORM's back breaks
    the chain (see AuditService.verify_chain).
    """

    __tablename__ = "audit_log"
    __table_args__ = (
        Index("ix_audit_log_actor_created", "actor_id", "created_at"),
        Index("ix_audit_log_action_created", "action", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, unique=True, nullable=False, default=uuid.uuid4
    )
    action: Mapped[AuditAction] = mapped_column(
        SAEnum(
            AuditAction,
            name="audit_action_enum",
            create_constraint=True,
            values_callable=enum_values,
        ),
        nullable=False,
    )
    actor_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), nullable=False
    )
    actor_email: Mapped[str] = mapped_column(String(255), nullable=False)
    actor_role: Mapped[Role] = mapped_column(
        SAEnum(
            Role,
            name="audit_role_enum",
            create_constraint=True,
            values_callable=enum_values,
        ),
        nullable=False,
    )
    resource_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    resource_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(50), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    details: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )

    # Tamper detection
    previous_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    entry_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditLog {self.action.value} by {self.actor_email}>"


@event.listens_for(AuditLog, "before_update")
def _refuse_update(mapper, connection, target):
    raise PermissionError("Audit log entries are append-only")


@event.listens_for(AuditLog, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise PermissionError("Audit log entries are append-only")


class AuditChainHead(Base):
    """
    Single row holding the hash of the newest audit entry.

    Appenders update this row before inserting, so the row lock
    orders them: each one links to the entry committed before
    it, and ids are handed out in commit order.
    """

    __tablename__ = "audit_chain_head"

    id: Mapped[int] = mapped_column(primary_key=True)
    entry_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<AuditChainHead {self.entry_hash}>"
