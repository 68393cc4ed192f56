"""
Transaction model.

A financial transaction submitted by a user. Whether it
needs approval, and its initial status, are decided once by
TransactionService.create() and stored here; the model has
no hooks that recompute them.

PENDING transactions move to APPROVED or REJECTED through a
compare-and-set update in TransactionService.resolve().
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, DateTime, Numeric, Integer, Boolean, ForeignKey, Index,
    Enum as SAEnum, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from transaction_auth.models.base import Base
from transaction_auth.models.enums import (
    TransactionType,
    TransactionStatus,
    enum_values,
)


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_owner_created", "owner_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, unique=True, nullable=False, default=uuid.uuid4
    )
    owner_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False
    )
    currency: Mapped[str] = mapped_column(
        String(3), nullable=False, default="USD"
    )
    transaction_type: Mapped[TransactionType] = mapped_column(
        SAEnum(
            TransactionType,
            name="transaction_type_enum",
            create_constraint=True,
            values_callable=enum_values,
        ),
        nullable=False,
    )
    status: Mapped[TransactionStatus] = mapped_column(
        SAEnum(
            TransactionStatus,
            name="transaction_status_enum",
            create_constraint=True,
            values_callable=enum_values,
        ),
        nullable=False,
        default=TransactionStatus.PENDING,
        index=True,
    )
    requires_approval: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    approved_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )
    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    risk_score: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    two_factor_verified: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    from_account: Mapped[str] = mapped_column(String(50), nullable=False)
    to_account: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str | None] = mapped_column(
        String(500), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    owner: Mapped["User"] = relationship(foreign_keys=[owner_id])
    approved_by: Mapped["User | None"] = relationship(
        foreign_keys=[approved_by_id]
    )

    def __repr__(self) -> str:
        return (
            f"<Transaction {self.transaction_type.value} "
            f"{self.amount} {self.currency} ({self.status.value})>"
        )
