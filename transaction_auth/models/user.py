"""
User (identity) model.

Holds credentials, role, step-up enrollment and the lockout
counters. Users are created on registration and never
deleted by this service.
"""

import uuid
from datetime import datetime

from sqlalchemy import String, Boolean, DateTime, Integer, Enum as SAEnum, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from transaction_auth.models.base import Base
from transaction_auth.models.enums import Role, TwoFactorState, enum_values


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    external_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, unique=True, nullable=False, default=uuid.uuid4
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[Role] = mapped_column(
        SAEnum(
            Role,
            name="role_enum",
            create_constraint=True,
            values_callable=enum_values,
        ),
        nullable=False,
        default=Role.USER,
    )
    two_factor_secret: Mapped[str | None] = mapped_column(
        String(64), nullable=True, default=None
    )
    two_factor_enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    # Lockout pair, only ever written together in one UPDATE
    failed_login_attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    lock_until: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=None
    )
    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=None
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def is_locked(self, now: datetime | None = None) -> bool:
        """True while lock_until lies in the future."""
        now = now or datetime.utcnow()
        return self.lock_until is not None and self.lock_until > now

    @property
    def two_factor_state(self) -> TwoFactorState:
        if self.two_factor_enabled:
            return TwoFactorState.ENABLED
        if self.two_factor_secret:
            return TwoFactorState.SECRET_GENERATED
        return TwoFactorState.NOT_ENROLLED

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role.value})>"
