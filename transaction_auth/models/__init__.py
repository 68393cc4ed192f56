"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from transaction_auth.models.base import Base, Database
from transaction_auth.models.enums import (
    Role,
    TwoFactorState,
    TransactionType,
    TransactionStatus,
    ResolutionDecision,
    AuditAction,
)
from transaction_auth.models.user import User
from transaction_auth.models.transaction import Transaction
from transaction_auth.models.audit_log import AuditChainHead, AuditLog
from transaction_auth.models.rate_limit import RateLimitWindow

__all__ = [
    "Base",
    "Database",
    "Role",
    "TwoFactorState",
    "TransactionType",
    "TransactionStatus",
    "ResolutionDecision",
    "AuditAction",
    "User",
    "Transaction",
    "AuditLog",
    "AuditChainHead",
    "RateLimitWindow",
]
