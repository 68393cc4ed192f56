"""
Shared enumerations for database models.

Using Python enums mapped to database enums ensures that
only valid values can be stored. An invalid role or audit
action is caught at the database level, not just in
Python validation.
"""

import enum


class Role(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"
    APPROVER = "approver"


# Roles allowed to read any transaction and to resolve pending ones
APPROVER_ROLES = frozenset({Role.ADMIN, Role.APPROVER})


class TwoFactorState(str, enum.Enum):
    """Step-up enrollment lifecycle of a single user."""
    NOT_ENROLLED = "not_enrolled"
    SECRET_GENERATED = "secret_generated"
    ENABLED = "enabled"


class TransactionType(str, enum.Enum):
    TRANSFER = "transfer"
    WITHDRAWAL = "withdrawal"
    PAYMENT = "payment"
    DEPOSIT = "deposit"


class TransactionStatus(str, enum.Enum):
    """
    Lifecycle of a transaction.

    PENDING → APPROVED / REJECTED is driven by this service.
    COMPLETED is also written at creation for low-value
    transactions. FAILED belongs to the settlement side.
    """
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"
    FAILED = "failed"


class ResolutionDecision(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"


class AuditAction(str, enum.Enum):
    USER_CREATE = "user_create"
    LOGIN = "login"
    LOGIN_FAILED = "login_failed"
    TWO_FACTOR_SETUP = "2fa_setup"
    TWO_FACTOR_ENABLE = "2fa_enable"
    TWO_FACTOR_DISABLE = "2fa_disable"
    TWO_FACTOR_VERIFY = "2fa_verify"
    TRANSACTION_CREATE = "transaction_create"
    TRANSACTION_APPROVE = "transaction_approve"
    TRANSACTION_REJECT = "transaction_reject"


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Store enum values (not member names) in the database."""
    return [member.value for member in enum_cls]
