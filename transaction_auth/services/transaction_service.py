"""
Transaction service: creation, approval routing, and reads.

Creating a transaction:
1. Requires a step-up verified token above the step-up threshold
2. Scores the transaction with the risk engine
3. Decides, once, whether it needs approval
4. Persists the record and describes the audit event

Resolving a pending transaction is a compare-and-set on
status = PENDING: exactly one of two concurrent resolvers
wins, the other gets a ConflictError and nothing changes.

Every state-changing method returns (result, audit event).
The caller controls the commit and records the event after it.
"""

from datetime import datetime
from decimal import Decimal

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from transaction_auth.config import get_settings
from transaction_auth.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StepUpRequiredError,
)
from transaction_auth.models.enums import (
    APPROVER_ROLES,
    AuditAction,
    ResolutionDecision,
    TransactionStatus,
)
from transaction_auth.models.transaction import Transaction
from transaction_auth.schemas.audit import AuditEventCreate
from transaction_auth.schemas.auth import Principal
from transaction_auth.schemas.pagination import PageParams, Pagination
from transaction_auth.schemas.transaction import TransactionCreate
from transaction_auth.services.risk_engine import RiskEngine

logger = structlog.get_logger(__name__)


# Decision → (resulting status, audit action). One entry per decision.
RESOLUTIONS: dict[ResolutionDecision, tuple[TransactionStatus, AuditAction]] = {
    ResolutionDecision.APPROVE: (
        TransactionStatus.APPROVED, AuditAction.TRANSACTION_APPROVE
    ),
    ResolutionDecision.REJECT: (
        TransactionStatus.REJECTED, AuditAction.TRANSACTION_REJECT
    ),
}


def derive_initial_state(
    amount: Decimal, approval_threshold: Decimal
) -> tuple[bool, TransactionStatus]:
    """
    Return (requires_approval, initial status) for an amount.

    Above the threshold the transaction waits for an approver.
    Otherwise it is settled immediately as COMPLETED.
    """
    if amount > approval_threshold:
        return True, TransactionStatus.PENDING
    return False, TransactionStatus.COMPLETED


class TransactionService:

    def __init__(
        self,
        db: Session,
        risk_engine: RiskEngine | None = None,
        step_up_threshold: Decimal | None = None,
        approval_threshold: Decimal | None = None,
    ):
        settings = get_settings()
        self.db = db
        self.risk_engine = risk_engine or RiskEngine()
        self.step_up_threshold = (
            settings.STEP_UP_THRESHOLD if step_up_threshold is None
            else step_up_threshold
        )
        self.approval_threshold = (
            settings.APPROVAL_THRESHOLD if approval_threshold is None
            else approval_threshold
        )

    def create(
        self,
        owner: Principal,
        request: TransactionCreate,
        two_factor_verified: bool,
        now: datetime | None = None,
    ) -> tuple[Transaction, AuditEventCreate]:
        """
        Create a transaction for its owner.

        `now` is the local wall-clock time the risk score uses
        for its hour-of-day rule.
        """
        if request.amount > self.step_up_threshold and not two_factor_verified:
            raise StepUpRequiredError(
                "2FA verification required for high-value transactions"
            )

        now = now or datetime.now()
        risk_score = self.risk_engine.score(request.amount, now.hour)
        requires_approval, status = derive_initial_state(
            request.amount, self.approval_threshold
        )

        txn = Transaction(
            owner_id=owner.user_id,
            amount=request.amount,
            currency=request.currency,
            transaction_type=request.transaction_type,
            status=status,
            requires_approval=requires_approval,
            risk_score=risk_score,
            two_factor_verified=two_factor_verified,
            from_account=request.from_account,
            to_account=request.to_account,
            description=request.description,
        )
        self.db.add(txn)
        self.db.flush()

        logger.info(
            "transaction_created",
            transaction_id=txn.id,
            owner_id=owner.user_id,
            status=status.value,
            risk_score=risk_score,
        )

        event = AuditEventCreate.for_actor(
            AuditAction.TRANSACTION_CREATE, owner,
            resource_type="Transaction", resource_id=txn.id,
            amount=str(request.amount),
            currency=request.currency,
            status=status.value,
            risk_score=risk_score,
        )
        return txn, event

    def resolve(
        self,
        transaction_id: int,
        actor: Principal,
        decision: ResolutionDecision,
        now: datetime | None = None,
    ) -> tuple[Transaction, AuditEventCreate]:
        """
        Approve or reject a pending transaction.

        The status check and the write are one UPDATE ... WHERE
        status = 'pending'. If no row matched, someone else
        resolved it first (or it never needed approval).
        """
        if actor.role not in APPROVER_ROLES:
            raise AuthorizationError("Only admins and approvers can resolve transactions")

        new_status, action = RESOLUTIONS[decision]
        now = now or datetime.utcnow()

        result = self.db.execute(
            update(Transaction)
            .where(
                Transaction.id == transaction_id,
                Transaction.status == TransactionStatus.PENDING,
            )
            .values(
                status=new_status,
                approved_by_id=actor.user_id,
                approved_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )

        txn = self.db.get(Transaction, transaction_id)
        if txn is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")

        if result.rowcount == 0:
            self.db.refresh(txn)
            raise ConflictError(
                f"Transaction {transaction_id} cannot be {new_status.value} "
                f"(status: {txn.status.value})"
            )

        self.db.flush()
        self.db.refresh(txn)

        logger.info(
            "transaction_resolved",
            transaction_id=txn.id,
            decision=decision.value,
            actor_id=actor.user_id,
        )

        event = AuditEventCreate.for_actor(
            action, actor,
            resource_type="Transaction", resource_id=txn.id,
            amount=str(txn.amount),
            owner_id=txn.owner_id,
        )
        return txn, event

    def approve(
        self, transaction_id: int, actor: Principal, now: datetime | None = None
    ) -> tuple[Transaction, AuditEventCreate]:
        return self.resolve(transaction_id, actor, ResolutionDecision.APPROVE, now)

    def reject(
        self, transaction_id: int, actor: Principal, now: datetime | None = None
    ) -> tuple[Transaction, AuditEventCreate]:
        return self.resolve(transaction_id, actor, ResolutionDecision.REJECT, now)

    def get(self, transaction_id: int, principal: Principal) -> Transaction:
        """Get a transaction. Plain users may only read their own."""
        txn = self.db.get(Transaction, transaction_id)
        if not txn:
            raise NotFoundError(f"Transaction {transaction_id} not found")

        if principal.role not in APPROVER_ROLES and txn.owner_id != principal.user_id:
            raise AuthorizationError("Access denied to this transaction")
        return txn

    def list_for_owner(
        self, principal: Principal, params: PageParams
    ) -> tuple[list[Transaction], Pagination]:
        """The caller's own transactions, newest first."""
        return self._paginate(Transaction.owner_id == principal.user_id, params)

    def list_pending(
        self, principal: Principal, params: PageParams
    ) -> tuple[list[Transaction], Pagination]:
        """Transactions waiting for an approver, newest first."""
        if principal.role not in APPROVER_ROLES:
            raise AuthorizationError("Only admins and approvers can list pending approvals")

        return self._paginate(
            (Transaction.status == TransactionStatus.PENDING)
            & Transaction.requires_approval.is_(True),
            params,
        )

    def _paginate(
        self, condition, params: PageParams
    ) -> tuple[list[Transaction], Pagination]:
        total = self.db.execute(
            select(func.count()).select_from(Transaction).where(condition)
        ).scalar_one()

        items = self.db.execute(
            select(Transaction)
            .where(condition)
            .order_by(Transaction.created_at.desc(), Transaction.id.desc())
            .offset(params.offset)
            .limit(params.limit)
        ).scalars().all()

        return list(items), Pagination.build(params, total)
