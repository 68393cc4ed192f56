"""
Comprehensive tests for the TransactionService.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from transaction_auth.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StepUpRequiredError,
)
from transaction_auth.models.enums import (
    AuditAction,
    TransactionStatus,
    TransactionType,
)
from transaction_auth.models.transaction import Transaction
from transaction_auth.schemas.auth import Principal
from transaction_auth.schemas.pagination import PageParams
from transaction_auth.schemas.transaction import TransactionCreate
from transaction_auth.services.transaction_service import (
    TransactionService,
    derive_initial_state,
)
from tests.factories import create_user


NOON = datetime(2026, 3, 2, 12, 0, 0)


def transfer(amount, **overrides):
    data = {
        "amount": Decimal(amount),
        "currency": "usd",
        "type": TransactionType.TRANSFER,
        "from_account": "ACC-00001",
        "to_account": "ACC-00002",
    }
    data.update(overrides)
    return TransactionCreate(**data)


def create_pending(db_session, owner):
    service = TransactionService(db_session)
    txn, _ = service.create(
        Principal.from_user(owner), transfer("6000"), two_factor_verified=True, now=NOON
    )
    db_session.commit()
    return txn


# --- Initial state ---

class TestDeriveInitialState:

    def test_at_threshold_completes(self):
        assert derive_initial_state(Decimal("5000"), Decimal("5000")) == (
            False, TransactionStatus.COMPLETED,
        )

    def test_above_threshold_is_pending(self):
        assert derive_initial_state(Decimal("5000.01"), Decimal("5000")) == (
            True, TransactionStatus.PENDING,
        )


# --- Create ---

class TestCreate:

    def test_small_transaction_completes(self, db_session, user):
        service = TransactionService(db_session)

        txn, event = service.create(
            Principal.from_user(user), transfer("800"), two_factor_verified=False, now=NOON
        )
        db_session.commit()

        assert txn.status == TransactionStatus.COMPLETED
        assert txn.requires_approval is False
        assert txn.currency == "USD"
        assert txn.risk_score == 0
        assert txn.owner_id == user.id
        assert event.action == AuditAction.TRANSACTION_CREATE
        assert event.resource_id == str(txn.id)

    def test_step_up_required_above_threshold(self, db_session, user):
        service = TransactionService(db_session)

        with pytest.raises(StepUpRequiredError):
            service.create(
                Principal.from_user(user), transfer("1000.01"), two_factor_verified=False
            )

        assert db_session.query(Transaction).count() == 0

    def test_step_up_not_required_at_threshold(self, db_session, user):
        txn, _ = TransactionService(db_session).create(
            Principal.from_user(user), transfer("1000"), two_factor_verified=False, now=NOON
        )

        assert txn.status == TransactionStatus.COMPLETED
        assert txn.two_factor_verified is False

    def test_verified_mid_size_transaction_completes(self, db_session, user):
        txn, _ = TransactionService(db_session).create(
            Principal.from_user(user), transfer("3000"), two_factor_verified=True, now=NOON
        )

        assert txn.status == TransactionStatus.COMPLETED
        assert txn.requires_approval is False
        assert txn.risk_score == 10

    def test_large_transaction_waits_for_approval(self, db_session, user):
        txn, _ = TransactionService(db_session).create(
            Principal.from_user(user), transfer("6000"), two_factor_verified=True, now=NOON
        )

        assert txn.status == TransactionStatus.PENDING
        assert txn.requires_approval is True
        assert txn.risk_score == 20

    def test_risk_score_uses_hour_of_day(self, db_session, user):
        night = datetime(2026, 3, 2, 3, 0, 0)

        txn, _ = TransactionService(db_session).create(
            Principal.from_user(user), transfer("15000"), two_factor_verified=True, now=night
        )

        assert txn.risk_score == 55

    def test_thresholds_are_configurable(self, db_session, user):
        service = TransactionService(
            db_session, step_up_threshold=Decimal("100"), approval_threshold=Decimal("200")
        )

        with pytest.raises(StepUpRequiredError):
            service.create(Principal.from_user(user), transfer("150"), two_factor_verified=False)

        txn, _ = service.create(
            Principal.from_user(user), transfer("250"), two_factor_verified=True, now=NOON
        )
        assert txn.status == TransactionStatus.PENDING


# --- Approve / reject ---

class TestResolve:

    def test_approve_pending(self, db_session, user, approver):
        txn = create_pending(db_session, user)
        service = TransactionService(db_session)

        resolved, event = service.approve(txn.id, Principal.from_user(approver), now=NOON)
        db_session.commit()

        assert resolved.status == TransactionStatus.APPROVED
        assert resolved.approved_by_id == approver.id
        assert resolved.approved_at == NOON
        assert event.action == AuditAction.TRANSACTION_APPROVE
        assert event.actor_id == approver.id

    def test_reject_pending(self, db_session, user, admin):
        txn = create_pending(db_session, user)

        resolved, event = TransactionService(db_session).reject(
            txn.id, Principal.from_user(admin)
        )
        db_session.commit()

        assert resolved.status == TransactionStatus.REJECTED
        assert resolved.approved_by_id == admin.id
        assert event.action == AuditAction.TRANSACTION_REJECT

    def test_second_approval_conflicts(self, db_session, user, approver, admin):
        txn = create_pending(db_session, user)
        service = TransactionService(db_session)
        service.approve(txn.id, Principal.from_user(approver), now=NOON)
        db_session.commit()

        with pytest.raises(ConflictError):
            service.approve(txn.id, Principal.from_user(admin))
        db_session.rollback()

        db_session.refresh(txn)
        assert txn.approved_by_id == approver.id
        assert txn.approved_at == NOON

    def test_reject_after_approve_conflicts(self, db_session, user, approver):
        txn = create_pending(db_session, user)
        service = TransactionService(db_session)
        service.approve(txn.id, Principal.from_user(approver))
        db_session.commit()

        with pytest.raises(ConflictError):
            service.reject(txn.id, Principal.from_user(approver))

        db_session.refresh(txn)
        assert txn.status == TransactionStatus.APPROVED

    def test_completed_transaction_cannot_be_approved(self, db_session, user, approver):
        txn, _ = TransactionService(db_session).create(
            Principal.from_user(user), transfer("50"), two_factor_verified=False, now=NOON
        )
        db_session.commit()

        with pytest.raises(ConflictError):
            TransactionService(db_session).approve(txn.id, Principal.from_user(approver))

    def test_plain_user_cannot_approve(self, db_session, user):
        txn = create_pending(db_session, user)

        with pytest.raises(AuthorizationError):
            TransactionService(db_session).approve(txn.id, Principal.from_user(user))

        db_session.refresh(txn)
        assert txn.status == TransactionStatus.PENDING

    def test_missing_transaction(self, db_session, approver):
        with pytest.raises(NotFoundError):
            TransactionService(db_session).approve(9999, Principal.from_user(approver))

    def test_stale_reader_loses_the_race(self, db_session, session_factory, user, approver, admin):
        """
        Two approvers load the same pending transaction. The
        first one to write wins; the second one's compare-and-set
        matches no row and nothing is overwritten.
        """
        txn = create_pending(db_session, user)

        other = session_factory()
        try:
            stale = other.get(Transaction, txn.id)
            assert stale.status == TransactionStatus.PENDING
            other.commit()

            TransactionService(db_session).approve(txn.id, Principal.from_user(approver))
            db_session.commit()

            with pytest.raises(ConflictError):
                TransactionService(other).reject(txn.id, Principal.from_user(admin))
            other.rollback()
        finally:
            other.close()

        db_session.refresh(txn)
        assert txn.status == TransactionStatus.APPROVED
        assert txn.approved_by_id == approver.id


# --- Reads ---

class TestReads:

    def test_owner_can_read(self, db_session, user):
        txn = create_pending(db_session, user)

        found = TransactionService(db_session).get(txn.id, Principal.from_user(user))
        assert found.id == txn.id

    def test_other_user_cannot_read(self, db_session, user):
        txn = create_pending(db_session, user)
        mallory = create_user(db_session, email="mallory@example.com")

        with pytest.raises(AuthorizationError):
            TransactionService(db_session).get(txn.id, Principal.from_user(mallory))

    def test_approver_can_read_any(self, db_session, user, approver):
        txn = create_pending(db_session, user)

        found = TransactionService(db_session).get(txn.id, Principal.from_user(approver))
        assert found.owner_id == user.id

    def test_list_for_owner_only_returns_own(self, db_session, user):
        other = create_user(db_session, email="carol@example.com")
        service = TransactionService(db_session)
        for amount in ("10", "20", "30"):
            service.create(Principal.from_user(user), transfer(amount), False, now=NOON)
        service.create(Principal.from_user(other), transfer("40"), False, now=NOON)
        db_session.commit()

        items, pagination = service.list_for_owner(
            Principal.from_user(user), PageParams(page=1, limit=2)
        )

        assert len(items) == 2
        assert all(t.owner_id == user.id for t in items)
        assert pagination.total == 3
        assert pagination.pages == 2

    def test_list_pending(self, db_session, user, approver):
        service = TransactionService(db_session)
        pending = create_pending(db_session, user)
        service.create(Principal.from_user(user), transfer("10"), False, now=NOON)
        db_session.commit()

        items, pagination = service.list_pending(
            Principal.from_user(approver), PageParams()
        )

        assert [t.id for t in items] == [pending.id]
        assert pagination.total == 1

    def test_list_pending_requires_approver(self, db_session, user):
        with pytest.raises(AuthorizationError):
            TransactionService(db_session).list_pending(
                Principal.from_user(user), PageParams()
            )
