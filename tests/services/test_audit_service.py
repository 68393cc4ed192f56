"""
Tests for the audit ledger: append, query, chain verification.
"""

import threading
import time
from datetime import datetime, timedelta

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from transaction_auth.models.audit_log import AuditChainHead
from transaction_auth.models.enums import AuditAction, Role
from transaction_auth.schemas.audit import (
    AuditEventCreate,
    AuditLogQuery,
    RequestContext,
)
from transaction_auth.schemas.auth import Principal
from transaction_auth.schemas.pagination import PageParams
from transaction_auth.services.audit_service import CHAIN_HEAD_ID, AuditService


def login_event(user, **details):
    return AuditEventCreate.for_actor(
        AuditAction.LOGIN, Principal.from_user(user),
        resource_type="User", resource_id=user.id, **details,
    )


def record_many(db_session, user, count):
    service = AuditService(db_session)
    return [service.record(login_event(user, n=i)) for i in range(count)]


class TestAppend:

    def test_record_persists_entry(self, db_session, user):
        context = RequestContext(ip_address="10.0.0.1", user_agent="pytest")

        entry = AuditService(db_session).record(login_event(user, requires_2fa=False), context)

        assert entry.id is not None
        assert entry.action == AuditAction.LOGIN
        assert entry.actor_email == user.email
        assert entry.actor_role == Role.USER
        assert entry.resource_id == str(user.id)
        assert entry.ip_address == "10.0.0.1"
        assert entry.details == {"requires_2fa": False}

    def test_entries_are_hash_chained(self, db_session, user):
        first, second = record_many(db_session, user, 2)

        assert first.previous_hash is None
        assert second.previous_hash == first.entry_hash
        assert len(second.entry_hash) == 64

    def test_actor_snapshot_survives_profile_change(self, db_session, user):
        entry = AuditService(db_session).record(login_event(user))

        user.email = "renamed@example.com"
        user.role = Role.ADMIN
        db_session.commit()
        db_session.refresh(entry)

        assert entry.actor_email == "alice@example.com"
        assert entry.actor_role == Role.USER

    def test_update_is_refused(self, db_session, user):
        entry = AuditService(db_session).record(login_event(user))

        entry.actor_email = "forged@example.com"
        with pytest.raises(PermissionError):
            db_session.flush()

    def test_delete_is_refused(self, db_session, user):
        entry = AuditService(db_session).record(login_event(user))

        db_session.delete(entry)
        with pytest.raises(PermissionError):
            db_session.flush()

    def test_record_failure_is_swallowed(self, db_session, user, monkeypatch):
        def broken_append(self, event, context=None):
            raise OperationalError("INSERT", {}, Exception("disk full"))

        monkeypatch.setattr(AuditService, "append", broken_append)

        assert AuditService(db_session).record(login_event(user)) is None
        # The user written before is untouched
        assert db_session.get(type(user), user.id) is not None

    def test_record_none_is_noop(self, db_session):
        assert AuditService(db_session).record(None) is None


class TestQuery:

    def test_filters_by_actor(self, db_session, user, approver):
        service = AuditService(db_session)
        service.record(login_event(user))
        service.record(login_event(approver))
        service.record(login_event(user))

        items, pagination = service.query(AuditLogQuery(actor_id=user.id), PageParams())

        assert pagination.total == 2
        assert all(e.actor_id == user.id for e in items)

    def test_filters_by_action_and_resource(self, db_session, user):
        service = AuditService(db_session)
        service.record(login_event(user))
        service.record(AuditEventCreate.for_actor(
            AuditAction.TRANSACTION_CREATE, Principal.from_user(user),
            resource_type="Transaction", resource_id=42,
        ))

        items, _ = service.query(
            AuditLogQuery(action=AuditAction.TRANSACTION_CREATE), PageParams()
        )
        assert [e.resource_id for e in items] == ["42"]

        items, _ = service.query(
            AuditLogQuery(resource_type="Transaction", resource_id="42"), PageParams()
        )
        assert len(items) == 1

    def test_filters_by_time_range(self, db_session, user):
        service = AuditService(db_session)
        record_many(db_session, user, 2)

        future = datetime.utcnow() + timedelta(hours=1)
        items, _ = service.query(AuditLogQuery(start=future), PageParams())
        assert items == []

        past = datetime.utcnow() - timedelta(hours=1)
        items, _ = service.query(AuditLogQuery(start=past, end=future), PageParams())
        assert len(items) == 2

    def test_newest_first(self, db_session, user):
        entries = record_many(db_session, user, 3)

        items, _ = AuditService(db_session).query(AuditLogQuery(), PageParams())

        assert [e.id for e in items] == [e.id for e in reversed(entries)]

    def test_snapshot_keeps_pages_stable(self, db_session, user):
        """Entries appended between pages never shift later pages."""
        service = AuditService(db_session)
        entries = record_many(db_session, user, 5)

        page1, pagination = service.query(AuditLogQuery(), PageParams(page=1, limit=2))
        assert pagination.snapshot == entries[-1].id
        assert pagination.total == 5

        record_many(db_session, user, 3)

        page2, pagination2 = service.query(
            AuditLogQuery(), PageParams(page=2, limit=2), snapshot=pagination.snapshot
        )
        page3, _ = service.query(
            AuditLogQuery(), PageParams(page=3, limit=2), snapshot=pagination.snapshot
        )

        seen = [e.id for e in page1 + page2 + page3]
        assert seen == [e.id for e in reversed(entries)]
        assert pagination2.total == 5

    def test_empty_ledger(self, db_session):
        items, pagination = AuditService(db_session).query(AuditLogQuery(), PageParams())

        assert items == []
        assert pagination.snapshot == 0
        assert pagination.pages == 0


class TestVerifyChain:

    def test_intact_chain(self, db_session, user):
        record_many(db_session, user, 4)

        result = AuditService(db_session).verify_chain()

        assert result.total_entries == 4
        assert result.chain_intact is True
        assert result.breaks == []

    def test_edited_entry_is_detected(self, db_session, user):
        entries = record_many(db_session, user, 3)
        db_session.execute(
            text("UPDATE audit_log SET actor_email = 'forged@example.com' WHERE id = :id"),
            {"id": entries[1].id},
        )
        db_session.commit()

        result = AuditService(db_session).verify_chain()

        assert result.chain_intact is False
        assert [(b.entry_id, b.issue) for b in result.breaks] == [
            (entries[1].id, "entry_hash_mismatch"),
        ]

    def test_deleted_entry_is_detected(self, db_session, user):
        entries = record_many(db_session, user, 3)
        db_session.execute(
            text("DELETE FROM audit_log WHERE id = :id"), {"id": entries[1].id}
        )
        db_session.commit()

        result = AuditService(db_session).verify_chain()

        assert result.chain_intact is False
        assert result.breaks[0].entry_id == entries[2].id
        assert result.breaks[0].issue == "previous_hash_mismatch"


class TestConcurrentAppend:

    def test_overlapping_appends_link_in_commit_order(
        self, db_session, session_factory, user
    ):
        """
        A second appender waits for the first one's commit and
        links to the entry it wrote. Ids follow commit order too,
        so a snapshot taken in between stays valid.
        """
        (genesis,) = record_many(db_session, user, 1)
        first_event = login_event(user, writer="first")
        second_event = login_event(user, writer="second")

        first = session_factory()
        second = session_factory()
        written = {}
        errors = []

        def append_second():
            try:
                entry = AuditService(second).append(second_event)
                second.commit()
                written["second"] = (entry.id, entry.previous_hash)
            except Exception as e:
                errors.append(e)
                second.rollback()

        try:
            entry = AuditService(first).append(first_event)
            written["first"] = (entry.id, entry.entry_hash)

            worker = threading.Thread(target=append_second)
            worker.start()
            time.sleep(0.3)
            first.commit()
            worker.join(timeout=10)
        finally:
            first.close()
            second.close()

        assert errors == []
        first_id, first_hash = written["first"]
        second_id, second_previous = written["second"]
        assert second_previous == first_hash
        assert genesis.id < first_id < second_id

        result = AuditService(db_session).verify_chain()
        assert result.total_entries == 3
        assert result.chain_intact is True

    def test_chain_head_tracks_newest_entry(self, db_session, user):
        entries = record_many(db_session, user, 3)

        head = db_session.get(AuditChainHead, CHAIN_HEAD_ID)

        assert head.entry_hash == entries[-1].entry_hash

    def test_head_row_is_seeded_from_existing_entries(self, db_session, user):
        (first,) = record_many(db_session, user, 1)
        db_session.execute(text("DELETE FROM audit_chain_head"))
        db_session.commit()

        (second,) = record_many(db_session, user, 1)

        assert second.previous_hash == first.entry_hash
        assert AuditService(db_session).verify_chain().chain_intact is True
