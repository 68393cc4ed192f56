"""
Audit ledger: append-only record of security events.

Each entry carries a SHA-256 hash over its own content and
the hash of the entry before it. Editing or deleting a row
outside this service breaks the chain, which verify_chain()
reports.

Writing an audit entry is best-effort relative to the
operation it describes: record() runs after the primary
write has been committed, and a failure here is logged and
swallowed rather than undoing or failing that operation.
"""

import hashlib
import json
import uuid
from datetime import datetime

import structlog
from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from transaction_auth.errors import InternalError
from transaction_auth.models.audit_log import AuditChainHead, AuditLog
from transaction_auth.schemas.audit import (
    AuditEventCreate,
    AuditLogQuery,
    AuditPagination,
    ChainBreak,
    ChainVerification,
    RequestContext,
)
from transaction_auth.schemas.pagination import PageParams, Pagination

logger = structlog.get_logger(__name__)

CHAIN_HEAD_ID = 1


def compute_entry_hash(entry: AuditLog, previous_hash: str | None) -> str:
    """SHA-256 over the entry's fields and the previous entry's hash."""
    payload = "|".join([
        str(entry.external_id),
        entry.created_at.isoformat(),
        entry.action.value,
        str(entry.actor_id),
        entry.actor_email,
        entry.actor_role.value,
        entry.resource_type or "",
        entry.resource_id or "",
        json.dumps(entry.details, sort_keys=True, separators=(",", ":")),
        previous_hash or "",
    ])
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class AuditService:

    def __init__(self, db: Session):
        self.db = db

    def append(
        self, event: AuditEventCreate, context: RequestContext | None = None
    ) -> AuditLog:
        """
        Write one immutable entry linked to the current chain head.

        The audit_chain_head row is updated before the entry is
        inserted and stays locked until the caller commits or
        rolls back. A second appender blocks on that row, then
        reads the hash the first one committed, so the chain
        never forks.
        """
        context = context or RequestContext()
        previous_hash = self._lock_chain_head()

        data = event.model_dump(mode="json")
        entry = AuditLog(
            external_id=uuid.uuid4(),
            action=event.action,
            actor_id=event.actor_id,
            actor_email=event.actor_email,
            actor_role=event.actor_role,
            resource_type=event.resource_type,
            resource_id=event.resource_id,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            details=data["details"],
            created_at=datetime.utcnow(),
            previous_hash=previous_hash,
        )
        entry.entry_hash = compute_entry_hash(entry, previous_hash)

        self.db.add(entry)
        self.db.flush()
        self.db.execute(
            update(AuditChainHead)
            .where(AuditChainHead.id == CHAIN_HEAD_ID)
            .values(entry_hash=entry.entry_hash)
            .execution_options(synchronize_session=False)
        )
        return entry

    def _lock_chain_head(self) -> str | None:
        """Lock the chain head row and return the newest entry hash."""
        now = datetime.utcnow()
        stmt = (
            update(AuditChainHead)
            .where(AuditChainHead.id == CHAIN_HEAD_ID)
            .values(updated_at=now)
            .returning(AuditChainHead.entry_hash)
            .execution_options(synchronize_session=False)
        )

        # Second pass covers losing the insert race for the head row
        for _ in range(2):
            row = self.db.execute(stmt).first()
            if row is not None:
                return row.entry_hash
            latest = self.db.execute(
                select(AuditLog.entry_hash).order_by(AuditLog.id.desc()).limit(1)
            ).scalar_one_or_none()
            try:
                with self.db.begin_nested():
                    self.db.execute(insert(AuditChainHead).values(
                        id=CHAIN_HEAD_ID, entry_hash=latest, updated_at=now,
                    ))
                return latest
            except IntegrityError:
                continue

        raise InternalError("Could not lock the audit chain head")

    def record(
        self,
        event: AuditEventCreate | None,
        context: RequestContext | None = None,
    ) -> AuditLog | None:
        """
        Persist an event after its operation has committed.

        Returns None (and logs audit_append_failed) when the
        write fails. Never raises a storage error to the caller.
        """
        if event is None:
            return None
        try:
            entry = self.append(event, context)
            self.db.commit()
        except (SQLAlchemyError, InternalError) as e:
            self.db.rollback()
            logger.error(
                "audit_append_failed",
                action=event.action.value,
                actor_id=event.actor_id,
                resource_id=event.resource_id,
                error=str(e),
            )
            return None

        logger.info(
            "audit_logged",
            audit_id=entry.id,
            action=event.action.value,
            actor_id=event.actor_id,
        )
        return entry

    def query(
        self,
        filters: AuditLogQuery,
        params: PageParams,
        snapshot: int | None = None,
    ) -> tuple[list[AuditLog], AuditPagination]:
        """
        Filtered entries, newest first, one page at a time.

        Every page is taken from the entries that existed when
        the first page was read (id <= snapshot). Entries
        appended meanwhile cannot shift later pages, so no
        entry is skipped or repeated.

        This relies on ids growing in commit order. append()
        takes its id while holding the chain head lock, so an
        entry with a lower id can never commit after a snapshot
        that already covers a higher one.
        """
        if snapshot is None:
            snapshot = self.db.execute(
                select(func.coalesce(func.max(AuditLog.id), 0))
            ).scalar_one()

        conditions = [AuditLog.id <= snapshot]
        if filters.actor_id is not None:
            conditions.append(AuditLog.actor_id == filters.actor_id)
        if filters.action is not None:
            conditions.append(AuditLog.action == filters.action)
        if filters.start is not None:
            conditions.append(AuditLog.created_at >= filters.start)
        if filters.end is not None:
            conditions.append(AuditLog.created_at <= filters.end)
        if filters.resource_type is not None:
            conditions.append(AuditLog.resource_type == filters.resource_type)
        if filters.resource_id is not None:
            conditions.append(AuditLog.resource_id == filters.resource_id)

        total = self.db.execute(
            select(func.count()).select_from(AuditLog).where(*conditions)
        ).scalar_one()

        items = self.db.execute(
            select(AuditLog)
            .where(*conditions)
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset(params.offset)
            .limit(params.limit)
        ).scalars().all()

        base = Pagination.build(params, total)
        pagination = AuditPagination(**base.model_dump(), snapshot=snapshot)
        return list(items), pagination

    def verify_chain(self) -> ChainVerification:
        """Recompute every hash in append order and report breaks."""
        entries = self.db.execute(
            select(AuditLog).order_by(AuditLog.id)
        ).scalars().all()

        breaks: list[ChainBreak] = []
        previous_hash: str | None = None

        for entry in entries:
            if entry.previous_hash != previous_hash:
                breaks.append(ChainBreak(entry_id=entry.id, issue="previous_hash_mismatch"))
            if entry.entry_hash != compute_entry_hash(entry, entry.previous_hash):
                breaks.append(ChainBreak(entry_id=entry.id, issue="entry_hash_mismatch"))
            previous_hash = entry.entry_hash

        if breaks:
            logger.warning("audit_chain_broken", breaks=len(breaks))

        return ChainVerification(
            total_entries=len(entries),
            chain_intact=not breaks,
            breaks=breaks,
        )
