"""SQLAlchemy implementations of the ledger store and user directory.

Every committed mutation is published on the change feed so other sessions
can reload. Database errors are rolled back, logged and returned as failed
results; nothing is retried.
"""

from __future__ import annotations

import logging
from datetime import timezone
from typing import Any, Callable, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from qscore.config.database import SessionLocal
from qscore.config.log import log_extra
from qscore.models.entry import EntryRow
from qscore.models.user import UserRow
from qscore.services import dates
from qscore.services.avatars import AvatarAllocator
from qscore.services.types import PointEntry, TeamMember
from qscore.store.contracts import (
    CHANGE_DELETE,
    CHANGE_INSERT,
    CHANGE_UPDATE,
    TABLE_ENTRIES,
    TABLE_USERS,
    ChangeEvent,
    StoreResult,
)
from qscore.store.realtime import ChangeFeed

logger = logging.getLogger(__name__)

_ENTRY_COLUMNS = {"member_id", "task_id", "quantity"}


class RecordNotFound(LookupError):
    pass


def row_to_entry(row: EntryRow) -> PointEntry:
    return PointEntry(
        id=row.id,
        member_id=row.member_id,
        task_id=row.task_id,
        quantity=row.quantity or 1,
        timestamp=dates.ensure_aware(row.timestamp),
        daily_bonus=bool(row.daily_bonus),
        custom_task_name=row.custom_task_name,
        custom_task_points=row.custom_task_points,
    )


def entry_to_row(entry: PointEntry) -> EntryRow:
    return EntryRow(
        id=entry.id,
        member_id=entry.member_id,
        task_id=entry.task_id,
        quantity=entry.quantity,
        timestamp=dates.ensure_aware(entry.timestamp).astimezone(timezone.utc),
        daily_bonus=entry.daily_bonus,
        custom_task_name=entry.custom_task_name,
        custom_task_points=entry.custom_task_points,
    )


def row_to_member(row: UserRow) -> TeamMember:
    return TeamMember(id=row.id, name=row.name, avatar=row.avatar, color=row.color, face=row.face)


class _SQLRepository:
    def __init__(
        self,
        *,
        session_factory: Optional[Callable[[], Session]] = None,
        feed: Optional[ChangeFeed] = None,
    ) -> None:
        self._session_factory = session_factory or SessionLocal
        self._feed = feed

    def _read(self, label: str, reader: Callable[[Session], Any]) -> StoreResult[Any]:
        db = self._session_factory()
        try:
            return StoreResult.ok(reader(db))
        except SQLAlchemyError as exc:
            logger.error(f"Failed to load {label}", extra=log_extra(error=str(exc)))
            return StoreResult.failed(str(exc))
        finally:
            db.close()

    def _write(
        self,
        table: str,
        kind: str,
        record_id: Optional[str],
        writer: Callable[[Session], Any],
    ) -> StoreResult[Any]:
        db = self._session_factory()
        try:
            data = writer(db)
            db.commit()
        except (SQLAlchemyError, RecordNotFound) as exc:
            db.rollback()
            logger.error(
                "Store write failed",
                extra=log_extra(table=table, kind=kind, record_id=record_id, error=str(exc)),
            )
            return StoreResult.failed(str(exc))
        finally:
            db.close()

        if self._feed is not None:
            self._feed.publish(ChangeEvent(table=table, kind=kind, record_id=record_id))
        return StoreResult.ok(data)


class SQLLedgerStore(_SQLRepository):
    """Entries table access."""

    async def list_entries(self) -> StoreResult[list[PointEntry]]:
        return self._read(
            "entries",
            lambda db: [row_to_entry(row) for row in db.query(EntryRow).order_by(EntryRow.timestamp.desc()).all()],
        )

    async def insert_entry(self, entry: PointEntry) -> StoreResult[None]:
        def write(db: Session) -> None:
            db.add(entry_to_row(entry))

        return self._write(TABLE_ENTRIES, CHANGE_INSERT, entry.id, write)

    async def update_entry(self, entry_id: str, fields: Mapping[str, Any]) -> StoreResult[None]:
        def write(db: Session) -> None:
            row = db.query(EntryRow).filter_by(id=entry_id).first()
            if row is None:
                raise RecordNotFound(f"entry {entry_id} not found")
            for field_name, value in fields.items():
                if field_name in _ENTRY_COLUMNS:
                    setattr(row, field_name, value)

        return self._write(TABLE_ENTRIES, CHANGE_UPDATE, entry_id, write)

    async def delete_entry(self, entry_id: str) -> StoreResult[None]:
        def write(db: Session) -> None:
            deleted = db.query(EntryRow).filter_by(id=entry_id).delete()
            if not deleted:
                raise RecordNotFound(f"entry {entry_id} not found")

        return self._write(TABLE_ENTRIES, CHANGE_DELETE, entry_id, write)


class SQLUserDirectory(_SQLRepository):
    """Users table access with color/face allocation on first registration."""

    def __init__(
        self,
        *,
        session_factory: Optional[Callable[[], Session]] = None,
        feed: Optional[ChangeFeed] = None,
        allocator_factory: Callable[..., AvatarAllocator] = AvatarAllocator.from_members,
    ) -> None:
        super().__init__(session_factory=session_factory, feed=feed)
        self._allocator_factory = allocator_factory
        self._allocator: Optional[AvatarAllocator] = None

    async def list_members(self) -> StoreResult[list[TeamMember]]:
        return self._read("members", lambda db: [row_to_member(row) for row in self._ordered(db)])

    async def upsert_member(self, member: TeamMember) -> StoreResult[TeamMember]:
        def write(db: Session) -> TeamMember:
            row = db.query(UserRow).filter_by(id=member.id).first()
            if row is not None:
                row.name = member.name
                if member.avatar:
                    row.avatar = member.avatar
                return row_to_member(row)

            color, face = self._allocator_for(db).allocate()
            row = UserRow(id=member.id, name=member.name, avatar=member.avatar, color=color, face=face)
            db.add(row)
            logger.info("Member registered", extra=log_extra(member=member.id, color=color, face=face))
            return row_to_member(row)

        registered = self._read("member", lambda db: db.query(UserRow).filter_by(id=member.id).count() > 0)
        if registered.is_failed:
            return StoreResult.failed(registered.error)
        return self._write_users(CHANGE_UPDATE if registered.data else CHANGE_INSERT, member.id, write)

    async def update_profile(
        self,
        member_id: str,
        *,
        color: Optional[str] = None,
        face: Optional[int] = None,
    ) -> StoreResult[TeamMember]:
        def write(db: Session) -> TeamMember:
            row = db.query(UserRow).filter_by(id=member_id).first()
            if row is None:
                raise RecordNotFound(f"member {member_id} not found")
            old_color, old_face = row.color, row.face
            if color is not None:
                row.color = color
            if face is not None:
                row.face = face
            self._allocator_for(db).reassign(old_color, old_face, row.color, row.face)
            return row_to_member(row)

        return self._write_users(CHANGE_UPDATE, member_id, write)

    def _write_users(self, kind: str, member_id: str, writer: Callable[[Session], Any]) -> StoreResult[TeamMember]:
        result = self._write(TABLE_USERS, kind, member_id, writer)
        if result.is_failed:
            # The allocator may hold claims from the rolled-back write.
            self._allocator = None
        return result

    @staticmethod
    def _ordered(db: Session):
        return db.query(UserRow).order_by(UserRow.created_at.asc(), UserRow.id.asc()).all()

    def _allocator_for(self, db: Session) -> AvatarAllocator:
        # Seeded once from the table, then kept current by this directory.
        if self._allocator is None:
            self._allocator = self._allocator_factory(row_to_member(row) for row in self._ordered(db))
        return self._allocator
