"""Reversible delete layered on the ledger store.

Undo re-creates the deleted entry from a snapshot under a fresh id; it is
not a rollback. Once the undo notification expires the snapshot is gone and
the delete is permanent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from qscore.config.log import log_extra
from qscore.config.settings import settings
from qscore.services.entries import new_entry_id
from qscore.services.notifications import KIND_UNDO, Notification, NotificationAction, NotificationCenter
from qscore.services.types import PointEntry
from qscore.store.contracts import LedgerStore, StoreResult

logger = logging.getLogger(__name__)

UNDO_LABEL = "Undo"


@dataclass(frozen=True, slots=True)
class DeleteOutcome:
    deleted: bool
    snapshot: Optional[PointEntry] = None
    notification: Optional[Notification] = None
    error: Optional[str] = None


class UndoCoordinator:
    def __init__(
        self,
        store: LedgerStore,
        notifications: NotificationCenter,
        *,
        refresh: Callable[[], Awaitable[None]],
        lookup: Callable[[str], Awaitable[Optional[PointEntry]]],
        describe: Callable[[PointEntry], str],
        id_factory: Callable[[], str] = new_entry_id,
        duration_ms: Optional[int] = None,
    ) -> None:
        self._store = store
        self._notifications = notifications
        self._refresh = refresh
        self._lookup = lookup
        self._describe = describe
        self._id_factory = id_factory
        self._duration_ms = duration_ms or settings.UNDO_NOTIFICATION_MS

    async def delete(self, entry_id: str) -> DeleteOutcome:
        """Snapshot, delete, recompute, then offer undo if the store acknowledged the delete."""

        snapshot = await self._lookup(entry_id)
        if snapshot is None:
            logger.warning("Delete requested for unknown entry", extra=log_extra(entry_id=entry_id))
            await self._refresh()
            return DeleteOutcome(deleted=False, error="entry not found")

        result = await self._store.delete_entry(entry_id)
        if result.is_failed:
            logger.error("Entry delete failed", extra=log_extra(entry_id=entry_id, error=result.error))
        await self._refresh()

        if result.is_failed:
            return DeleteOutcome(deleted=False, snapshot=snapshot, error=result.error)

        notification = self._notifications.push(
            self._describe(snapshot),
            kind=KIND_UNDO,
            duration_ms=self._duration_ms,
            action=NotificationAction(label=UNDO_LABEL, effect=lambda: self.restore(snapshot)),
        )
        return DeleteOutcome(deleted=True, snapshot=snapshot, notification=notification)

    async def restore(self, snapshot: PointEntry) -> StoreResult[None]:
        """Insert a copy of `snapshot` under a new id, then recompute."""

        restored = snapshot.recreate(self._id_factory())
        result = await self._store.insert_entry(restored)
        if result.is_failed:
            logger.error(
                "Entry restore failed",
                extra=log_extra(entry_id=snapshot.id, error=result.error),
            )
        else:
            logger.info(
                "Entry restored",
                extra=log_extra(entry_id=snapshot.id, restored_id=restored.id),
            )
        await self._refresh()
        return result
