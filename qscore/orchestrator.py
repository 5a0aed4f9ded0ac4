"""Session orchestrator: ledger commands on one side, recompute-on-change on the other.

Commands (`log_points`, `update_entry`, `delete_entry`, ...) mutate the store
and then reload. Independently, every change event from the feed triggers a
full reload. Reloads are idempotent and the last one to complete wins, so
duplicate or out-of-order notifications only cost an extra read.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Any, Callable, Optional, Sequence

from qscore.config.log import log_extra
from qscore.services import dates
from qscore.services.activity import ActivityItem, recent_activity
from qscore.services.aggregation import (
    PERIOD_WEEK,
    LeaderboardSnapshot,
    WeekWinner,
    as_catalog,
    build_leaderboard,
    effective_points,
    last_week_winner,
    resolve_member,
    standings,
    task_name,
    window_filter,
)
from qscore.services.catalog import Task, get_default_tasks
from qscore.services.daily_bonus import assign_daily_bonus
from qscore.services.entries import new_entry_id, validate_entry_update, validate_new_entry, validate_profile
from qscore.services.identity import member_from_principal
from qscore.services.leader import LeaderChangeDetector, LeaderContext, LeaderObservation
from qscore.services.notifications import NotificationCenter
from qscore.services.types import PointEntry, TeamMember
from qscore.services.undo import DeleteOutcome, UndoCoordinator
from qscore.store.contracts import ChangeEvent, LedgerStore, UserDirectory
from qscore.store.realtime import ChangeFeed

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LoggedPoints:
    """Result of a log-points command, including the confirmation summary."""

    entry: PointEntry
    applied: bool
    member_name: str
    task_name: str
    points: int
    error: Optional[str] = None


class LeaderboardOrchestrator:
    """One dashboard session over the shared ledger."""

    def __init__(
        self,
        *,
        store: LedgerStore,
        directory: UserDirectory,
        feed: Optional[ChangeFeed] = None,
        tasks: Optional[Sequence[Task]] = None,
        notifications: Optional[NotificationCenter] = None,
        leader_context: Optional[LeaderContext] = None,
        clock: Optional[Callable[[], datetime]] = None,
        zone: Optional[tzinfo] = None,
    ) -> None:
        self._store = store
        self._directory = directory
        self._feed = feed
        self._zone = zone
        self._clock = clock or (lambda: dates.now(zone))
        self.tasks: list[Task] = list(tasks) if tasks is not None else get_default_tasks()
        self._catalog = as_catalog(self.tasks)
        self.notifications = notifications or NotificationCenter(clock=self._clock)
        self.leader_context = leader_context or LeaderContext()
        self._detector = LeaderChangeDetector(self.notifications)
        self._undo = UndoCoordinator(
            store,
            self.notifications,
            refresh=self.reload,
            lookup=self._lookup_entry,
            describe=self._describe_deleted,
        )
        self.entries: list[PointEntry] = []
        self.members: list[TeamMember] = []
        self.last_observation: Optional[LeaderObservation] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    # ------------------------------------------------------------------
    # Lifecycle and recompute
    # ------------------------------------------------------------------
    async def start(self) -> None:
        if self._feed is not None and self._unsubscribe is None:
            self._unsubscribe = self._feed.subscribe(self.handle_change)
        await self.reload()

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._feed is not None:
            await self._feed.drain()

    async def handle_change(self, event: ChangeEvent) -> None:
        logger.debug("Change received", extra=log_extra(table=event.table, kind=event.kind))
        await self.reload()

    async def publish_change(self, event: ChangeEvent) -> None:
        """Forward an externally observed change to every subscriber of the feed."""
        if self._feed is None:
            await self.handle_change(event)
        else:
            self._feed.publish(event)

    async def reload(self) -> None:
        """Replace local state with the store of record, then run the leader check.

        A failed read keeps the previous state.
        """
        entries_result = await self._store.list_entries()
        if entries_result.is_ok:
            self.entries = list(entries_result.data or [])
        else:
            logger.warning("Entry reload failed; keeping previous state", extra=log_extra(error=entries_result.error))

        members_result = await self._directory.list_members()
        if members_result.is_ok:
            self.members = list(members_result.data or [])
        else:
            logger.warning("Member reload failed; keeping previous state", extra=log_extra(error=members_result.error))

        self._check_leader()

    def _check_leader(self) -> LeaderObservation:
        # Leadership always tracks this week, whatever period the viewer picked.
        weekly = standings(
            self.entries,
            self._catalog,
            self.members,
            window_filter(PERIOD_WEEK, now=self._clock(), zone=self._zone),
        )
        self.last_observation = self._detector.observe(self.leader_context, weekly)
        return self.last_observation

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def leaderboard(self, period: str = PERIOD_WEEK) -> LeaderboardSnapshot:
        return build_leaderboard(
            self.entries,
            self._catalog,
            self.members,
            period=period,
            now=self._clock(),
            zone=self._zone,
        )

    def last_week_winner(self) -> Optional[WeekWinner]:
        return last_week_winner(self.entries, self._catalog, self.members, now=self._clock(), zone=self._zone)

    def activity(self, limit: Optional[int] = None) -> list[ActivityItem]:
        return recent_activity(self.entries, self._catalog, self.members, limit=limit, now=self._clock())

    def entry_points(self, entry: PointEntry) -> int:
        return effective_points(entry, self._catalog)

    # ------------------------------------------------------------------
    # Ledger commands
    # ------------------------------------------------------------------
    async def log_points(
        self,
        *,
        member_id: str,
        task_id: str,
        quantity: int = 1,
        custom_task_name: Optional[str] = None,
        custom_task_points: Optional[int] = None,
        timestamp: Optional[datetime] = None,
    ) -> LoggedPoints:
        validate_new_entry(
            member_id=member_id,
            task_id=task_id,
            quantity=quantity,
            catalog=self._catalog,
            custom_task_name=custom_task_name,
            custom_task_points=custom_task_points,
        )
        moment = dates.ensure_aware(timestamp) if timestamp is not None else self._clock()
        daily_bonus = await assign_daily_bonus(self._store, member_id, moment, self._zone)

        entry = PointEntry(
            id=new_entry_id(),
            member_id=member_id,
            task_id=task_id,
            quantity=quantity,
            timestamp=moment,
            daily_bonus=daily_bonus,
            custom_task_name=custom_task_name.strip() if custom_task_name else None,
            custom_task_points=custom_task_points,
        )
        result = await self._store.insert_entry(entry)
        if result.is_failed:
            logger.error("Entry insert failed", extra=log_extra(entry_id=entry.id, error=result.error))
        else:
            logger.info(
                "Points logged",
                extra=log_extra(entry_id=entry.id, member=member_id, task=task_id, daily_bonus=daily_bonus),
            )
        await self.reload()

        return LoggedPoints(
            entry=entry,
            applied=result.is_ok,
            member_name=resolve_member(member_id, self.members).name,
            task_name=task_name(entry, self._catalog),
            points=effective_points(entry, self._catalog),
            error=result.error,
        )

    async def update_entry(
        self,
        entry_id: str,
        *,
        member_id: Optional[str] = None,
        task_id: Optional[str] = None,
        quantity: Optional[int] = None,
    ) -> bool:
        """Edit member, task or quantity in place. The daily bonus flag is left as recorded."""
        updates = validate_entry_update(
            {"member_id": member_id, "task_id": task_id, "quantity": quantity},
            self._catalog,
        )
        result = await self._store.update_entry(entry_id, updates)
        if result.is_failed:
            logger.error("Entry update failed", extra=log_extra(entry_id=entry_id, error=result.error))
        await self.reload()
        return result.is_ok

    async def delete_entry(self, entry_id: str) -> DeleteOutcome:
        return await self._undo.delete(entry_id)

    async def invoke_notification(self, notification_id: str) -> bool:
        """Run a notification's action (e.g. undo) if it is still visible."""
        applied, result = await self.notifications.invoke(notification_id)
        if not applied:
            logger.info("Notification action unavailable", extra=log_extra(notification_id=notification_id))
            return False
        return bool(getattr(result, "is_ok", True))

    def dismiss_notification(self, notification_id: str) -> bool:
        return self.notifications.dismiss(notification_id)

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------
    async def sign_in(self, email: Optional[str], name: Optional[str], avatar: Optional[str] = None) -> Optional[TeamMember]:
        """Register or refresh the signed-in member. Returns None if the store write failed."""
        member = member_from_principal(email, name, avatar)
        result = await self._directory.upsert_member(member)
        if result.is_failed:
            logger.error("Member upsert failed", extra=log_extra(member=member.id, error=result.error))
        await self.reload()
        return result.data if result.is_ok else None

    async def update_profile(
        self,
        member_id: str,
        *,
        color: Optional[str] = None,
        face: Optional[int] = None,
    ) -> Optional[TeamMember]:
        validate_profile(color, face)
        result = await self._directory.update_profile(member_id, color=color, face=face)
        if result.is_failed:
            logger.error("Profile update failed", extra=log_extra(member=member_id, error=result.error))
        await self.reload()
        return result.data if result.is_ok else None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    async def _lookup_entry(self, entry_id: str) -> Optional[PointEntry]:
        """Snapshot from the store of record; the local copy is used only when the read fails."""
        result = await self._store.list_entries()
        candidates = (result.data or []) if result.is_ok else self.entries
        return next((entry for entry in candidates if entry.id == entry_id), None)

    def _describe_deleted(self, entry: PointEntry) -> str:
        member = resolve_member(entry.member_id, self.members)
        return f"Deleted {task_name(entry, self._catalog)} for {member.name}"

    def state(self) -> dict[str, Any]:
        """Counts for health and debugging endpoints."""
        return {
            "entries": len(self.entries),
            "members": len(self.members),
            "leader": self.leader_context.previous_leader_id,
            "notifications": len(self.notifications.active()),
        }
