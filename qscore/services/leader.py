"""Detects a change of the top-ranked member between aggregation results."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from qscore.config.log import log_extra
from qscore.config.settings import settings
from qscore.services.aggregation import MemberTotal
from qscore.services.notifications import KIND_CELEBRATION, Notification, NotificationCenter

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LeaderContext:
    """Leader state carried from one aggregation cycle to the next."""

    previous_leader_id: Optional[str] = None
    observed: bool = False


@dataclass(frozen=True, slots=True)
class LeaderObservation:
    leader_id: Optional[str]
    top_points: int
    celebration: Optional[Notification] = None


def find_leader(standings: Sequence[MemberTotal]) -> tuple[Optional[str], int]:
    """Member holding the strict maximum; no leader on a tie or a zero maximum."""
    if not standings:
        return None, 0
    top_points = max(row.points for row in standings)
    if top_points <= 0:
        return None, 0
    leaders = [row for row in standings if row.points == top_points]
    if len(leaders) != 1:
        return None, top_points
    return leaders[0].member.id, top_points


class LeaderChangeDetector:
    def __init__(self, notifications: NotificationCenter, *, duration_ms: Optional[int] = None) -> None:
        self._notifications = notifications
        self._duration_ms = duration_ms or settings.CELEBRATION_NOTIFICATION_MS

    def observe(self, context: LeaderContext, standings: Sequence[MemberTotal]) -> LeaderObservation:
        """Compare against the stored leader, celebrate a takeover, then store the new leader.

        The first observation after load only records the leader.
        """
        leader_id, top_points = find_leader(standings)
        celebration = None

        if (
            context.observed
            and context.previous_leader_id is not None
            and leader_id is not None
            and leader_id != context.previous_leader_id
            and top_points > 0
        ):
            leader = next(row.member for row in standings if row.member.id == leader_id)
            celebration = self._notifications.push(
                f"{leader.name} just took the lead with {top_points} pts!",
                kind=KIND_CELEBRATION,
                duration_ms=self._duration_ms,
            )
            logger.info(
                "Leader changed",
                extra=log_extra(previous_leader=context.previous_leader_id, leader=leader_id, points=top_points),
            )

        context.previous_leader_id = leader_id
        context.observed = True
        return LeaderObservation(leader_id=leader_id, top_points=top_points, celebration=celebration)
