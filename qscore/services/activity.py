"""Recent activity feed."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Mapping, Optional, Sequence

from qscore.config.settings import settings
from qscore.services import dates
from qscore.services.aggregation import as_catalog, effective_points, resolve_member, task_name
from qscore.services.catalog import Task
from qscore.services.types import PointEntry, TeamMember


@dataclass(frozen=True, slots=True)
class ActivityItem:
    entry: PointEntry
    member: TeamMember
    task_name: str
    points: int
    time_ago: str


def recent_activity(
    entries: Iterable[PointEntry],
    tasks: Iterable[Task] | Mapping[str, Task],
    members: Sequence[TeamMember],
    *,
    limit: Optional[int] = None,
    now: Optional[datetime] = None,
) -> list[ActivityItem]:
    """Newest entries first, resolved for display."""
    catalog = as_catalog(tasks)
    limit = settings.ACTIVITY_FEED_LIMIT if limit is None else max(limit, 0)
    reference = now or dates.now()
    newest = sorted(entries, key=lambda entry: dates.ensure_aware(entry.timestamp), reverse=True)[:limit]
    return [
        ActivityItem(
            entry=entry,
            member=resolve_member(entry.member_id, members),
            task_name=task_name(entry, catalog),
            points=effective_points(entry, catalog),
            time_ago=dates.format_time_ago(entry.timestamp, reference),
        )
        for entry in newest
    ]
