"""Leaderboard aggregation over a snapshot of the entry log.

Entries are only read, never mutated. Dangling references degrade instead
of raising: an unknown task is worth 0 points (unless the entry carries
custom points) and an unknown member is reported as "Unknown".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from typing import Callable, Iterable, Mapping, Optional, Sequence

from qscore.config.settings import settings
from qscore.services import dates
from qscore.services.catalog import UNKNOWN_MEMBER_NAME, UNKNOWN_TASK_NAME, Task, tasks_by_id
from qscore.services.types import DAILY_BONUS_POINTS, PointEntry, TeamMember

PERIOD_WEEK = "week"
PERIOD_ALL = "all"
PERIODS = (PERIOD_WEEK, PERIOD_ALL)

EntryFilter = Callable[[PointEntry], bool]


@dataclass(frozen=True, slots=True)
class MemberTotal:
    member: TeamMember
    points: int


@dataclass(frozen=True, slots=True)
class SeriesPoint:
    """Cumulative points per member up to `boundary`."""

    label: str
    boundary: datetime
    totals: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class LeaderboardSnapshot:
    period: str
    window_start: Optional[datetime]
    standings: tuple[MemberTotal, ...]
    series: tuple[SeriesPoint, ...]
    entry_count: int
    first_entry_at: Optional[datetime] = None
    last_entry_at: Optional[datetime] = None

    @property
    def total_points(self) -> int:
        return sum(item.points for item in self.standings)


@dataclass(frozen=True, slots=True)
class WeekWinner:
    member: TeamMember
    points: int
    week_start: datetime
    week_label: str


def as_catalog(tasks: Iterable[Task] | Mapping[str, Task]) -> Mapping[str, Task]:
    if isinstance(tasks, Mapping):
        return tasks
    return tasks_by_id(tasks)


def task_points(entry: PointEntry, catalog: Mapping[str, Task]) -> int:
    """Per-unit points; custom points win for custom tasks and stand in for missing ones."""
    if entry.is_custom and entry.custom_task_points is not None:
        return entry.custom_task_points
    task = catalog.get(entry.task_id)
    if task is not None:
        return task.points
    return entry.custom_task_points or 0


def effective_points(entry: PointEntry, catalog: Mapping[str, Task]) -> int:
    bonus = DAILY_BONUS_POINTS if entry.daily_bonus else 0
    return task_points(entry, catalog) * entry.quantity + bonus


def task_name(entry: PointEntry, catalog: Mapping[str, Task]) -> str:
    if entry.is_custom and entry.custom_task_name:
        return entry.custom_task_name
    task = catalog.get(entry.task_id)
    if task is not None:
        return task.name
    return entry.custom_task_name or UNKNOWN_TASK_NAME


def placeholder_member(member_id: str) -> TeamMember:
    return TeamMember(id=member_id, name=UNKNOWN_MEMBER_NAME)


def resolve_member(member_id: str, members: Sequence[TeamMember]) -> TeamMember:
    for member in members:
        if member.id == member_id:
            return member
    return placeholder_member(member_id)


def window_filter(
    period: str,
    *,
    now: Optional[datetime] = None,
    zone: Optional[tzinfo] = None,
) -> EntryFilter:
    """Entry predicate for a period; anything but "week" means all time."""
    if period == PERIOD_WEEK:
        start = dates.week_start(now, zone)
        return lambda entry: dates.is_in_week(entry.timestamp, start)
    return lambda entry: True


def member_totals(
    entries: Iterable[PointEntry],
    tasks: Iterable[Task] | Mapping[str, Task],
    members: Sequence[TeamMember],
    predicate: Optional[EntryFilter] = None,
) -> dict[str, int]:
    """Points per member id; known members first in catalog order, then unknown ids."""
    catalog = as_catalog(tasks)
    totals = {member.id: 0 for member in members}
    for entry in entries:
        if predicate is not None and not predicate(entry):
            continue
        totals[entry.member_id] = totals.get(entry.member_id, 0) + effective_points(entry, catalog)
    return totals


def rank_members(members: Sequence[TeamMember], totals: Mapping[str, int]) -> list[MemberTotal]:
    """Descending by points; ties keep catalog order."""
    known = {member.id for member in members}
    rows = [MemberTotal(member=member, points=totals.get(member.id, 0)) for member in members]
    rows.extend(
        MemberTotal(member=placeholder_member(member_id), points=points)
        for member_id, points in totals.items()
        if member_id not in known
    )
    return sorted(rows, key=lambda row: -row.points)


def standings(
    entries: Iterable[PointEntry],
    tasks: Iterable[Task] | Mapping[str, Task],
    members: Sequence[TeamMember],
    predicate: Optional[EntryFilter] = None,
) -> list[MemberTotal]:
    return rank_members(members, member_totals(entries, tasks, members, predicate))


def _series_member_ids(members: Sequence[TeamMember], entries: Sequence[PointEntry]) -> list[str]:
    ids = [member.id for member in members]
    seen = set(ids)
    for entry in entries:
        if entry.member_id not in seen:
            seen.add(entry.member_id)
            ids.append(entry.member_id)
    return ids


def _cumulative(
    entries: Sequence[PointEntry],
    catalog: Mapping[str, Task],
    member_ids: Sequence[str],
    predicate: EntryFilter,
) -> dict[str, int]:
    totals = {member_id: 0 for member_id in member_ids}
    for entry in entries:
        if predicate(entry):
            totals[entry.member_id] = totals.get(entry.member_id, 0) + effective_points(entry, catalog)
    return totals


def week_series(
    entries: Sequence[PointEntry],
    tasks: Iterable[Task] | Mapping[str, Task],
    members: Sequence[TeamMember],
    *,
    now: Optional[datetime] = None,
    zone: Optional[tzinfo] = None,
) -> list[SeriesPoint]:
    """One point per day of the current week up to today, cumulative through end of day."""
    catalog = as_catalog(tasks)
    now = now or dates.now(zone)
    start = dates.week_start(now, zone)
    week_entries = [entry for entry in entries if dates.is_in_week(entry.timestamp, start)]
    member_ids = _series_member_ids(members, week_entries)

    points: list[SeriesPoint] = []
    for day in dates.week_days(now, zone):
        if not dates.is_up_to_today(day, now):
            continue
        day_end = dates.end_of_day(day, zone)
        totals = _cumulative(
            week_entries,
            catalog,
            member_ids,
            lambda entry: dates.ensure_aware(entry.timestamp) <= day_end,
        )
        points.append(SeriesPoint(label=dates.format_day_short(day), boundary=day_end, totals=totals))
    return points


def all_time_series(
    entries: Sequence[PointEntry],
    tasks: Iterable[Task] | Mapping[str, Task],
    members: Sequence[TeamMember],
    *,
    now: Optional[datetime] = None,
    zone: Optional[tzinfo] = None,
    max_weeks: Optional[int] = None,
) -> list[SeriesPoint]:
    """One point per week from the first entry's week to now, keeping the latest `max_weeks`.

    Totals are cumulative as of each week's exclusive end.
    """
    if not entries:
        return []

    catalog = as_catalog(tasks)
    now = now or dates.now(zone)
    max_weeks = max_weeks or settings.CHART_MAX_WEEKS
    first = min(dates.ensure_aware(entry.timestamp) for entry in entries)

    starts: list[datetime] = []
    cursor = dates.week_start(first, zone)
    while cursor <= now:
        starts.append(cursor)
        cursor = cursor + dates.WEEK_LENGTH

    member_ids = _series_member_ids(members, entries)
    points: list[SeriesPoint] = []
    for start in starts[-max_weeks:]:
        boundary = start + dates.WEEK_LENGTH
        totals = _cumulative(
            entries,
            catalog,
            member_ids,
            lambda entry: dates.ensure_aware(entry.timestamp) < boundary,
        )
        points.append(SeriesPoint(label=dates.format_month_day(start), boundary=boundary, totals=totals))
    return points


def build_leaderboard(
    entries: Sequence[PointEntry],
    tasks: Iterable[Task] | Mapping[str, Task],
    members: Sequence[TeamMember],
    *,
    period: str = PERIOD_WEEK,
    now: Optional[datetime] = None,
    zone: Optional[tzinfo] = None,
    max_weeks: Optional[int] = None,
) -> LeaderboardSnapshot:
    """Standings, chart series and period summary for one view of the ledger."""

    catalog = as_catalog(tasks)
    now = now or dates.now(zone)
    predicate = window_filter(period, now=now, zone=zone)
    in_window = [entry for entry in entries if predicate(entry)]

    if period == PERIOD_WEEK:
        window_start = dates.week_start(now, zone)
        series = week_series(entries, catalog, members, now=now, zone=zone)
    else:
        window_start = None
        series = all_time_series(entries, catalog, members, now=now, zone=zone, max_weeks=max_weeks)

    timestamps = [dates.ensure_aware(entry.timestamp) for entry in entries]
    return LeaderboardSnapshot(
        period=period,
        window_start=window_start,
        standings=tuple(standings(in_window, catalog, members)),
        series=tuple(series),
        entry_count=len(in_window),
        first_entry_at=min(timestamps) if timestamps else None,
        last_entry_at=max(timestamps) if timestamps else None,
    )


def last_week_winner(
    entries: Iterable[PointEntry],
    tasks: Iterable[Task] | Mapping[str, Task],
    members: Sequence[TeamMember],
    *,
    now: Optional[datetime] = None,
    zone: Optional[tzinfo] = None,
) -> Optional[WeekWinner]:
    """Top scorer of the week before the current one.

    Ties go to the earlier member in catalog order. Nothing is returned for
    an empty week, a zero top score, or a winner who is no longer a member.
    """
    start = dates.last_week_start(now, zone)
    last_week = [entry for entry in entries if dates.is_in_week(entry.timestamp, start)]
    if not last_week:
        return None

    top_id: Optional[str] = None
    top_points = 0
    for member_id, points in member_totals(last_week, tasks, members).items():
        if points > top_points:
            top_id = member_id
            top_points = points

    if top_id is None:
        return None
    member = next((candidate for candidate in members if candidate.id == top_id), None)
    if member is None:
        return None

    week_end = start + timedelta(days=6)
    label = f"{dates.format_month_day(start)} – {dates.format_month_day(week_end)}"
    return WeekWinner(member=member, points=top_points, week_start=start, week_label=label)
