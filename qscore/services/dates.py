"""Date utilities for day and week windows.

Weeks start on Sunday at local midnight in the configured zone. Weekly sums,
the last-week winner and the chart day axis all go through `week_start`.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional

from dateutil import tz

from qscore.config.settings import settings

WEEK_LENGTH = timedelta(days=7)


def local_zone(name: Optional[str] = None) -> tzinfo:
    """Resolve an IANA zone name, falling back to UTC for unknown names."""
    return tz.gettz(name or settings.TIMEZONE) or tz.UTC


def ensure_aware(moment: datetime) -> datetime:
    # Naive values come back from SQLite and are stored as UTC.
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def now(zone: Optional[tzinfo] = None) -> datetime:
    return datetime.now(zone or local_zone())


def to_local(moment: datetime, zone: Optional[tzinfo] = None) -> datetime:
    return ensure_aware(moment).astimezone(zone or local_zone())


def start_of_day(moment: datetime, zone: Optional[tzinfo] = None) -> datetime:
    return to_local(moment, zone).replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(moment: datetime, zone: Optional[tzinfo] = None) -> datetime:
    return to_local(moment, zone).replace(hour=23, minute=59, second=59, microsecond=999999)


def week_start(moment: Optional[datetime] = None, zone: Optional[tzinfo] = None) -> datetime:
    """Sunday 00:00 local time of the week containing `moment`."""
    day = start_of_day(moment or now(zone), zone)
    days_since_sunday = (day.weekday() + 1) % 7
    return day - timedelta(days=days_since_sunday)


def last_week_start(moment: Optional[datetime] = None, zone: Optional[tzinfo] = None) -> datetime:
    return week_start(moment, zone) - WEEK_LENGTH


def week_days(moment: Optional[datetime] = None, zone: Optional[tzinfo] = None) -> list[datetime]:
    """Local midnights Sunday through Saturday of the week containing `moment`."""
    start = week_start(moment, zone)
    return [start + timedelta(days=offset) for offset in range(7)]


def is_in_week(moment: datetime, start: datetime) -> bool:
    """True when `start <= moment < start + 7 days`."""
    start = start.replace(hour=0, minute=0, second=0, microsecond=0)
    return start <= ensure_aware(moment) < start + WEEK_LENGTH


def is_up_to_today(day: datetime, today: Optional[datetime] = None) -> bool:
    reference = today or now(ensure_aware(day).tzinfo)
    return ensure_aware(day) <= end_of_day(reference, ensure_aware(day).tzinfo)


def format_day_short(day: datetime) -> str:
    return day.strftime("%a")


def format_month_day(day: datetime) -> str:
    return f"{day.strftime('%b')} {day.day}"


def format_time_ago(moment: datetime, reference: Optional[datetime] = None) -> str:
    """Relative label used by the activity feed."""
    reference = ensure_aware(reference or now())
    moment = ensure_aware(moment)
    diff_secs = int((reference - moment).total_seconds())
    diff_mins = diff_secs // 60
    diff_hours = diff_mins // 60
    diff_days = diff_hours // 24

    if diff_secs < 60:
        return "just now"
    if diff_mins < 60:
        return "1 minute ago" if diff_mins == 1 else f"{diff_mins} minutes ago"
    if diff_hours < 24:
        return "1 hour ago" if diff_hours == 1 else f"{diff_hours} hours ago"
    if diff_days == 1:
        return "yesterday"
    if diff_days < 7:
        return f"{diff_days} days ago"
    return format_month_day(to_local(moment, reference.tzinfo))
