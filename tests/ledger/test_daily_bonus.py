import asyncio
from datetime import datetime, timedelta

from dateutil import tz

from qscore.services.daily_bonus import assign_daily_bonus, is_first_entry_of_day

NOW = datetime(2026, 3, 11, 12, 0, tzinfo=tz.UTC)


def test_first_entry_of_day_ignores_other_members_and_days(entry_factory) -> None:
    entries = [
        entry_factory("1", "jordan@quangoinc.com", "2", at=NOW - timedelta(hours=2)),
        entry_factory("2", "alex@quangoinc.com", "2", at=NOW - timedelta(days=1)),
    ]

    assert is_first_entry_of_day(entries, "alex@quangoinc.com", NOW, tz.UTC) is True
    assert is_first_entry_of_day(entries, "jordan@quangoinc.com", NOW, tz.UTC) is False


def test_day_window_follows_local_zone(entry_factory) -> None:
    new_york = tz.gettz("America/New_York")
    # 23:30 the previous evening in New York.
    entries = [entry_factory("1", "alex@quangoinc.com", "2", at=datetime(2026, 3, 11, 3, 30, tzinfo=tz.UTC))]

    assert is_first_entry_of_day(entries, "alex@quangoinc.com", NOW, new_york) is True
    assert is_first_entry_of_day(entries, "alex@quangoinc.com", NOW, tz.UTC) is False


def test_assign_daily_bonus_reads_store(ledger_store, entry_factory) -> None:
    assert asyncio.run(assign_daily_bonus(ledger_store, "alex@quangoinc.com", NOW, tz.UTC)) is True

    ledger_store.entries = [entry_factory("1", "alex@quangoinc.com", "2", at=NOW - timedelta(hours=1))]
    assert asyncio.run(assign_daily_bonus(ledger_store, "alex@quangoinc.com", NOW, tz.UTC)) is False


def test_bonus_withheld_when_store_read_fails(ledger_store) -> None:
    ledger_store.fail_reads = True

    assert asyncio.run(assign_daily_bonus(ledger_store, "alex@quangoinc.com", NOW, tz.UTC)) is False
