import asyncio
from datetime import datetime, timedelta

import pytest
from dateutil import tz

from qscore.orchestrator import LeaderboardOrchestrator
from qscore.services.aggregation import PERIOD_ALL
from qscore.services.errors import EntryValidationError, PrincipalRejectedError
from qscore.services.notifications import KIND_CELEBRATION, KIND_UNDO
from qscore.store.contracts import CHANGE_INSERT, TABLE_ENTRIES, ChangeEvent
from qscore.store.realtime import ChangeFeed

NOW = datetime(2026, 3, 11, 12, 0, tzinfo=tz.UTC)


def _orchestrator(ledger_store, directory, feed=None) -> LeaderboardOrchestrator:
    return LeaderboardOrchestrator(
        store=ledger_store,
        directory=directory,
        feed=feed,
        clock=lambda: NOW,
        zone=tz.UTC,
    )


def test_start_loads_state_and_records_leader_quietly(ledger_store, directory, alex, entry_factory) -> None:
    ledger_store.entries = [entry_factory("1", alex.id, "2", at=NOW - timedelta(hours=3), daily_bonus=True)]
    orchestrator = _orchestrator(ledger_store, directory)

    asyncio.run(orchestrator.start())

    assert len(orchestrator.entries) == 1
    assert [member.name for member in orchestrator.members] == ["Alex", "Jordan"]
    assert orchestrator.leader_context.previous_leader_id == alex.id
    assert orchestrator.notifications.active() == []


def test_log_points_assigns_bonus_to_first_entry_of_day(ledger_store, directory, alex) -> None:
    orchestrator = _orchestrator(ledger_store, directory)

    async def scenario():
        await orchestrator.start()
        first = await orchestrator.log_points(member_id=alex.id, task_id="2")
        second = await orchestrator.log_points(member_id=alex.id, task_id="5", quantity=2)
        return first, second

    first, second = asyncio.run(scenario())

    assert first.applied is True
    assert first.entry.daily_bonus is True
    assert (first.member_name, first.task_name, first.points) == ("Alex", "Made a new post", 61)
    assert second.entry.daily_bonus is False
    assert second.points == 6
    assert int(second.entry.id) > int(first.entry.id)
    assert orchestrator.leaderboard().standings[0].points == 67


def test_invalid_log_points_never_reaches_store(ledger_store, directory, alex) -> None:
    orchestrator = _orchestrator(ledger_store, directory)

    with pytest.raises(EntryValidationError):
        asyncio.run(orchestrator.log_points(member_id=alex.id, task_id="2", quantity=0))

    assert ledger_store.calls == []


def test_takeover_celebration_after_logging(ledger_store, directory, alex, jordan, entry_factory) -> None:
    ledger_store.entries = [entry_factory("1", alex.id, "2", at=NOW - timedelta(hours=3), daily_bonus=True)]
    orchestrator = _orchestrator(ledger_store, directory)

    async def scenario():
        await orchestrator.start()
        return await orchestrator.log_points(member_id=jordan.id, task_id="7")

    logged = asyncio.run(scenario())

    assert logged.points == 85
    [celebration] = orchestrator.notifications.active()
    assert celebration.kind == KIND_CELEBRATION
    assert celebration.message == "Jordan just took the lead with 85 pts!"


def test_failed_insert_reports_not_applied(ledger_store, directory, alex) -> None:
    orchestrator = _orchestrator(ledger_store, directory)
    ledger_store.fail_writes = True

    logged = asyncio.run(orchestrator.log_points(member_id=alex.id, task_id="2"))

    assert logged.applied is False
    assert logged.error == "write unavailable"
    assert orchestrator.entries == []


def test_failed_reload_keeps_previous_state(ledger_store, directory, alex, entry_factory) -> None:
    ledger_store.entries = [entry_factory("1", alex.id, "2")]
    orchestrator = _orchestrator(ledger_store, directory)

    async def scenario():
        await orchestrator.start()
        ledger_store.fail_reads = True
        directory.fail_reads = True
        await orchestrator.reload()

    asyncio.run(scenario())

    assert [entry.id for entry in orchestrator.entries] == ["1"]
    assert len(orchestrator.members) == 2


def test_update_entry_edits_in_place(ledger_store, directory, alex, jordan, entry_factory) -> None:
    ledger_store.entries = [entry_factory("1", alex.id, "2", daily_bonus=True)]
    orchestrator = _orchestrator(ledger_store, directory)

    async def scenario():
        await orchestrator.start()
        return await orchestrator.update_entry("1", member_id=jordan.id, quantity=2)

    assert asyncio.run(scenario()) is True
    [entry] = orchestrator.entries
    assert (entry.member_id, entry.task_id, entry.quantity, entry.daily_bonus) == (jordan.id, "2", 2, True)


def test_delete_and_undo_round_trip(ledger_store, directory, alex, entry_factory) -> None:
    original = entry_factory("1", alex.id, "7", at=NOW - timedelta(hours=1), daily_bonus=True)
    ledger_store.entries = [original]
    orchestrator = _orchestrator(ledger_store, directory)

    async def scenario():
        await orchestrator.start()
        outcome = await orchestrator.delete_entry("1")
        totals_after_delete = orchestrator.leaderboard(PERIOD_ALL).total_points
        undone = await orchestrator.invoke_notification(outcome.notification.id)
        return outcome, totals_after_delete, undone

    outcome, totals_after_delete, undone = asyncio.run(scenario())

    assert outcome.deleted is True
    assert outcome.notification.kind == KIND_UNDO
    assert outcome.notification.message == "Deleted Published a site for Alex"
    assert totals_after_delete == 0
    assert undone is True
    [restored] = orchestrator.entries
    assert restored.id != "1"
    assert restored.recreate("1") == original
    assert orchestrator.leaderboard(PERIOD_ALL).total_points == 85


def test_change_feed_triggers_reload(ledger_store, directory, alex, entry_factory) -> None:
    feed = ChangeFeed()
    orchestrator = _orchestrator(ledger_store, directory, feed=feed)

    async def scenario():
        await orchestrator.start()
        ledger_store.entries.append(entry_factory("9", alex.id, "2"))
        feed.publish(ChangeEvent(table=TABLE_ENTRIES, kind=CHANGE_INSERT, record_id="9"))
        await feed.drain()
        await orchestrator.stop()

    asyncio.run(scenario())

    assert [entry.id for entry in orchestrator.entries] == ["9"]
    assert feed.subscriber_count == 0


def test_sign_in_registers_allowed_members_only(ledger_store, directory) -> None:
    orchestrator = _orchestrator(ledger_store, directory)

    member = asyncio.run(orchestrator.sign_in("Sam@quangoinc.com", "Sam"))

    assert member.id == "sam@quangoinc.com"
    assert member.color is not None
    assert [m.id for m in orchestrator.members][-1] == "sam@quangoinc.com"

    with pytest.raises(PrincipalRejectedError):
        asyncio.run(orchestrator.sign_in("sam@example.com", "Sam"))


def test_activity_and_last_week_winner(ledger_store, directory, alex, jordan, entry_factory) -> None:
    ledger_store.entries = [
        entry_factory("1", jordan.id, "7", at=NOW - timedelta(days=7)),
        entry_factory("2", alex.id, "2", at=NOW - timedelta(minutes=5)),
    ]
    orchestrator = _orchestrator(ledger_store, directory)
    asyncio.run(orchestrator.start())

    items = orchestrator.activity()
    winner = orchestrator.last_week_winner()

    assert [(item.member.name, item.task_name, item.time_ago) for item in items] == [
        ("Alex", "Made a new post", "5 minutes ago"),
        ("Jordan", "Published a site", "Mar 4"),
    ]
    assert winner.member.name == "Jordan"


def test_activity_never_drops_items_for_negative_limit(ledger_store, directory, alex, entry_factory) -> None:
    ledger_store.entries = [entry_factory(str(index), alex.id, "2", at=NOW - timedelta(minutes=index)) for index in range(3)]
    orchestrator = _orchestrator(ledger_store, directory)
    asyncio.run(orchestrator.start())

    assert orchestrator.activity(-1) == []
    assert len(orchestrator.activity()) == 3


def test_undo_snapshot_reflects_edits_from_other_writers(ledger_store, directory, alex, jordan, entry_factory) -> None:
    ledger_store.entries = [entry_factory("1", alex.id, "2", at=NOW - timedelta(hours=1))]
    orchestrator = _orchestrator(ledger_store, directory)

    async def scenario():
        await orchestrator.start()
        # Edited elsewhere; this session has not reloaded yet.
        ledger_store.entries = [entry_factory("1", jordan.id, "7", quantity=3, at=NOW - timedelta(hours=1))]
        return await orchestrator.delete_entry("1")

    outcome = asyncio.run(scenario())

    assert outcome.deleted is True
    assert (outcome.snapshot.member_id, outcome.snapshot.task_id, outcome.snapshot.quantity) == (jordan.id, "7", 3)


def test_undo_snapshot_falls_back_to_local_state_when_read_fails(ledger_store, directory, alex, entry_factory) -> None:
    original = entry_factory("1", alex.id, "2", at=NOW - timedelta(hours=1))
    ledger_store.entries = [original]
    orchestrator = _orchestrator(ledger_store, directory)

    async def scenario():
        await orchestrator.start()
        ledger_store.fail_reads = True
        return await orchestrator.delete_entry("1")

    outcome = asyncio.run(scenario())

    assert outcome.deleted is True
    assert outcome.snapshot == original
    assert ledger_store.entries == []


def test_reload_twice_on_unchanged_entries_is_idempotent(ledger_store, directory, alex, jordan, entry_factory) -> None:
    ledger_store.entries = [
        entry_factory("1", alex.id, "2", at=NOW - timedelta(hours=3), daily_bonus=True),
        entry_factory("2", jordan.id, "3", at=NOW - timedelta(days=1)),
        entry_factory("3", jordan.id, "7", at=NOW - timedelta(weeks=3)),
        entry_factory("4", "ghost@quangoinc.com", "custom", custom_task_name="Pitch", custom_task_points=12),
    ]
    orchestrator = _orchestrator(ledger_store, directory)

    async def scenario():
        await orchestrator.start()
        first = (
            orchestrator.leaderboard(),
            orchestrator.leaderboard(PERIOD_ALL),
            orchestrator.last_observation,
        )
        await orchestrator.reload()
        second = (
            orchestrator.leaderboard(),
            orchestrator.leaderboard(PERIOD_ALL),
            orchestrator.last_observation,
        )
        return first, second

    (week_a, all_a, observed_a), (week_b, all_b, observed_b) = asyncio.run(scenario())

    assert week_a.standings == week_b.standings
    assert week_a.series == week_b.series
    assert all_a.standings == all_b.standings
    assert all_a.series == all_b.series
    assert observed_a == observed_b
    assert observed_b.leader_id == alex.id
    assert orchestrator.notifications.active() == []
