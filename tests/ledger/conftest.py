from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Any, Mapping, Optional

import pytest
from dateutil import tz

from qscore.services.avatars import AvatarAllocator
from qscore.services.types import PointEntry, TeamMember
from qscore.store.contracts import StoreResult

# Wednesday; the surrounding week starts Sunday 2026-03-08.
NOW = datetime(2026, 3, 11, 12, 0, tzinfo=tz.UTC)


class FakeLedgerStore:
    def __init__(self, entries=None) -> None:
        self.entries: list[PointEntry] = list(entries or [])
        self.fail_reads = False
        self.fail_writes = False
        self.calls: list[str] = []

    async def list_entries(self):
        self.calls.append("list")
        if self.fail_reads:
            return StoreResult.failed("read unavailable")
        return StoreResult.ok(sorted(self.entries, key=lambda entry: entry.timestamp, reverse=True))

    async def insert_entry(self, entry: PointEntry):
        self.calls.append("insert")
        if self.fail_writes:
            return StoreResult.failed("write unavailable")
        self.entries.append(entry)
        return StoreResult.ok()

    async def update_entry(self, entry_id: str, fields: Mapping[str, Any]):
        self.calls.append("update")
        if self.fail_writes:
            return StoreResult.failed("write unavailable")
        for index, entry in enumerate(self.entries):
            if entry.id == entry_id:
                self.entries[index] = replace(entry, **fields)
                return StoreResult.ok()
        return StoreResult.failed(f"entry {entry_id} not found")

    async def delete_entry(self, entry_id: str):
        self.calls.append("delete")
        if self.fail_writes:
            return StoreResult.failed("write unavailable")
        remaining = [entry for entry in self.entries if entry.id != entry_id]
        if len(remaining) == len(self.entries):
            return StoreResult.failed(f"entry {entry_id} not found")
        self.entries = remaining
        return StoreResult.ok()


class FakeDirectory:
    def __init__(self, members=None) -> None:
        self.members: list[TeamMember] = list(members or [])
        self.fail_reads = False
        self.fail_writes = False

    async def list_members(self):
        if self.fail_reads:
            return StoreResult.failed("read unavailable")
        return StoreResult.ok(list(self.members))

    async def upsert_member(self, member: TeamMember):
        if self.fail_writes:
            return StoreResult.failed("write unavailable")
        for index, existing in enumerate(self.members):
            if existing.id == member.id:
                updated = replace(existing, name=member.name, avatar=member.avatar or existing.avatar)
                self.members[index] = updated
                return StoreResult.ok(updated)
        color, face = AvatarAllocator.from_members(self.members).allocate()
        created = replace(member, color=color, face=face)
        self.members.append(created)
        return StoreResult.ok(created)

    async def update_profile(self, member_id: str, *, color: Optional[str] = None, face: Optional[int] = None):
        if self.fail_writes:
            return StoreResult.failed("write unavailable")
        for index, existing in enumerate(self.members):
            if existing.id == member_id:
                updated = replace(
                    existing,
                    color=color if color is not None else existing.color,
                    face=face if face is not None else existing.face,
                )
                self.members[index] = updated
                return StoreResult.ok(updated)
        return StoreResult.failed(f"member {member_id} not found")


def make_entry(
    entry_id: str,
    member_id: str,
    task_id: str = "1",
    *,
    quantity: int = 1,
    at: datetime = NOW,
    daily_bonus: bool = False,
    custom_task_name: Optional[str] = None,
    custom_task_points: Optional[int] = None,
) -> PointEntry:
    return PointEntry(
        id=entry_id,
        member_id=member_id,
        task_id=task_id,
        quantity=quantity,
        timestamp=at,
        daily_bonus=daily_bonus,
        custom_task_name=custom_task_name,
        custom_task_points=custom_task_points,
    )


@pytest.fixture
def alex() -> TeamMember:
    return TeamMember(id="alex@quangoinc.com", name="Alex", color="#C41E3A", face=0)


@pytest.fixture
def jordan() -> TeamMember:
    return TeamMember(id="jordan@quangoinc.com", name="Jordan", color="#4ECDC4", face=1)


@pytest.fixture
def entry_factory():
    return make_entry


@pytest.fixture
def ledger_store() -> FakeLedgerStore:
    return FakeLedgerStore()


@pytest.fixture
def directory(alex, jordan) -> FakeDirectory:
    return FakeDirectory([alex, jordan])
