"""Contracts between the ledger core and its persistence collaborators."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Mapping, Optional, Protocol, TypeVar

from qscore.services.types import PointEntry, TeamMember

T = TypeVar("T")

TABLE_ENTRIES = "entries"
TABLE_USERS = "users"

CHANGE_INSERT = "INSERT"
CHANGE_UPDATE = "UPDATE"
CHANGE_DELETE = "DELETE"


class StoreState(str, Enum):
    OK = "ok"
    FAILED = "failed"


@dataclass(slots=True)
class StoreResult(Generic[T]):
    """Outcome of a store operation. Failures are values, not exceptions."""

    state: StoreState
    data: Optional[T] = None
    error: Optional[str] = None

    @property
    def is_ok(self) -> bool:
        return self.state == StoreState.OK

    @property
    def is_failed(self) -> bool:
        return self.state == StoreState.FAILED

    @classmethod
    def ok(cls, data: Optional[T] = None) -> "StoreResult[T]":
        return cls(state=StoreState.OK, data=data)

    @classmethod
    def failed(cls, error: str) -> "StoreResult[T]":
        return cls(state=StoreState.FAILED, error=error)


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """Table-level change notification."""

    table: str
    kind: str
    record_id: Optional[str] = None


class LedgerStore(Protocol):
    """Store of record for point entries."""

    async def list_entries(self) -> StoreResult[list[PointEntry]]:
        """All entries, newest timestamp first."""

    async def insert_entry(self, entry: PointEntry) -> StoreResult[None]:
        ...

    async def update_entry(self, entry_id: str, fields: Mapping[str, Any]) -> StoreResult[None]:
        ...

    async def delete_entry(self, entry_id: str) -> StoreResult[None]:
        ...


class UserDirectory(Protocol):
    """Store of record for team members."""

    async def list_members(self) -> StoreResult[list[TeamMember]]:
        """All members in registration order."""

    async def upsert_member(self, member: TeamMember) -> StoreResult[TeamMember]:
        """Register on first sign-in with a fresh color/face, else refresh name and avatar."""

    async def update_profile(
        self,
        member_id: str,
        *,
        color: Optional[str] = None,
        face: Optional[int] = None,
    ) -> StoreResult[TeamMember]:
        ...
