"""Core records shared by the ledger, aggregation and presentation code."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

# Extra points for a member's first entry of a calendar day.
DAILY_BONUS_POINTS = 50

CUSTOM_TASK_ID = "custom"


@dataclass(frozen=True, slots=True)
class TeamMember:
    """A signed-in team member. `id` is the member's email."""

    id: str
    name: str
    avatar: Optional[str] = None
    color: Optional[str] = None
    face: Optional[int] = None


@dataclass(frozen=True, slots=True)
class PointEntry:
    """One recorded task completion."""

    id: str
    member_id: str
    task_id: str
    quantity: int
    timestamp: datetime
    daily_bonus: bool = False
    custom_task_name: Optional[str] = None
    custom_task_points: Optional[int] = None

    @property
    def is_custom(self) -> bool:
        return self.task_id == CUSTOM_TASK_ID

    def recreate(self, new_id: str) -> "PointEntry":
        """Copy every field except identity."""
        return replace(self, id=new_id)
