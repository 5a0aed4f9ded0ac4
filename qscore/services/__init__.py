"""Points ledger and leaderboard services."""

from qscore.services.aggregation import LeaderboardSnapshot, MemberTotal, build_leaderboard, effective_points
from qscore.services.catalog import Task, get_default_tasks
from qscore.services.leader import LeaderChangeDetector, LeaderContext
from qscore.services.notifications import NotificationCenter
from qscore.services.types import PointEntry, TeamMember

__all__ = [
    "LeaderboardSnapshot",
    "MemberTotal",
    "build_leaderboard",
    "effective_points",
    "Task",
    "get_default_tasks",
    "LeaderChangeDetector",
    "LeaderContext",
    "NotificationCenter",
    "PointEntry",
    "TeamMember",
]
