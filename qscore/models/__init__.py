"""Database models"""

from qscore.models.entry import EntryRow
from qscore.models.user import UserRow

__all__ = [
    "EntryRow",
    "UserRow",
]
