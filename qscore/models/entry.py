"""Point entry model mapped to the `entries` table."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String

from qscore.config.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EntryRow(Base):
    """One logged task completion.

    `member_id` and `task_id` are plain columns rather than foreign keys:
    rows may outlive the member or catalog task they reference.
    """

    __tablename__ = "entries"

    id = Column(String(40), primary_key=True)
    member_id = Column(String(320), nullable=False)
    task_id = Column(String(40), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    daily_bonus = Column(Boolean, nullable=False, default=False)
    custom_task_name = Column(String(200), nullable=True)
    custom_task_points = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("idx_entries_timestamp", "timestamp"),
        Index("idx_entries_member_id", "member_id"),
    )

    def __repr__(self):
        return f"<EntryRow {self.id} {self.member_id}:{self.task_id} x{self.quantity}>"
