"""Team member model mapped to the `users` table."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String

from qscore.config.database import Base


class UserRow(Base):
    """Signed-in team member keyed by email."""

    __tablename__ = "users"

    id = Column(String(320), primary_key=True)
    name = Column(String(200), nullable=False)
    avatar = Column(String(500), nullable=True)
    color = Column(String(7), nullable=True)
    face = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f"<UserRow {self.id}>"
