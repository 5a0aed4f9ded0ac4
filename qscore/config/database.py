"""Database engine, session factory and declarative base"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from qscore.config.settings import settings

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True, future=True)

SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

Base = declarative_base()


def init_db(bind=None) -> None:
    """Create missing tables for all registered models."""
    import qscore.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
