# hse_guardian/database.py
"""
Database connection, session management, and table creation.
Uses SQLAlchemy; SQLite by default, any SQLAlchemy URL via DATABASE_URL.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from hse_guardian.config import settings


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # Sessions are opened from the event loop and from worker threads
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,       # Auto-reconnect if DB connection drops
        "pool_size": 5,
        "max_overflow": 10,
    }


engine = create_engine(settings.DATABASE_URL, echo=False, **_engine_kwargs(settings.DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency — yields a DB session and closes it after request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind=None):
    """
    Creates all DB tables on startup. Safe to call multiple times.
    Import all models here so SQLAlchemy knows about them.
    """
    from hse_guardian.models.app_state import AppState   # noqa

    Base.metadata.create_all(bind=bind or engine)
