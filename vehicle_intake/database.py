# vehicle_intake/database.py
"""
Database connection, session management, and table creation.
The engine and session factory are built once per process; each request
gets its own session through get_db().
"""

from sqlalchemy import create_engine
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import sessionmaker
from vehicle_intake.config import settings

_engine_options = {"pool_pre_ping": True, "echo": False}
if not settings.is_sqlite:
    _engine_options.update(pool_size=10, max_overflow=20)

engine = create_engine(settings.DATABASE_URL, **_engine_options)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency: yields a DB session and closes it after request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind=None):
    """
    Creates all tables (and the order-number sequence on PostgreSQL).
    Safe to call multiple times.
    """
    import vehicle_intake.models  # noqa

    Base.metadata.create_all(bind=bind or engine)
