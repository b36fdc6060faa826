"""Database configuration and session management.

This module initializes the SQLAlchemy engine, session factory and
declarative base, provides the per-request session dependency, and
creates the schema on startup.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from .core import get_settings


settings = get_settings()

# SQLite connections are handed between the event loop and worker threads
connect_args = (
    {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}
)

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args)
"""SQLAlchemy engine bound to the configured database URL."""


SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
"""Factory for database sessions."""


Base = declarative_base()
"""Declarative base class for SQLAlchemy models."""


def init_db(bind=None) -> None:
    """Create all tables that do not exist yet, including the unique indexes."""
    from . import models  # noqa: F401  registers the mappers on Base

    Base.metadata.create_all(bind=bind or engine)


def get_db():
    """
    Yield a session for one request and close it afterwards.

    Used as a FastAPI dependency; tests override it with their own session.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
