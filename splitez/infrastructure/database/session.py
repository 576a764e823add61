"""Database engine and session factory for the ledger store"""

from typing import Any, Dict, Iterator
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from splitez.config import settings
from splitez.infrastructure.database.models import Base


def build_engine(database_url: str) -> Engine:
    """Pooled engine for server databases; SQLite gets a thread-shareable connection"""
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})

    options: Dict[str, Any] = {
        "pool_pre_ping": True,  # Verify connections before using
        "pool_size": 10,
        "max_overflow": 10,
        "pool_recycle": 3600,
    }
    return create_engine(database_url, **options)


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind: Engine | None = None) -> None:
    """Create missing tables (no migrations are managed here)"""
    Base.metadata.create_all(bind=bind or engine)


def get_db() -> Iterator[Session]:
    """One session per request, closed when the request finishes"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
