"""Database engine, session factory and the per-request session dependency."""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from app.core.config import settings


def build_engine(url: str) -> Engine:
    """Create an engine usable from request handlers and the sweeper thread.

    SQLite connections are shared across threads and get foreign keys
    switched on; other backends get pre-ping so the long-lived sweeper
    survives dropped connections.
    """
    if url.startswith("sqlite"):
        sqlite_engine = create_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False},
        )

        @event.listens_for(sqlite_engine, "connect")
        def _enable_foreign_keys(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON;")
            cursor.close()

        return sqlite_engine

    return create_engine(url, echo=False, pool_pre_ping=True)


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    """Declarative base shared by every paysettle table."""


def get_db():
    """Yield a session for one request; the sweeper opens its own."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
