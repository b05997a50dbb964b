import os
import re
from typing import Any, Sequence

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, Result
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from settings import get_settings


def _build_database_url() -> str:
    """Determine the SQLAlchemy DB URL using settings/env vars with sensible fallbacks."""
    configured = get_settings().database_url
    if configured:
        return configured

    host = os.getenv("DB_HOST")
    if host:
        user = os.getenv("DB_USER", "postgres")
        password = os.getenv("DB_PASSWORD", "")
        port = os.getenv("DB_PORT", "5432")
        name = os.getenv("DB_NAME", "jobly")
        return f"postgresql://{user}:{password}@{host}:{port}/{name}"

    # Default to local SQLite file for simple local development
    return "sqlite:///./jobly.db"


def build_engine(url: str) -> Engine:
    """Create an engine; SQLite gets thread/timeout args and per-connection pragmas."""
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    sqlite_engine = create_engine(
        url,
        connect_args={
            "check_same_thread": False,
            "timeout": 15,
        },
        pool_pre_ping=True,
    )

    @event.listens_for(sqlite_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        try:
            # SQLite ignores REFERENCES clauses unless this is switched on per connection
            cursor.execute("PRAGMA foreign_keys=ON;")
            cursor.execute("PRAGMA journal_mode=WAL;")
            cursor.execute("PRAGMA busy_timeout = 5000")
            cursor.execute("PRAGMA synchronous=NORMAL;")
        finally:
            cursor.close()

    return sqlite_engine


SQLALCHEMY_DATABASE_URL = _build_database_url()

engine = build_engine(SQLALCHEMY_DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def create_db_and_tables():
    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


_PLACEHOLDER = re.compile(r"\$(\d+)")


def run_query(db: Session, sql: str, values: Sequence[Any] = ()) -> Result:
    """Execute SQL written with 1-based ``$n`` placeholders.

    ``$n`` is rewritten to the named bind ``:pn`` so the same statement text
    runs on every SQLAlchemy dialect; ``values[n - 1]`` is bound to it.
    """
    params = {f"p{idx}": value for idx, value in enumerate(values, start=1)}
    return db.execute(text(_PLACEHOLDER.sub(r":p\1", sql)), params)
