"""SQLAlchemy engine and session factory configuration."""

from __future__ import annotations

from pathlib import Path

import structlog
from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import sessionmaker

from vereinsknete.backend.src.core.config import get_settings

LOGGER = structlog.get_logger(__name__)
PROJECT_ROOT = Path(__file__).resolve().parents[4]


def _normalize_database_url(raw_url: str) -> URL:
    """Return an absolute :class:`~sqlalchemy.engine.URL` for SQLite databases."""

    url = make_url(raw_url)
    if not url.drivername.startswith("sqlite"):
        return url

    database = url.database or ""
    if database in {"", ":memory:"}:
        return url

    db_path = Path(database)
    if db_path.is_absolute():
        resolved = db_path
    else:
        resolved = PROJECT_ROOT / db_path

    resolved = resolved.resolve()
    if resolved != db_path:
        LOGGER.info(
            "database_path_normalized",
            original=str(db_path),
            resolved=str(resolved),
        )

    return url.set(database=str(resolved))


def _install_sqlite_transaction_hooks(target: Engine) -> None:
    """Let SQLAlchemy own SQLite transactions.

    pysqlite defers ``BEGIN`` until the first write and ignores SAVEPOINT
    semantics; emitting ``BEGIN IMMEDIATE`` ourselves serializes writers at
    transaction start, so a read-then-write unit of work cannot interleave
    with another writer.
    """

    @event.listens_for(target, "connect")
    def _on_connect(dbapi_connection, connection_record):  # type: ignore[no-untyped-def]
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(target, "begin")
    def _on_begin(connection):  # type: ignore[no-untyped-def]
        connection.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(raw_url: str) -> Engine:
    """Create an engine for ``raw_url`` with backend-specific tuning."""

    url = _normalize_database_url(raw_url)
    if url.drivername.startswith("sqlite"):
        created = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": 30},
            future=True,
        )
        _install_sqlite_transaction_hooks(created)
        return created
    return create_engine(url, pool_pre_ping=True, future=True)


_settings = get_settings()
engine = build_engine(_settings.database_url)
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)

LOGGER.info("database_engine_initialized", url=str(engine.url))

__all__ = ["SessionLocal", "build_engine", "engine"]
