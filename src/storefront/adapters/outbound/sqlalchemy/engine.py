"""
SQLAlchemy engine initialization and session factory management.

PostgreSQL runs at READ COMMITTED with explicit ``SELECT ... FOR UPDATE``
row locks and a per-connection ``lock_timeout``. SQLite has no row locks,
so every transaction there starts with ``BEGIN IMMEDIATE`` and writers are
serialized by the database lock; the pysqlite busy timeout plays the role
of the lock timeout.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from storefront.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    lock_timeout_seconds: float = 5.0,
    pool_size: int = 10,
    max_overflow: int = 10,
) -> Engine:
    """
    Initialize the module-level engine and session factory.

    A second call disposes the engine built by the first.
    """
    global _engine, _SessionFactory

    reset_engine()

    _engine = build_engine(
        database_url,
        echo=echo,
        lock_timeout_seconds=lock_timeout_seconds,
        pool_size=pool_size,
        max_overflow=max_overflow,
    )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={
            "dialect": _engine.dialect.name,
            "lock_timeout_seconds": lock_timeout_seconds,
            "echo": echo,
        },
    )
    return _engine


def build_engine(
    database_url: str,
    echo: bool = False,
    lock_timeout_seconds: float = 5.0,
    pool_size: int = 10,
    max_overflow: int = 10,
) -> Engine:
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        engine = create_engine(
            url,
            echo=echo,
            connect_args={
                "timeout": lock_timeout_seconds,
                "check_same_thread": False,
            },
        )
        _install_sqlite_immediate_begin(engine)
        return engine

    connect_args: dict[str, Any] = {}
    if url.get_backend_name() == "postgresql":
        lock_ms = int(lock_timeout_seconds * 1000)
        connect_args["options"] = f"-c lock_timeout={lock_ms}"

    return create_engine(
        url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        isolation_level="READ COMMITTED",
        connect_args=connect_args,
    )


def _install_sqlite_immediate_begin(engine: Engine) -> None:
    # pysqlite's own transaction handling is disabled so BEGIN is ours to emit
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: Any, _record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def get_session_factory() -> sessionmaker[Session]:
    """Session factory; each unit of work opens its own session from it."""
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


def create_tables(engine: Engine) -> None:
    from storefront.adapters.outbound.sqlalchemy.tables import Base

    Base.metadata.create_all(engine)


def reset_engine() -> None:
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None
