from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from receivables.core.config import settings


def enable_sqlite_foreign_keys(sqlite_engine: Engine) -> Engine:
    """Turn on foreign key enforcement for every new SQLite connection.

    Allocation foreign keys (CASCADE from payments, RESTRICT on invoices) are
    only enforced by SQLite with this pragma.
    """

    @event.listens_for(sqlite_engine, "connect")
    def _enable_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return sqlite_engine


def _build_engine(dsn: str) -> Engine:
    if dsn.startswith("sqlite"):
        return enable_sqlite_foreign_keys(
            create_engine(dsn, connect_args={"check_same_thread": False})
        )
    return create_engine(dsn, pool_pre_ping=True)


engine = _build_engine(settings.APP_DATABASE_DSN)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base: Any = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session; settlement code decides when to commit."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create all tables for the registered models."""
    import receivables.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
