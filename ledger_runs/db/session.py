from collections.abc import Generator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from ledger_runs.config import settings


def _make_engine(database_url: str) -> Engine:
    # Route handlers and the AFK sweep may share a SQLite file across threads.
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(database_url, future=True, connect_args=connect_args)


def _make_sessionmaker(bind: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=bind, autoflush=False, autocommit=False, future=True)


engine = _make_engine(settings.database_url)
SessionLocal = _make_sessionmaker(engine)


def rebind_engine(database_url: str) -> None:
    """Point the module-level engine at another database (tests, alternate stores)."""
    global engine, SessionLocal
    engine = _make_engine(database_url)
    SessionLocal = _make_sessionmaker(engine)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
