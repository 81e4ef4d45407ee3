from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
from sqlalchemy.orm import Session

from ledger_runs.db import session as db_session
from ledger_runs.db.base import Base
from ledger_runs.db.models import (  # noqa: F401
    DifficultySnapshot,
    EquipmentLoadout,
    Event,
    GuildSettings,
    InventoryItem,
    Profile,
    Run,
    RunCheckpoint,
)
from ledger_runs.modules.run import deps as run_deps


@pytest.fixture(autouse=True)
def _reset_db_and_defaults(tmp_path: Path) -> Iterator[None]:
    db_session.rebind_engine(f"sqlite+pysqlite:///{tmp_path / 'ledger_runs_test.db'}")
    run_deps.get_content_provider.cache_clear()
    run_deps.get_notification_sink.cache_clear()
    Base.metadata.drop_all(bind=db_session.engine)
    Base.metadata.create_all(bind=db_session.engine)
    yield
    Base.metadata.drop_all(bind=db_session.engine)
    db_session.engine.dispose()


@pytest.fixture
def db() -> Iterator[Session]:
    session = db_session.SessionLocal()
    try:
        yield session
    finally:
        session.close()
