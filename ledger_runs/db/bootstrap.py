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


def init_db() -> None:
    Base.metadata.create_all(bind=db_session.engine)
