from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_runs.db.models import Event
from ledger_runs.utils.time import utc_now_naive

EVENT_SCENE_CHOICE = "scene.choice"
EVENT_SCENE_FORCE_CHOICE = "scene.force_choice"
EVENT_SCENE_BRANCH = "scene.branch"
EVENT_SCENE_BRANCH_DYNAMIC = "scene.branch.dynamic"
EVENT_MORAL_CHOICE = "moral_choice"
EVENT_ROLE_SPECIFIC_ACTION = "role_specific_action"
CHOICE_EVENT_TYPES = (EVENT_SCENE_CHOICE, EVENT_SCENE_FORCE_CHOICE)


class EventLog:
    """Append-only audit trail; the only source for history-based routing."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def append(
        self,
        *,
        run_id: str,
        user_id: str | None,
        type: str,
        payload: dict | None = None,
        ts: datetime | None = None,
    ) -> Event:
        event = Event(
            run_id=run_id,
            user_id=user_id,
            type=type,
            payload=dict(payload or {}),
            ts=ts or utc_now_naive(),
        )
        self.db.add(event)
        self.db.flush()
        return event

    def query(
        self,
        run_id: str,
        *,
        types: Iterable[str] | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        newest_first: bool = False,
        limit: int | None = None,
    ) -> list[Event]:
        stmt = select(Event).where(Event.run_id == run_id)
        if types is not None:
            stmt = stmt.where(Event.type.in_(list(types)))
        if since is not None:
            stmt = stmt.where(Event.ts >= since)
        if until is not None:
            stmt = stmt.where(Event.ts <= until)
        if newest_first:
            stmt = stmt.order_by(Event.ts.desc(), Event.id.desc())
        else:
            stmt = stmt.order_by(Event.ts.asc(), Event.id.asc())
        if limit is not None:
            stmt = stmt.limit(max(0, int(limit)))
        return list(self.db.execute(stmt).scalars().all())

    def count(self, run_id: str, *, type: str) -> int:
        return int(
            self.db.execute(
                select(func.count(Event.id)).where(Event.run_id == run_id, Event.type == type)
            ).scalar_one()
        )
