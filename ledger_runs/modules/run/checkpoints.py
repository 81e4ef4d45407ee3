from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_runs.config import settings
from ledger_runs.db.models import Run, RunCheckpoint
from ledger_runs.modules.content.provider import ContentProvider
from ledger_runs.modules.run.errors import CheckpointNotFoundError, RunNotFoundError
from ledger_runs.utils.time import utc_now_naive

logger = logging.getLogger(__name__)

# Run columns captured in a checkpoint and written back on rollback.
CHECKPOINT_FIELDS = (
    "scene_id",
    "round_id",
    "micro_ix",
    "flags",
    "sleight_score",
    "sleight_history",
    "turn_order",
    "active_user_id",
    "afk_misses",
    "content_version",
)


@dataclass(slots=True)
class IntegrityReport:
    ok: bool
    issues: list[str] = field(default_factory=list)


def _require_run(db: Session, run_id: str) -> Run:
    run = db.get(Run, run_id)
    if run is None:
        raise RunNotFoundError(run_id)
    return run


def _snapshot(run: Run) -> dict:
    return {name: copy.deepcopy(getattr(run, name)) for name in CHECKPOINT_FIELDS}


def create_checkpoint(db: Session, run_id: str, *, name: str = "manual", note: str = "") -> RunCheckpoint:
    run = _require_run(db, run_id)
    checkpoint = RunCheckpoint(
        run_id=run.run_id,
        name=name,
        state_blob=_snapshot(run),
        note=note,
        created_at=utc_now_naive(),
    )
    db.add(checkpoint)
    db.commit()
    logger.info("checkpoint %s (%s) saved for run %s at scene %s", checkpoint.id, name, run_id, run.scene_id)
    return checkpoint


def list_checkpoints(db: Session, run_id: str) -> list[RunCheckpoint]:
    return list(
        db.execute(
            select(RunCheckpoint).where(RunCheckpoint.run_id == run_id).order_by(RunCheckpoint.created_at.desc())
        ).scalars().all()
    )


def rollback_to_checkpoint(
    db: Session,
    run_id: str,
    checkpoint_id: uuid.UUID | str,
    *,
    now: datetime | None = None,
) -> Run:
    """Restore a run to a saved checkpoint. Profiles and the event log are left untouched."""
    run = _require_run(db, run_id)
    try:
        key = checkpoint_id if isinstance(checkpoint_id, uuid.UUID) else uuid.UUID(str(checkpoint_id))
    except ValueError as exc:
        raise CheckpointNotFoundError(checkpoint_id) from exc
    checkpoint = db.get(RunCheckpoint, key)
    if checkpoint is None or checkpoint.run_id != run.run_id:
        raise CheckpointNotFoundError(checkpoint_id)

    state = checkpoint.state_blob or {}
    for name in CHECKPOINT_FIELDS:
        if name in state:
            setattr(run, name, copy.deepcopy(state[name]))
    run.updated_at = now or utc_now_naive()
    db.commit()
    logger.warning("run %s rolled back to checkpoint %s", run_id, checkpoint.id)
    return run


def validate_state_integrity(db: Session, run_id: str, content: ContentProvider | None = None) -> IntegrityReport:
    run = _require_run(db, run_id)
    issues: list[str] = []

    if not isinstance(run.flags, dict):
        issues.append("missing_flags")
    if not run.scene_id:
        issues.append("missing_scene")
    elif content is not None and content.get_scene(run.content_id, run.scene_id) is None:
        issues.append("unknown_scene")

    order = list(run.turn_order or [])
    if len(order) != len(set(order)):
        issues.append("duplicate_turn_order")
    if run.active_user_id and run.active_user_id not in order:
        issues.append("active_user_outside_turn_order")
    if len(run.sleight_history or []) > settings.sleight_history_limit:
        issues.append("sleight_history_overflow")

    return IntegrityReport(ok=not issues, issues=issues)
