from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from ledger_runs.modules.run import checkpoints
from ledger_runs.modules.run.deps import get_run_service
from ledger_runs.modules.run.errors import RunEngineError
from ledger_runs.modules.run.schemas import (
    ActionRequest,
    ActionResponse,
    AfkNotificationOut,
    AfkSweepRequest,
    AfkSweepResponse,
    CheckpointCreateRequest,
    CheckpointOut,
    IntegrityResponse,
    RollbackRequest,
    RollOut,
    RunCreateRequest,
    RunStateResponse,
)
from ledger_runs.modules.run.service import RunService
from ledger_runs.utils.time import as_naive_utc

router = APIRouter(prefix="/runs", tags=["runs"])


def _http_error(exc: RunEngineError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.as_detail())


@router.post("", response_model=RunStateResponse, status_code=status.HTTP_201_CREATED)
def start_run_api(payload: RunCreateRequest, service: RunService = Depends(get_run_service)) -> RunStateResponse:
    run = service.start_run(
        guild_id=payload.guild_id,
        channel_id=payload.channel_id,
        party_ids=payload.party_ids,
        content_id=payload.content_id,
        start_scene=payload.start_scene,
    )
    return RunStateResponse.from_run(run)


@router.post("/afk-sweep", response_model=AfkSweepResponse)
def afk_sweep_api(
    payload: AfkSweepRequest | None = None,
    service: RunService = Depends(get_run_service),
) -> AfkSweepResponse:
    now = as_naive_utc(payload.now) if payload else None
    sent = service.process_afk_timeouts(now)
    return AfkSweepResponse(
        processed=len(sent),
        notifications=[AfkNotificationOut(**item.as_dict()) for item in sent],
    )


@router.get("/{run_id}", response_model=RunStateResponse)
def get_run_api(run_id: str, service: RunService = Depends(get_run_service)) -> RunStateResponse:
    try:
        return RunStateResponse.from_run(service.get_run(run_id))
    except RunEngineError as exc:
        raise _http_error(exc) from exc


@router.post("/{run_id}/actions", response_model=ActionResponse)
def handle_action_api(
    run_id: str,
    payload: ActionRequest,
    service: RunService = Depends(get_run_service),
) -> ActionResponse:
    try:
        result = service.handle_action(run_id, payload.user_id, payload.action_id)
        run = service.get_run(run_id)
    except RunEngineError as exc:
        raise _http_error(exc) from exc
    return ActionResponse(
        roll=RollOut(**result.roll.as_dict()),
        outcome=result.outcome.model_dump(mode="json"),
        summary=result.summary,
        tier=result.tier,
        completed_scene=result.completed_scene,
        run=RunStateResponse.from_run(run),
    )


@router.post("/{run_id}/checkpoints", response_model=CheckpointOut, status_code=status.HTTP_201_CREATED)
def create_checkpoint_api(
    run_id: str,
    payload: CheckpointCreateRequest,
    service: RunService = Depends(get_run_service),
) -> CheckpointOut:
    try:
        row = checkpoints.create_checkpoint(service.db, run_id, name=payload.name, note=payload.note)
    except RunEngineError as exc:
        raise _http_error(exc) from exc
    return CheckpointOut(
        checkpoint_id=str(row.id),
        run_id=row.run_id,
        name=row.name,
        note=row.note or "",
        created_at=row.created_at,
    )


@router.post("/{run_id}/rollback", response_model=RunStateResponse)
def rollback_api(
    run_id: str,
    payload: RollbackRequest,
    service: RunService = Depends(get_run_service),
) -> RunStateResponse:
    try:
        run = checkpoints.rollback_to_checkpoint(service.db, run_id, payload.checkpoint_id)
    except RunEngineError as exc:
        raise _http_error(exc) from exc
    return RunStateResponse.from_run(run)


@router.get("/{run_id}/integrity", response_model=IntegrityResponse)
def integrity_api(run_id: str, service: RunService = Depends(get_run_service)) -> IntegrityResponse:
    try:
        report = checkpoints.validate_state_integrity(service.db, run_id, service.content)
    except RunEngineError as exc:
        raise _http_error(exc) from exc
    return IntegrityResponse(run_id=run_id, ok=report.ok, issues=report.issues)
