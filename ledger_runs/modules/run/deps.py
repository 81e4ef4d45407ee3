from __future__ import annotations

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from ledger_runs.config import settings
from ledger_runs.db.session import get_db
from ledger_runs.modules.branch.defaults import default_dynamic_registry, default_static_registry
from ledger_runs.modules.branch.dynamic import DynamicBranchingEngine
from ledger_runs.modules.branch.engine import BranchingEngine
from ledger_runs.modules.content.provider import ContentProvider, FileContentProvider
from ledger_runs.modules.equipment.registry import EquipmentRegistry, default_equipment_registry
from ledger_runs.modules.equipment.service import EquipmentService
from ledger_runs.modules.notifications.sink import LoggingNotificationSink, NotificationSink
from ledger_runs.modules.run.service import RunService


@lru_cache
def get_content_provider() -> ContentProvider:
    return FileContentProvider(settings.content_root)


@lru_cache
def get_equipment_registry() -> EquipmentRegistry:
    return default_equipment_registry()


@lru_cache
def get_static_router() -> BranchingEngine:
    return BranchingEngine(default_static_registry())


@lru_cache
def get_dynamic_router() -> DynamicBranchingEngine:
    return DynamicBranchingEngine(default_dynamic_registry())


@lru_cache
def get_notification_sink() -> NotificationSink:
    return LoggingNotificationSink()


def build_run_service(
    db: Session,
    *,
    content: ContentProvider | None = None,
    notifier: NotificationSink | None = None,
) -> RunService:
    return RunService(
        db,
        content=content or get_content_provider(),
        equipment=EquipmentService(db, get_equipment_registry()),
        static_router=get_static_router(),
        dynamic_router=get_dynamic_router(),
        notifier=notifier or get_notification_sink(),
        settings=settings,
    )


def get_run_service(
    db: Session = Depends(get_db),
    content: ContentProvider = Depends(get_content_provider),
    notifier: NotificationSink = Depends(get_notification_sink),
) -> RunService:
    return build_run_service(db, content=content, notifier=notifier)
