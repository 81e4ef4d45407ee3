import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ledger_runs.config import settings
from ledger_runs.db.bootstrap import init_db
from ledger_runs.modules.run.router import router as runs_router

logging.basicConfig(
    level=getattr(logging, str(settings.log_level).upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(_app: FastAPI):
    init_db()
    logger.info("%s started (env=%s)", settings.app_name, settings.env)
    yield


app = FastAPI(title="Ledger Runs Engine", lifespan=_lifespan)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(runs_router)
