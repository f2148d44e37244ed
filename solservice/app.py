import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI

from solservice.agreement.router import addons_router
from solservice.agreement.router import router as agreement_router
from solservice.base.errors import install_error_handlers
from solservice.checklist.router import router as checklist_router
from solservice.checklist.router import templates_router
from solservice.installation.router import router as installation_router
from solservice.scheduler import run_agreement_expiry, run_visit_planning
from solservice.visit.router import router as visit_router

logging.basicConfig(level=logging.INFO)

SCHEDULER_INTERVAL_MINUTES = int(
    os.environ.get("SOLSERVICE_SCHEDULER_INTERVAL_MINUTES", "60")
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        run_agreement_expiry,
        "interval",
        minutes=SCHEDULER_INTERVAL_MINUTES,
        id="run_agreement_expiry",
    )
    scheduler.add_job(
        run_visit_planning,
        "interval",
        minutes=SCHEDULER_INTERVAL_MINUTES,
        id="run_visit_planning",
    )
    scheduler.start()
    yield
    scheduler.shutdown()


app = FastAPI(title="Solservice", lifespan=lifespan)
install_error_handlers(app)
app.include_router(installation_router)
app.include_router(agreement_router)
app.include_router(addons_router)
app.include_router(visit_router)
app.include_router(checklist_router)
app.include_router(templates_router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
