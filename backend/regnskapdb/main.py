# backend/regnskapdb/main.py
import logging
import os
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .database import WriteSessionLocal

from .apps.accounts.router import router as accounts_router
from .apps.licensing.router import router as licensing_router
from .apps.licensing.guard import seat_limit_exception_handler
from .apps.licensing.services import SeatLimitExceeded
from .apps.tasks.router import router as tasks_router
from .apps.tasks.scheduler import RecurringTaskScheduler, scheduler_enabled
from .apps.tasks.services import notify_generated_tasks

logger = logging.getLogger(__name__)


def _allowed_origins() -> List[str]:
    """
    Parse CORS_ALLOWED_ORIGINS from env.

    Accepts comma-separated origins. If unset, defaults to local dev ports.
    """
    raw = os.getenv("CORS_ALLOWED_ORIGINS", "")
    if raw:
        origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
        if origins:
            return origins
    return [
        "http://127.0.0.1:5173",
        "http://localhost:5173",
        "http://localhost:4173",
    ]


def build_task_scheduler() -> RecurringTaskScheduler:
    return RecurringTaskScheduler(
        WriteSessionLocal,
        on_generated=notify_generated_tasks,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = build_task_scheduler()
    app.state.task_scheduler = scheduler
    if scheduler_enabled():
        scheduler.start()
    else:
        logger.info("Recurring task scheduler disabled by TASK_SCHEDULER_ENABLED")
    try:
        yield
    finally:
        scheduler.stop(timeout=30)


app = FastAPI(title="Regnskap Portal API", version="1.0.0", lifespan=lifespan)
cors_origins = _allowed_origins()
allow_credentials = "*" not in cors_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(SeatLimitExceeded, seat_limit_exception_handler)


@app.get("/", tags=["health"])
def read_root():
    return {"status": "ok", "message": "Regnskap Portal backend is running"}


@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}


app.include_router(accounts_router)
app.include_router(licensing_router)
app.include_router(tasks_router)
