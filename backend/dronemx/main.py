# backend/dronemx/main.py
import os
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .apps.fleet.router import router as fleet_router
from .apps.work.router import router as work_router
from .apps.maintenance_program.router import router as maintenance_scheduler_router
from .apps.maintenance_program.scheduler import register_completion_handler


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
    ]


app = FastAPI(title="Drone Maintenance Scheduler API", version="1.0.0")
cors_origins = _allowed_origins()
allow_credentials = "*" not in cors_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Closing a scheduled work order completes its maintenance schedule.
register_completion_handler()


@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}


app.include_router(fleet_router)
app.include_router(work_router)
app.include_router(maintenance_scheduler_router)
