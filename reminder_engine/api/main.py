"""FastAPI application factory.

Wires logging and the health and reminder routers.  This module is the
authoritative app object; reminder_engine/main.py re-exports it.
"""
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from reminder_engine.api.routes.alerts import router as alerts_router
from reminder_engine.api.routes.health import router as health_router
from reminder_engine.core.logging import setup_logging
from reminder_engine.core.settings import get_settings


@asynccontextmanager
async def lifespan(_: FastAPI):
    setup_logging()
    yield


settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)

app.include_router(health_router)
app.include_router(alerts_router)
