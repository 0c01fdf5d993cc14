from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from logging_config import configure_logging
from services.engine import build_engine
from settings import get_settings


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    engine = build_engine(settings)
    app.state.engine = engine
    if settings.autostart:
        await engine.start()
    try:
        yield
    finally:
        await engine.close()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="AquaAlert Sensor Engine",
        description="Simulated water-quality sensors with threshold alerts and official notifications.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app

app = create_app()
