import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.v1.router import router as v1_router
from app.core.config import settings
from app.core.db import SessionLocal
from app.core.telemetry import setup_telemetry
from app.services.engine import build_engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=settings.log_level)
    app.state.engine = build_engine(SessionLocal, settings)
    try:
        yield
    finally:
        await app.state.engine.aclose()


app = FastAPI(title="Slack Scheduler API", version="0.1.0", lifespan=lifespan)

setup_telemetry(app)
app.include_router(v1_router)
