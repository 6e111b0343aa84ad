"""
Main application entry point for the campaign workflow engine.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from .features.core.logging import setup_logging
from .features.core.database import engine
from .features.core.config import get_settings
from .features.business_automations.campaign_workflows.routes import router as campaign_workflows_router

settings = get_settings()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application lifespan events."""
    logger.info("Starting campaign workflow API", environment=settings.ENVIRONMENT)

    # Database tables are managed by Alembic migrations
    # Run: alembic upgrade head

    if not settings.WORKFLOW_CRON_TOKEN:
        logger.warning("WORKFLOW_CRON_TOKEN is not set; the cron trigger endpoint will reject all calls")

    yield  # Application runs here

    logger.info("Shutting down campaign workflow API")
    await engine.dispose()


app = FastAPI(
    title="Campaign Workflows",
    description="Poll-driven execution engine for multi-step outbound campaigns.",
    lifespan=lifespan
)
setup_logging()

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.CORS_ORIGINS] if settings.CORS_ORIGINS != '*' else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(campaign_workflows_router)


# Health check endpoints
@app.get("/health", tags=["infra"])
async def health():
    """Basic health check for load balancers."""
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.get("/health/db", tags=["infra"])
async def db_health():
    """Database connectivity health check."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ok", "database": "connected"}
    except Exception as e:
        logger.exception("DB health check failed")
        return JSONResponse(status_code=500, content={"status": "error", "detail": str(e)})
