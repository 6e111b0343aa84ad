"""
Database configuration and session management.
"""
import os
import importlib
import structlog
from pathlib import Path
from typing import AsyncGenerator, Any, Dict
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

logger = structlog.get_logger(__name__)

# --- Base class for all models ---
class Base(DeclarativeBase):
    """Base class for all models."""
    pass

from .config import get_settings

settings = get_settings()
DATABASE_URL = settings.DATABASE_URL

# Ensure async driver for PostgreSQL URLs
if DATABASE_URL.startswith('postgresql://'):
    DATABASE_URL = DATABASE_URL.replace('postgresql://', 'postgresql+asyncpg://', 1)


def _discover_and_import_models():
    """
    Dynamically discover and import all model files so every table is
    registered on Base.metadata before create_all / relationship resolution.
    """
    app_dir = Path(__file__).parent.parent.parent  # core -> features -> app
    features_dir = app_dir / "features"

    models_imported = []

    if not features_dir.exists():
        logger.warning("Features directory not found", path=str(features_dir))
        return models_imported

    excluded_dirs = {'routes', 'services', 'tests', '__pycache__'}

    for models_file in features_dir.rglob("models.py"):
        if any(excluded_dir in models_file.parts for excluded_dir in excluded_dirs):
            continue

        relative_path = models_file.relative_to(app_dir)
        module_name = "app." + str(relative_path.with_suffix("")).replace(os.sep, ".")
        try:
            importlib.import_module(module_name)
            models_imported.append(module_name)
        except ImportError as e:
            logger.warning("Failed to import models module", module=module_name, error=str(e))

    logger.debug("Imported model modules", count=len(models_imported), modules=models_imported)
    return models_imported


def _engine_options(url: str) -> Dict[str, Any]:
    """Pool settings only apply to server databases (not SQLite)."""
    if url.startswith("sqlite"):
        return {}
    return {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_timeout": 30,
        "pool_recycle": 1800,
    }


_discover_and_import_models()

engine = create_async_engine(
    DATABASE_URL,
    echo=False,
    future=True,
    **_engine_options(DATABASE_URL),
)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Get a database session as a dependency.

    Yields:
        AsyncSession: Database session
    """
    async with async_session() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
