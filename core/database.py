"""
Database engine management with SQLAlchemy async
"""

from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine
from sqlalchemy.pool import NullPool
from core.config import settings
import logging

logger = logging.getLogger(__name__)


def create_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """Create an async engine for the SQL warehouse."""
    url = database_url or settings.DATABASE_URL
    logger.debug(f"Creating warehouse engine for {url.split('@')[-1]}")
    return create_async_engine(
        url,
        echo=settings.ENVIRONMENT == "development" and settings.LOG_LEVEL.upper() == "DEBUG",
        poolclass=NullPool,
        future=True
    )
