"""
Database engine and session lifecycle.
"""

from typing import Dict, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from storage.models import Base

logger = structlog.get_logger(__name__)


class Database:
    """Owns the async engine and the session factory."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.echo = echo
        self.engine: Optional[AsyncEngine] = None
        self.sessionmaker: Optional[async_sessionmaker] = None

    async def connect(self, create_tables: bool = True) -> None:
        """
        Create the engine, verify connectivity and optionally create tables.

        Args:
            create_tables: Create missing tables from the ORM metadata
        """
        try:
            self.engine = create_async_engine(self.url, echo=self.echo, pool_pre_ping=True)
            self.sessionmaker = async_sessionmaker(self.engine, expire_on_commit=False)

            async with self.engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
                if create_tables:
                    await conn.run_sync(Base.metadata.create_all)

            logger.info("Database connection established", url=self.engine.url.render_as_string())
        except Exception as e:
            logger.error("Failed to connect to database", error=str(e))
            raise

    async def disconnect(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
            logger.info("Database connection closed")
        self.engine = None
        self.sessionmaker = None

    async def health_check(self) -> Dict:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        if self.engine is None:
            return {"status": "unhealthy", "error": "not connected"}
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return {"status": "healthy"}
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {"status": "unhealthy", "error": str(e)}
