import structlog
from typing import Dict, Any
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from app.shared.core.config import get_settings

logger = structlog.get_logger()

class HealthService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def check_all(self) -> Dict[str, Any]:
        """Runs all dependency health checks."""
        settings = get_settings()
        db_ok, db_details = await self.check_database()

        return {
            "status": "healthy" if db_ok else "unhealthy",
            "app": settings.APP_NAME,
            "version": settings.VERSION,
            "database": {"status": "up" if db_ok else "down", **db_details},
        }

    async def check_database(self) -> tuple[bool, Dict[str, Any]]:
        """Verifies database connectivity."""
        try:
            await self.db.execute(text("SELECT 1"))
            return True, {}
        except SQLAlchemyError as e:
            logger.error("health_check_database_failed", error=str(e))
            return False, {"error": "database unreachable"}
