from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.shared.core.config import get_settings
from app.shared.core.logging import setup_logging
from app.shared.core.exception_handlers import register_exception_handlers
from app.shared.core.health import HealthService
from app.shared.core.middleware import RequestIDMiddleware, SecurityHeadersMiddleware
from app.shared.core.rate_limit import setup_rate_limiting
from app.shared.db.session import engine, get_db
from app.modules.analytics.api.v1.assets import router as assets_router
from app.modules.analytics.api.v1.bandwidth import router as bandwidth_router


# Configure logging
setup_logging()

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info("app_starting", app=settings.APP_NAME, environment=settings.ENVIRONMENT)

    yield

    logger.info("app_shutting_down", app=settings.APP_NAME)
    await engine.dispose()


settings = get_settings()

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    lifespan=lifespan,
)

# Middleware runs in reverse order of registration: request IDs are bound first
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
)
app.add_middleware(RequestIDMiddleware)

setup_rate_limiting(app)
register_exception_handlers(app)

app.include_router(bandwidth_router)
app.include_router(assets_router)


@app.get("/health")
async def health_check(db: Annotated[AsyncSession, Depends(get_db)]):
    """Liveness plus a database probe; 503 when the database is unreachable."""
    result = await HealthService(db).check_all()
    status_code = 200 if result["status"] == "healthy" else 503
    return JSONResponse(status_code=status_code, content=result)
