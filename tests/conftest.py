import os
# Force test settings BEFORE any app imports
os.environ["TESTING"] = "True"
os.environ["RATELIMIT_ENABLED"] = "False"
os.environ["ENVIRONMENT"] = "development"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-jwt-secret-for-assetline-suite"

import pytest
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional
from uuid import UUID, uuid4

import jwt
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from app.shared.db.base import Base
# Ensure all models are registered in the metadata
from app.models.asset import Asset
from app.models.access_log import AccessLog
from app.modules.analytics.adapters.sql import SqlAccessLogStore, SqlAssetStore
from app.modules.analytics.domain.aggregator import BandwidthAggregator
from app.modules.analytics.domain.pricing import TieredCostCalculator


@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test, rolled back afterwards."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with test_engine.connect() as connection:
        trans = await connection.begin()
        session = AsyncSession(bind=connection, expire_on_commit=False)
        try:
            yield session
        finally:
            await session.close()
            await trans.rollback()

    await test_engine.dispose()


@pytest.fixture
def calculator() -> TieredCostCalculator:
    return TieredCostCalculator.from_settings()


@pytest.fixture
def aggregator(db: AsyncSession, calculator: TieredCostCalculator) -> BandwidthAggregator:
    return BandwidthAggregator(
        assets=SqlAssetStore(db),
        logs=SqlAccessLogStore(db),
        calculator=calculator,
    )


@pytest.fixture
async def ac(db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async client bound to the test database session."""
    from app.main import app
    from app.shared.db.session import get_db

    async def _get_test_db():
        yield db

    app.dependency_overrides[get_db] = _get_test_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()



@pytest.fixture
def make_token():
    """Signs access tokens the way the account service does."""
    def _make(user_id, expires_in: timedelta = timedelta(hours=1), secret: Optional[str] = None, **claims) -> str:
        payload = {
            "sub": str(user_id),
            "exp": datetime.now(timezone.utc) + expires_in,
            **claims,
        }
        return jwt.encode(payload, secret or os.environ["JWT_SECRET"], algorithm="HS256")
    return _make


@pytest.fixture
def auth_headers(make_token):
    def _headers(user_id: UUID) -> dict:
        return {"Authorization": f"Bearer {make_token(user_id)}"}
    return _headers


@pytest.fixture
def make_asset(db: AsyncSession):
    """Adds an asset to the session; flushed so its id is usable immediately."""
    async def _make(
        owner_id: UUID,
        s3_key: str,
        name: Optional[str] = None,
        is_deleted: bool = False,
        created_at: Optional[datetime] = None,
    ) -> Asset:
        asset = Asset(
            id=uuid4(),
            owner_id=owner_id,
            name=name or s3_key.rsplit("/", 1)[-1],
            s3_key=s3_key,
            cloudfront_url=f"https://cdn.example.com/{s3_key}",
            size_bytes=1024,
            is_deleted=is_deleted,
            created_at=created_at or datetime(2024, 1, 1),
        )
        db.add(asset)
        await db.flush()
        return asset
    return _make


@pytest.fixture
def add_logs(db: AsyncSession):
    """Adds access-log rows: (path, bytes, edge_result, timestamp[, asset_id]) tuples."""
    async def _add(*rows) -> None:
        for row in rows:
            path, size, edge_result, timestamp, *rest = row
            db.add(AccessLog(
                path=path,
                bytes=size,
                edge_result=edge_result,
                timestamp=timestamp,
                asset_id=rest[0] if rest else None,
            ))
        await db.flush()
    return _add
