from functools import lru_cache
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.db.session import get_db
from app.modules.analytics.adapters.sql import SqlAccessLogStore, SqlAssetStore
from app.modules.analytics.domain.aggregator import BandwidthAggregator
from app.modules.analytics.domain.ports import AssetStore
from app.modules.analytics.domain.pricing import TieredCostCalculator


@lru_cache
def get_cost_calculator() -> TieredCostCalculator:
    """Pricing schedule is static for the process lifetime; validate it once."""
    return TieredCostCalculator.from_settings()

def get_asset_store(db: AsyncSession = Depends(get_db)) -> AssetStore:
    return SqlAssetStore(db)

def get_bandwidth_aggregator(
    db: AsyncSession = Depends(get_db),
    calculator: TieredCostCalculator = Depends(get_cost_calculator),
) -> BandwidthAggregator:
    return BandwidthAggregator(
        assets=SqlAssetStore(db),
        logs=SqlAccessLogStore(db),
        calculator=calculator,
    )
