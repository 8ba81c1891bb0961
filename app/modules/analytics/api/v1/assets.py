from typing import Annotated, Any, Dict
from uuid import UUID

from fastapi import APIRouter, Depends, Request

from app.modules.analytics.domain.aggregator import BandwidthAggregator
from app.modules.analytics.domain.ports import AssetStore
from app.shared.core.auth import CurrentUser, get_current_user
from app.shared.core.dependencies import get_asset_store, get_bandwidth_aggregator
from app.shared.core.exceptions import ResourceNotFoundError
from app.shared.core.rate_limit import rate_limit
from app.shared.core.responses import success_response

router = APIRouter(prefix="/api/assets", tags=["Assets"])

BYTES_PER_MB = 1024 * 1024


@router.get("/{asset_id}/stats")
@rate_limit()
async def get_asset_stats(
    request: Request,
    asset_id: str,
    user: Annotated[CurrentUser, Depends(get_current_user)],
    assets: Annotated[AssetStore, Depends(get_asset_store)],
    aggregator: Annotated[BandwidthAggregator, Depends(get_bandwidth_aggregator)],
) -> Dict[str, Any]:
    """
    Bandwidth of a single live asset owned by the caller.

    Malformed ids, deleted assets and other users' assets all answer 404 so
    the response does not reveal which assets exist.
    """
    try:
        parsed_id = UUID(asset_id)
    except ValueError:
        raise ResourceNotFoundError("Asset not found", details={"asset_id": asset_id})

    asset = await assets.get_owned(parsed_id, user.id)
    if asset is None:
        raise ResourceNotFoundError("Asset not found", details={"asset_id": asset_id})

    stats = await aggregator.single_asset_stats(asset.id)

    return success_response({
        "asset": {
            "id": str(asset.id),
            "name": asset.name,
            "cloudfrontUrl": asset.cloudfront_url,
        },
        "stats": {
            "totalBandwidthBytes": stats.total_bytes,
            "totalBandwidthMB": f"{stats.total_bytes / BYTES_PER_MB:.2f}",
            "totalRequests": stats.total_requests,
            "cacheHitRatio": f"{stats.hit_ratio:.2f}%",
        },
    })
