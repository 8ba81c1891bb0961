"""
Bandwidth Analytics API

Dashboard endpoints for CDN bandwidth usage and cost.

Endpoints (all under /api/analytics, Bearer auth):
- GET /bandwidth           totals, cache outcomes and tiered cost
- GET /bandwidth/assets    paginated per-asset breakdown
- GET /bandwidth/daily     per-day series (defaults to the last 30 days)
- GET /charts              day/month/year series as chart arrays

Dates are ISO-8601 strings. Offsets are converted to UTC; naive values are
taken as UTC already.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request

from app.modules.analytics.domain.aggregator import BandwidthAggregator
from app.modules.analytics.domain.pricing import BYTES_PER_GB
from app.schemas.bandwidth import GroupBy
from app.shared.core.auth import CurrentUser, get_current_user
from app.shared.core.config import get_settings
from app.shared.core.dependencies import get_bandwidth_aggregator
from app.shared.core.exceptions import ValidationError
from app.shared.core.rate_limit import rate_limit
from app.shared.core.responses import success_response

router = APIRouter(prefix="/api/analytics", tags=["Bandwidth Analytics"])


def parse_iso_datetime(value: Optional[str], field: str) -> Optional[datetime]:
    """Parses an ISO-8601 query value into a naive UTC datetime."""
    if value is None or value == "":
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise ValidationError(
            f"Invalid {field} format. Use ISO string.",
            details={"field": field},
        )
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_group_by(value: Optional[str]) -> GroupBy:
    try:
        return GroupBy((value or GroupBy.DAY.value).lower())
    except ValueError:
        raise ValidationError(
            "Invalid groupBy. Use: day, month, or year",
            details={"groupBy": value},
        )


def iso_utc(value: datetime) -> str:
    """Renders a naive UTC datetime the way browsers do (millisecond precision, Z suffix)."""
    return value.isoformat(timespec="milliseconds") + "Z"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _open_period(start: Optional[datetime], end: Optional[datetime]) -> Dict[str, str]:
    return {
        "startDate": iso_utc(start) if start else "account creation",
        "endDate": iso_utc(end or _utcnow()),
    }


def _series_window(start_value: Optional[str], end_value: Optional[str]) -> tuple[datetime, datetime]:
    """Resolves the daily/chart window; a missing bound defaults to the last N days."""
    start = parse_iso_datetime(start_value, "startDate")
    end = parse_iso_datetime(end_value, "endDate")
    now = _utcnow()
    if start is None:
        start = now - timedelta(days=get_settings().DEFAULT_SERIES_WINDOW_DAYS)
    if end is None:
        end = now
    return start, end


@router.get("/bandwidth")
@rate_limit()
async def get_user_bandwidth(
    request: Request,
    user: Annotated[CurrentUser, Depends(get_current_user)],
    aggregator: Annotated[BandwidthAggregator, Depends(get_bandwidth_aggregator)],
    start_date: Annotated[Optional[str], Query(alias="startDate")] = None,
    end_date: Annotated[Optional[str], Query(alias="endDate")] = None,
) -> Dict[str, Any]:
    """Total bandwidth, request outcomes and tiered cost across the user's assets."""
    start = parse_iso_datetime(start_date, "startDate")
    end = parse_iso_datetime(end_date, "endDate")

    stats = await aggregator.user_totals(user.id, start, end)

    return success_response({
        "user": {"id": str(user.id)},
        "period": _open_period(start, end),
        "bandwidth": {
            "totalBytes": stats.total_bytes,
            "totalGB": stats.total_gb,
            "totalTB": stats.total_tb,
        },
        "cost": {
            "totalUSD": stats.cost_usd,
            "breakdown": [item.model_dump(by_alias=True) for item in stats.cost_breakdown],
        },
        "requests": {
            "total": stats.total_requests,
            "cacheHits": stats.cache_hits,
            "cacheMisses": stats.cache_misses,
            "errors": stats.errors,
            "cacheHitRatio": stats.cache_hit_ratio,
        },
    })


@router.get("/bandwidth/assets")
@rate_limit()
async def get_per_asset_bandwidth(
    request: Request,
    user: Annotated[CurrentUser, Depends(get_current_user)],
    aggregator: Annotated[BandwidthAggregator, Depends(get_bandwidth_aggregator)],
    start_date: Annotated[Optional[str], Query(alias="startDate")] = None,
    end_date: Annotated[Optional[str], Query(alias="endDate")] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[Optional[int], Query(ge=1)] = None,
) -> Dict[str, Any]:
    """One page of the user's live assets with their bandwidth, largest first."""
    settings = get_settings()
    limit = min(limit or settings.DEFAULT_PAGE_LIMIT, settings.MAX_PAGE_LIMIT)
    start = parse_iso_datetime(start_date, "startDate")
    end = parse_iso_datetime(end_date, "endDate")

    result = await aggregator.per_asset_breakdown(user.id, start, end, page=page, limit=limit)

    return success_response({
        "assets": [asset.model_dump(by_alias=True) for asset in result.assets],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": result.total,
            "totalPages": math.ceil(result.total / limit),
        },
        "period": _open_period(start, end),
    })


@router.get("/bandwidth/daily")
@rate_limit()
async def get_daily_bandwidth(
    request: Request,
    user: Annotated[CurrentUser, Depends(get_current_user)],
    aggregator: Annotated[BandwidthAggregator, Depends(get_bandwidth_aggregator)],
    start_date: Annotated[Optional[str], Query(alias="startDate")] = None,
    end_date: Annotated[Optional[str], Query(alias="endDate")] = None,
) -> Dict[str, Any]:
    start, end = _series_window(start_date, end_date)

    daily = await aggregator.daily_series(user.id, start, end)

    total_bytes = sum(day.bytes for day in daily)
    return success_response({
        "period": {"startDate": iso_utc(start), "endDate": iso_utc(end)},
        "daily": [day.model_dump(by_alias=True) for day in daily],
        "totals": {
            "bytes": total_bytes,
            "totalGB": f"{total_bytes / BYTES_PER_GB:.2f}",
            "requests": sum(day.requests for day in daily),
            "costUSD": round(sum(day.cost_usd for day in daily), 4),
        },
    })


@router.get("/charts")
@rate_limit()
async def get_chart_data(
    request: Request,
    user: Annotated[CurrentUser, Depends(get_current_user)],
    aggregator: Annotated[BandwidthAggregator, Depends(get_bandwidth_aggregator)],
    start_date: Annotated[Optional[str], Query(alias="startDate")] = None,
    end_date: Annotated[Optional[str], Query(alias="endDate")] = None,
    group_by: Annotated[Optional[str], Query(alias="groupBy")] = None,
) -> Dict[str, Any]:
    """Bucketed series for the dashboard charts, plus period totals."""
    grouping = parse_group_by(group_by)
    start, end = _series_window(start_date, end_date)

    chart = await aggregator.chart_series(user.id, start, end, grouping)

    total_requests = sum(chart.requests)
    total_bytes = sum(chart.bytes)
    total_hits = sum(chart.cache_hits)
    hit_ratio = round(total_hits / total_requests * 100, 2) if total_requests > 0 else 0

    return success_response({
        "period": {
            "startDate": iso_utc(start),
            "endDate": iso_utc(end),
            "groupBy": grouping.value,
        },
        "chart": {
            "labels": chart.labels,
            "datasets": {
                "requests": chart.requests,
                "bytes": chart.bytes,
                "bytesGB": [round(b / BYTES_PER_GB, 6) for b in chart.bytes],
                "costUSD": chart.cost_usd,
                "cacheHits": chart.cache_hits,
                "cacheMisses": chart.cache_misses,
                "errors": chart.errors,
            },
        },
        "totals": {
            "requests": total_requests,
            "bytes": total_bytes,
            "bytesGB": round(total_bytes / BYTES_PER_GB, 4),
            "costUSD": round(sum(chart.cost_usd), 6),
            "cacheHits": total_hits,
            "cacheMisses": sum(chart.cache_misses),
            "errors": sum(chart.errors),
            "cacheHitRatio": hit_ratio,
        },
    })
