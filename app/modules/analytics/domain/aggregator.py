"""
Bandwidth Aggregator

Rolls CDN access-log records up into the bandwidth and cost figures shown on
the analytics dashboard. Records are attributed to assets by path prefix
(see matching.py), except for single_asset_stats which uses the asset_id
reference written by newer log pipelines.

Known simplifications (changing either restates historical figures):
- Tier pricing is evaluated per bucket (daily/chart series) and per asset
  (breakdown), each starting from the first tier. Summing those costs gives
  more than pricing the combined bytes once.
- single_asset_stats cannot see records written before asset linking, and
  only counts a plain "Hit" towards its ratio.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional
from uuid import UUID

import structlog

from app.modules.analytics.domain.classification import (
    EdgeOutcome,
    classify_edge_result,
    is_strict_hit,
)
from app.modules.analytics.domain.ports import AccessLogStore, AssetStore, OutcomeCount
from app.modules.analytics.domain.pricing import BYTES_PER_GB, TieredCostCalculator
from app.schemas.bandwidth import (
    AssetBandwidthPage,
    AssetBandwidthStats,
    ChartData,
    DailyBandwidth,
    GroupBy,
    SingleAssetStats,
    UserBandwidthStats,
)

logger = structlog.get_logger()


def format_ratio(hits: int, requests: int) -> str:
    ratio = (hits / requests) * 100 if requests > 0 else 0
    return f"{ratio:.2f}%"


@dataclass
class _Tally:
    requests: int = 0
    bytes: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    errors: int = 0

    def add(self, row: OutcomeCount) -> None:
        self.requests += row.requests
        self.bytes += row.bytes
        outcome = classify_edge_result(row.edge_result)
        if outcome is EdgeOutcome.HIT:
            self.cache_hits += row.requests
        elif outcome is EdgeOutcome.MISS:
            self.cache_misses += row.requests
        else:
            self.errors += row.requests

    @classmethod
    def of(cls, rows: Iterable[OutcomeCount]) -> "_Tally":
        tally = cls()
        for row in rows:
            tally.add(row)
        return tally


def _tally_buckets(rows: Iterable[OutcomeCount]) -> Dict[str, _Tally]:
    """Folds (bucket, edge_result) rows into one tally per bucket, ascending by bucket key."""
    buckets: Dict[str, _Tally] = {}
    for row in rows:
        buckets.setdefault(row.bucket, _Tally()).add(row)
    return dict(sorted(buckets.items()))


class BandwidthAggregator:
    """Computes bandwidth usage and CDN cost for users and assets."""

    def __init__(
        self,
        assets: AssetStore,
        logs: AccessLogStore,
        calculator: TieredCostCalculator,
    ):
        self.assets = assets
        self.logs = logs
        self.calculator = calculator

    async def _owned_keys(self, user_id: UUID) -> List[str]:
        # Deleted assets are included: their past bandwidth still belongs to the user.
        owned = await self.assets.find_by_owner(user_id, include_deleted=True)
        return [asset.s3_key for asset in owned]

    async def user_totals(
        self,
        user_id: UUID,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> UserBandwidthStats:
        """Totals, cache outcome counts and tiered cost across all of a user's assets."""
        s3_keys = await self._owned_keys(user_id)
        if not s3_keys:
            logger.info("bandwidth_user_has_no_assets", user_id=str(user_id))
            return UserBandwidthStats()

        tally = _Tally.of(await self.logs.outcome_totals(s3_keys, start_date, end_date))
        total_gb = tally.bytes / BYTES_PER_GB
        estimate = self.calculator.calculate(tally.bytes)

        logger.info(
            "bandwidth_user_totals",
            user_id=str(user_id),
            asset_count=len(s3_keys),
            total_requests=tally.requests,
            total_bytes=tally.bytes,
        )

        return UserBandwidthStats(
            total_bytes=tally.bytes,
            total_gb=f"{total_gb:.2f}",
            total_tb=f"{total_gb / 1024:.3f}",
            total_requests=tally.requests,
            cache_hits=tally.cache_hits,
            cache_misses=tally.cache_misses,
            errors=tally.errors,
            cache_hit_ratio=format_ratio(tally.cache_hits, tally.requests),
            cost_usd=estimate.cost_usd,
            cost_breakdown=estimate.breakdown,
        )

    async def per_asset_breakdown(
        self,
        user_id: UUID,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        page: int = 1,
        limit: int = 20,
    ) -> AssetBandwidthPage:
        """
        Bandwidth per asset for one page of the user's live assets.

        The page is chosen by creation time (newest first); the assets on it
        are then ordered by bytes transferred, largest first.
        """
        page_assets = await self.assets.page_by_owner(user_id, page, limit)
        total = await self.assets.count_by_owner(user_id)

        if not page_assets:
            return AssetBandwidthPage(assets=[], total=total)

        stats: List[AssetBandwidthStats] = []
        for asset in page_assets:
            tally = _Tally.of(await self.logs.outcome_totals([asset.s3_key], start_date, end_date))
            stats.append(AssetBandwidthStats(
                asset_id=str(asset.id),
                name=asset.name,
                s3_key=asset.s3_key,
                cloudfront_url=asset.cloudfront_url,
                total_bytes=tally.bytes,
                total_gb=f"{tally.bytes / BYTES_PER_GB:.4f}",
                requests=tally.requests,
                cache_hits=tally.cache_hits,
                cache_hit_ratio=format_ratio(tally.cache_hits, tally.requests),
                cost_usd=self.calculator.cost_usd(tally.bytes),
            ))

        stats.sort(key=lambda s: s.total_bytes, reverse=True)

        logger.info(
            "bandwidth_asset_breakdown",
            user_id=str(user_id),
            page=page,
            limit=limit,
            returned=len(stats),
            total=total,
        )
        return AssetBandwidthPage(assets=stats, total=total)

    async def daily_series(
        self,
        user_id: UUID,
        start_date: datetime,
        end_date: datetime,
    ) -> List[DailyBandwidth]:
        """One entry per calendar day that saw traffic, oldest first. Empty days are omitted."""
        s3_keys = await self._owned_keys(user_id)
        if not s3_keys:
            return []

        rows = await self.logs.bucketed_outcome_totals(s3_keys, start_date, end_date, GroupBy.DAY)
        days = _tally_buckets(rows)

        logger.info("bandwidth_daily_series", user_id=str(user_id), bucket_count=len(days))
        return [
            DailyBandwidth(
                date=day,
                bytes=tally.bytes,
                requests=tally.requests,
                cost_usd=self.calculator.cost_usd(tally.bytes),
            )
            for day, tally in days.items()
        ]

    async def chart_series(
        self,
        user_id: UUID,
        start_date: datetime,
        end_date: datetime,
        group_by: GroupBy = GroupBy.DAY,
    ) -> ChartData:
        """Bucketed usage as index-aligned arrays for the dashboard charts."""
        chart = ChartData()
        s3_keys = await self._owned_keys(user_id)
        if not s3_keys:
            return chart

        rows = await self.logs.bucketed_outcome_totals(s3_keys, start_date, end_date, group_by)
        for label, tally in _tally_buckets(rows).items():
            chart.labels.append(label)
            chart.requests.append(tally.requests)
            chart.bytes.append(tally.bytes)
            chart.cost_usd.append(self.calculator.cost_usd(tally.bytes))
            chart.cache_hits.append(tally.cache_hits)
            chart.cache_misses.append(tally.cache_misses)
            chart.errors.append(tally.errors)

        logger.info(
            "bandwidth_chart_series",
            user_id=str(user_id),
            group_by=group_by.value,
            bucket_count=len(chart.labels),
        )
        return chart

    async def single_asset_stats(self, asset_id: UUID) -> SingleAssetStats:
        """
        Usage of one asset, matched by the asset_id reference on log records.
        Only "Hit" counts as a hit here; RefreshHit does not.
        """
        rows = await self.logs.asset_outcome_totals(asset_id)
        total_bytes = sum(r.bytes for r in rows)
        total_requests = sum(r.requests for r in rows)
        hits = sum(r.requests for r in rows if is_strict_hit(r.edge_result))
        hit_ratio = (hits / total_requests) * 100 if total_requests > 0 else 0.0

        return SingleAssetStats(
            total_bytes=total_bytes,
            total_requests=total_requests,
            hit_ratio=hit_ratio,
        )
