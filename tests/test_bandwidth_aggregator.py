"""
Integration tests for BandwidthAggregator against an in-memory SQLite store.
"""
import pytest
from datetime import datetime
from uuid import uuid4

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.modules.analytics.domain.pricing import BYTES_PER_GB
from app.schemas.bandwidth import GroupBy

JAN_1 = datetime(2024, 1, 1, 10, 0, 0)
JAN_3 = datetime(2024, 1, 3, 9, 30, 0)
FEB_1 = datetime(2024, 2, 1, 12, 0, 0)


class TestUserTotals:
    async def test_path_prefix_attribution(self, aggregator, make_asset, add_logs):
        """Exact path and transformation paths count; other objects do not."""
        user_id = uuid4()
        await make_asset(user_id, "u1/img.jpg")
        await add_logs(
            ("/u1/img.jpg", 1000, "Hit", JAN_1),
            ("/u1/img.jpg/format=webp", 2000, "Miss", JAN_1),
            ("/other/img.jpg", 9999, "Hit", JAN_1),
        )

        stats = await aggregator.user_totals(user_id)

        assert stats.total_bytes == 3000
        assert stats.total_requests == 2
        assert stats.cache_hits == 1
        assert stats.cache_misses == 1
        assert stats.errors == 0
        assert stats.cache_hit_ratio == "50.00%"

    async def test_sibling_key_with_shared_prefix_is_not_matched(self, aggregator, make_asset, add_logs):
        user_id = uuid4()
        await make_asset(user_id, "u1/img.jpg")
        await add_logs(("/u1/img.jpg2", 500, "Hit", JAN_1))

        stats = await aggregator.user_totals(user_id)
        assert stats.total_requests == 0

    async def test_unrecognized_edge_result_is_an_error(self, aggregator, make_asset, add_logs):
        user_id = uuid4()
        await make_asset(user_id, "u1/a.png")
        await add_logs(
            ("/u1/a.png", 100, "500", JAN_1),
            ("/u1/a.png", 100, None, JAN_1),
            ("/u1/a.png", 100, "RefreshHit", JAN_1),
        )

        stats = await aggregator.user_totals(user_id)

        assert stats.errors == 2
        assert stats.cache_misses == 0
        assert stats.cache_hits == 1
        assert stats.cache_hits + stats.cache_misses + stats.errors == stats.total_requests

    async def test_user_without_assets_gets_zero_stats(self, aggregator):
        stats = await aggregator.user_totals(uuid4())

        assert stats.total_bytes == 0
        assert stats.total_gb == "0.00"
        assert stats.total_tb == "0.000"
        assert stats.cache_hit_ratio == "0.00%"
        assert stats.cost_usd == 0
        assert stats.cost_breakdown == []

    async def test_deleted_assets_still_count(self, aggregator, make_asset, add_logs):
        user_id = uuid4()
        await make_asset(user_id, "u1/live.mp4")
        await make_asset(user_id, "u1/gone.mp4", is_deleted=True)
        await add_logs(
            ("/u1/live.mp4", 1000, "Hit", JAN_1),
            ("/u1/gone.mp4", 4000, "Hit", JAN_1),
        )

        stats = await aggregator.user_totals(user_id)
        assert stats.total_bytes == 5000

    async def test_other_users_traffic_is_excluded(self, aggregator, make_asset, add_logs):
        user_id, other_id = uuid4(), uuid4()
        await make_asset(user_id, "u1/mine.jpg")
        await make_asset(other_id, "u2/theirs.jpg")
        await add_logs(
            ("/u1/mine.jpg", 10, "Hit", JAN_1),
            ("/u2/theirs.jpg", 20, "Hit", JAN_1),
        )

        stats = await aggregator.user_totals(user_id)
        assert stats.total_bytes == 10

    async def test_date_range_is_inclusive(self, aggregator, make_asset, add_logs):
        user_id = uuid4()
        await make_asset(user_id, "u1/a.jpg")
        await add_logs(
            ("/u1/a.jpg", 1, "Hit", JAN_1),
            ("/u1/a.jpg", 10, "Hit", JAN_3),
            ("/u1/a.jpg", 100, "Hit", FEB_1),
        )

        stats = await aggregator.user_totals(user_id, start_date=JAN_3, end_date=FEB_1)
        assert stats.total_bytes == 110

        only_start = await aggregator.user_totals(user_id, start_date=datetime(2024, 1, 2))
        assert only_start.total_bytes == 110

        only_end = await aggregator.user_totals(user_id, end_date=datetime(2024, 1, 2))
        assert only_end.total_bytes == 1

    async def test_inverted_range_is_empty(self, aggregator, make_asset, add_logs):
        user_id = uuid4()
        await make_asset(user_id, "u1/a.jpg")
        await add_logs(("/u1/a.jpg", 1, "Hit", JAN_3))

        stats = await aggregator.user_totals(user_id, start_date=FEB_1, end_date=JAN_1)
        assert stats.total_requests == 0
        assert stats.cache_hit_ratio == "0.00%"

    async def test_wildcard_characters_in_keys_are_literal(self, aggregator, make_asset, add_logs):
        user_id = uuid4()
        await make_asset(user_id, "u1/100%_done.jpg")
        await add_logs(
            ("/u1/100%_done.jpg/width=100", 7, "Hit", JAN_1),
            ("/u1/100XYdone.jpg/width=100", 99, "Hit", JAN_1),
        )

        stats = await aggregator.user_totals(user_id)
        assert stats.total_bytes == 7

    async def test_path_matching_is_case_sensitive(self, aggregator, make_asset, add_logs):
        user_id = uuid4()
        await make_asset(user_id, "u1/img.jpg")
        await add_logs(
            ("/u1/img.jpg", 1000, "Hit", JAN_1),
            ("/U1/IMG.JPG/format=webp", 5000, "Miss", JAN_1),
            ("/U1/IMG.JPG", 700, "Hit", JAN_1),
        )

        stats = await aggregator.user_totals(user_id)

        assert stats.total_bytes == 1000
        assert stats.total_requests == 1

    async def test_store_failures_propagate(self, db, aggregator, make_asset, add_logs):
        user_id = uuid4()
        await make_asset(user_id, "u1/a.jpg")
        await add_logs(("/u1/a.jpg", 1, "Hit", JAN_1))
        await db.execute(text("DROP TABLE bandwidth_logs"))

        with pytest.raises(SQLAlchemyError):
            await aggregator.user_totals(user_id)

    async def test_cost_and_gb_formatting(self, aggregator, make_asset, add_logs):
        user_id = uuid4()
        await make_asset(user_id, "u1/big.bin")
        await add_logs(("/u1/big.bin", 2 * BYTES_PER_GB, "Miss", JAN_1))

        stats = await aggregator.user_totals(user_id)

        assert stats.total_gb == "2.00"
        assert stats.total_tb == "0.002"
        assert stats.cost_usd == pytest.approx(0.17)
        assert len(stats.cost_breakdown) == 1
        assert stats.cost_breakdown[0].tier == "First 10 TB"
        assert stats.cache_hit_ratio == "0.00%"


class TestPerAssetBreakdown:
    async def test_pagination_reports_full_total(self, aggregator, make_asset):
        user_id = uuid4()
        for i in range(25):
            await make_asset(user_id, f"u1/file-{i:02d}.jpg", created_at=datetime(2024, 1, 1, 0, i))

        first = await aggregator.per_asset_breakdown(user_id, page=1, limit=20)
        second = await aggregator.per_asset_breakdown(user_id, page=2, limit=20)
        beyond = await aggregator.per_asset_breakdown(user_id, page=3, limit=20)

        assert first.total == 25
        assert len(first.assets) == 20
        assert len(second.assets) == 5
        assert beyond.assets == []
        assert beyond.total == 25

    async def test_page_selected_by_recency_then_sorted_by_bytes(self, aggregator, make_asset, add_logs):
        user_id = uuid4()
        oldest = await make_asset(user_id, "u1/oldest.jpg", created_at=datetime(2023, 1, 1))
        await make_asset(user_id, "u1/middle.jpg", created_at=datetime(2023, 6, 1))
        await make_asset(user_id, "u1/newest.jpg", created_at=datetime(2024, 1, 1))
        await add_logs(
            ("/u1/oldest.jpg", 10_000, "Hit", JAN_1),
            ("/u1/middle.jpg", 300, "Hit", JAN_1),
            ("/u1/newest.jpg", 500, "Miss", JAN_1),
        )

        page = await aggregator.per_asset_breakdown(user_id, page=1, limit=2)

        # oldest falls off the page despite having the most traffic
        assert [a.s3_key for a in page.assets] == ["u1/newest.jpg", "u1/middle.jpg"]
        assert oldest.s3_key not in {a.s3_key for a in page.assets}
        assert page.total == 3

    async def test_asset_row_contents(self, aggregator, make_asset, add_logs):
        user_id = uuid4()
        asset = await make_asset(user_id, "u1/clip.mp4", name="Clip")
        await add_logs(
            ("/u1/clip.mp4", BYTES_PER_GB, "Hit", JAN_1),
            ("/u1/clip.mp4", 0, "Miss", JAN_1),
        )

        page = await aggregator.per_asset_breakdown(user_id)
        row = page.assets[0]

        assert row.asset_id == str(asset.id)
        assert row.name == "Clip"
        assert row.cloudfront_url == "https://cdn.example.com/u1/clip.mp4"
        assert row.total_bytes == BYTES_PER_GB
        assert row.total_gb == "1.0000"
        assert row.requests == 2
        assert row.cache_hits == 1
        assert row.cache_hit_ratio == "50.00%"
        assert row.cost_usd == pytest.approx(0.085)

    async def test_date_bounds_filter_bytes_but_not_total(self, aggregator, make_asset, add_logs):
        user_id = uuid4()
        await make_asset(user_id, "u1/a.jpg", created_at=datetime(2023, 1, 1))
        await make_asset(user_id, "u1/b.jpg", created_at=datetime(2023, 6, 1))
        await add_logs(
            ("/u1/a.jpg", 10, "Hit", JAN_1),
            ("/u1/a.jpg", 200, "Miss", FEB_1),
            ("/u1/b.jpg", 3000, "Hit", FEB_1),
        )

        page = await aggregator.per_asset_breakdown(
            user_id, start_date=datetime(2024, 1, 1), end_date=datetime(2024, 1, 31)
        )

        assert page.total == 2
        by_key = {a.s3_key: a for a in page.assets}
        assert by_key["u1/a.jpg"].total_bytes == 10
        assert by_key["u1/a.jpg"].requests == 1
        assert by_key["u1/b.jpg"].total_bytes == 0
        assert [a.s3_key for a in page.assets] == ["u1/a.jpg", "u1/b.jpg"]

    async def test_deleted_assets_are_not_listed(self, aggregator, make_asset):
        user_id = uuid4()
        await make_asset(user_id, "u1/live.jpg")
        await make_asset(user_id, "u1/gone.jpg", is_deleted=True)

        page = await aggregator.per_asset_breakdown(user_id)

        assert page.total == 1
        assert [a.s3_key for a in page.assets] == ["u1/live.jpg"]

    async def test_assets_without_traffic_report_zeroes(self, aggregator, make_asset):
        user_id = uuid4()
        await make_asset(user_id, "u1/quiet.jpg")

        page = await aggregator.per_asset_breakdown(user_id)
        row = page.assets[0]

        assert row.total_bytes == 0
        assert row.requests == 0
        assert row.cache_hit_ratio == "0.00%"
        assert row.cost_usd == 0


class TestDailySeries:
    async def test_days_without_traffic_are_omitted(self, aggregator, make_asset, add_logs):
        user_id = uuid4()
        await make_asset(user_id, "u1/a.jpg")
        await add_logs(
            ("/u1/a.jpg", 500, "Hit", datetime(2024, 1, 1, 8)),
            ("/u1/a.jpg", 500, "Miss", datetime(2024, 1, 1, 20)),
            ("/u1/a.jpg", 1000, "Hit", datetime(2024, 1, 3, 1)),
        )

        days = await aggregator.daily_series(user_id, datetime(2024, 1, 1), datetime(2024, 1, 31))

        assert [d.date for d in days] == ["2024-01-01", "2024-01-03"]
        assert [d.bytes for d in days] == [1000, 1000]
        assert [d.requests for d in days] == [2, 1]

    async def test_each_day_is_priced_independently(self, aggregator, make_asset, add_logs):
        user_id = uuid4()
        await make_asset(user_id, "u1/a.bin")
        await add_logs(
            ("/u1/a.bin", BYTES_PER_GB, "Hit", datetime(2024, 1, 1)),
            ("/u1/a.bin", BYTES_PER_GB, "Hit", datetime(2024, 1, 2)),
        )

        days = await aggregator.daily_series(user_id, datetime(2024, 1, 1), datetime(2024, 1, 31))
        assert [d.cost_usd for d in days] == [pytest.approx(0.085), pytest.approx(0.085)]

    async def test_no_assets_returns_empty_series(self, aggregator):
        assert await aggregator.daily_series(uuid4(), JAN_1, FEB_1) == []


class TestChartSeries:
    async def test_monthly_buckets_are_aligned(self, aggregator, make_asset, add_logs):
        user_id = uuid4()
        await make_asset(user_id, "u1/a.jpg")
        await add_logs(
            ("/u1/a.jpg", 100, "Hit", JAN_1),
            ("/u1/a.jpg", 200, "Miss", JAN_3),
            ("/u1/a.jpg", 400, "Error", FEB_1),
            ("/u1/a.jpg", 800, "RefreshHit", FEB_1),
        )

        chart = await aggregator.chart_series(
            user_id, datetime(2024, 1, 1), datetime(2024, 3, 1), GroupBy.MONTH
        )

        assert chart.labels == ["2024-01", "2024-02"]
        assert chart.requests == [2, 2]
        assert chart.bytes == [300, 1200]
        assert chart.cache_hits == [1, 1]
        assert chart.cache_misses == [1, 0]
        assert chart.errors == [0, 1]
        assert len(chart.cost_usd) == len(chart.labels)

    async def test_yearly_buckets(self, aggregator, make_asset, add_logs):
        user_id = uuid4()
        await make_asset(user_id, "u1/a.jpg")
        await add_logs(
            ("/u1/a.jpg", 1, "Hit", datetime(2023, 12, 31, 23, 59)),
            ("/u1/a.jpg", 2, "Hit", JAN_1),
        )

        chart = await aggregator.chart_series(
            user_id, datetime(2023, 1, 1), datetime(2024, 12, 31), GroupBy.YEAR
        )

        assert chart.labels == ["2023", "2024"]
        assert chart.bytes == [1, 2]

    async def test_daily_is_the_default_grouping(self, aggregator, make_asset, add_logs):
        user_id = uuid4()
        await make_asset(user_id, "u1/a.jpg")
        await add_logs(("/u1/a.jpg", 5, "Hit", JAN_3))

        chart = await aggregator.chart_series(user_id, JAN_1, FEB_1)
        assert chart.labels == ["2024-01-03"]

    async def test_no_assets_returns_empty_arrays(self, aggregator):
        chart = await aggregator.chart_series(uuid4(), JAN_1, FEB_1, GroupBy.DAY)
        assert chart.labels == []
        assert chart.requests == []
        assert chart.cost_usd == []


class TestSingleAssetStats:
    async def test_matches_by_asset_reference_and_counts_plain_hits_only(self, aggregator, make_asset, add_logs):
        user_id = uuid4()
        asset = await make_asset(user_id, "u1/a.jpg")
        await add_logs(
            ("/u1/a.jpg", 100, "Hit", JAN_1, asset.id),
            ("/u1/a.jpg", 100, "RefreshHit", JAN_1, asset.id),
            ("/u1/a.jpg", 100, "Miss", JAN_1, asset.id),
            # path matches but no asset reference: invisible to this view
            ("/u1/a.jpg", 5000, "Hit", JAN_1),
        )

        stats = await aggregator.single_asset_stats(asset.id)

        assert stats.total_bytes == 300
        assert stats.total_requests == 3
        assert stats.hit_ratio == pytest.approx(100 / 3)

    async def test_asset_without_logs(self, aggregator):
        stats = await aggregator.single_asset_stats(uuid4())
        assert stats.total_bytes == 0
        assert stats.total_requests == 0
        assert stats.hit_ratio == 0
