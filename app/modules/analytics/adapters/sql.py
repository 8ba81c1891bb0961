"""
SQLAlchemy implementations of the analytics stores.

Grouping happens in the database. Bucket keys are rendered from the stored
timestamp (naive UTC) with the dialect's own date formatting, so no timezone
conversion is applied on either side.
"""

from datetime import datetime
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, literal_column, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.access_log import AccessLog
from app.models.asset import Asset
from app.modules.analytics.domain.matching import keys_path_clause
from app.modules.analytics.domain.ports import AccessLogStore, AssetStore, OutcomeCount
from app.schemas.bandwidth import GroupBy
from app.shared.core.exceptions import ConfigurationError

# group_by -> (strftime format, to_char format)
BUCKET_FORMATS = {
    GroupBy.DAY: ("%Y-%m-%d", "YYYY-MM-DD"),
    GroupBy.MONTH: ("%Y-%m", "YYYY-MM"),
    GroupBy.YEAR: ("%Y", "YYYY"),
}


def bucket_expression(dialect_name: str, column, group_by: GroupBy):
    """
    Date-truncation label for a timestamp column.

    The format is inlined rather than bound: Postgres only matches a SELECT
    expression against its GROUP BY twin when both render identically.
    """
    strftime_format, to_char_format = BUCKET_FORMATS[group_by]
    if dialect_name == "postgresql":
        return func.to_char(column, literal_column(f"'{to_char_format}'"))
    if dialect_name == "sqlite":
        return func.strftime(literal_column(f"'{strftime_format}'"), column)
    if dialect_name in ("mysql", "mariadb"):
        return func.date_format(column, literal_column(f"'{strftime_format}'"))
    raise ConfigurationError(
        f"Date bucketing is not supported on dialect '{dialect_name}'.",
        details={"dialect": dialect_name},
    )


class SqlAssetStore(AssetStore):
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_owner(self, owner_id: UUID, include_deleted: bool = True) -> List[Asset]:
        stmt = select(Asset).where(Asset.owner_id == owner_id)
        if not include_deleted:
            stmt = stmt.where(Asset.is_deleted.is_(False))
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def page_by_owner(self, owner_id: UUID, page: int, limit: int) -> List[Asset]:
        stmt = (
            select(Asset)
            .where(Asset.owner_id == owner_id, Asset.is_deleted.is_(False))
            .order_by(Asset.created_at.desc(), Asset.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def count_by_owner(self, owner_id: UUID) -> int:
        stmt = select(func.count(Asset.id)).where(
            Asset.owner_id == owner_id, Asset.is_deleted.is_(False)
        )
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def get_owned(self, asset_id: UUID, owner_id: UUID) -> Optional[Asset]:
        stmt = select(Asset).where(
            Asset.id == asset_id,
            Asset.owner_id == owner_id,
            Asset.is_deleted.is_(False),
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()


class SqlAccessLogStore(AccessLogStore):
    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _within(stmt, start_date: Optional[datetime], end_date: Optional[datetime]):
        if start_date is not None:
            stmt = stmt.where(AccessLog.timestamp >= start_date)
        if end_date is not None:
            stmt = stmt.where(AccessLog.timestamp <= end_date)
        return stmt

    @staticmethod
    def _to_counts(rows) -> List[OutcomeCount]:
        return [
            OutcomeCount(
                edge_result=row.edge_result,
                requests=int(row.requests),
                bytes=int(row.bytes or 0),
                bucket=getattr(row, "bucket", None),
            )
            for row in rows
        ]

    async def outcome_totals(
        self,
        s3_keys: Sequence[str],
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> List[OutcomeCount]:
        stmt = (
            select(
                AccessLog.edge_result,
                func.count(AccessLog.id).label("requests"),
                func.sum(AccessLog.bytes).label("bytes"),
            )
            .where(keys_path_clause(AccessLog.path, s3_keys))
            .group_by(AccessLog.edge_result)
        )
        stmt = self._within(stmt, start_date, end_date)
        result = await self.db.execute(stmt)
        return self._to_counts(result.all())

    async def bucketed_outcome_totals(
        self,
        s3_keys: Sequence[str],
        start_date: datetime,
        end_date: datetime,
        group_by: GroupBy,
    ) -> List[OutcomeCount]:
        dialect_name = self.db.get_bind().dialect.name
        bucket = bucket_expression(dialect_name, AccessLog.timestamp, group_by).label("bucket")
        stmt = (
            select(
                bucket,
                AccessLog.edge_result,
                func.count(AccessLog.id).label("requests"),
                func.sum(AccessLog.bytes).label("bytes"),
            )
            .where(keys_path_clause(AccessLog.path, s3_keys))
            .group_by(bucket, AccessLog.edge_result)
            .order_by(bucket)
        )
        stmt = self._within(stmt, start_date, end_date)
        result = await self.db.execute(stmt)
        return self._to_counts(result.all())

    async def asset_outcome_totals(self, asset_id: UUID) -> List[OutcomeCount]:
        stmt = (
            select(
                AccessLog.edge_result,
                func.count(AccessLog.id).label("requests"),
                func.sum(AccessLog.bytes).label("bytes"),
            )
            .where(AccessLog.asset_id == asset_id)
            .group_by(AccessLog.edge_result)
        )
        result = await self.db.execute(stmt)
        return self._to_counts(result.all())
