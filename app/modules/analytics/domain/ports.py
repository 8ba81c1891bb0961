from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence
from uuid import UUID

from app.models.asset import Asset
from app.schemas.bandwidth import GroupBy


@dataclass(frozen=True)
class OutcomeCount:
    """
    Requests and bytes for one edge_result value, optionally within one time bucket.
    Stores return these pre-grouped; the aggregator decides what each value means.
    """
    edge_result: Optional[str]
    requests: int
    bytes: int
    bucket: Optional[str] = None


class AssetStore(ABC):
    """Read access to the assets owned by the asset-management service."""

    @abstractmethod
    async def find_by_owner(self, owner_id: UUID, include_deleted: bool = True) -> List[Asset]:
        """All assets of an owner, optionally including soft-deleted ones."""

    @abstractmethod
    async def page_by_owner(self, owner_id: UUID, page: int, limit: int) -> List[Asset]:
        """One page of non-deleted assets, newest first. page is 1-indexed."""

    @abstractmethod
    async def count_by_owner(self, owner_id: UUID) -> int:
        """Number of non-deleted assets of an owner."""

    @abstractmethod
    async def get_owned(self, asset_id: UUID, owner_id: UUID) -> Optional[Asset]:
        """A non-deleted asset, only if it belongs to owner_id."""


class AccessLogStore(ABC):
    """
    Aggregating queries over the append-only CDN access log.
    Date bounds are inclusive and independently optional.
    """

    @abstractmethod
    async def outcome_totals(
        self,
        s3_keys: Sequence[str],
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> List[OutcomeCount]:
        """Totals per edge_result for records whose path matches any of s3_keys."""

    @abstractmethod
    async def bucketed_outcome_totals(
        self,
        s3_keys: Sequence[str],
        start_date: datetime,
        end_date: datetime,
        group_by: GroupBy,
    ) -> List[OutcomeCount]:
        """Totals per (bucket, edge_result), ordered by bucket ascending."""

    @abstractmethod
    async def asset_outcome_totals(self, asset_id: UUID) -> List[OutcomeCount]:
        """Totals per edge_result for records linked to asset_id by reference."""
