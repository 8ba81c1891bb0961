"""
Bandwidth Analytics Schemas

Results of the bandwidth aggregator. Attributes are snake_case in Python and
camelCase on the wire; GB/TB/USD keep their upper-case spelling because the
dashboard already reads them that way.
"""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GroupBy(str, Enum):
    """Date truncation used for chart buckets."""
    DAY = "day"
    MONTH = "month"
    YEAR = "year"


class CostBreakdownItem(CamelModel):
    """Usage and cost attributed to a single pricing tier."""
    tier: str
    gb_used: float
    price_per_gb: float = Field(alias="pricePerGB")
    cost: float


class CostEstimate(CamelModel):
    cost_usd: float = Field(alias="costUSD")
    breakdown: List[CostBreakdownItem] = Field(default_factory=list)


class UserBandwidthStats(CamelModel):
    """Lifetime (or date-bounded) bandwidth totals across every asset a user has owned."""
    total_bytes: int = 0
    total_gb: str = Field("0.00", alias="totalGB")
    total_tb: str = Field("0.000", alias="totalTB")
    total_requests: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    errors: int = 0
    cache_hit_ratio: str = "0.00%"
    cost_usd: float = Field(0.0, alias="costUSD")
    cost_breakdown: List[CostBreakdownItem] = Field(default_factory=list)


class AssetBandwidthStats(CamelModel):
    asset_id: str
    name: str
    s3_key: str
    cloudfront_url: str
    total_bytes: int
    total_gb: str = Field(alias="totalGB")
    requests: int
    cache_hits: int
    cache_hit_ratio: str
    cost_usd: float = Field(alias="costUSD")


class AssetBandwidthPage(CamelModel):
    assets: List[AssetBandwidthStats] = Field(default_factory=list)
    total: int = 0  # non-deleted assets owned by the user, ignores the date range


class DailyBandwidth(CamelModel):
    date: str  # YYYY-MM-DD
    bytes: int
    requests: int
    cost_usd: float = Field(alias="costUSD")


class ChartData(CamelModel):
    """Chart series as parallel arrays; index i of every list describes labels[i]."""
    labels: List[str] = Field(default_factory=list)
    requests: List[int] = Field(default_factory=list)
    bytes: List[int] = Field(default_factory=list)
    cost_usd: List[float] = Field(default_factory=list, alias="costUSD")
    cache_hits: List[int] = Field(default_factory=list)
    cache_misses: List[int] = Field(default_factory=list)
    errors: List[int] = Field(default_factory=list)


class SingleAssetStats(CamelModel):
    total_bytes: int = 0
    total_requests: int = 0
    hit_ratio: float = 0.0


class ApiResponse(BaseModel):
    """Envelope shared by every analytics endpoint."""
    success: bool
    message: Optional[str] = None
    data: Optional[dict] = None
    error: Optional[str] = None
