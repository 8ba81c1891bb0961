"""
Tiered Bandwidth Pricing

Converts a transferred byte count into a USD cost under marginal tier pricing,
the way CloudFront bills data transfer out: the first band of usage is charged
at the tier 1 rate, the next band at the tier 2 rate, and so on. Usage is never
re-priced as a whole when it crosses a boundary.

Only output fields are rounded (6 decimals). Intermediate GB values stay as
full-precision floats so that costs are continuous across tier boundaries.
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

from app.shared.core.config import Settings, get_settings
from app.shared.core.exceptions import PricingConfigurationError
from app.schemas.bandwidth import CostBreakdownItem, CostEstimate

BYTES_PER_GB = 1024 ** 3
OUTPUT_PRECISION = 6


@dataclass(frozen=True)
class PricingTier:
    name: str
    max_gb: Optional[float]  # cumulative upper bound; None = unbounded
    price_per_gb: float

    @property
    def upper_bound(self) -> float:
        return math.inf if self.max_gb is None else self.max_gb


def tiers_from_settings(settings: Optional[Settings] = None) -> List[PricingTier]:
    """Builds the five-tier CloudFront schedule from CF_PRICING_* settings."""
    s = settings or get_settings()
    return [
        PricingTier("First 10 TB", s.CF_PRICING_TIER1_MAX_GB, s.CF_PRICING_TIER1_PRICE),
        PricingTier("Next 40 TB", s.CF_PRICING_TIER2_MAX_GB, s.CF_PRICING_TIER2_PRICE),
        PricingTier("Next 100 TB", s.CF_PRICING_TIER3_MAX_GB, s.CF_PRICING_TIER3_PRICE),
        PricingTier("Next 350 TB", s.CF_PRICING_TIER4_MAX_GB, s.CF_PRICING_TIER4_PRICE),
        PricingTier("Over 500 TB", None, s.CF_PRICING_TIER5_PRICE),
    ]


class TieredCostCalculator:
    """
    Applies an ordered tier schedule to byte counts.

    The schedule is validated once at construction:
    - at least one tier
    - prices are non-negative
    - bounds strictly ascending
    - only the final tier may be unbounded

    A schedule whose last tier is bounded is accepted; usage beyond it is
    simply not billed (there is no band to put it in).
    """

    def __init__(self, tiers: Sequence[PricingTier]):
        self.tiers = list(tiers)
        self._validate()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "TieredCostCalculator":
        return cls(tiers_from_settings(settings))

    def _validate(self) -> None:
        if not self.tiers:
            raise PricingConfigurationError("Pricing schedule must contain at least one tier.")

        previous_max = 0.0
        for index, tier in enumerate(self.tiers):
            if tier.price_per_gb < 0:
                raise PricingConfigurationError(
                    f"Tier '{tier.name}' has a negative price.",
                    details={"tier": tier.name, "price_per_gb": tier.price_per_gb},
                )
            if tier.max_gb is None and index != len(self.tiers) - 1:
                raise PricingConfigurationError(
                    f"Only the last tier may be unbounded; '{tier.name}' is not last.",
                    details={"tier": tier.name},
                )
            if tier.upper_bound <= previous_max:
                raise PricingConfigurationError(
                    "Tier bounds must be strictly ascending.",
                    details={"tier": tier.name, "max_gb": tier.max_gb, "previous_max_gb": previous_max},
                )
            previous_max = tier.upper_bound

    def calculate(self, total_bytes: int) -> CostEstimate:
        """
        Cost of transferring total_bytes.

        Walks the tiers, filling each band before spilling into the next, and
        stops as soon as all usage has been placed. Tiers that received no
        usage are left out of the breakdown.
        """
        remaining_gb = total_bytes / BYTES_PER_GB
        previous_max = 0.0
        total_cost = 0.0
        breakdown: List[CostBreakdownItem] = []

        for tier in self.tiers:
            if remaining_gb <= 0:
                break

            tier_capacity = tier.upper_bound - previous_max
            gb_in_tier = min(remaining_gb, tier_capacity)

            if gb_in_tier > 0:
                tier_cost = gb_in_tier * tier.price_per_gb
                total_cost += tier_cost
                breakdown.append(CostBreakdownItem(
                    tier=tier.name,
                    gb_used=round(gb_in_tier, OUTPUT_PRECISION),
                    price_per_gb=tier.price_per_gb,
                    cost=round(tier_cost, OUTPUT_PRECISION),
                ))

            remaining_gb -= gb_in_tier
            previous_max = tier.upper_bound

        return CostEstimate(cost_usd=round(total_cost, OUTPUT_PRECISION), breakdown=breakdown)

    def cost_usd(self, total_bytes: int) -> float:
        """Shortcut for callers that only need the total."""
        return self.calculate(total_bytes).cost_usd
