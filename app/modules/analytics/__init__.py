from .domain.aggregator import BandwidthAggregator
from .domain.pricing import TieredCostCalculator

__all__ = ["BandwidthAggregator", "TieredCostCalculator"]
