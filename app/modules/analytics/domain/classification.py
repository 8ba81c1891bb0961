"""
Edge result classification.

The edge pipeline tags each request with a cache outcome. Current pipelines
write Hit, Miss, Error or RefreshHit; older ones wrote numeric status codes,
and some rows carry nothing at all. Every value maps to exactly one outcome,
so hits + misses + errors always equals the request count.
"""

from enum import Enum
from typing import Optional


class EdgeOutcome(str, Enum):
    HIT = "hit"
    MISS = "miss"
    ERROR = "error"


# A RefreshHit revalidated with the origin but was still served from cache.
HIT_RESULTS = frozenset({"Hit", "RefreshHit"})
MISS_RESULTS = frozenset({"Miss"})


def classify_edge_result(edge_result: Optional[str]) -> EdgeOutcome:
    """Anything that is not a recognized hit or miss counts as an error."""
    if edge_result in HIT_RESULTS:
        return EdgeOutcome.HIT
    if edge_result in MISS_RESULTS:
        return EdgeOutcome.MISS
    return EdgeOutcome.ERROR


def is_strict_hit(edge_result: Optional[str]) -> bool:
    """
    Narrow hit rule used by the single-asset view: only a plain Hit counts.
    Kept separate from classify_edge_result so both ratios stay reproducible.
    """
    return edge_result == "Hit"
