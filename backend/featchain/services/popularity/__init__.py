"""Popularity lookups consumed by scoring, and their loader from the pipeline tables."""

from .providers import (
    CATEGORIES,
    DegreeProvider,
    PairStatsProvider,
    PopularityCategoryProvider,
    PopularityLookups,
    tier_to_category,
)
from .titles import count_title_families, normalize_title_to_family
