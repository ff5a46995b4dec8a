"""Read-only popularity lookups used by the solo scoring engine.

The tables are produced offline and loaded in memory before play; no
lookup here ever reaches an external service. Unknown ids fall back to
the documented defaults: 0 shared families, degree 0, category
``niche``.
"""

import threading
from typing import Dict, Iterable, Mapping, Optional, Tuple

from .titles import count_title_families

CATEGORIES = ('ultra_mainstream', 'mainstream', 'connu', 'niche', 'underground')
DEFAULT_CATEGORY = 'niche'

# Tier names written by the offline pipeline -> game categories
TIER_TO_CATEGORY = {
    'ULTRA_MAINSTREAM': 'ultra_mainstream',
    'MAINSTREAM': 'mainstream',
    'POPULAR': 'connu',
    'NICHE': 'niche',
    'UNDERGROUND': 'underground',
}


def tier_to_category(tier: Optional[str]) -> str:
    return TIER_TO_CATEGORY.get((tier or '').upper(), DEFAULT_CATEGORY)


def _pair(mbid_a: str, mbid_b: str) -> Tuple[str, str]:
    first, second = sorted((mbid_a, mbid_b))
    return first, second


class PairStatsProvider:
    def __init__(self):
        self._lock = threading.Lock()
        self._counts: Dict[Tuple[str, str], int] = {}

    def get_pair_family_count(self, mbid_a: Optional[str], mbid_b: Optional[str]) -> int:
        if not mbid_a or not mbid_b:
            return 0
        return self._counts.get(_pair(mbid_a, mbid_b), 0)

    def set_pair_family_count(self, mbid_a: str, mbid_b: str, count: int) -> None:
        with self._lock:
            self._counts[_pair(mbid_a, mbid_b)] = int(count)

    def record_shared_titles(self, mbid_a: str, mbid_b: str, titles: Iterable[str]) -> int:
        count = count_title_families(titles)
        self.set_pair_family_count(mbid_a, mbid_b, count)
        return count

    def preload(self, counts: Mapping[Tuple[str, str], int]) -> None:
        with self._lock:
            self._counts = {_pair(a, b): int(c) for (a, b), c in counts.items()}

    def clear(self) -> None:
        with self._lock:
            self._counts = {}

    def __len__(self) -> int:
        return len(self._counts)


class DegreeProvider:
    def __init__(self):
        self._lock = threading.Lock()
        self._degrees: Dict[str, int] = {}

    def get_degree(self, mbid: Optional[str]) -> int:
        if not mbid:
            return 0
        return self._degrees.get(mbid, 0)

    def set_degree(self, mbid: str, degree: int) -> None:
        with self._lock:
            self._degrees[mbid] = int(degree)

    def preload(self, degrees: Mapping[str, int]) -> None:
        with self._lock:
            self._degrees = {k: int(v) for k, v in degrees.items()}

    def clear(self) -> None:
        with self._lock:
            self._degrees = {}

    def __len__(self) -> int:
        return len(self._degrees)


class PopularityCategoryProvider:
    def __init__(self):
        self._lock = threading.Lock()
        self._categories: Dict[str, str] = {}

    def get_category(self, mbid: Optional[str]) -> str:
        if not mbid:
            return DEFAULT_CATEGORY
        return self._categories.get(mbid, DEFAULT_CATEGORY)

    def set_category(self, mbid: str, category: str) -> None:
        if category not in CATEGORIES:
            raise ValueError(f"Unknown popularity category {category!r}")
        with self._lock:
            self._categories[mbid] = category

    def preload_from_tiers(self, tiers: Mapping[str, str]) -> None:
        with self._lock:
            self._categories = {mbid: tier_to_category(tier) for mbid, tier in tiers.items()}

    def clear(self) -> None:
        with self._lock:
            self._categories = {}

    def __len__(self) -> int:
        return len(self._categories)


class PopularityLookups:
    """The three providers the scoring engine reads, owned together."""

    def __init__(self, pairs: Optional[PairStatsProvider] = None,
                 degrees: Optional[DegreeProvider] = None,
                 categories: Optional[PopularityCategoryProvider] = None):
        self.pairs = pairs or PairStatsProvider()
        self.degrees = degrees or DegreeProvider()
        self.categories = categories or PopularityCategoryProvider()

    def clear(self) -> None:
        self.pairs.clear()
        self.degrees.clear()
        self.categories.clear()

    def summary(self):
        return {'pairs': len(self.pairs), 'degrees': len(self.degrees), 'categories': len(self.categories)}
