import math
from typing import Optional

from featchain.services.popularity import PopularityLookups
from .state import ScoreBreakdown

BASE_POINTS = 100
SCORE_CAP = 280

CATEGORY_BONUS = {
    'ultra_mainstream': 1.00,
    'mainstream': 1.02,
    'connu': 1.04,
    'niche': 1.08,
    'underground': 1.12,
}


def pair_bonus(pair_family_count: int) -> float:
    """Rare duos pay more: a single shared song is worth the most."""
    if pair_family_count <= 0:
        return 1.00
    if pair_family_count == 1:
        return 1.30
    if pair_family_count <= 3:
        return 1.18
    if pair_family_count <= 7:
        return 1.08
    if pair_family_count <= 15:
        return 1.03
    return 1.00


def degree_bonus(degree: int) -> float:
    if degree <= 10:
        return 1.05
    if degree <= 25:
        return 1.03
    if degree <= 60:
        return 1.01
    return 1.00


def category_bonus(category: str) -> float:
    return CATEGORY_BONUS.get(category, CATEGORY_BONUS['niche'])


def time_bonus(seconds: int) -> float:
    if seconds <= 5:
        return 1.20
    if seconds <= 10:
        return 1.12
    if seconds <= 20:
        return 1.06
    if seconds <= 35:
        return 1.02
    return 1.00


def chain_bonus(turn_number: int) -> float:
    """+5% every five turns, capped at +20% from turn 21 on."""
    step = max(0, (turn_number - 1) // 5)
    return 1 + min(0.20, 0.05 * step)


class ScoringEngine:
    """Scores accepted solo moves from pre-loaded popularity lookups."""

    def __init__(self, lookups: Optional[PopularityLookups] = None):
        self.lookups = lookups or PopularityLookups()

    def score(self, previous_mbid: Optional[str], candidate_mbid: Optional[str],
              turn_number: int, seconds_since_turn_start: float) -> ScoreBreakdown:
        seconds = max(0, int(math.floor(seconds_since_turn_start)))
        pair_family_count = self.lookups.pairs.get_pair_family_count(previous_mbid, candidate_mbid)
        degree = self.lookups.degrees.get_degree(candidate_mbid)
        category = self.lookups.categories.get_category(candidate_mbid)

        factors = (
            pair_bonus(pair_family_count),
            degree_bonus(degree),
            category_bonus(category),
            time_bonus(seconds),
            chain_bonus(turn_number),
        )
        raw = float(BASE_POINTS)
        for factor in factors:
            raw *= factor
        final = min(int(math.floor(raw + 0.5)), SCORE_CAP)

        return ScoreBreakdown(
            base_points=BASE_POINTS,
            pair_bonus=factors[0],
            degree_bonus=factors[1],
            category_bonus=factors[2],
            time_bonus=factors[3],
            chain_bonus=factors[4],
            raw_score=raw,
            final_score=final,
            pair_family_count=pair_family_count,
            degree=degree,
            category=category,
            time_spent=seconds,
            chain_length=turn_number,
        )
