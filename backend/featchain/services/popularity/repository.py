import logging
from typing import Optional

from featchain import db
from featchain.models import ArtistDegree, ArtistPairStat, ArtistPopularityTier
from .providers import TIER_TO_CATEGORY, PopularityLookups
from .titles import count_title_families

logger = logging.getLogger(__name__)


def load_popularity_lookups(lookups: Optional[PopularityLookups] = None,
                            tier_version: Optional[str] = None) -> PopularityLookups:
    """Fill ``lookups`` from the pipeline tables. Must run inside an app context."""
    lookups = lookups or PopularityLookups()

    lookups.degrees.preload({row.mbid: row.degree for row in ArtistDegree.query.all()})
    lookups.pairs.preload({(row.mbid_a, row.mbid_b): row.family_count for row in ArtistPairStat.query.all()})

    tiers = ArtistPopularityTier.query
    if tier_version:
        tiers = tiers.filter_by(tier_version=tier_version)
    lookups.categories.preload_from_tiers({row.mbid: row.tier for row in tiers.all()})

    logger.info(f"[popularity-load] {lookups.summary()}")
    return lookups


def import_popularity_document(document, tier_version: str = 'v1') -> dict:
    """Upsert a pipeline export into the lookup tables.

    Expected shape::

        {
          "degrees": {"<mbid>": 12, ...},
          "tiers": {"<mbid>": "NICHE", ...},
          "pairs": [
            {"a": "<mbid>", "b": "<mbid>", "titles": ["Song (Remix)", "Song"]},
            {"a": "<mbid>", "b": "<mbid>", "family_count": 3}
          ]
        }

    Pairs given as title lists are counted by title family.
    """
    counts = {'degrees': 0, 'tiers': 0, 'pairs': 0}
    try:
        for mbid, degree in (document.get('degrees') or {}).items():
            db.session.merge(ArtistDegree(mbid=mbid, degree=int(degree)))
            counts['degrees'] += 1

        for mbid, tier in (document.get('tiers') or {}).items():
            tier = str(tier).upper()
            if tier not in TIER_TO_CATEGORY:
                raise ValueError(f"Unknown tier {tier!r} for {mbid}")
            db.session.merge(ArtistPopularityTier(mbid=mbid, tier=tier, tier_version=tier_version))
            counts['tiers'] += 1

        for pair in document.get('pairs') or []:
            a, b = pair['a'], pair['b']
            if a == b:
                continue
            if 'titles' in pair:
                family_count = count_title_families(pair['titles'])
            else:
                family_count = int(pair.get('family_count', 0))
            db.session.merge(ArtistPairStat.for_pair(a, b, family_count))
            counts['pairs'] += 1

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info(f"[popularity-import] {counts}")
    return counts
