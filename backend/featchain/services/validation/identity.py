from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class ValidationSource(str, Enum):
    MUSICBRAINZ = 'musicbrainz'
    WIKIDATA_FALLBACK = 'wikidata_fallback'


def normalize_name(name: str) -> str:
    return ' '.join((name or '').split()).lower()


@dataclass
class CanonicalArtist:
    name: str
    mbid: Optional[str] = None
    qid: Optional[str] = None

    @property
    def dedup_key(self) -> str:
        """MBID first, then Wikidata QID, then the normalized display name."""
        if self.mbid:
            return self.mbid.lower()
        if self.qid:
            return self.qid.lower()
        return normalize_name(self.name)

    def to_dict(self):
        return {'name': self.name, 'mbid': self.mbid, 'qid': self.qid}


@dataclass
class ResolvedArtist:
    """What the primary source knows about a name."""
    mbid: str
    canonical_name: str
    aliases: List[str] = field(default_factory=list)


@dataclass
class ValidationOutcome:
    resolved: bool
    canonical: CanonicalArtist
    relation_holds: bool = False
    source: Optional[ValidationSource] = None
    degenerate_relation: bool = False
    # An external error was absorbed while computing this outcome
    degraded: bool = False

    def to_dict(self):
        return {
            'resolved': self.resolved,
            'canonical': self.canonical.to_dict(),
            'relation_holds': self.relation_holds,
            'source': self.source.value if self.source else None,
            'degenerate_relation': self.degenerate_relation,
            'degraded': self.degraded,
        }
