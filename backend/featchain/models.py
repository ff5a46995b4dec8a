from featchain import db
from datetime import datetime


class ArtistDegree(db.Model):
    """Number of distinct collaborators known for an artist."""
    __tablename__ = 'artist_degree'
    mbid = db.Column(db.String(36), primary_key=True)
    degree = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self):
        return {'mbid': self.mbid, 'degree': self.degree}


class ArtistPairStat(db.Model):
    """Distinct title families shared by two artists; mbid_a < mbid_b."""
    __tablename__ = 'artist_pair_stat'
    mbid_a = db.Column(db.String(36), primary_key=True)
    mbid_b = db.Column(db.String(36), primary_key=True)
    family_count = db.Column(db.Integer, nullable=False, default=0)
    __table_args__ = (db.CheckConstraint('mbid_a < mbid_b', name='ck_artist_pair_ordered'),)

    @classmethod
    def for_pair(cls, mbid_a, mbid_b, family_count):
        first, second = sorted((mbid_a, mbid_b))
        return cls(mbid_a=first, mbid_b=second, family_count=family_count)

    def to_dict(self):
        return {'mbid_a': self.mbid_a, 'mbid_b': self.mbid_b, 'family_count': self.family_count}


class ArtistPopularityTier(db.Model):
    """Popularity tier assigned by the offline quantile job."""
    __tablename__ = 'artist_popularity_tier'
    mbid = db.Column(db.String(36), primary_key=True)
    tier = db.Column(db.String(32), nullable=False)  # ULTRA_MAINSTREAM, MAINSTREAM, POPULAR, NICHE, UNDERGROUND
    tier_version = db.Column(db.String(16), nullable=False, default='v1', index=True)
    computed_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            'mbid': self.mbid,
            'tier': self.tier,
            'tier_version': self.tier_version,
            'computed_at': self.computed_at.isoformat() if self.computed_at else None,
        }
