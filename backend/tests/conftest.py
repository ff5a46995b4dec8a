import os
import sys
from collections import Counter, defaultdict

import pytest

# Ensure the backend root (containing the `featchain` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from featchain import create_app, db, get_services, socketio
from featchain.services.games import ScoringEngine, TurnEngine, TurnScheduler
from featchain.services.popularity import PopularityLookups
from featchain.services.validation import ResolvedArtist, ValidationCache, ValidationChain
from featchain.services.validation.identity import normalize_name


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = ['http://localhost:5173']
    TURN_DURATION_SEC = 30
    MAX_ATTEMPTS_PER_TURN = 2
    MIN_PLAYERS = 2
    GAME_CODE_LENGTH = 6
    FINISHED_GAME_TTL_SEC = 3600
    SEED_ARTISTS = ['Booba']
    PRELOAD_POPULARITY = False
    TIMER_HEARTBEAT_SEC = 0


# name -> mbid; every artist here resolves through the primary source
CATALOG = {
    'Booba': 'mb-booba',
    'Kaaris': 'mb-kaaris',
    'Damso': 'mb-damso',
    'Niska': 'mb-niska',
    'Ninho': 'mb-ninho',
    'Jul': 'mb-jul',
    'Lone Wolf': 'mb-lone-wolf',
    'Sefyu': 'mb-sefyu',
}

# Shared recordings known to the primary source
RECORDINGS = [
    ('mb-booba', 'mb-kaaris'),
    ('mb-booba', 'mb-damso'),
    ('mb-kaaris', 'mb-niska'),
    ('mb-kaaris', 'mb-damso'),
    ('mb-damso', 'mb-ninho'),
    ('mb-ninho', 'mb-niska'),
    ('mb-niska', 'mb-jul'),
    # Lone Wolf has a single collaborator
    ('mb-booba', 'mb-lone-wolf'),
]

# Shared works only the fallback source knows about
FALLBACK_WORKS = [('Booba', 'Sefyu')]


class FakeClock:
    def __init__(self, start=1_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeMusicBrainz:
    def __init__(self, catalog=None, recordings=None):
        self.catalog = {normalize_name(name): (name, mbid) for name, mbid in (catalog or CATALOG).items()}
        self.recordings = {frozenset(pair) for pair in (recordings or RECORDINGS)}
        self.calls = Counter()
        self.errors = {}

    def _maybe_fail(self, method):
        error = self.errors.get(method)
        if error is not None:
            raise error

    def resolve(self, name):
        self.calls['resolve'] += 1
        self._maybe_fail('resolve')
        entry = self.catalog.get(normalize_name(name))
        if entry is None:
            return None
        return ResolvedArtist(mbid=entry[1], canonical_name=entry[0], aliases=[])

    def relation_exists(self, mbid_a, mbid_b):
        self.calls['relation_exists'] += 1
        self._maybe_fail('relation_exists')
        return frozenset((mbid_a, mbid_b)) in self.recordings

    def known_relations(self, mbid):
        self.calls['known_relations'] += 1
        self._maybe_fail('known_relations')
        partners = defaultdict(set)
        for pair in self.recordings:
            a, b = tuple(pair)
            partners[a].add(b)
            partners[b].add(a)
        return sorted(partners[mbid])


class FakeWikidata:
    def __init__(self, works=None, ids=None):
        self.works = {frozenset(normalize_name(n) for n in pair) for pair in (works or FALLBACK_WORKS)}
        self.ids = ids or {'sefyu': 'Q3479282', 'booba': 'Q559453'}
        self.calls = Counter()
        self.errors = {}

    def find_id(self, name):
        self.calls['find_id'] += 1
        if 'find_id' in self.errors:
            raise self.errors['find_id']
        return self.ids.get(normalize_name(name))

    def relation_exists(self, name_a, name_b):
        self.calls['relation_exists'] += 1
        if 'relation_exists' in self.errors:
            raise self.errors['relation_exists']
        return frozenset((normalize_name(name_a), normalize_name(name_b))) in self.works


def manual_scheduler(clock):
    return TurnScheduler(start_task=lambda *args, **kwargs: None, sleep=lambda seconds: None,
                         clock=clock, enabled=False)


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def musicbrainz():
    return FakeMusicBrainz()


@pytest.fixture()
def wikidata():
    return FakeWikidata()


@pytest.fixture()
def cache():
    return ValidationCache()


@pytest.fixture()
def chain(musicbrainz, wikidata, cache):
    return ValidationChain(musicbrainz, wikidata, cache=cache)


@pytest.fixture()
def lookups():
    return PopularityLookups()


@pytest.fixture()
def engine(chain, lookups, clock):
    return TurnEngine(chain, ScoringEngine(lookups), clock=clock, turn_duration=30, max_attempts=2)


@pytest.fixture()
def scheduler(clock):
    return manual_scheduler(clock)


@pytest.fixture()
def flask_app(musicbrainz, wikidata, clock, scheduler):
    application = create_app(TestConfig, primary=musicbrainz, secondary=wikidata,
                             clock=clock, scheduler=scheduler)
    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def services(flask_app):
    return get_services(flask_app)


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')
