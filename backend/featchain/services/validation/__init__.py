"""Artist validation: name resolution and collaboration checks.

MusicBrainz is the primary source, Wikidata the fallback. Results go
through an injected :class:`ValidationCache`.
"""

from .cache import ValidationCache
from .chain import ValidationChain
from .errors import SourceError, SourceResponseError, TransientSourceError
from .identity import CanonicalArtist, ResolvedArtist, ValidationOutcome, ValidationSource
from .musicbrainz import MusicBrainzSource
from .wikidata import WikidataSource


def build_validation_chain(config, cache=None, primary=None, secondary=None) -> ValidationChain:
    cache = cache if cache is not None else ValidationCache()
    return ValidationChain(
        primary or MusicBrainzSource.from_config(config),
        secondary or WikidataSource.from_config(config, cache=cache),
        cache=cache,
    )
