"""MusicBrainz web service, the primary source of truth for collaborations.

Only recordings are consulted: two artists collaborate when both are
credited on the same individual recording. Shared releases (albums,
compilations) do not count.
"""

import logging
from typing import List, Optional, Set

from .errors import SourceError
from .http import JsonHttpClient
from .identity import ResolvedArtist, normalize_name

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 5
COLLABORATOR_SCAN_LIMIT = 100


def _quote(value: str) -> str:
    return value.replace('\\', '\\\\').replace('"', '\\"')


def _credited_ids(recording) -> Set[str]:
    credits = recording.get('artist-credit') or []
    if isinstance(credits, dict):
        credits = [credits]
    ids = set()
    for credit in credits:
        artist = credit.get('artist') if isinstance(credit, dict) else None
        if artist and artist.get('id'):
            ids.add(artist['id'])
    return ids


class MusicBrainzSource:
    def __init__(self, client: JsonHttpClient):
        self.client = client

    @classmethod
    def from_config(cls, config, **kwargs) -> 'MusicBrainzSource':
        return cls(JsonHttpClient(
            config['MUSICBRAINZ_BASE_URL'],
            config['HTTP_USER_AGENT'],
            timeout=config.get('HTTP_TIMEOUT_SEC', 10),
            retry_attempts=config.get('HTTP_RETRY_ATTEMPTS', 3),
            retry_delay=config.get('HTTP_RETRY_DELAY_SEC', 1.0),
            **kwargs,
        ))

    def resolve(self, name: str) -> Optional[ResolvedArtist]:
        """Search from the strictest query to the loosest; exact name match wins."""
        wanted = normalize_name(name)
        if not wanted:
            return None
        cleaned = name.strip()
        strategies = [f'artist:"{_quote(cleaned)}"', f'artist:{cleaned}', cleaned]
        for query in strategies:
            data = self.client.get_json('/artist', {'query': query, 'limit': SEARCH_LIMIT, 'fmt': 'json'})
            artists = (data or {}).get('artists') or []
            if not artists:
                continue
            exact = next((a for a in artists if normalize_name(a.get('name', '')) == wanted), None)
            artist = exact or artists[0]
            return ResolvedArtist(
                mbid=artist['id'],
                canonical_name=artist.get('name') or cleaned,
                aliases=self._aliases(artist['id']),
            )
        logger.info(f"[musicbrainz] no artist found for {cleaned!r}")
        return None

    def _aliases(self, mbid: str) -> List[str]:
        try:
            data = self.client.get_json(f'/artist/{mbid}', {'fmt': 'json', 'inc': 'aliases'})
        except SourceError as exc:
            logger.info(f"[musicbrainz] aliases unavailable for {mbid}: {exc}")
            return []
        return [a['name'] for a in (data or {}).get('aliases') or [] if a.get('name')]

    def relation_exists(self, mbid_a: str, mbid_b: str) -> bool:
        data = self.client.get_json('/recording', {
            'query': f'arid:{mbid_a} AND arid:{mbid_b}',
            'limit': 1,
            'fmt': 'json',
        })
        found = bool((data or {}).get('recordings'))
        if found:
            logger.info(f"[musicbrainz] shared recording found for {mbid_a} / {mbid_b}")
        return found

    def known_relations(self, mbid: str) -> List[str]:
        """Distinct artists credited with ``mbid`` on any of its recordings."""
        data = self.client.get_json('/recording', {
            'query': f'arid:{mbid}',
            'limit': COLLABORATOR_SCAN_LIMIT,
            'fmt': 'json',
            'inc': 'artist-credits',
        })
        collaborators = set()
        for recording in (data or {}).get('recordings') or []:
            collaborators |= _credited_ids(recording)
        collaborators.discard(mbid)
        return sorted(collaborators)
