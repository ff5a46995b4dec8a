"""Wikidata SPARQL endpoint, consulted when MusicBrainz finds no collaboration."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from .cache import WIKIDATA_QID, Computed, ValidationCache
from .http import JsonHttpClient
from .identity import normalize_name

logger = logging.getLogger(__name__)

MUSICAL_ARTIST = 'Q488205'
RAPPER = 'Q1597618'

FIND_ARTIST_QUERY = """
SELECT ?item WHERE {{
  {{ ?item wdt:P31/wdt:P279* wd:{cls} . }} UNION {{ ?item wdt:P106/wdt:P279* wd:{cls} . }}
  {{ ?item rdfs:label "{name}"@en . }} UNION {{ ?item rdfs:label "{name}"@fr . }} UNION {{ ?item skos:altLabel "{name}"@en . }}
}}
LIMIT 1
"""

# A work crediting both artists as performer (P175) or composer (P86)
SHARED_WORK_QUERY = """
SELECT ?track WHERE {{
  {{ ?track wdt:P175 wd:{a} . ?track wdt:P175 wd:{b} . }}
  UNION
  {{ ?track wdt:P86 wd:{a} . ?track wdt:P86 wd:{b} . }}
}}
LIMIT 1
"""


def _literal(value: str) -> str:
    return value.replace('\\', '\\\\').replace('"', '\\"')


def _bindings(data):
    return ((data or {}).get('results') or {}).get('bindings') or []


class WikidataSource:
    def __init__(self, client: JsonHttpClient, cache: Optional[ValidationCache] = None):
        self.client = client
        self.cache = cache if cache is not None else ValidationCache()

    @classmethod
    def from_config(cls, config, cache: Optional[ValidationCache] = None, **kwargs) -> 'WikidataSource':
        client = JsonHttpClient(
            config['WIKIDATA_SPARQL_URL'],
            config['HTTP_USER_AGENT'],
            timeout=config.get('HTTP_TIMEOUT_SEC', 10),
            retry_attempts=config.get('HTTP_RETRY_ATTEMPTS', 3),
            retry_delay=config.get('HTTP_RETRY_DELAY_SEC', 1.0),
            headers={'Accept': 'application/sparql-results+json'},
            **kwargs,
        )
        return cls(client, cache=cache)

    def _select(self, query: str):
        return _bindings(self.client.get_json('', {'query': query.strip(), 'format': 'json'}))

    def find_id(self, name: str) -> Optional[str]:
        key = normalize_name(name)
        if not key:
            return None
        return self.cache.fetch(WIKIDATA_QID, key, lambda: Computed(self._find_id(name.strip())))

    def _find_id(self, name: str) -> Optional[str]:
        for cls in (MUSICAL_ARTIST, RAPPER):
            rows = self._select(FIND_ARTIST_QUERY.format(cls=cls, name=_literal(name)))
            if rows:
                return rows[0]['item']['value'].rsplit('/', 1)[-1] or None
        return None

    def relation_exists(self, name_a: str, name_b: str) -> bool:
        with ThreadPoolExecutor(max_workers=2) as pool:
            qid_a_future = pool.submit(self.find_id, name_a)
            qid_b_future = pool.submit(self.find_id, name_b)
            qid_a, qid_b = qid_a_future.result(), qid_b_future.result()
        if not qid_a or not qid_b or qid_a == qid_b:
            return False
        found = bool(self._select(SHARED_WORK_QUERY.format(a=qid_a, b=qid_b)))
        if found:
            logger.info(f"[wikidata] shared work found for {name_a!r} ({qid_a}) / {name_b!r} ({qid_b})")
        return found
