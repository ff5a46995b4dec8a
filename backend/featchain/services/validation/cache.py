"""Result cache shared by every validation in one engine instance.

Entries are grouped by namespace (``identity``, ``relation``, ...). Only
confirmed answers are stored; an answer computed while a source was
failing is handed back to the caller but never kept, so the next
validation asks the source again. Concurrent lookups of the same key
share a single computation.
"""

import threading
from typing import Any, Callable, Dict, Hashable, NamedTuple, Optional, Tuple

from .identity import normalize_name

IDENTITY = 'identity'
RELATION = 'relation'
COLLABORATORS = 'collaborators'
WIKIDATA_QID = 'wikidata_qid'

_MISSING = object()


class Computed(NamedTuple):
    value: Any
    cacheable: bool = True
    # A source failed while computing ``value``
    degraded: bool = False


def pair_key(a: str, b: str) -> Tuple[str, str]:
    """Order-independent key for a pair of names or ids."""
    first, second = sorted((normalize_name(a), normalize_name(b)))
    return first, second


class _Flight:
    def __init__(self):
        self.done = threading.Event()
        self.value: Any = None
        self.degraded = False
        self.error: Optional[BaseException] = None


class ValidationCache:
    def __init__(self):
        self._lock = threading.Lock()
        self._store: Dict[Tuple[str, Hashable], Any] = {}
        self._inflight: Dict[Tuple[str, Hashable], _Flight] = {}
        self.hits = 0
        self.misses = 0

    def get(self, namespace: str, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            return self._store.get((namespace, key), default)

    def contains(self, namespace: str, key: Hashable) -> bool:
        with self._lock:
            return (namespace, key) in self._store

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def stats(self):
        with self._lock:
            return {'entries': len(self._store), 'hits': self.hits, 'misses': self.misses}

    def fetch(self, namespace: str, key: Hashable, compute: Callable[[], Computed]) -> Any:
        return self.fetch_status(namespace, key, compute)[0]

    def fetch_status(self, namespace: str, key: Hashable, compute: Callable[[], Computed]) -> Tuple[Any, bool]:
        """Return ``(value, degraded)`` for ``key``, computing it at most once.

        ``compute`` returns a :class:`Computed`; its value is stored only
        when ``cacheable`` is true. Callers arriving while the same key
        is being computed wait and receive the same value and degraded
        flag (or error). Stored values are never degraded.
        """
        full_key = (namespace, key)
        with self._lock:
            cached = self._store.get(full_key, _MISSING)
            if cached is not _MISSING:
                self.hits += 1
                return cached, False
            flight = self._inflight.get(full_key)
            leader = flight is None
            if leader:
                flight = _Flight()
                self._inflight[full_key] = flight
                self.misses += 1

        if not leader:
            flight.done.wait()
            if flight.error is not None:
                raise flight.error
            return flight.value, flight.degraded

        try:
            computed = compute()
            flight.value = computed.value
            flight.degraded = computed.degraded
            if computed.cacheable:
                with self._lock:
                    self._store[full_key] = computed.value
            return computed.value, computed.degraded
        except BaseException as exc:
            flight.error = exc
            raise
        finally:
            with self._lock:
                self._inflight.pop(full_key, None)
            flight.done.set()
