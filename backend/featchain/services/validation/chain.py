import logging
from typing import Callable, Optional, Tuple

from .cache import COLLABORATORS, IDENTITY, RELATION, Computed, ValidationCache, pair_key
from .errors import SourceError
from .identity import CanonicalArtist, ResolvedArtist, ValidationOutcome, ValidationSource, normalize_name

logger = logging.getLogger(__name__)


class ValidationChain:
    """Decides whether a proposed artist exists and collaborated with the previous one.

    MusicBrainz resolves names and is asked first about collaborations;
    Wikidata is the fallback. Source failures never escape: they turn
    into "not found" / "no relation" outcomes flagged as ``degraded``.
    """

    def __init__(self, primary, secondary, cache: Optional[ValidationCache] = None):
        self.primary = primary
        self.secondary = secondary
        self.cache = cache if cache is not None else ValidationCache()

    def validate(self, previous: Optional[CanonicalArtist], proposed_name: str,
                 is_repeat: Optional[Callable[[CanonicalArtist], bool]] = None) -> ValidationOutcome:
        """Resolve ``proposed_name`` and check it against ``previous``.

        When ``is_repeat`` accepts the resolved artist the outcome is returned
        right after resolution; no relation source is queried.
        """
        name = (proposed_name or '').strip()
        try:
            resolved = self.resolve(name)
        except SourceError as exc:
            logger.warning(f"[validate] resolution of {name!r} failed: {exc}")
            return ValidationOutcome(resolved=False, canonical=CanonicalArtist(name), degraded=True)

        if resolved is None:
            return ValidationOutcome(resolved=False, canonical=CanonicalArtist(name))

        canonical = CanonicalArtist(resolved.canonical_name, mbid=resolved.mbid)

        if is_repeat is not None and is_repeat(canonical):
            return ValidationOutcome(resolved=True, canonical=canonical)

        # Opening move: nothing to chain from
        if previous is None:
            return ValidationOutcome(
                resolved=True,
                canonical=canonical,
                relation_holds=True,
                source=ValidationSource.MUSICBRAINZ,
            )

        source, degraded = self.find_relation(previous, canonical)
        if source is None:
            return ValidationOutcome(resolved=True, canonical=canonical, degraded=degraded)

        if source == ValidationSource.WIKIDATA_FALLBACK:
            canonical.qid = self._secondary_id(canonical.name)

        return ValidationOutcome(
            resolved=True,
            canonical=canonical,
            relation_holds=True,
            source=source,
            degenerate_relation=self.is_degenerate(previous, canonical),
            degraded=degraded,
        )

    def resolve(self, name: str) -> Optional[ResolvedArtist]:
        key = normalize_name(name)
        if not key:
            return None
        return self.cache.fetch(IDENTITY, key, lambda: Computed(self.primary.resolve(name)))

    def find_relation(self, previous: CanonicalArtist, candidate: CanonicalArtist) -> Tuple[Optional[ValidationSource], bool]:
        """Return the source confirming a shared recording (or None) and whether a source failed."""
        failures = []

        def answer(source) -> Computed:
            # Nothing computed while a source was failing is kept
            return Computed(source, cacheable=not failures, degraded=bool(failures))

        def compute() -> Computed:
            if previous.mbid and candidate.mbid:
                try:
                    if self.primary.relation_exists(previous.mbid, candidate.mbid):
                        return Computed(ValidationSource.MUSICBRAINZ)
                except SourceError as exc:
                    logger.warning(f"[validate] musicbrainz relation check failed: {exc}")
                    failures.append(exc)
            try:
                if self.secondary.relation_exists(previous.name, candidate.name):
                    return answer(ValidationSource.WIKIDATA_FALLBACK)
            except SourceError as exc:
                logger.warning(f"[validate] wikidata relation check failed: {exc}")
                failures.append(exc)
            return answer(None)

        return self.cache.fetch_status(RELATION, pair_key(previous.dedup_key, candidate.dedup_key), compute)

    def is_degenerate(self, previous: CanonicalArtist, candidate: CanonicalArtist) -> bool:
        """True when the candidate's only known collaborator is ``previous``."""
        if not previous.mbid or not candidate.mbid:
            return False
        try:
            collaborators = self.cache.fetch(
                COLLABORATORS, candidate.mbid,
                lambda: Computed(tuple(self.primary.known_relations(candidate.mbid))),
            )
        except SourceError as exc:
            logger.warning(f"[validate] collaborators of {candidate.mbid} unavailable: {exc}")
            return False
        return len(collaborators) == 1 and collaborators[0].lower() == previous.mbid.lower()

    def _secondary_id(self, name: str) -> Optional[str]:
        try:
            return self.secondary.find_id(name)
        except SourceError as exc:
            logger.info(f"[validate] wikidata id of {name!r} unavailable: {exc}")
            return None
