"""Turn resolution shared by multiplayer games and solo runs.

A proposal goes through ordered guards (status, turn holder, deadline,
attempt budget), then the validation chain, then the repeat / existence
/ relation / degenerate-relation rules. Hard failures (REPEAT, TIMEOUT)
eliminate at once; soft failures (NOT_FOUND, NO_RELATION,
SINGLE_CIRCULAR) cost one attempt and eliminate only when the budget is
spent.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

from featchain.services.validation import ValidationChain, ValidationOutcome
from .errors import GameActionError
from .scoring import ScoringEngine
from .state import Game, GameStatus, InvalidReason, MoveRecord, Player, Run, ScoreBreakdown

logger = logging.getLogger(__name__)

TURN_DURATION_SEC = 30
MAX_ATTEMPTS_PER_TURN = 2

Entity = Union[Game, Run]


class OutcomeKind(str, Enum):
    ACCEPTED = 'accepted'
    RETRY = 'retry'
    ELIMINATED = 'eliminated'
    # Caller error: nothing changed
    REJECTED = 'rejected'


@dataclass
class MoveOutcome:
    kind: OutcomeKind
    message: str
    record: Optional[MoveRecord] = None
    validation: Optional[ValidationOutcome] = None
    score: Optional[ScoreBreakdown] = None
    entity: Optional[dict] = None

    @property
    def accepted(self) -> bool:
        return self.kind == OutcomeKind.ACCEPTED

    @property
    def reason(self) -> Optional[InvalidReason]:
        return self.record.invalid_reason if self.record else None

    def to_dict(self):
        return {
            'kind': self.kind.value,
            'is_valid': self.accepted,
            'message': self.message,
            'move': self.record.to_dict() if self.record else None,
            'validation': self.validation.to_dict() if self.validation else None,
            'scoring': self.score.to_dict() if self.score else None,
        }


def _entity_label(entity: Entity) -> str:
    return f"run={entity.id}" if isinstance(entity, Run) else f"game={entity.id}"


class TurnEngine:
    def __init__(self, validation: ValidationChain, scoring: Optional[ScoringEngine] = None,
                 clock: Callable[[], float] = time.time,
                 turn_duration: float = TURN_DURATION_SEC,
                 max_attempts: int = MAX_ATTEMPTS_PER_TURN,
                 min_players: int = 2):
        self.validation = validation
        self.scoring = scoring or ScoringEngine()
        self.clock = clock
        self.turn_duration = turn_duration
        self.max_attempts = max_attempts
        self.min_players = min_players

    # ---- lifecycle ----

    def start(self, entity: Entity) -> Entity:
        if isinstance(entity, Run):
            if len(entity.players) != 1:
                raise GameActionError('A solo run needs exactly one player')
            if entity.status != GameStatus.IN_PROGRESS or entity.turn_epoch:
                raise GameActionError('This run has already started')
        else:
            if entity.status != GameStatus.WAITING:
                raise GameActionError('The game can only be started from the lobby')
            if len(entity.players) < self.min_players:
                raise GameActionError(f'At least {self.min_players} players are required to start')
            entity.status = GameStatus.IN_PROGRESS
            entity.current_player_index = next(
                (i for i, p in enumerate(entity.players) if not p.is_eliminated), 0
            )
        logger.info(f"[start] {_entity_label(entity)} players={len(entity.players)}")
        return self.start_turn(entity)

    def start_turn(self, entity: Entity) -> Entity:
        """Open a fresh turn for the current holder: new deadline, no attempts used."""
        holder = entity.current_player
        if holder is None or holder.is_eliminated:
            return self.advance(entity)
        now = self.clock()
        entity.turn_started_at = now
        entity.turn_ends_at = now + self.turn_duration
        entity.attempts_used = 0
        entity.turn_epoch += 1
        return entity

    def advance(self, entity: Entity) -> Entity:
        """Hand the turn to the next player still in, round-robin."""
        if entity.status != GameStatus.IN_PROGRESS:
            return entity
        if isinstance(entity, Run):
            return self.start_turn(entity)
        count = len(entity.players)
        for step in range(1, count + 1):
            index = (entity.current_player_index + step) % count
            if not entity.players[index].is_eliminated:
                entity.current_player_index = index
                return self.start_turn(entity)
        return self.finish(entity)

    def eliminate(self, entity: Entity, player: Player, reason: InvalidReason) -> bool:
        """Eliminate ``player``; return True when this ends the game or run."""
        player.is_eliminated = True
        logger.info(f"[eliminate] {_entity_label(entity)} player={player.id} reason={reason.value}")
        if isinstance(entity, Run):
            self.finish(entity, reason=reason)
            return True
        remaining = entity.active_players()
        if len(remaining) <= 1:
            self.finish(entity, winner=remaining[0] if remaining else None)
            return True
        return False

    def finish(self, entity: Entity, reason: Optional[InvalidReason] = None,
               winner: Optional[Player] = None) -> Entity:
        now = self.clock()
        entity.status = GameStatus.FINISHED
        entity.turn_ends_at = None
        entity.attempts_used = 0
        if isinstance(entity, Run):
            entity.ended_at = now
            entity.end_reason = reason
            logger.info(f"[finish] run={entity.id} score={entity.total_score} reason={reason.value if reason else None}")
        else:
            entity.finished_at = now
            entity.winner_id = winner.id if winner else None
            logger.info(f"[finish] game={entity.id} winner={entity.winner_id}")
        return entity

    def is_turn_expired(self, entity: Entity) -> bool:
        return entity.turn_ends_at is not None and self.clock() >= entity.turn_ends_at

    # ---- moves ----

    def submit(self, entity: Entity, player_id: str, artist_name: str) -> MoveOutcome:
        name = (artist_name or '').strip()

        if entity.status != GameStatus.IN_PROGRESS:
            return self.reject(entity, player_id, name, 'The game is not in progress')

        holder = entity.current_player
        if holder is None or holder.id != player_id:
            holder_name = holder.name if holder else 'nobody'
            return self.reject(entity, player_id, name, f"It is not your turn (current player: {holder_name})")
        if holder.is_eliminated:
            return self.reject(entity, player_id, name, 'This player has been eliminated')

        if self.is_turn_expired(entity):
            return self._timeout(entity, holder, name)

        attempt_number = entity.attempts_used + 1
        if attempt_number > self.max_attempts:
            # Soft outcomes eliminate on the last attempt, so this should be unreachable
            logger.warning(f"[attempts-overflow] {_entity_label(entity)} player={holder.id} attempt={attempt_number}")
            return self._hard_elimination(
                entity, holder, name, attempt_number, InvalidReason.OTHER,
                f"Maximum attempts reached. {holder.name} is eliminated.",
            )

        previous = entity.last_artist
        validation = self.validation.validate(previous, name, is_repeat=entity.is_used)
        canonical = validation.canonical

        if validation.resolved and entity.is_used(canonical):
            return self._hard_elimination(
                entity, holder, name, attempt_number, InvalidReason.REPEAT,
                f'"{canonical.name}" has already been played. {holder.name} is eliminated.',
                validation=validation,
            )

        if not validation.resolved:
            return self._soft_rejection(
                entity, holder, name, attempt_number, InvalidReason.NOT_FOUND, validation,
                f'Artist "{name}" not found.',
            )

        if not validation.relation_holds:
            return self._soft_rejection(
                entity, holder, name, attempt_number, InvalidReason.NO_RELATION, validation,
                f'No collaboration found between "{previous.name}" and "{canonical.name}".',
            )

        if validation.degenerate_relation:
            return self._soft_rejection(
                entity, holder, name, attempt_number, InvalidReason.SINGLE_CIRCULAR, validation,
                f'"{canonical.name}" has only one collaboration, with "{previous.name}".',
            )

        return self._accept(entity, holder, name, attempt_number, validation)

    def timeout(self, entity: Entity, expected_epoch: Optional[int] = None) -> Optional[MoveOutcome]:
        """Timer entry point; does nothing unless the targeted turn is still open and overdue."""
        if entity.status != GameStatus.IN_PROGRESS:
            return None
        if expected_epoch is not None and expected_epoch != entity.turn_epoch:
            return None
        if not self.is_turn_expired(entity):
            return None
        holder = entity.current_player
        if holder is None or holder.is_eliminated:
            return None
        return self._timeout(entity, holder, '')

    # ---- outcomes ----

    def _record(self, entity: Entity, player_id: str, name: str, accepted: bool, attempt_number: int,
                reason: Optional[InvalidReason] = None, validation: Optional[ValidationOutcome] = None,
                score: Optional[ScoreBreakdown] = None) -> MoveRecord:
        return MoveRecord(
            player_id=player_id,
            artist_name=name,
            accepted=accepted,
            attempt_number=attempt_number,
            timestamp=self.clock(),
            validation_source=validation.source if validation else None,
            invalid_reason=reason,
            turn=entity.current_turn if isinstance(entity, Run) else None,
            artist=validation.canonical if validation and validation.resolved else None,
            previous_artist=entity.last_artist,
            scoring=score,
        )

    def reject(self, entity: Entity, player_id: str, name: str, message: str) -> MoveOutcome:
        record = self._record(entity, player_id, name, False, entity.attempts_used, InvalidReason.OTHER)
        return MoveOutcome(OutcomeKind.REJECTED, message, record=record, entity=entity.to_dict())

    def _timeout(self, entity: Entity, holder: Player, name: str) -> MoveOutcome:
        # No attempt is consumed and the validation chain is never consulted
        return self._hard_elimination(
            entity, holder, name, entity.attempts_used, InvalidReason.TIMEOUT,
            f"Time is up. {holder.name} is eliminated.",
        )

    def _hard_elimination(self, entity: Entity, holder: Player, name: str, attempt_number: int,
                          reason: InvalidReason, message: str,
                          validation: Optional[ValidationOutcome] = None) -> MoveOutcome:
        record = self._record(entity, holder.id, name, False, attempt_number, reason, validation)
        entity.history.append(record)
        if not self.eliminate(entity, holder, reason):
            self.advance(entity)
        return MoveOutcome(OutcomeKind.ELIMINATED, message, record=record, validation=validation,
                           entity=entity.to_dict())

    def _soft_rejection(self, entity: Entity, holder: Player, name: str, attempt_number: int,
                        reason: InvalidReason, validation: ValidationOutcome, message: str) -> MoveOutcome:
        entity.attempts_used = attempt_number
        record = self._record(entity, holder.id, name, False, attempt_number, reason, validation)
        entity.history.append(record)
        progress = f"attempt {attempt_number}/{self.max_attempts}"

        if attempt_number >= self.max_attempts:
            if not self.eliminate(entity, holder, reason):
                self.advance(entity)
            return MoveOutcome(OutcomeKind.ELIMINATED, f"{message} {holder.name} is eliminated ({progress}).",
                               record=record, validation=validation, entity=entity.to_dict())

        logger.info(f"[retry] {_entity_label(entity)} player={holder.id} reason={reason.value} {progress}")
        return MoveOutcome(OutcomeKind.RETRY, f"{message} Try again ({progress}).",
                           record=record, validation=validation, entity=entity.to_dict())

    def _accept(self, entity: Entity, holder: Player, name: str, attempt_number: int,
                validation: ValidationOutcome) -> MoveOutcome:
        previous = entity.last_artist
        canonical = validation.canonical
        score = None
        if isinstance(entity, Run):
            elapsed = self.clock() - (entity.turn_started_at or entity.started_at)
            score = self.scoring.score(
                previous.mbid if previous else None,
                canonical.mbid,
                entity.current_turn,
                elapsed,
            )

        record = self._record(entity, holder.id, name, True, attempt_number, validation=validation, score=score)
        entity.history.append(record)
        entity.last_artist = canonical
        entity.used_keys.add(canonical.dedup_key)

        source = validation.source.value if validation.source else 'musicbrainz'
        if isinstance(entity, Run):
            entity.total_score += score.final_score
            entity.current_turn += 1
            self.start_turn(entity)
            message = f"Valid move! +{score.final_score} points"
        else:
            self.advance(entity)
            if previous is None:
                message = f'"{canonical.name}" opens the chain.'
            else:
                message = f'Collaboration confirmed between "{previous.name}" and "{canonical.name}" ({source}).'

        logger.info(f"[move] {_entity_label(entity)} player={holder.id} artist={canonical.dedup_key} accepted source={source}")
        return MoveOutcome(OutcomeKind.ACCEPTED, message, record=record, validation=validation,
                           score=score, entity=entity.to_dict())
