"""In-memory state for multiplayer games and solo runs.

Everything here is owned and mutated by the turn engine only; callers
receive ``to_dict()`` snapshots.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set

from featchain.services.validation.identity import CanonicalArtist, ValidationSource


class GameStatus(str, Enum):
    WAITING = 'waiting'
    IN_PROGRESS = 'in_progress'
    FINISHED = 'finished'


class InvalidReason(str, Enum):
    REPEAT = 'REPEAT'
    TIMEOUT = 'TIMEOUT'
    NO_RELATION = 'NO_RELATION'
    NOT_FOUND = 'NOT_FOUND'
    SINGLE_CIRCULAR = 'SINGLE_CIRCULAR'
    OTHER = 'OTHER'


@dataclass
class Player:
    id: str
    name: str
    is_eliminated: bool = False

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'is_eliminated': self.is_eliminated}


@dataclass
class ScoreBreakdown:
    base_points: int
    pair_bonus: float
    degree_bonus: float
    category_bonus: float
    time_bonus: float
    chain_bonus: float
    raw_score: float
    final_score: int
    pair_family_count: int
    degree: int
    category: str
    time_spent: int
    chain_length: int

    def to_dict(self):
        return {
            'base_points': self.base_points,
            'pair_bonus': self.pair_bonus,
            'degree_bonus': self.degree_bonus,
            'category_bonus': self.category_bonus,
            'time_bonus': self.time_bonus,
            'chain_bonus': self.chain_bonus,
            'raw_score': self.raw_score,
            'final_score': self.final_score,
            'pair_family_count': self.pair_family_count,
            'degree': self.degree,
            'category': self.category,
            'time_spent': self.time_spent,
            'chain_length': self.chain_length,
        }


@dataclass(frozen=True)
class MoveRecord:
    player_id: str
    artist_name: str
    accepted: bool
    attempt_number: int
    timestamp: float
    validation_source: Optional[ValidationSource] = None
    invalid_reason: Optional[InvalidReason] = None
    # Solo runs keep the resolved pair and the score of the move
    turn: Optional[int] = None
    artist: Optional[CanonicalArtist] = None
    previous_artist: Optional[CanonicalArtist] = None
    scoring: Optional[ScoreBreakdown] = None

    def to_dict(self):
        return {
            'player_id': self.player_id,
            'artist_name': self.artist_name,
            'accepted': self.accepted,
            'attempt_number': self.attempt_number,
            'timestamp': self.timestamp,
            'validation_source': self.validation_source.value if self.validation_source else None,
            'invalid_reason': self.invalid_reason.value if self.invalid_reason else None,
            'turn': self.turn,
            'artist': self.artist.to_dict() if self.artist else None,
            'previous_artist': self.previous_artist.to_dict() if self.previous_artist else None,
            'scoring': self.scoring.to_dict() if self.scoring else None,
        }


@dataclass
class _TurnState:
    """Fields shared by games and runs: the open turn and the chain so far."""
    id: str
    status: GameStatus
    history: List[MoveRecord] = field(default_factory=list)
    last_artist: Optional[CanonicalArtist] = None
    used_keys: Set[str] = field(default_factory=set)
    turn_started_at: Optional[float] = None
    turn_ends_at: Optional[float] = None
    turn_epoch: int = 0
    attempts_used: int = 0

    def is_used(self, artist: CanonicalArtist) -> bool:
        return artist.dedup_key in self.used_keys

    def _turn_dict(self):
        return {
            'id': self.id,
            'status': self.status.value,
            'history': [m.to_dict() for m in self.history],
            'last_artist': self.last_artist.to_dict() if self.last_artist else None,
            'used_artists': sorted(self.used_keys),
            'turn_started_at': self.turn_started_at,
            'turn_ends_at': self.turn_ends_at,
            'attempts_used': self.attempts_used,
        }


@dataclass
class Game(_TurnState):
    code: Optional[str] = None
    players: List[Player] = field(default_factory=list)
    current_player_index: int = 0
    winner_id: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None

    @property
    def host(self) -> Optional[Player]:
        return self.players[0] if self.players else None

    @property
    def current_player(self) -> Optional[Player]:
        if 0 <= self.current_player_index < len(self.players):
            return self.players[self.current_player_index]
        return None

    def active_players(self) -> List[Player]:
        return [p for p in self.players if not p.is_eliminated]

    def find_player(self, player_id: str) -> Optional[Player]:
        return next((p for p in self.players if p.id == player_id), None)

    def to_dict(self):
        payload = self._turn_dict()
        current = self.current_player if self.status == GameStatus.IN_PROGRESS else None
        payload.update({
            'code': self.code,
            'players': [p.to_dict() for p in self.players],
            'current_player_index': self.current_player_index,
            'current_player_id': current.id if current else None,
            'winner_id': self.winner_id,
            'created_at': self.created_at,
            'finished_at': self.finished_at,
        })
        return payload


@dataclass
class Run(_TurnState):
    player: Optional[Player] = None
    seed_artist: Optional[CanonicalArtist] = None
    current_turn: int = 1
    total_score: int = 0
    started_at: float = field(default_factory=time.time)
    ended_at: Optional[float] = None
    end_reason: Optional[InvalidReason] = None

    @property
    def players(self) -> List[Player]:
        return [self.player] if self.player else []

    @property
    def current_player(self) -> Optional[Player]:
        return self.player

    def active_players(self) -> List[Player]:
        return [p for p in self.players if not p.is_eliminated]

    def to_dict(self):
        payload = self._turn_dict()
        payload.update({
            'player': self.player.to_dict() if self.player else None,
            'seed_artist': self.seed_artist.to_dict() if self.seed_artist else None,
            'current_turn': self.current_turn,
            'total_score': self.total_score,
            'started_at': self.started_at,
            'ended_at': self.ended_at,
            'end_reason': self.end_reason.value if self.end_reason else None,
        })
        return payload


def new_game(game_id: str, host: Player, code: Optional[str] = None) -> Game:
    return Game(id=game_id, status=GameStatus.WAITING, code=code, players=[host])


def new_run(run_id: str, player: Player, seed: CanonicalArtist) -> Run:
    """A run starts in progress with the seed already counted as used."""
    return Run(
        id=run_id,
        status=GameStatus.IN_PROGRESS,
        player=player,
        seed_artist=seed,
        last_artist=seed,
        used_keys={seed.dedup_key},
    )
