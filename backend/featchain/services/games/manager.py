"""In-memory registries of games and solo runs.

Managers own entity lookup, locking and timer arming; every rule about
what a move does lives in :class:`TurnEngine`.
"""

import logging
import random
import uuid
from typing import Callable, Dict, Optional, Tuple

from featchain.services.validation import CanonicalArtist, SourceError
from .engine import MoveOutcome, OutcomeKind, TurnEngine
from .errors import EntityNotFoundError, GameActionError
from .scheduler import EntityLocks, TurnScheduler
from .state import Game, GameStatus, Player, Run, new_game, new_run

logger = logging.getLogger(__name__)

BUSY_MESSAGE = 'A move is already being validated'

ChangeListener = Callable[[object, Optional[MoveOutcome]], None]


def _new_id() -> str:
    return uuid.uuid4().hex


class _EntityManager:
    """Shared locking and timer plumbing for games and runs."""

    kind = 'entity'

    def __init__(self, engine: TurnEngine, scheduler: TurnScheduler, locks: Optional[EntityLocks] = None,
                 on_change: Optional[ChangeListener] = None):
        self.engine = engine
        self.scheduler = scheduler
        self.locks = locks or EntityLocks()
        self.on_change = on_change
        self._entities: Dict[str, object] = {}

    def _get(self, entity_id):
        entity = self._entities.get(entity_id)
        if entity is None:
            raise EntityNotFoundError(f'{self.kind.capitalize()} not found')
        return entity

    def _arm(self, entity) -> None:
        """Keep exactly one timer per open turn; a retry keeps the running one."""
        if entity.status != GameStatus.IN_PROGRESS or entity.turn_ends_at is None:
            self.scheduler.cancel(entity.id)
            return
        pending = self.scheduler.pending(entity.id)
        if pending is not None and pending.epoch == entity.turn_epoch:
            return
        self.scheduler.schedule(entity.id, entity.turn_epoch, entity.turn_ends_at, self._on_timer)

    def _on_timer(self, entity_id: str, epoch: int) -> Optional[MoveOutcome]:
        with self.locks.hold(entity_id):
            entity = self._entities.get(entity_id)
            if entity is None:
                return None
            outcome = self.engine.timeout(entity, epoch)
            if outcome is None:
                logger.info(f"[timer-abort] {self.kind}={entity_id} epoch={epoch} turn already resolved")
                return None
            self._arm(entity)
        self._notify(entity, outcome)
        return outcome

    def _submit(self, entity, player_id: str, artist_name: str) -> MoveOutcome:
        with self.locks.hold(entity.id, blocking=False) as acquired:
            if not acquired:
                logger.info(f"[busy] {self.kind}={entity.id} player={player_id}")
                return self.engine.reject(entity, player_id, (artist_name or '').strip(), BUSY_MESSAGE)
            outcome = self.engine.submit(entity, player_id, artist_name)
            if outcome.kind != OutcomeKind.REJECTED:
                self._arm(entity)
        if outcome.kind != OutcomeKind.REJECTED:
            self._notify(entity, outcome)
        return outcome

    def _notify(self, entity, outcome: Optional[MoveOutcome]) -> None:
        if self.on_change is not None:
            self.on_change(entity, outcome)

    def _drop(self, entity_id: str) -> None:
        self.scheduler.cancel(entity_id)
        self._entities.pop(entity_id, None)
        self.locks.discard(entity_id)

    def cleanup_finished(self, max_age_sec: float) -> int:
        """Forget finished entities older than ``max_age_sec``; returns how many went."""
        cutoff = self.engine.clock() - max_age_sec
        stale = [
            entity_id for entity_id, entity in list(self._entities.items())
            if entity.status == GameStatus.FINISHED and (self._finished_at(entity) or 0) <= cutoff
        ]
        for entity_id in stale:
            self._drop(entity_id)
        if stale:
            logger.info(f"[cleanup] removed {len(stale)} finished {self.kind}(s)")
        return len(stale)

    def _finished_at(self, entity) -> Optional[float]:
        raise NotImplementedError

    def __len__(self):
        return len(self._entities)


class GameManager(_EntityManager):
    kind = 'game'

    def __init__(self, engine: TurnEngine, scheduler: TurnScheduler, locks: Optional[EntityLocks] = None,
                 on_change: Optional[ChangeListener] = None, code_length: int = 6, rng=None):
        super().__init__(engine, scheduler, locks, on_change)
        self.code_length = code_length
        self.rng = rng or random.Random()
        self._codes: Dict[str, str] = {}

    def _generate_code(self) -> str:
        low, high = 10 ** (self.code_length - 1), 10 ** self.code_length - 1
        while True:
            code = str(self.rng.randint(low, high))
            if code not in self._codes:
                return code

    def create_game(self, host_name: str) -> Tuple[Game, Player]:
        name = (host_name or '').strip()
        if not name:
            raise GameActionError('Player name is required')
        host = Player(id=_new_id(), name=name)
        game = new_game(_new_id(), host, code=self._generate_code())
        game.created_at = self.engine.clock()
        self._entities[game.id] = game
        self._codes[game.code] = game.id
        logger.info(f"[create] game={game.id} code={game.code} host={host.id}")
        return game, host

    def get_game(self, game_id: str) -> Game:
        return self._get(game_id)

    def get_game_by_code(self, code: str) -> Game:
        game_id = self._codes.get((code or '').strip())
        if game_id is None:
            raise EntityNotFoundError('Game not found')
        return self._get(game_id)

    def get_game_code(self, game_id: str) -> str:
        return self._get(game_id).code

    def _find(self, code_or_id: str) -> Game:
        key = (code_or_id or '').strip()
        if key in self._codes:
            return self.get_game_by_code(key)
        return self._get(key)

    def join_game(self, code_or_id: str, player_name: str) -> Tuple[Player, Game, bool]:
        """Add a player, or hand back the existing one when the name is already seated."""
        game = self._find(code_or_id)
        name = (player_name or '').strip()
        if not name:
            raise GameActionError('Player name is required')

        with self.locks.hold(game.id):
            existing = next((p for p in game.players if p.name.lower() == name.lower()), None)
            if existing is not None:
                logger.info(f"[join] game={game.id} player={existing.id} reconnection")
                return existing, game, True
            if game.status != GameStatus.WAITING:
                raise GameActionError('Game has already started')
            player = Player(id=_new_id(), name=name)
            game.players.append(player)
        logger.info(f"[join] game={game.id} player={player.id} players={len(game.players)}")
        self._notify(game, None)
        return player, game, False

    def reconnect(self, code: str, player_id: str) -> Tuple[Player, Game]:
        game = self.get_game_by_code(code)
        player = game.find_player(player_id)
        if player is None:
            raise EntityNotFoundError('Player not found in this game')
        logger.info(f"[reconnect] game={game.id} player={player.id}")
        return player, game

    def start_game(self, game_id: str, requester_id: str) -> Game:
        game = self._get(game_id)
        with self.locks.hold(game.id):
            if game.host is None or game.host.id != requester_id:
                raise GameActionError('Only the host can start the game', status_code=403)
            self.engine.start(game)
            self._arm(game)
        self._notify(game, None)
        return game

    def propose_artist(self, game_id: str, player_id: str, artist_name: str) -> MoveOutcome:
        return self._submit(self._get(game_id), player_id, artist_name)

    def reset_game(self, game_id: str, requester_id: str) -> Game:
        """Back to the lobby with the same players; only once the game is over."""
        game = self._get(game_id)
        with self.locks.hold(game.id):
            if game.host is None or game.host.id != requester_id:
                raise GameActionError('Only the host can reset the game', status_code=403)
            if game.status != GameStatus.FINISHED:
                raise GameActionError('Only a finished game can be reset')
            self.scheduler.cancel(game.id)
            for player in game.players:
                player.is_eliminated = False
            game.status = GameStatus.WAITING
            game.history = []
            game.last_artist = None
            game.used_keys = set()
            game.current_player_index = 0
            game.turn_started_at = None
            game.turn_ends_at = None
            game.attempts_used = 0
            game.winner_id = None
            game.finished_at = None
        logger.info(f"[reset] game={game.id}")
        self._notify(game, None)
        return game

    def remove_player(self, game_id: str, player_id: str) -> Optional[Game]:
        """Leave a lobby. Once the game runs, a departed player simply times out."""
        game = self._get(game_id)
        with self.locks.hold(game.id):
            if game.status != GameStatus.WAITING:
                return game
            game.players = [p for p in game.players if p.id != player_id]
            empty = not game.players
        if empty:
            self._drop(game.id)
            logger.info(f"[leave] game={game.id} empty, removed")
            return None
        logger.info(f"[leave] game={game.id} player={player_id}")
        self._notify(game, None)
        return game

    def _drop(self, entity_id: str) -> None:
        game = self._entities.get(entity_id)
        if game is not None:
            self._codes.pop(game.code, None)
        super()._drop(entity_id)

    def _finished_at(self, entity) -> Optional[float]:
        return entity.finished_at


class SoloManager(_EntityManager):
    kind = 'run'

    def __init__(self, engine: TurnEngine, scheduler: TurnScheduler, locks: Optional[EntityLocks] = None,
                 on_change: Optional[ChangeListener] = None, seed_artists=None, rng=None):
        super().__init__(engine, scheduler, locks, on_change)
        self.seed_artists = list(seed_artists or [])
        self.rng = rng or random.Random()

    def _pick_seed(self) -> CanonicalArtist:
        if not self.seed_artists:
            raise GameActionError('No seed artists configured')
        name = self.rng.choice(self.seed_artists)
        try:
            resolved = self.engine.validation.resolve(name)
        except SourceError as exc:
            logger.warning(f"[seed] could not resolve {name!r}: {exc}")
            resolved = None
        if resolved is None:
            return CanonicalArtist(name)
        return CanonicalArtist(resolved.canonical_name, mbid=resolved.mbid)

    def start_run(self, player_name: str) -> Run:
        name = (player_name or '').strip() or 'Player'
        run = new_run(_new_id(), Player(id=_new_id(), name=name), self._pick_seed())
        run.started_at = self.engine.clock()
        self._entities[run.id] = run
        with self.locks.hold(run.id):
            self.engine.start(run)
            self._arm(run)
        logger.info(f"[create] run={run.id} seed={run.seed_artist.dedup_key}")
        return run

    def get_run(self, run_id: str) -> Run:
        return self._get(run_id)

    def make_move(self, run_id: str, artist_name: str) -> MoveOutcome:
        run = self._get(run_id)
        return self._submit(run, run.player.id, artist_name)

    def delete_run(self, run_id: str) -> None:
        self._get(run_id)
        self._drop(run_id)
        logger.info(f"[delete] run={run_id}")

    def _finished_at(self, entity) -> Optional[float]:
        return entity.ended_at
