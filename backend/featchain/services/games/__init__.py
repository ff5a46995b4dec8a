"""Game domain services: turn engine, scoring, timers and registries.

This package contains the game mechanics imported by HTTP routes and
socket handlers, keeping transport concerns separated from the rules.
"""

from .engine import MoveOutcome, OutcomeKind, TurnEngine
from .errors import EntityNotFoundError, GameActionError, GameError
from .manager import GameManager, SoloManager
from .scheduler import EntityLocks, TurnScheduler, TurnTimer
from .scoring import ScoringEngine
from .state import Game, GameStatus, InvalidReason, MoveRecord, Player, Run
