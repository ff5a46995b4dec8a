from typing import Any, Dict, Optional

from flask import current_app, request
from flask_socketio import emit, join_room, leave_room

from featchain import get_services, socketio
from featchain.services.games import GameError, MoveOutcome
from featchain.services.games.state import Game

NAMESPACE = '/ws'

_sid_to_ctx: Dict[str, Dict[str, Any]] = {}


def _get_sid() -> str:
    return request.sid  # type: ignore


def _room(game_code: str) -> str:
    return f"game:{game_code}"


def broadcast_state(entity, outcome: Optional[MoveOutcome] = None) -> None:
    """Push a game snapshot to everyone in its room; may run from a timer task."""
    if not isinstance(entity, Game):
        return
    socketio.emit('state_update', {
        'game_code': entity.code,
        'game': entity.to_dict(),
        'outcome': outcome.to_dict() if outcome else None,
    }, to=_room(entity.code), namespace=NAMESPACE)


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect():
    _sid_to_ctx.pop(_get_sid(), None)


def handle_join_game(data):
    data = data or {}
    game_code = str(data.get('game_code') or '').strip()
    player_id = data.get('player_id')
    if not game_code:
        emit('error', {'message': 'game_code is required'})
        return
    manager = get_services().games
    try:
        if player_id:
            _, game = manager.reconnect(game_code, player_id)
        else:
            game = manager.get_game_by_code(game_code)
    except GameError as exc:
        emit('error', {'message': str(exc)})
        return
    room = _room(game.code)
    join_room(room)
    _sid_to_ctx[_get_sid()] = {'game_code': game.code, 'player_id': player_id}
    emit('joined', {'room': room, 'game': game.to_dict()})


def handle_leave_game(data):
    game_code = str((data or {}).get('game_code') or '').strip()
    if not game_code:
        emit('error', {'message': 'game_code is required'})
        return
    room = _room(game_code)
    leave_room(room)
    emit('left', {'room': room})
    ctx = _sid_to_ctx.pop(_get_sid(), None)
    if ctx and ctx.get('player_id') and ctx.get('game_code') == game_code:
        manager = get_services().games
        try:
            manager.remove_player(manager.get_game_by_code(game_code).id, ctx['player_id'])
        except GameError as exc:
            current_app.logger.info(f"[ws-leave] game_code={game_code} {exc}")


def handle_propose_artist(data):
    data = data or {}
    ctx = _sid_to_ctx.get(_get_sid(), {})
    game_code = str(data.get('game_code') or ctx.get('game_code') or '').strip()
    player_id = data.get('player_id') or ctx.get('player_id')
    artist_name = (data.get('artist_name') or '').strip()
    if not all([game_code, player_id, artist_name]):
        emit('error', {'message': 'game_code, player_id and artist_name are required'})
        return
    manager = get_services().games
    try:
        outcome = manager.propose_artist(manager.get_game_by_code(game_code).id, player_id, artist_name)
    except GameError as exc:
        emit('error', {'message': str(exc)})
        return
    # Accepted and failed moves also reach the room through broadcast_state
    emit('move_result', outcome.to_dict())


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    handlers = {
        'connect': handle_connect,
        'disconnect': handle_disconnect,
        'join_game': handle_join_game,
        'leave_game': handle_leave_game,
        'propose_artist': handle_propose_artist,
        'ping': handle_ping,
    }
    namespaces = [NAMESPACE, '/'] if testing else [NAMESPACE]
    for namespace in namespaces:
        for event, handler in handlers.items():
            socketio.on_event(event, handler, namespace=namespace)
