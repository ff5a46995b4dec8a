from flask import Blueprint, current_app, jsonify, request

from featchain import get_services
from featchain.services.games import EntityNotFoundError, GameActionError, OutcomeKind

games = Blueprint('games', __name__)


@games.errorhandler(EntityNotFoundError)
def _not_found(exc):
    return jsonify({'error': str(exc)}), 404


@games.errorhandler(GameActionError)
def _bad_action(exc):
    return jsonify({'error': str(exc)}), exc.status_code


def _payload():
    return request.get_json(silent=True) or {}


@games.route('/create', methods=['POST'])
def create_game():
    data = _payload()
    name = data.get('name') or data.get('host_name')
    if not name:
        return jsonify({'error': 'Player name is required'}), 400
    manager = get_services().games
    manager.cleanup_finished(current_app.config.get('FINISHED_GAME_TTL_SEC', 3600))
    game, host = manager.create_game(name)
    current_app.logger.info(f"[api-create] game={game.id} code={game.code}")
    return jsonify({
        'message': 'New game created!',
        'game_code': game.code,
        'game_id': game.id,
        'player_id': host.id,
        'game': game.to_dict(),
    }), 201


@games.route('/join', methods=['POST'])
def join_game():
    data = _payload()
    game_code = data.get('game_code')
    name = data.get('name')
    if not all([game_code, name]):
        return jsonify({'error': 'Game code and player name are required'}), 400
    player, game, is_reconnection = get_services().games.join_game(str(game_code), name)
    return jsonify({
        'message': 'Welcome back!' if is_reconnection else 'Joined game',
        'player_id': player.id,
        'game_id': game.id,
        'game_code': game.code,
        'is_reconnection': is_reconnection,
        'game': game.to_dict(),
    }), 200 if is_reconnection else 201


@games.route('/reconnect', methods=['POST'])
def reconnect():
    data = _payload()
    game_code, player_id = data.get('game_code'), data.get('player_id')
    if not all([game_code, player_id]):
        return jsonify({'error': 'Game code and player ID are required'}), 400
    player, game = get_services().games.reconnect(str(game_code), player_id)
    return jsonify({'player': player.to_dict(), 'game_id': game.id, 'game': game.to_dict()})


@games.route('/<string:game_code>/state', methods=['GET'])
def get_state(game_code):
    game = get_services().games.get_game_by_code(game_code)
    return jsonify(game.to_dict())


@games.route('/<string:game_code>/start', methods=['POST'])
def start_game(game_code):
    player_id = _payload().get('player_id')
    if not player_id:
        return jsonify({'error': 'Player ID is required'}), 400
    manager = get_services().games
    game = manager.start_game(manager.get_game_by_code(game_code).id, player_id)
    return jsonify({'message': 'Game started', 'game': game.to_dict()})


@games.route('/<string:game_code>/propose', methods=['POST'])
def propose_artist(game_code):
    data = _payload()
    player_id, artist_name = data.get('player_id'), (data.get('artist_name') or '').strip()
    if not all([player_id, artist_name]):
        return jsonify({'error': 'Player ID and artist name are required'}), 400
    manager = get_services().games
    outcome = manager.propose_artist(manager.get_game_by_code(game_code).id, player_id, artist_name)
    body = outcome.to_dict()
    body['game'] = outcome.entity
    if outcome.kind == OutcomeKind.REJECTED:
        body['error'] = outcome.message
        return jsonify(body), 400
    return jsonify(body)


@games.route('/<string:game_code>/reset', methods=['POST'])
def reset_game(game_code):
    player_id = _payload().get('player_id')
    if not player_id:
        return jsonify({'error': 'Player ID is required'}), 400
    manager = get_services().games
    game = manager.reset_game(manager.get_game_by_code(game_code).id, player_id)
    return jsonify({'message': 'Game reset', 'game': game.to_dict()})


@games.route('/<string:game_code>/leave', methods=['POST'])
def leave_game(game_code):
    player_id = _payload().get('player_id')
    if not player_id:
        return jsonify({'error': 'Player ID is required'}), 400
    manager = get_services().games
    game = manager.remove_player(manager.get_game_by_code(game_code).id, player_id)
    return jsonify({'message': 'Left game', 'game': game.to_dict() if game else None})
