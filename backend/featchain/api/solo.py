from flask import Blueprint, current_app, jsonify, request

from featchain import get_services
from featchain.services.games import EntityNotFoundError, GameActionError, OutcomeKind

solo = Blueprint('solo', __name__)


@solo.errorhandler(EntityNotFoundError)
def _not_found(exc):
    return jsonify({'error': str(exc)}), 404


@solo.errorhandler(GameActionError)
def _bad_action(exc):
    return jsonify({'error': str(exc)}), exc.status_code


@solo.route('/start', methods=['POST'])
def start_run():
    data = request.get_json(silent=True) or {}
    manager = get_services().solo
    manager.cleanup_finished(current_app.config.get('FINISHED_GAME_TTL_SEC', 3600))
    run = manager.start_run(data.get('name') or data.get('player_name'))
    return jsonify({'run_id': run.id, 'run': run.to_dict()}), 201


@solo.route('/<string:run_id>', methods=['GET'])
def get_run(run_id):
    return jsonify(get_services().solo.get_run(run_id).to_dict())


@solo.route('/<string:run_id>/move', methods=['POST'])
def make_move(run_id):
    data = request.get_json(silent=True) or {}
    artist_name = (data.get('artist_name') or '').strip()
    if not artist_name:
        return jsonify({'error': 'Artist name is required'}), 400
    outcome = get_services().solo.make_move(run_id, artist_name)
    body = outcome.to_dict()
    body['run'] = outcome.entity
    if outcome.kind == OutcomeKind.REJECTED:
        body['error'] = outcome.message
        return jsonify(body), 400
    return jsonify(body)


@solo.route('/<string:run_id>', methods=['DELETE'])
def delete_run(run_id):
    get_services().solo.delete_run(run_id)
    return jsonify({'message': 'Run deleted'})
