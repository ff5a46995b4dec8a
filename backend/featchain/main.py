from flask import Blueprint, jsonify

from featchain import get_services

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Featchain API', 'status': 'running'})


@main.route('/health')
def health():
    services = get_services()
    return jsonify({
        'status': 'ok',
        'games': len(services.games),
        'runs': len(services.solo),
        'validation_cache': services.cache.stats(),
        'popularity': services.lookups.summary(),
    })
