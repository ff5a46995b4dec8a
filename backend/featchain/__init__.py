import json
import time
from types import SimpleNamespace

import click
from flask import Flask, current_app
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.exc import SQLAlchemyError

from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def build_services(flask_app, primary=None, secondary=None, clock=None, scheduler=None):
    """Wire cache, validation chain, scoring, engine, timers and registries for one app."""
    from featchain.services.games import EntityLocks, GameManager, ScoringEngine, SoloManager, TurnEngine, TurnScheduler
    from featchain.services.popularity import PopularityLookups
    from featchain.services.validation import build_validation_chain

    config = flask_app.config
    clock = clock or time.time
    chain = build_validation_chain(config, primary=primary, secondary=secondary)
    lookups = PopularityLookups()
    engine = TurnEngine(
        chain,
        ScoringEngine(lookups),
        clock=clock,
        turn_duration=config.get('TURN_DURATION_SEC', 30),
        max_attempts=config.get('MAX_ATTEMPTS_PER_TURN', 2),
        min_players=config.get('MIN_PLAYERS', 2),
    )
    if scheduler is None:
        run_timers = not config.get('TESTING') or config.get('ENABLE_SCHEDULER_IN_TESTS')
        scheduler = TurnScheduler(
            clock=clock,
            heartbeat=config.get('TIMER_HEARTBEAT_SEC', 0),
            enabled=bool(run_timers),
        )
    locks = EntityLocks()
    return SimpleNamespace(
        cache=chain.cache,
        chain=chain,
        lookups=lookups,
        engine=engine,
        scheduler=scheduler,
        games=GameManager(engine, scheduler, locks, code_length=config.get('GAME_CODE_LENGTH', 6)),
        solo=SoloManager(engine, scheduler, locks, seed_artists=config.get('SEED_ARTISTS')),
    )


def get_services(flask_app=None):
    return (flask_app or current_app).extensions['featchain']


def create_app(config_class=Config, **service_overrides):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=origins)
    socketio.init_app(flask_app, cors_allowed_origins=origins)

    services = build_services(flask_app, **service_overrides)
    flask_app.extensions['featchain'] = services

    from featchain import models  # noqa: F401  (registers tables with the metadata)

    from featchain.main import main
    flask_app.register_blueprint(main)

    from featchain.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    from featchain.api.solo import solo
    flask_app.register_blueprint(solo, url_prefix='/api/solo/infinite')

    from featchain.socketio_events import broadcast_state, register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))
    services.games.on_change = broadcast_state

    if flask_app.config.get('PRELOAD_POPULARITY'):
        with flask_app.app_context():
            _preload_popularity(flask_app, services.lookups)

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the popularity lookup tables."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            services.lookups.clear()
        print('Database has been reset!')

    @click.command('popularity-load')
    def popularity_load_command():
        """Reloads the in-memory popularity lookups from the database."""
        from featchain.services.popularity.repository import load_popularity_lookups
        with flask_app.app_context():
            services.lookups.clear()
            load_popularity_lookups(services.lookups)
        print(f"Loaded popularity lookups: {services.lookups.summary()}")

    @click.command('popularity-import')
    @click.argument('path', type=click.Path(exists=True, dir_okay=False))
    @click.option('--tier-version', default='v1', show_default=True, help='Version tag stored with the tiers.')
    def popularity_import_command(path, tier_version):
        """Imports a popularity pipeline export (JSON) into the lookup tables."""
        from featchain.services.popularity.repository import import_popularity_document
        with open(path, encoding='utf-8') as fh:
            document = json.load(fh)
        with flask_app.app_context():
            counts = import_popularity_document(document, tier_version=tier_version)
        print(f"Imported {counts['degrees']} degrees, {counts['tiers']} tiers, {counts['pairs']} pairs")

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(popularity_load_command)
    flask_app.cli.add_command(popularity_import_command)

    return flask_app


def _preload_popularity(flask_app, lookups):
    from featchain.services.popularity.repository import load_popularity_lookups
    try:
        load_popularity_lookups(lookups)
    except SQLAlchemyError as exc:
        # Fresh database without migrations applied yet: scoring falls back to defaults
        db.session.rollback()
        flask_app.logger.warning(f"[popularity-load] skipped: {exc.__class__.__name__}")
