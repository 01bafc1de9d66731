import os
import random

from flask import Flask, current_app
from flask_cors import CORS
from flask_socketio import SocketIO
from config import Config

from impostor.services.broadcast import BroadcastHub
from impostor.services.game import SessionStore

socketio = SocketIO(async_mode=None)


def _allowed_origins(raw):
    if not raw or raw.strip() == '*':
        return '*'
    return [o.strip() for o in raw.split(',') if o.strip()]


def get_store() -> SessionStore:
    return current_app.extensions['session_store']


def get_hub() -> BroadcastHub:
    return current_app.extensions['broadcast_hub']


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = _allowed_origins(flask_app.config.get('CORS_ORIGINS'))
    CORS(flask_app, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    os.makedirs(flask_app.config['UPLOAD_FOLDER'], exist_ok=True)

    # The single game session of this app; handlers reach it via get_store()
    seed = flask_app.config.get('RANDOM_SEED')
    store = SessionStore(
        words=flask_app.config['WORD_LIST'],
        impostor_role=flask_app.config['IMPOSTOR_ROLE'],
        min_players=int(flask_app.config['MIN_PLAYERS']),
        round_points=int(flask_app.config['ROUND_POINTS']),
        history_limit=int(flask_app.config.get('ROUND_HISTORY_LIMIT', 10)),
        rng=random.Random(seed) if seed is not None else None,
    )
    flask_app.extensions['session_store'] = store
    flask_app.extensions['broadcast_hub'] = BroadcastHub(store)

    from impostor.main import main
    flask_app.register_blueprint(main)

    from impostor.api.game import game
    flask_app.register_blueprint(game, url_prefix='/api')

    from impostor.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    flask_app.logger.info(
        f"[startup] min_players={flask_app.config['MIN_PLAYERS']} words={len(flask_app.config['WORD_LIST'])}"
    )
    return flask_app
