import itertools
import os
import random
import sys
import pytest

# Ensure the project root (containing the `impostor` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from config import Config
from impostor import create_app, socketio
from impostor.services.game import SessionStore


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    CORS_ORIGINS = '*'
    MIN_PLAYERS = 3
    ROUND_POINTS = 100
    WORD_LIST = ['lion', 'tiger', 'elephant']
    IMPOSTOR_ROLE = 'Impostor'
    RANDOM_SEED = 7


class PickRng:
    """Stand-in for random.Random that makes round setup predictable."""

    def __init__(self, word_index=0, player_index=0):
        self.word_index = word_index
        self.player_index = player_index

    def choice(self, seq):
        if seq and isinstance(seq[0], str):
            return seq[self.word_index]
        return seq[self.player_index]


def make_store(rng=None, **kwargs):
    counter = itertools.count(1)
    return SessionStore(
        words=['lion', 'tiger', 'elephant'],
        rng=rng or random.Random(1234),
        id_factory=lambda: f"id{next(counter)}",
        **kwargs
    )


def register(store, *names):
    return [store.register_player(name, f"/uploads/{name.lower()}.png") for name in names]


@pytest.fixture()
def store():
    return make_store()


@pytest.fixture()
def store_factory():
    return make_store


@pytest.fixture()
def join():
    return register


@pytest.fixture()
def pick_rng():
    return PickRng


@pytest.fixture()
def flask_app(tmp_path):
    class _Config(TestConfig):
        UPLOAD_FOLDER = str(tmp_path / 'uploads')

    application = create_app(_Config)
    with application.app_context():
        yield application
    application.extensions['broadcast_hub'].close()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def test_config():
    return TestConfig
