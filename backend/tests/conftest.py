import os
import sys
import pytest

# Ensure the backend root (containing the `poolclock` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from poolclock import create_app, socketio
from poolclock.services.clocks import registry as clock_registry, scheduler as clock_scheduler


MASTER_KEY = 'test-master-key'


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    MASTER_KEY = MASTER_KEY
    SHOT_CLOCK_LIMIT_SEC = 60
    GAME_CLOCK_LIMIT_SEC = 1200
    TICK_INTERVAL_SEC = 1.0
    SUBSCRIBER_QUEUE_SIZE = 32
    STREAM_KEEPALIVE_SEC = 0.05
    CORS_ORIGINS = ['http://localhost:5173']


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    clock_registry.clear()
    yield application
    clock_registry.clear()


@pytest.fixture()
def registry(flask_app):
    return clock_registry


@pytest.fixture()
def scheduler(flask_app):
    return clock_scheduler


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
