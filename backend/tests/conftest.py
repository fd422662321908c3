import os
import sys
from types import SimpleNamespace

import pytest

# Ensure the backend root (containing the `stagesync` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from stagesync import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    FRONTEND_URL = 'http://localhost:5173'
    SOCKETIO_NAMESPACE = '/ws'
    PAUSE_SKEW_TOLERANCE_MS = 5000


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import stagesync.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def seeded(flask_app):
    """Two rooms: a countdown and a countup in the main room, one countdown on the side."""
    from stagesync.models import Room, Timer

    main = Room(slug='main-stage', name='Main Stage')
    side = Room(slug='side-stage', name='Side Stage')
    db.session.add_all([main, side])
    db.session.flush()
    countdown = Timer(room_id=main.id, name='Keynote', appearance='COUNTDOWN', duration_ms=600000, index=0)
    countup = Timer(room_id=main.id, name='Q&A', appearance='COUNTUP', duration_ms=300000, index=1)
    side_timer = Timer(room_id=side.id, name='Workshop', appearance='COUNTDOWN', duration_ms=120000, index=0)
    db.session.add_all([countdown, countup, side_timer])
    db.session.commit()
    return SimpleNamespace(
        room_id=main.id,
        countdown=countdown.id,
        countup=countup.id,
        side_room_id=side.id,
        side_timer=side_timer.id,
    )


@pytest.fixture()
def sio_factory(flask_app):
    clients = []

    def make():
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            namespace='/ws'
        )
        clients.append(test_client)
        return test_client

    yield make
    for test_client in clients:
        if test_client.is_connected('/ws'):
            test_client.disconnect(namespace='/ws')


@pytest.fixture()
def sio_client(sio_factory):
    return sio_factory()
