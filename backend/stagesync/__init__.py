from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from stagesync.config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def _allowed_origins(flask_app):
    origins = [flask_app.config.get('FRONTEND_URL') or 'http://localhost:5173']
    # Vite dev server is reachable under both hostnames
    for origin in list(origins):
        if 'localhost' in origin:
            origins.append(origin.replace('localhost', '127.0.0.1'))
    return origins


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = _allowed_origins(flask_app)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from stagesync.main import main
    flask_app.register_blueprint(main)

    from stagesync.api.sessions import sessions
    # Mount session routes under /api to match the frontend API client
    flask_app.register_blueprint(sessions, url_prefix='/api/timer-sessions')

    from stagesync.socketio_events import register_socketio_handlers
    register_socketio_handlers(
        namespace=flask_app.config.get('SOCKETIO_NAMESPACE', '/ws'),
        testing=flask_app.config.get('TESTING', False),
    )

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from stagesync.models import Room, Timer
        from stagesync.timing import Appearance
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            room = Room(slug='main-stage', name='Main Stage')
            db.session.add(room)
            db.session.flush()
            seed = [
                ('Opening', Appearance.COUNTDOWN, 10 * 60 * 1000),
                ('Keynote', Appearance.COUNTDOWN, 45 * 60 * 1000),
                ('Q&A', Appearance.COUNTUP, 15 * 60 * 1000),
                ('Clock', Appearance.TIME_OF_DAY, 0),
            ]
            for index, (name, appearance, duration_ms) in enumerate(seed):
                db.session.add(Timer(
                    room_id=room.id,
                    name=name,
                    appearance=appearance,
                    duration_ms=duration_ms,
                    index=index,
                ))

            db.session.commit()
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
