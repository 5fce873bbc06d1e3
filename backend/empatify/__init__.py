from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def _allowed_origins(config) -> list[str]:
    raw = config.get('CORS_ORIGINS') or ''
    return [o.strip().rstrip('/') for o in raw.split(',') if o.strip()]


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = _allowed_origins(flask_app.config)

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # App-scoped Spotify client-credentials token cache
    from empatify.services.spotify.tokens import TokenCache
    flask_app.extensions['spotify_token_cache'] = TokenCache()

    from empatify.main import main
    flask_app.register_blueprint(main)

    from empatify.api.lobbies import lobbies
    flask_app.register_blueprint(lobbies, url_prefix='/api/lobby')

    from empatify.api.users import users
    flask_app.register_blueprint(users, url_prefix='/api/user')

    from empatify.api.messages import messages
    flask_app.register_blueprint(messages, url_prefix='/api/messages')

    from empatify.api.spotify import spotify
    flask_app.register_blueprint(spotify, url_prefix='/api/spotify')

    from empatify.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @flask_app.errorhandler(401)
    def unauthorized(_err):
        return jsonify({'error': 'Authentication required', 'code': 'UNAUTHORIZED'}), 401

    @flask_app.errorhandler(404)
    def not_found(_err):
        return jsonify({'error': 'Not found', 'code': 'NOT_FOUND'}), 404

    from empatify.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, user_id)

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed users
            for name in ['testuser1', 'testuser2', 'testuser3']:
                user = User(email=f'{name}@example.com', name=name)
                user.set_password('password')
                db.session.add(user)

            db.session.commit()
            flask_app.logger.info('[db-reset] database recreated and seeded')
            print('Database has been reset and seeded!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
