import os
import sys
import pytest

# Ensure the backend root (containing the `empatify` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from empatify import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    BCRYPT_LOG_ROUNDS = 4
    DEFAULT_MAX_ROUNDS = 5
    MAX_ROUNDS_LIMIT = 10
    LOBBY_POLL_INTERVAL_MS = 3000
    SPOTIFY_CLIENT_ID = 'test-client-id'
    SPOTIFY_CLIENT_SECRET = 'test-client-secret'
    SPOTIFY_REDIRECT_URI = 'http://localhost:5000/api/spotify/callback'
    SPOTIFY_TIMEOUT_SEC = 5
    CORS_ORIGINS = 'http://localhost:3000'


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import empatify.models  # noqa: F401
        db.create_all()
    # No context is held open here: each request pushes its own, so
    # flask.g (and the logged-in user cached on it) stays per client.
    # Tests that touch db.session directly open a context themselves.
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def make_user(flask_app):
    """Register a user on a fresh test client and return ``(client, user_dict)``.

    Every user gets their own client so session cookies do not mix.
    """
    def _make(name, password='password', avatar_url=None):
        user_client = flask_app.test_client()
        res = user_client.post('/register', json={
            'email': f'{name}@example.com',
            'name': name,
            'password': password,
            'avatarUrl': avatar_url,
        })
        assert res.status_code == 201, res.get_json()
        return user_client, res.get_json()['user']
    return _make


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')
