import os
import sys
import pytest

# Ensure the backend root (containing the `app` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from app import create_app, db, socketio
from app.models import User
from app.services.session import registry


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4
    ACTIVE_SESSION_CHANNEL = 'active-session'
    LEADER_SLOT_KEY = 'primary-tab'
    LEADER_LEASE_SEC = 0
    LEADER_CLEAR_ON_START = False
    LEADER_RELEASE_ON_CLOSE = True
    XP_TABLE_PATH = None
    XP_MAX_TICK_SEC = 60
    STONE_GROWTH_SEC = 60
    STONE_MAX_TICK_SEC = 60
    ATTENDANCE_REWARD = 100
    ATTENDANCE_UTC_OFFSET_HOURS = 9


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    registry.reset()
    # Contexts are pushed per request; a context held open across the test
    # would share flask_login's cached user between clients.
    with application.app_context():
        db.create_all()
        for username in ('alice', 'bob'):
            user = User(username=username)
            user.set_password('password')
            db.session.add(user)
        db.session.commit()
    yield application
    with application.app_context():
        registry.reset()
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def login_as(flask_app):
    """Return an HTTP client logged in as the given user; its cookies authenticate that user's tabs."""
    def _login(username, password='password'):
        http_client = flask_app.test_client()
        res = http_client.post('/login', json={'username': username, 'password': password})
        assert res.status_code == 200
        return http_client
    return _login


@pytest.fixture()
def alice(login_as):
    return login_as('alice')


@pytest.fixture()
def open_tab(flask_app):
    """Factory connecting a Socket.IO test client, one per browser tab."""
    opened = []

    def _open(http_client=None, visibility='visible'):
        tab = socketio.test_client(
            flask_app,
            namespace='/ws',
            auth={'visibility': visibility},
            flask_test_client=http_client,
        )
        opened.append(tab)
        return tab

    yield _open
    for tab in opened:
        try:
            if tab.is_connected('/ws'):
                tab.disconnect(namespace='/ws')
        except Exception:
            pass
