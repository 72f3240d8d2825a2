import sys
import os
import pytest

# ensure repository root is on sys.path so `rehearsal_app` package can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

# Ensure tests have a DATABASE_URL so importing app.config doesn't raise
os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')
from rehearsal_app.app import create_app, db
from rehearsal_app.app.config import Config
from rehearsal_app.app.models import Band, User


# Config declares Final attributes, so the test settings live in a standalone class
class TestConfig:
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SECRET_KEY = getattr(Config, "SECRET_KEY", "test-secret")
    SOCKETIO_ASYNC_MODE = "threading"
    CLIENT_URL = "http://localhost:3000"
    RECURRENCE_HORIZON_DAYS = 28
    MAX_OCCURRENCES = 500
    MAX_CONTENT_LENGTH = 10 * 1024
    LOG_LEVEL = "WARNING"


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
    # requests push their own app context; Flask-Login keeps the current user on g
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield app
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    """Create a user and return its id."""
    def _make(email, password='secret123', first_name='Test', last_name='User'):
        with app.app_context():
            u = User.create(email=email, password=password, first_name=first_name, last_name=last_name)
            db.session.add(u)
            db.session.commit()
            return u.id
    return _make


@pytest.fixture
def make_band(app):
    """Create a band administered by the given user id and return the band id."""
    def _make(owner_id, name='The Testers'):
        with app.app_context():
            band = Band(name=name, created_by=owner_id)
            db.session.add(band)
            band.add_member(db.session.get(User, owner_id), role='admin', status='active')
            db.session.commit()
            return band.id
    return _make


@pytest.fixture
def add_member(app):
    """Attach a user to a band directly (no invitation round trip)."""
    def _add(band_id, user_id, role='member', status='active'):
        with app.app_context():
            band = db.session.get(Band, band_id)
            band.add_member(db.session.get(User, user_id), role=role, status=status)
            db.session.commit()
    return _add


@pytest.fixture
def login(app):
    """Return a test client logged in as the given email."""
    def _login(email, password='secret123'):
        c = app.test_client()
        rv = c.post('/api/auth/login', json={'email': email, 'password': password})
        assert rv.status_code == 200, rv.get_json()
        return c
    return _login
