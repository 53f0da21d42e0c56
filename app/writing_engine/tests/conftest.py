import sys
from pathlib import Path

import pytest

# Ensure repository root is importable when pytest changes working dir
ROOT = Path(__file__).resolve().parents[3]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from app.writing_engine.app import create_app, init_database
from app.writing_engine.models import db, User


@pytest.fixture
def db_app():
    """Application bound to a fresh in-memory database with the default assessment seeded."""
    application = create_app('testing')
    init_database(application)
    with application.app_context():
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture
def learner(db_app):
    user = User(email='learner@example.com', name='Learner')
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def client(db_app, learner):
    test_client = db_app.test_client()
    with test_client.session_transaction() as sess:
        sess['user_id'] = learner.id
    return test_client
