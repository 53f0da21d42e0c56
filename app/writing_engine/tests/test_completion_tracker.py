import threading
from unittest import mock

import pytest
from flask import Flask
from sqlalchemy.exc import IntegrityError, OperationalError

from app.writing_engine.app import create_app, init_database
from app.writing_engine.config import TestingConfig
from app.writing_engine.models import CompletedExercise, User, db
from app.writing_engine.services.completion_tracker import (
    CompletionStatus,
    CompletionTracker,
    InMemoryCompletionStore,
    SqlCompletionStore,
)
from app.writing_engine.services.errors import InvalidInput, PersistenceConflict

BEGINNER = "Beginner (A1-A2)"


@pytest.fixture
def plain_app():
    app = Flask(__name__)
    with app.app_context():
        yield app


def test_concurrent_duplicates_complete_exactly_once(plain_app):
    tracker = CompletionTracker(InMemoryCompletionStore())
    barrier = threading.Barrier(8)
    outcomes = []
    lock = threading.Lock()

    def worker(ref):
        with plain_app.app_context():
            barrier.wait()
            status = tracker.mark_completed(123, BEGINNER, 0, ref)
        with lock:
            outcomes.append(status)

    threads = [threading.Thread(target=worker, args=(ref,)) for ref in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count(CompletionStatus.COMPLETED) == 1
    assert outcomes.count(CompletionStatus.ALREADY_COMPLETED) == 7
    assert tracker.list_completed(123, BEGINNER) == {0}


def test_in_memory_tracker_scopes_by_user_and_level(plain_app):
    tracker = CompletionTracker(InMemoryCompletionStore())

    assert tracker.mark_completed(1, BEGINNER, 0) is CompletionStatus.COMPLETED
    assert tracker.mark_completed(1, BEGINNER, 2) is CompletionStatus.COMPLETED
    assert tracker.mark_completed(2, BEGINNER, 0) is CompletionStatus.COMPLETED
    assert tracker.mark_completed(1, "Advanced (C1-C2)", 0) is CompletionStatus.COMPLETED

    assert tracker.list_completed(1, BEGINNER) == {0, 2}
    assert tracker.is_completed(1, BEGINNER, 2)
    assert not tracker.is_completed(1, BEGINNER, 1)
    assert tracker.list_completed(3, BEGINNER) == set()


def test_short_level_name_is_the_same_level(plain_app):
    tracker = CompletionTracker(InMemoryCompletionStore())
    assert tracker.mark_completed(1, "Beginner", 4) is CompletionStatus.COMPLETED
    assert tracker.mark_completed(1, BEGINNER, 4) is CompletionStatus.ALREADY_COMPLETED


@pytest.mark.parametrize("level, index", [
    ("Expert", 0),
    ("", 0),
    (None, 0),
    (BEGINNER, -1),
    (BEGINNER, "3"),
    (BEGINNER, True),
])
def test_invalid_level_or_index_raises(plain_app, level, index):
    tracker = CompletionTracker(InMemoryCompletionStore())
    with pytest.raises(InvalidInput):
        tracker.mark_completed(1, level, index)


def test_sql_store_duplicate_is_already_completed(db_app, learner):
    tracker = CompletionTracker(SqlCompletionStore())

    assert tracker.mark_completed(learner.id, BEGINNER, 0) is CompletionStatus.COMPLETED
    assert tracker.mark_completed(learner.id, BEGINNER, 0) is CompletionStatus.ALREADY_COMPLETED
    assert tracker.mark_completed(learner.id, BEGINNER, 1) is CompletionStatus.COMPLETED

    assert CompletedExercise.query.filter_by(user_id=learner.id).count() == 2
    assert tracker.list_completed(learner.id, BEGINNER) == {0, 1}
    assert tracker.is_completed(learner.id, BEGINNER, 1)
    assert not tracker.is_completed(learner.id, BEGINNER, 5)


@pytest.fixture
def file_db_app(tmp_path, monkeypatch):
    """Application on a file-backed SQLite database so each thread gets its own connection."""
    monkeypatch.setattr(TestingConfig, "SQLALCHEMY_DATABASE_URI", f"sqlite:///{tmp_path / 'completions.db'}")
    application = create_app("testing")
    init_database(application)
    with application.app_context():
        yield application
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def test_sql_store_concurrent_duplicates_complete_exactly_once(file_db_app):
    user = User(email="racer@example.com")
    db.session.add(user)
    db.session.commit()
    user_id = user.id

    tracker = CompletionTracker(SqlCompletionStore())
    barrier = threading.Barrier(8)
    outcomes = []
    lock = threading.Lock()

    def worker():
        with file_db_app.app_context():
            barrier.wait()
            status = tracker.mark_completed(user_id, BEGINNER, 0, None)
        with lock:
            outcomes.append(status)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count(CompletionStatus.COMPLETED) == 1
    assert outcomes.count(CompletionStatus.ALREADY_COMPLETED) == 7
    assert CompletedExercise.query.filter_by(user_id=user_id).count() == 1
    assert tracker.list_completed(user_id, BEGINNER) == {0}


def test_sql_store_non_unique_integrity_error_is_a_conflict():
    session = mock.Mock()
    session.commit.side_effect = IntegrityError("INSERT", {}, Exception("FOREIGN KEY constraint failed"))

    with pytest.raises(PersistenceConflict):
        SqlCompletionStore(session=session).insert(1, BEGINNER, 0, None)
    session.rollback.assert_called_once()


def test_sql_store_operational_error_is_a_conflict():
    session = mock.Mock()
    session.commit.side_effect = OperationalError("INSERT", {}, Exception("database is locked"))

    with pytest.raises(PersistenceConflict):
        SqlCompletionStore(session=session).insert(1, BEGINNER, 0, None)
    session.rollback.assert_called_once()
