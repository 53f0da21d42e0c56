"""Exactly-once completion records per (user, level, exercise index)."""
from __future__ import annotations

import enum
import threading
from typing import Dict, Optional, Protocol, Set, Tuple

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..models import CompletedExercise, db
from .errors import InvalidInput, PersistenceConflict
from .types import canonical_level

UNIQUE_CONSTRAINT_NAME = 'uq_user_level_exercise'


class CompletionStatus(enum.Enum):
    COMPLETED = 'completed'
    ALREADY_COMPLETED = 'already_completed'


class CompletionStore(Protocol):
    """Backing store with an atomic insert-if-absent on (user_id, level, index)."""

    def insert(self, user_id: int, level: str, exercise_index: int, analysis_ref: Optional[int]) -> bool:
        """Insert a record and return True, or return False when the triple already exists."""

    def indices(self, user_id: int, level: str) -> Set[int]:
        ...

    def contains(self, user_id: int, level: str, exercise_index: int) -> bool:
        ...


class InMemoryCompletionStore:
    """Process-local store; one lock makes check-and-insert atomic."""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: Dict[Tuple[int, str], Dict[int, Optional[int]]] = {}

    def insert(self, user_id, level, exercise_index, analysis_ref):
        with self._lock:
            completed = self._records.setdefault((user_id, level), {})
            if exercise_index in completed:
                return False
            completed[exercise_index] = analysis_ref
            return True

    def indices(self, user_id, level):
        with self._lock:
            return set(self._records.get((user_id, level), {}))

    def contains(self, user_id, level, exercise_index):
        with self._lock:
            return exercise_index in self._records.get((user_id, level), {})


def _is_uniqueness_violation(exc: IntegrityError) -> bool:
    message = str(getattr(exc, 'orig', exc)).lower()
    pgcode = getattr(getattr(exc, 'orig', None), 'pgcode', None)
    return pgcode == '23505' or 'unique' in message or UNIQUE_CONSTRAINT_NAME in message


class SqlCompletionStore:
    """Store backed by the completed_exercises table and its unique constraint."""

    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        if self._session is not None:
            return self._session
        return db.session

    def insert(self, user_id, level, exercise_index, analysis_ref):
        session = self.session
        session.add(CompletedExercise(
            user_id=user_id,
            level=level,
            exercise_index=exercise_index,
            analysis_id=analysis_ref,
        ))
        try:
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            if _is_uniqueness_violation(exc):
                return False
            raise PersistenceConflict(f'Could not record completion: {exc.orig}') from exc
        except SQLAlchemyError as exc:
            session.rollback()
            raise PersistenceConflict(f'Could not record completion: {exc}') from exc
        return True

    def indices(self, user_id, level):
        rows = self.session.query(CompletedExercise.exercise_index).filter_by(
            user_id=user_id, level=level
        ).all()
        return {row[0] for row in rows}

    def contains(self, user_id, level, exercise_index):
        return self.session.query(CompletedExercise.id).filter_by(
            user_id=user_id, level=level, exercise_index=exercise_index
        ).first() is not None


class CompletionTracker:
    def __init__(self, store: CompletionStore):
        self.store = store

    @staticmethod
    def _validate(level: str, exercise_index: int) -> str:
        resolved = canonical_level(level)
        if resolved is None:
            raise InvalidInput(f'Unknown level: {level!r}')
        if isinstance(exercise_index, bool) or not isinstance(exercise_index, int) or exercise_index < 0:
            raise InvalidInput('Exercise index must be a non-negative integer.')
        return resolved

    def mark_completed(self, user_id: int, level: str, exercise_index: int,
                       analysis_ref: Optional[int] = None) -> CompletionStatus:
        resolved = self._validate(level, exercise_index)
        if self.store.insert(user_id, resolved, exercise_index, analysis_ref):
            current_app.logger.info(
                "User %s completed exercise %s at %s", user_id, exercise_index, resolved
            )
            return CompletionStatus.COMPLETED
        return CompletionStatus.ALREADY_COMPLETED

    def list_completed(self, user_id: int, level: str) -> Set[int]:
        resolved = canonical_level(level)
        if resolved is None:
            raise InvalidInput(f'Unknown level: {level!r}')
        return self.store.indices(user_id, resolved)

    def is_completed(self, user_id: int, level: str, exercise_index: int) -> bool:
        resolved = self._validate(level, exercise_index)
        return self.store.contains(user_id, resolved, exercise_index)


def get_completion_tracker() -> CompletionTracker:
    """Tracker bound to the Flask-SQLAlchemy session of the current app."""
    return CompletionTracker(SqlCompletionStore())
