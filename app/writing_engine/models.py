"""SQLAlchemy database models for the writing assessment engine."""
from datetime import datetime, timezone
import sqlite3

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

db = SQLAlchemy()


@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    """Configure SQLite connections for better concurrency."""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.execute("PRAGMA synchronous=NORMAL;")
        cursor.execute("PRAGMA foreign_keys=ON;")
        cursor.execute("PRAGMA busy_timeout=15000;")
        cursor.close()


def utcnow():
    """Get current UTC time."""
    return datetime.now(timezone.utc)


def _isoformat(value):
    return value.isoformat() if value else None


class User(db.Model):
    """Learner account with rolling skill profile and activity counters."""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True, index=True)
    email = db.Column(db.String(255), unique=True, index=True, nullable=False)
    name = db.Column(db.String(255), nullable=True)
    level = db.Column(db.String(50), default='Beginner', nullable=False)
    has_completed_assessment = db.Column(db.Boolean, default=False, nullable=False)

    # Skill profile, updated only through services.skill_profile
    skill_grammar = db.Column(db.Float, default=0.0, nullable=False)
    skill_vocabulary = db.Column(db.Float, default=0.0, nullable=False)
    skill_structure = db.Column(db.Float, default=0.0, nullable=False)
    skill_creativity = db.Column(db.Float, default=0.0, nullable=False)
    skill_clarity = db.Column(db.Float, default=0.0, nullable=False)
    skill_overall = db.Column(db.Float, default=0.0, nullable=False)

    # Activity
    exercises_completed = db.Column(db.Integer, default=0, nullable=False)
    total_words = db.Column(db.Integer, default=0, nullable=False)
    streak_days = db.Column(db.Integer, default=0, nullable=False)
    last_active_date = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationships
    analyses = db.relationship('WritingAnalysis', back_populates='user', cascade='all, delete-orphan')
    completions = db.relationship('CompletedExercise', back_populates='user', cascade='all, delete-orphan')
    placement_attempts = db.relationship('PlacementAttempt', back_populates='user', cascade='all, delete-orphan')

    def __repr__(self):
        return f'<User {self.email}>'

    def skill_values(self):
        return {
            'grammar': self.skill_grammar,
            'vocabulary': self.skill_vocabulary,
            'structure': self.skill_structure,
            'creativity': self.skill_creativity,
            'clarity': self.skill_clarity,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'level': self.level,
            'hasCompletedAssessment': self.has_completed_assessment,
            'skills': dict(self.skill_values(), overallScore=self.skill_overall),
            'activity': {
                'exercisesCompleted': self.exercises_completed,
                'totalWords': self.total_words,
                'streakDays': self.streak_days,
                'lastActiveDate': _isoformat(self.last_active_date),
            },
            'createdAt': _isoformat(self.created_at),
        }


class WritingAnalysis(db.Model):
    """One graded writing submission and the full analysis returned for it."""
    __tablename__ = 'writing_analyses'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)

    text = db.Column(db.Text, nullable=False)
    question = db.Column(db.Text, nullable=False)
    level = db.Column(db.String(50), nullable=False, index=True)
    word_count = db.Column(db.Integer, default=0, nullable=False)
    time_spent_seconds = db.Column(db.Integer, default=0, nullable=False)

    # Denormalised scores for history statistics
    overall_score = db.Column(db.Integer, nullable=False)
    ielts = db.Column(db.Float, nullable=False)
    toefl = db.Column(db.Integer, nullable=False)
    pte = db.Column(db.Integer, nullable=False)
    grammar_score = db.Column(db.Integer, nullable=False)
    vocabulary_score = db.Column(db.Integer, nullable=False)
    coherence_score = db.Column(db.Integer, nullable=False)
    task_response_score = db.Column(db.Integer, nullable=False)

    source = db.Column(db.String(20), nullable=False)
    result = db.Column(db.JSON, nullable=False)  # AnalysisResult.to_dict()

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    user = db.relationship('User', back_populates='analyses')

    def __repr__(self):
        return f'<WritingAnalysis id={self.id} user={self.user_id} score={self.overall_score}>'

    def to_dict(self, include_text=True):
        data = dict(self.result or {})
        data.update({
            'id': self.id,
            'userId': self.user_id,
            'question': self.question,
            'level': self.level,
            'wordCount': self.word_count,
            'timeSpentSeconds': self.time_spent_seconds,
            'createdAt': _isoformat(self.created_at),
        })
        if include_text:
            data['text'] = self.text
        return data


class CompletedExercise(db.Model):
    """Durable proof that a learner finished one exercise at one level."""
    __tablename__ = 'completed_exercises'
    __table_args__ = (
        db.UniqueConstraint('user_id', 'level', 'exercise_index', name='uq_user_level_exercise'),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    level = db.Column(db.String(50), nullable=False)
    exercise_index = db.Column(db.Integer, nullable=False)
    analysis_id = db.Column(db.Integer, db.ForeignKey('writing_analyses.id', ondelete='SET NULL'), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    user = db.relationship('User', back_populates='completions')

    def __repr__(self):
        return f'<CompletedExercise user={self.user_id} level={self.level} index={self.exercise_index}>'

    def to_dict(self):
        return {
            'userId': self.user_id,
            'level': self.level,
            'exerciseIndex': self.exercise_index,
            'analysisId': self.analysis_id,
            'completedAt': _isoformat(self.completed_at),
        }


class PlacementAssessment(db.Model):
    """A placement test definition: questions with answer flags plus the level bands."""
    __tablename__ = 'placement_assessments'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    version = db.Column(db.String(20), default='1.0', nullable=False)
    questions = db.Column(db.JSON, nullable=False)
    scoring = db.Column(db.JSON, nullable=False)  # {totalPoints, levelThresholds}
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f'<PlacementAssessment id={self.id} version={self.version}>'

    def key_payload(self):
        return {'questions': self.questions or [], 'scoring': self.scoring or {}}

    def to_dict(self, public_questions=None):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'version': self.version,
            'questions': public_questions if public_questions is not None else self.questions,
            'totalQuestions': len(self.questions or []),
        }


class PlacementAttempt(db.Model):
    """A graded placement attempt. Exactly one attempt per user carries is_latest."""
    __tablename__ = 'placement_attempts'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    assessment_id = db.Column(db.Integer, db.ForeignKey('placement_assessments.id'), nullable=False)

    responses = db.Column(db.JSON, nullable=False)
    total_questions = db.Column(db.Integer, nullable=False)
    correct_answers = db.Column(db.Integer, nullable=False)
    percentage = db.Column(db.Integer, nullable=False)
    level = db.Column(db.String(5), nullable=False)
    user_facing_level = db.Column(db.String(50), nullable=False)
    skills_breakdown = db.Column(db.JSON, nullable=False)
    time_data = db.Column(db.JSON, nullable=True)  # {startTime, endTime, totalTimeSpent}
    is_latest = db.Column(db.Boolean, default=True, nullable=False, index=True)
    completed_at = db.Column(db.DateTime(timezone=True), default=utcnow, nullable=False)

    user = db.relationship('User', back_populates='placement_attempts')
    assessment = db.relationship('PlacementAssessment')

    def __repr__(self):
        return f'<PlacementAttempt id={self.id} user={self.user_id} level={self.level}>'

    def to_dict(self, include_responses=True):
        data = {
            'id': self.id,
            'assessmentId': self.assessment_id,
            'totalQuestions': self.total_questions,
            'correctAnswers': self.correct_answers,
            'percentage': self.percentage,
            'level': self.level,
            'userFacingLevel': self.user_facing_level,
            'skillsBreakdown': self.skills_breakdown,
            'timeData': self.time_data,
            'isLatest': self.is_latest,
            'completedAt': _isoformat(self.completed_at),
        }
        if include_responses:
            data['responses'] = self.responses
        return data
