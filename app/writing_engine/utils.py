"""Utility functions for the Flask application."""
from functools import wraps

from flask import g, jsonify, session
from sqlalchemy import func

from .models import db, User, WritingAnalysis
from .services.types import round_half_up, round_score


def login_required(f):
    """Decorator to require a session user for a JSON route."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = get_current_user()
        if user is None:
            return jsonify({'error': 'Not authenticated'}), 401
        g.current_user = user
        return f(*args, **kwargs)
    return decorated_function


def get_current_user():
    """Get the currently logged-in user."""
    user_id = session.get('user_id')
    if user_id is None:
        return None
    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        return None
    return db.session.get(User, user_id)


def parse_positive_int(value, default, maximum=None):
    """Parse a query-string integer, falling back to ``default`` when missing or invalid."""
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    if parsed < 1:
        return default
    if maximum is not None:
        parsed = min(parsed, maximum)
    return parsed


def _avg(value, digits=0):
    if value is None:
        return 0
    if digits:
        return round_half_up(float(value), digits)
    return round_score(float(value))


def get_analysis_stats(user_id: int, level: str = None):
    """Aggregate totals and averages over a learner's analyses."""
    query = db.session.query(
        func.count(WritingAnalysis.id),
        func.avg(WritingAnalysis.overall_score),
        func.avg(WritingAnalysis.ielts),
        func.avg(WritingAnalysis.toefl),
        func.avg(WritingAnalysis.pte),
        func.max(WritingAnalysis.overall_score),
        func.sum(WritingAnalysis.word_count),
        func.sum(WritingAnalysis.time_spent_seconds),
        func.avg(WritingAnalysis.grammar_score),
        func.avg(WritingAnalysis.vocabulary_score),
        func.avg(WritingAnalysis.coherence_score),
        func.avg(WritingAnalysis.task_response_score),
    ).filter(WritingAnalysis.user_id == user_id)
    if level:
        query = query.filter(WritingAnalysis.level == level)

    (total, avg_overall, avg_ielts, avg_toefl, avg_pte, best, words, seconds,
     avg_grammar, avg_vocabulary, avg_coherence, avg_task) = query.one()

    return {
        'totalAnalyses': total or 0,
        'averageScore': _avg(avg_overall),
        'averageIelts': _avg(avg_ielts, 1),
        'averageToefl': _avg(avg_toefl),
        'averagePte': _avg(avg_pte),
        'bestScore': best or 0,
        'totalWords': int(words or 0),
        'totalTimeSeconds': int(seconds or 0),
        'averageDimensions': {
            'grammar': _avg(avg_grammar),
            'vocabulary': _avg(avg_vocabulary),
            'coherence': _avg(avg_coherence),
            'taskResponse': _avg(avg_task),
        },
    }


def get_level_stats(user_id: int):
    """Per-level analysis count and average score."""
    rows = db.session.query(
        WritingAnalysis.level,
        func.count(WritingAnalysis.id),
        func.avg(WritingAnalysis.overall_score),
    ).filter(
        WritingAnalysis.user_id == user_id
    ).group_by(WritingAnalysis.level).order_by(WritingAnalysis.level).all()

    return [
        {'level': level, 'count': count, 'averageScore': _avg(average)}
        for level, count, average in rows
    ]


def get_analysis_page(user_id: int, page: int, limit: int, level: str = None):
    """One page of a learner's analyses, newest first."""
    query = WritingAnalysis.query.filter_by(user_id=user_id)
    if level:
        query = query.filter_by(level=level)
    total = query.count()
    items = query.order_by(
        WritingAnalysis.created_at.desc(), WritingAnalysis.id.desc()
    ).offset((page - 1) * limit).limit(limit).all()

    return items, {
        'page': page,
        'limit': limit,
        'total': total,
        'pages': (total + limit - 1) // limit if limit else 0,
    }
