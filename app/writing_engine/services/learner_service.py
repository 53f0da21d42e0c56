"""Persistence of graded work and the learner state derived from it.

Derived fields (skill profile, overall score, streak, latest placement flag)
are computed by the pure helpers in ``skill_profile`` and ``activity`` and
written explicitly here, one transaction per learner event.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..models import PlacementAssessment, PlacementAttempt, User, WritingAnalysis, db
from . import activity as activity_rules
from . import skill_profile
from .errors import InvalidInput, PersistenceConflict
from .types import AnalysisResult, PlacementResult, SkillProfile, count_words


def _today() -> date:
    return datetime.now(timezone.utc).date()


def lock_user(user_id: int) -> User:
    """Load the learner row for update so per-user writes serialize."""
    user = db.session.query(User).filter_by(id=user_id).with_for_update().one_or_none()
    if user is None:
        raise InvalidInput(f'Unknown user: {user_id}')
    return user


def profile_of(user: User) -> SkillProfile:
    return skill_profile.from_mapping(user.skill_values())


def _apply_profile(user: User, profile: SkillProfile) -> None:
    user.skill_grammar = profile.grammar
    user.skill_vocabulary = profile.vocabulary
    user.skill_structure = profile.structure
    user.skill_creativity = profile.creativity
    user.skill_clarity = profile.clarity
    user.skill_overall = profile.overall_score


def _apply_activity(user: User, state: activity_rules.Activity) -> None:
    user.exercises_completed = state.exercises_completed
    user.total_words = state.total_words
    user.streak_days = state.streak_days
    user.last_active_date = state.last_active


def _commit(action: str) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error("Failed to %s: %s", action, exc)
        raise PersistenceConflict(f'Failed to {action}') from exc


def record_analysis(user_id: int, text: str, question: str, level: str, elapsed_seconds: int,
                    result: AnalysisResult, today: Optional[date] = None) -> WritingAnalysis:
    """Store an analysis and fold it into the learner's profile and activity."""
    user = lock_user(user_id)
    word_count = count_words(text)

    analysis = WritingAnalysis(
        user_id=user.id,
        text=text,
        question=question,
        level=level,
        word_count=word_count,
        time_spent_seconds=elapsed_seconds,
        overall_score=result.overall_score,
        ielts=result.test_equivalents.ielts,
        toefl=result.test_equivalents.toefl,
        pte=result.test_equivalents.pte,
        grammar_score=result.dimension_scores.grammar,
        vocabulary_score=result.dimension_scores.vocabulary,
        coherence_score=result.dimension_scores.coherence,
        task_response_score=result.dimension_scores.task_response,
        source=result.source,
        result=result.to_dict(),
    )
    db.session.add(analysis)

    _apply_profile(user, skill_profile.update(profile_of(user), result))
    current = activity_rules.Activity(
        exercises_completed=user.exercises_completed or 0,
        total_words=user.total_words or 0,
        streak_days=user.streak_days or 0,
        last_active=user.last_active_date,
    )
    _apply_activity(user, activity_rules.record_submission(current, word_count, today or _today()))

    _commit('save writing analysis')
    current_app.logger.info(
        "Saved analysis %s for user %s (score %s, %s)",
        analysis.id, user.id, result.overall_score, result.source,
    )
    return analysis


def record_placement(user_id: int, assessment: PlacementAssessment, result: PlacementResult,
                     time_data: Optional[Dict[str, Any]] = None) -> PlacementAttempt:
    """Store a placement attempt as the learner's latest and seed their profile.

    The previous latest attempt is demoted in the same transaction.
    """
    user = lock_user(user_id)

    PlacementAttempt.query.filter_by(user_id=user.id, is_latest=True).update(
        {'is_latest': False}, synchronize_session=False
    )
    attempt = PlacementAttempt(
        user_id=user.id,
        assessment_id=assessment.id,
        responses=result.responses_to_list(),
        total_questions=result.total_questions,
        correct_answers=result.correct_answers,
        percentage=result.percentage,
        level=result.level,
        user_facing_level=result.user_facing_level,
        skills_breakdown={name: item.to_dict() for name, item in result.skills_breakdown.items()},
        time_data=time_data or None,
        is_latest=True,
    )
    db.session.add(attempt)

    _apply_profile(user, skill_profile.seed_from_placement(profile_of(user), result))
    user.level = result.user_facing_level
    user.has_completed_assessment = True

    _commit('save placement attempt')
    current_app.logger.info(
        "User %s placed at %s (%s/%s correct)",
        user.id, result.level, result.correct_answers, result.total_questions,
    )
    return attempt


def latest_placement(user_id: int) -> Optional[PlacementAttempt]:
    return PlacementAttempt.query.filter_by(user_id=user_id, is_latest=True).first()


def active_assessment() -> Optional[PlacementAssessment]:
    return PlacementAssessment.query.filter_by(is_active=True).order_by(PlacementAssessment.id.desc()).first()
