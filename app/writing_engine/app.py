"""
Writing Assessment Engine - Flask Application
JSON API for writing analysis, placement tests, completion tracking and learner profiles.
"""
import os

from flask import Blueprint, Flask, current_app, g, jsonify, request
from flask_cors import CORS

from .config import config
from .models import db, PlacementAssessment, PlacementAttempt, WritingAnalysis
from .utils import (
    login_required,
    parse_positive_int,
    get_analysis_page,
    get_analysis_stats,
    get_level_stats,
)
from .services import learner_service
from .services.completion_tracker import CompletionStatus, get_completion_tracker
from .services.errors import InvalidInput, PersistenceConflict
from .services.placement_bank import DEFAULT_ASSESSMENT
from .services.placement_scorer import AnswerKey, score as score_placement
from .services.types import canonical_level
from .services.writing_analyzer import get_writing_analyzer

api = Blueprint('api', __name__)


def create_app(config_name=None):
    """Application factory."""
    app = Flask(__name__)
    app.config.from_object(config[config_name or os.getenv('FLASK_ENV', 'development')])

    # Initialize extensions
    db.init_app(app)
    CORS(app, resources={r"/*": {"origins": app.config.get('CORS_ALLOWED_ORIGINS', '*')}})

    app.register_blueprint(api)
    _register_error_handlers(app)
    return app


def init_database(app):
    """Create tables and seed the default placement assessment if none exists."""
    with app.app_context():
        db.create_all()

        if app.config.get('SEED_DEFAULT_ASSESSMENT') and PlacementAssessment.query.count() == 0:
            seed = PlacementAssessment(
                title=DEFAULT_ASSESSMENT['title'],
                description=DEFAULT_ASSESSMENT['description'],
                version=DEFAULT_ASSESSMENT['version'],
                questions=DEFAULT_ASSESSMENT['questions'],
                scoring=DEFAULT_ASSESSMENT['scoring'],
                is_active=True,
            )
            db.session.add(seed)
            db.session.commit()
            app.logger.info("[SEED] Default placement assessment created")

        app.logger.info("[DATABASE] Initialized successfully")


def _json_body():
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _require_level(level):
    resolved = canonical_level(level)
    if resolved is None:
        raise InvalidInput(f'Unknown level: {level}')
    return resolved


# ============================================================================
# WRITING ANALYSIS
# ============================================================================

@api.route('/api/analysis/analyze', methods=['POST'])
@login_required
def analyze_writing():
    """Score a submission, store it and update the learner's profile."""
    payload = _json_body()
    text = payload.get('text')
    question = payload.get('question')
    level = payload.get('level')

    if not isinstance(text, str) or not isinstance(question, str) or not level:
        return jsonify({'error': 'Text, question, and level are required'}), 400
    level = _require_level(level)

    elapsed = payload.get('timeSpentSeconds', payload.get('timeSpent', 0))
    if isinstance(elapsed, bool):
        return jsonify({'error': 'timeSpentSeconds must be an integer'}), 400
    elapsed = elapsed or 0
    try:
        elapsed = int(elapsed)
    except (TypeError, ValueError, OverflowError):
        return jsonify({'error': 'timeSpentSeconds must be an integer'}), 400

    user = g.current_user
    current_app.logger.info("Analyzing writing for user %s at %s", user.id, level)

    result = get_writing_analyzer().analyze(text, question, level, elapsed)
    analysis = learner_service.record_analysis(user.id, text.strip(), question, level, elapsed, result)

    data = result.to_dict()
    data['analysisId'] = analysis.id
    return jsonify(data)


@api.route('/api/analysis/history', methods=['GET'])
@login_required
def analysis_history():
    """Paginated analyses with aggregate statistics."""
    user = g.current_user
    page = parse_positive_int(request.args.get('page'), 1)
    limit = parse_positive_int(
        request.args.get('limit'),
        current_app.config['HISTORY_PAGE_SIZE'],
        maximum=current_app.config['HISTORY_MAX_PAGE_SIZE'],
    )
    level = request.args.get('level')
    if level:
        level = _require_level(level)

    items, pagination = get_analysis_page(user.id, page, limit, level)
    return jsonify({
        'analyses': [item.to_dict(include_text=False) for item in items],
        'pagination': pagination,
        'stats': get_analysis_stats(user.id, level),
        'levelStats': get_level_stats(user.id),
    })


def _owned_analysis(analysis_id, user_id):
    analysis = db.session.get(WritingAnalysis, analysis_id)
    if analysis is None or analysis.user_id != user_id:
        return None
    return analysis


@api.route('/api/analysis/<int:analysis_id>', methods=['GET'])
@login_required
def get_analysis(analysis_id):
    analysis = _owned_analysis(analysis_id, g.current_user.id)
    if analysis is None:
        return jsonify({'error': 'Analysis not found'}), 404
    return jsonify(analysis.to_dict())


@api.route('/api/analysis/<int:analysis_id>', methods=['DELETE'])
@login_required
def delete_analysis(analysis_id):
    analysis = _owned_analysis(analysis_id, g.current_user.id)
    if analysis is None:
        return jsonify({'error': 'Analysis not found'}), 404
    db.session.delete(analysis)
    db.session.commit()
    return jsonify({'message': 'Analysis deleted successfully'})


# ============================================================================
# PLACEMENT ASSESSMENT
# ============================================================================

@api.route('/api/assessment/questions', methods=['GET'])
@login_required
def assessment_questions():
    """Active assessment with answer flags and explanations removed."""
    assessment = learner_service.active_assessment()
    if assessment is None:
        return jsonify({'error': 'No active assessment found'}), 404
    key = AnswerKey.from_dict(assessment.key_payload())
    return jsonify(assessment.to_dict(public_questions=[q.to_public_dict() for q in key.questions]))


@api.route('/api/assessment/submit', methods=['POST'])
@login_required
def submit_assessment():
    payload = _json_body()
    assessment_id = payload.get('assessmentId')
    responses = payload.get('responses')

    if assessment_id is None or not isinstance(responses, list) or not responses:
        return jsonify({'error': 'Assessment ID and responses are required'}), 400
    try:
        assessment_id = int(assessment_id)
    except (TypeError, ValueError, OverflowError):
        return jsonify({'error': 'Invalid assessment ID'}), 400

    assessment = db.session.get(PlacementAssessment, assessment_id)
    if assessment is None:
        return jsonify({'error': 'Assessment not found'}), 404

    result = score_placement(responses, AnswerKey.from_dict(assessment.key_payload()))
    time_data = payload.get('timeData') if isinstance(payload.get('timeData'), dict) else None
    attempt = learner_service.record_placement(g.current_user.id, assessment, result, time_data)

    data = result.to_dict()
    data['attemptId'] = attempt.id
    return jsonify(data)


@api.route('/api/assessment/latest', methods=['GET'])
@login_required
def latest_assessment():
    attempt = learner_service.latest_placement(g.current_user.id)
    if attempt is None:
        return jsonify({'error': 'No assessment results found'}), 404
    return jsonify(attempt.to_dict())


@api.route('/api/assessment/history', methods=['GET'])
@login_required
def assessment_history():
    attempts = PlacementAttempt.query.filter_by(user_id=g.current_user.id).order_by(
        PlacementAttempt.completed_at.desc(), PlacementAttempt.id.desc()
    ).all()
    return jsonify({'attempts': [attempt.to_dict(include_responses=False) for attempt in attempts]})


@api.route('/api/assessment/status', methods=['GET'])
@login_required
def assessment_status():
    user = g.current_user
    latest = learner_service.latest_placement(user.id)
    return jsonify({
        'hasCompletedAssessment': user.has_completed_assessment,
        'level': user.level,
        'latestAssessment': latest.to_dict(include_responses=False) if latest else None,
    })


# ============================================================================
# COMPLETED EXERCISES
# ============================================================================

@api.route('/api/completed/<level>', methods=['GET'])
@login_required
def completed_exercises(level):
    indices = get_completion_tracker().list_completed(g.current_user.id, level)
    return jsonify({'completedQuestions': sorted(indices)})


@api.route('/api/completed/<level>/<int(signed=True):exercise_index>', methods=['POST'])
@login_required
def mark_exercise_completed(level, exercise_index):
    user = g.current_user
    analysis_id = _json_body().get('analysisId')
    if analysis_id is not None:
        try:
            analysis_id = int(analysis_id)
        except (TypeError, ValueError, OverflowError):
            return jsonify({'error': 'Invalid analysis ID'}), 400
        if _owned_analysis(analysis_id, user.id) is None:
            return jsonify({'error': 'Analysis not found'}), 400

    status = get_completion_tracker().mark_completed(user.id, level, exercise_index, analysis_id)
    if status is CompletionStatus.ALREADY_COMPLETED:
        return jsonify({'message': 'Exercise already completed', 'status': status.value}), 409
    return jsonify({'message': 'Exercise marked as completed', 'status': status.value})


@api.route('/api/completed/<level>/<int(signed=True):exercise_index>/status', methods=['GET'])
@login_required
def exercise_completion_status(level, exercise_index):
    completed = get_completion_tracker().is_completed(g.current_user.id, level, exercise_index)
    return jsonify({'isCompleted': completed})


# ============================================================================
# PROFILE & HEALTH
# ============================================================================

@api.route('/api/profile', methods=['GET'])
@login_required
def profile():
    user = g.current_user
    data = user.to_dict()
    data['skills'] = learner_service.profile_of(user).to_dict()
    return jsonify(data)


@api.route('/healthz', methods=['GET'])
def healthz():
    return jsonify({
        'status': 'ok',
        'provider_configured': get_writing_analyzer().provider_configured,
    })


# ============================================================================
# ERROR HANDLERS
# ============================================================================

def _register_error_handlers(app):
    @app.errorhandler(InvalidInput)
    def invalid_input(error):
        return jsonify({'error': str(error)}), 400

    @app.errorhandler(PersistenceConflict)
    def persistence_conflict(error):
        db.session.rollback()
        current_app.logger.error("Storage failure: %s", error)
        return jsonify({'error': 'Storage failure'}), 500

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Not found'}), 404

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return jsonify({'error': 'Internal server error'}), 500


# ============================================================================
# INITIALIZATION
# ============================================================================

if __name__ == '__main__':
    application = create_app()
    init_database(application)
    application.run(host='0.0.0.0', port=int(os.getenv('PORT', 1111)), debug=True)
