from flask import current_app, jsonify, request
from flask_login import current_user, login_required

from brainbattle_app.core.error_handlers import ValidationError, success_response
from .. import battle_api_bp as blueprint
from ..services.scoring_service import BattleScoringService
from ..services.session_issue_service import BattleSessionService


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


@blueprint.route('/sessions', methods=['POST'])
@login_required
def issue_session():
    """Store a generated question set and hand back its session id."""
    data = _json_body()
    battle = BattleSessionService.issue_session(
        user_id=current_user.user_id,
        questions=data.get('questions'),
        topic=data.get('topic'),
        difficulty=data.get('difficulty', 'medium'),
    )
    return jsonify(success_response({
        'sessionId': battle.session_id,
        'questionCount': len(battle.questions),
    })), 201


@blueprint.route('/sessions/<session_id>', methods=['GET'])
@login_required
def get_session(session_id):
    battle = BattleSessionService.get_owned_session(current_user.user_id, session_id)
    return jsonify(success_response(BattleSessionService.to_dict(battle)))


@blueprint.route('/results', methods=['POST'])
@login_required
def submit_result():
    """
    Authoritative result submission.
    Safe to repeat: a known session id returns the stored result with duplicate=true.
    """
    result = BattleScoringService.record_result(current_user.user_id, _json_body())
    return jsonify(result), 200


@blueprint.route('/results', methods=['GET'])
@login_required
def recent_results():
    limit = request.args.get('limit', type=int) or current_app.config.get('RECENT_BATTLES_LIMIT', 10)
    limit = max(1, min(limit, 100))
    return jsonify(success_response(BattleScoringService.recent_results(current_user.user_id, limit)))


@blueprint.route('/stats', methods=['GET'])
@login_required
def player_stats():
    return jsonify(success_response(BattleScoringService.get_player_stats(current_user.user_id)))


@blueprint.route('/cheat-events', methods=['POST'])
@login_required
def report_cheat_event():
    log = BattleScoringService.record_cheat_event(current_user.user_id, _json_body())
    return jsonify(success_response({'id': log.log_id}, message='Cheat event recorded')), 201
