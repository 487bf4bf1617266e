# campus_voting/routes/leaderboard.py

from flask import Blueprint, g, jsonify, request

from campus_voting import leaderboard
from campus_voting.audit.audit_logger import audit_logger
from campus_voting.authentication.rbac import Permission, require_permission
from campus_voting.database.models import Team
from campus_voting.realtime.events import LEADERBOARD_CHANGED, publish
from campus_voting.routes import json_body, page_args, paginated

leaderboard_bp = Blueprint('leaderboard', __name__)


@leaderboard_bp.route('/', methods=['GET'], strict_slashes=False)
def overall():
    return jsonify({'success': True, 'leaderboard': leaderboard.overall()})


@leaderboard_bp.route('/range', methods=['GET'])
def date_range():
    rows = leaderboard.date_range(request.args.get('startDate'), request.args.get('endDate'))
    return jsonify({'success': True, 'leaderboard': rows})


@leaderboard_bp.route('/daily', methods=['GET'])
def daily():
    date, rows = leaderboard.daily(request.args.get('date'))
    return jsonify({'success': True, 'date': date, 'leaderboard': rows})


@leaderboard_bp.route('/scores', methods=['POST'])
@require_permission(Permission.MANAGE_SCORES)
def save_score():
    team, score, created = leaderboard.upsert_score(json_body(), g.current_admin.username)
    audit_logger.log_admin_action(g.current_admin, 'UPDATE_TEAM_SCORE', {
        'teamId': team.id,
        'teamName': team.name,
        'date': score.date.date().isoformat(),
        'score': score.score,
    })
    publish(LEADERBOARD_CHANGED, {'teamId': str(team.id)})
    message = 'Score created' if created else 'Score updated'
    return jsonify({'success': True, 'message': message, 'score': score.to_dict(team)}), 201 if created else 200


@leaderboard_bp.route('/scores', methods=['GET'])
@require_permission(Permission.MANAGE_SCORES)
def list_scores():
    page, limit = page_args()
    pagination = leaderboard.list_scores(
        request.args.get('teamId'),
        request.args.get('startDate'),
        request.args.get('endDate'),
        page, limit,
    )
    teams = {team.id: team for team in Team.query.all()}
    items = [s.to_dict(teams.get(s.team_id)) for s in pagination.items]
    return jsonify(paginated(pagination, 'scores', items))


@leaderboard_bp.route('/scores/<int:score_id>', methods=['DELETE'])
@require_permission(Permission.MANAGE_SCORES)
def delete_score(score_id):
    deleted = leaderboard.delete_score(score_id)
    audit_logger.log_admin_action(g.current_admin, 'DELETE_TEAM_SCORE', {'scoreId': score_id, **deleted})
    publish(LEADERBOARD_CHANGED, {'scoreId': str(score_id)})
    return jsonify({'success': True, 'message': 'Score deleted'})


@leaderboard_bp.route('/scores-summary', methods=['GET'])
@require_permission(Permission.MANAGE_SCORES)
def scores_summary():
    return jsonify({'success': True, 'summary': leaderboard.summary()})
