# campus_voting/routes/teams.py

from flask import Blueprint, g, jsonify

from campus_voting import db
from campus_voting.audit.audit_logger import audit_logger
from campus_voting.authentication.rbac import Permission, require_permission
from campus_voting.database.models import Team
from campus_voting.errors import BadRequest, NotFound
from campus_voting.realtime.events import DATA_CHANGED, LEADERBOARD_CHANGED, publish
from campus_voting.routes import json_body
from campus_voting.security.input_validator import validator
from campus_voting.voting.cascade import delete_team

teams_bp = Blueprint('teams', __name__)


def _team_fields(data, partial=False):
    fields = {}
    if 'name' in data or not partial:
        name = validator.sanitize_string(data.get('name') or '', 120)
        if not name:
            raise BadRequest('Team name is required.')
        fields['name'] = name
    if 'description' in data or not partial:
        fields['description'] = validator.sanitize_string(data.get('description') or '', 2000)
    if 'imageUrl' in data or not partial:
        fields['image_url'] = validator.sanitize_string(data.get('imageUrl') or '', 500)
    return fields


@teams_bp.route('/', methods=['GET'], strict_slashes=False)
def list_teams():
    teams = Team.query.order_by(Team.id.asc()).all()
    return jsonify([team.to_dict() for team in teams])


@teams_bp.route('/', methods=['POST'], strict_slashes=False)
@require_permission(Permission.MANAGE_TEAMS)
def create_team():
    team = Team(**_team_fields(json_body()))
    db.session.add(team)
    db.session.commit()
    audit_logger.log_admin_action(g.current_admin, 'CREATE_TEAM', {'teamId': team.id, 'name': team.name})
    publish(DATA_CHANGED, {'reason': 'team-created'})
    return jsonify(team.to_dict()), 201


@teams_bp.route('/<int:team_id>', methods=['PUT'])
@require_permission(Permission.MANAGE_TEAMS)
def update_team(team_id):
    team = db.session.get(Team, team_id)
    if team is None:
        raise NotFound('Team not found.')
    for column, value in _team_fields(json_body(), partial=True).items():
        setattr(team, column, value)
    db.session.commit()
    audit_logger.log_admin_action(g.current_admin, 'UPDATE_TEAM', {'teamId': team.id, 'name': team.name})
    publish(DATA_CHANGED, {'reason': 'team-updated'})
    return jsonify(team.to_dict())


@teams_bp.route('/<int:team_id>', methods=['DELETE'])
@require_permission(Permission.MANAGE_TEAMS)
def remove_team(team_id):
    summary = delete_team(team_id)
    audit_logger.log_admin_action(g.current_admin, 'DELETE_TEAM', {'teamId': team_id, **summary})
    publish(DATA_CHANGED, {'reason': 'team-deleted'})
    publish(LEADERBOARD_CHANGED, {'reason': 'team-deleted'})
    return jsonify({
        'success': True,
        'message': f"Team '{summary['teamName']}' deleted.",
        **summary,
    })
