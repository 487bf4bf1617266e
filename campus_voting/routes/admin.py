# campus_voting/routes/admin.py

# Admin console: dashboard, voting configuration, device control, the vote
# ledger and the audit trail.

from flask import Blueprint, g, jsonify, request
from sqlalchemy import or_

from campus_voting import db
from campus_voting.audit.audit_logger import audit_logger
from campus_voting.authentication.rbac import Permission, require_permission
from campus_voting.authentication.sessions import admin_required
from campus_voting.database.models import Account, AuditLog, Team, VoteTransaction
from campus_voting.encryption.password_hashing import PasswordHashingService
from campus_voting.errors import BadRequest, NotFound
from campus_voting.realtime.events import (
    DATA_CHANGED, FORCE_LOGOUT, events_since, identity_room, latest_seq, publish,
)
from campus_voting.realtime.presence import presence
from campus_voting.routes import json_body, page_args, paginated
from campus_voting.security.input_validator import validator
from campus_voting.security.token_manager import STUDENT
from campus_voting.voting import cascade
from campus_voting.voting.config_store import load_config_snapshot, update_config
from campus_voting.voting.service import votes_by_account, votes_by_team, voting_status

admin_bp = Blueprint('admin', __name__)
password_service = PasswordHashingService()


def get_account_or_404(account_id):
    account = db.session.get(Account, account_id)
    if account is None:
        raise NotFound('User not found.')
    return account


def account_id_from_body(data):
    if not data.get('userId'):
        raise BadRequest('userId is required.')
    return validator.parse_int(data['userId'], 'userId')


def search_filter(term):
    pattern = f"%{term}%"
    return or_(
        Account.name.ilike(pattern),
        Account.roll_no.ilike(pattern),
        Account.email.ilike(pattern),
    )


@admin_bp.route('/dashboard', methods=['GET'])
@admin_required
def dashboard():
    search = (request.args.get('search') or '').strip()
    query = Account.query
    if search:
        query = query.filter(search_filter(search))
    accounts = query.order_by(Account.created_at.desc()).all()
    votes = votes_by_account([a.id for a in accounts])

    team_totals = votes_by_team()
    teams = Team.query.order_by(Team.id.asc()).all()
    online_students = presence.online(STUDENT)

    return jsonify({
        'success': True,
        'users': [account.to_dict(votes=votes.get(account.id, {})) for account in accounts],
        'totalUsers': Account.query.count(),
        'teams': [team.to_dict() for team in teams],
        'teamVotes': {str(team.id): team_totals.get(team.id, 0) for team in teams},
        'config': voting_status(load_config_snapshot()),
        'deviceCount': Account.query.filter(Account.current_session_token.isnot(None)).count(),
        'onlineUsers': online_students,
        'latestSeq': latest_seq(),
    })


@admin_bp.route('/config', methods=['POST'])
@require_permission(Permission.CONFIGURE_VOTING)
def configure_voting():
    data = json_body()
    expected_version = None
    if data.get('version') is not None:
        expected_version = validator.parse_int(data['version'], 'version')
    snapshot = update_config(data, expected_version)

    changed = sorted(k for k in data if k != 'version')
    audit_logger.log_admin_action(g.current_admin, 'UPDATE_CONFIG',
                                  {'fields': changed, 'version': snapshot.version})
    publish(DATA_CHANGED, {'reason': 'config', 'version': snapshot.version})
    return jsonify({'success': True, 'message': 'Configuration updated', 'config': snapshot.to_dict()})


def _end_session(account, action, reason):
    account.current_session_token = None
    db.session.commit()
    publish(FORCE_LOGOUT, {'reason': reason}, to=identity_room(STUDENT, account.id))
    audit_logger.log_admin_action(g.current_admin, action,
                                  {'userId': account.id, 'rollNo': account.roll_no})
    publish(DATA_CHANGED, {'reason': reason})


@admin_bp.route('/revoke-device', methods=['POST'])
@require_permission(Permission.MANAGE_USERS)
def revoke_device():
    account = get_account_or_404(account_id_from_body(json_body()))
    _end_session(account, 'REVOKE_DEVICE', 'device-revoked')
    return jsonify({'success': True, 'message': f'Device access revoked for {account.name}.'})


@admin_bp.route('/logout-user', methods=['POST'])
@require_permission(Permission.MANAGE_USERS)
def logout_user():
    account = get_account_or_404(account_id_from_body(json_body()))
    _end_session(account, 'FORCE_LOGOUT', 'admin-logout')
    return jsonify({'success': True, 'message': f'{account.name} has been logged out.'})


@admin_bp.route('/transactions', methods=['GET'])
@require_permission(Permission.VIEW_TRANSACTIONS)
def transactions():
    page, limit = page_args()
    search = (request.args.get('search') or '').strip()
    query = (
        db.session.query(VoteTransaction, Account, Team)
        .join(Account, Account.id == VoteTransaction.account_id)
        .outerjoin(Team, Team.id == VoteTransaction.team_id)
    )
    if search:
        query = query.filter(or_(search_filter(search), Team.name.ilike(f"%{search}%")))
    pagination = query.order_by(VoteTransaction.created_at.desc(), VoteTransaction.id.desc()) \
        .paginate(page=page, per_page=limit, error_out=False)

    items = []
    for tx, account, team in pagination.items:
        row = tx.to_dict()
        row.update({
            'userName': account.name,
            'rollNo': account.roll_no,
            'teamName': team.name if team else None,
        })
        items.append(row)
    return jsonify(paginated(pagination, 'transactions', items))


@admin_bp.route('/audit-logs', methods=['GET'])
@require_permission(Permission.VIEW_AUDIT_LOGS)
def audit_logs():
    page, limit = page_args()
    query = AuditLog.query
    search = (request.args.get('search') or '').strip()
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(AuditLog.action.ilike(pattern), AuditLog.actor_id.ilike(pattern)))
    action = request.args.get('action')
    if action:
        query = query.filter(AuditLog.action == action)
    pagination = query.order_by(AuditLog.id.desc()).paginate(page=page, per_page=limit, error_out=False)
    body = paginated(pagination, 'logs', [log.to_dict() for log in pagination.items])
    # Re-hashes the whole trail, so only on request
    if request.args.get('verify', '').lower() in ('1', 'true', 'yes'):
        body['integrityOk'] = audit_logger.verify_log_integrity()
    return jsonify(body)


@admin_bp.route('/reset-password', methods=['POST'])
@require_permission(Permission.RESET_PASSWORDS)
def reset_password():
    data = json_body()
    account = get_account_or_404(account_id_from_body(data))
    new_password = data.get('newPassword') or password_service.generate_secure_password()
    try:
        account.password_hash = password_service.hash_password(new_password)
    except ValueError as e:
        raise BadRequest(str(e))
    account.must_change_password = True
    account.current_session_token = None
    db.session.commit()

    publish(FORCE_LOGOUT, {'reason': 'password-reset'}, to=identity_room(STUDENT, account.id))
    audit_logger.log_admin_action(g.current_admin, 'RESET_PASSWORD', {'userId': account.id})
    return jsonify({
        'success': True,
        'message': f'Password reset for {account.name}.',
        'temporaryPassword': new_password,
    })


@admin_bp.route('/users/<int:account_id>', methods=['DELETE'])
@require_permission(Permission.DELETE_USERS)
def delete_user(account_id):
    deleted = cascade.delete_account(account_id)
    publish(FORCE_LOGOUT, {'reason': 'account-deleted'}, to=identity_room(STUDENT, account_id))
    audit_logger.log_admin_action(g.current_admin, 'DELETE_USER', {'userId': account_id, **deleted})
    publish(DATA_CHANGED, {'reason': 'user-deleted'})
    return jsonify({'success': True, 'message': f"User {deleted['name']} deleted."})


@admin_bp.route('/users/<int:account_id>/votes', methods=['DELETE'])
@require_permission(Permission.DELETE_VOTES)
def delete_user_votes(account_id):
    removed = cascade.delete_account_votes(account_id)
    audit_logger.log_admin_action(g.current_admin, 'DELETE_USER_VOTES',
                                  {'userId': account_id, 'removedVotes': removed})
    publish(DATA_CHANGED, {'reason': 'votes-deleted'})
    return jsonify({'success': True, 'message': 'All votes removed.', 'removedVotes': removed})


@admin_bp.route('/users/<int:account_id>/votes/<int:team_id>', methods=['DELETE'])
@require_permission(Permission.DELETE_VOTES)
def delete_user_team_votes(account_id, team_id):
    removed = cascade.delete_account_team_votes(account_id, team_id)
    audit_logger.log_admin_action(g.current_admin, 'DELETE_USER_TEAM_VOTES',
                                  {'userId': account_id, 'teamId': team_id, 'removedVotes': removed})
    publish(DATA_CHANGED, {'reason': 'votes-deleted'})
    return jsonify({'success': True, 'message': 'Votes for team removed.', 'removedVotes': removed})


@admin_bp.route('/events', methods=['GET'])
@admin_required
def list_events():
    try:
        since = int(request.args.get('since', 0))
    except ValueError:
        raise BadRequest('since must be an integer.')
    events = events_since(since)
    return jsonify({
        'success': True,
        'events': [event.to_dict() for event in events],
        'latestSeq': latest_seq(),
    })
