# campus_voting/routes/access.py

# Who may take part: registration approval, team affiliation, the email
# whitelist and the blacklist.

import logging

from flask import Blueprint, g, jsonify
from sqlalchemy.exc import IntegrityError

from campus_voting import db
from campus_voting.audit.audit_logger import audit_logger
from campus_voting.authentication.rbac import Permission, require_permission
from campus_voting.database.models import Account, BlacklistedUser, Team, WhitelistedEmail
from campus_voting.errors import BadRequest, NotFound
from campus_voting.realtime.events import DATA_CHANGED, FORCE_LOGOUT, identity_room, publish
from campus_voting.routes import json_body
from campus_voting.routes.admin import get_account_or_404
from campus_voting.security.input_validator import validator
from campus_voting.security.token_manager import STUDENT

logger = logging.getLogger(__name__)

access_bp = Blueprint('access', __name__)


def _whitelist_email(email, added_by):
    """Add ``email`` unless present; returns True when a row was created."""
    if WhitelistedEmail.query.filter_by(email=email).first():
        return False
    db.session.add(WhitelistedEmail(email=email, added_by=added_by))
    db.session.commit()
    return True


@access_bp.route('/users/pending', methods=['GET'])
@require_permission(Permission.MANAGE_USERS)
def pending_users():
    accounts = Account.query.filter_by(is_approved=False).order_by(Account.created_at.asc()).all()
    return jsonify({'success': True, 'users': [a.to_dict() for a in accounts]})


@access_bp.route('/users/<int:account_id>/approve', methods=['POST'])
@require_permission(Permission.MANAGE_USERS)
def approve_user(account_id):
    account = get_account_or_404(account_id)
    account.is_approved = True
    db.session.commit()

    try:
        _whitelist_email(account.email, g.current_admin.username)
    except Exception as e:
        db.session.rollback()
        logger.warning(f"Auto-whitelist failed for {account.email}: {str(e)}")

    audit_logger.log_admin_action(g.current_admin, 'APPROVE_USER', {'userId': account.id})
    publish(DATA_CHANGED, {'reason': 'user-approved'})
    return jsonify({'success': True, 'message': f'{account.name} approved.', 'user': account.to_dict()})


@access_bp.route('/users/<int:account_id>/assign-team', methods=['POST'])
@require_permission(Permission.MANAGE_USERS)
def assign_team(account_id):
    account = get_account_or_404(account_id)
    raw = json_body().get('teamId')
    if raw in (None, ''):
        account.team_id = None
    else:
        team_id = validator.parse_int(raw, 'teamId')
        if db.session.get(Team, team_id) is None:
            raise NotFound('Team not found.')
        account.team_id = team_id
    db.session.commit()

    audit_logger.log_admin_action(g.current_admin, 'ASSIGN_TEAM',
                                  {'userId': account.id, 'teamId': account.team_id})
    publish(DATA_CHANGED, {'reason': 'team-assigned'})
    return jsonify({'success': True, 'message': 'Team assignment updated.', 'user': account.to_dict()})


@access_bp.route('/users/<int:account_id>/block', methods=['POST'])
@require_permission(Permission.MANAGE_USERS)
def block_user(account_id):
    account = get_account_or_404(account_id)
    reason = validator.sanitize_string(json_body().get('reason') or 'Violation of rules', 300)

    entry = BlacklistedUser.query.filter(
        (BlacklistedUser.email == account.email) | (BlacklistedUser.roll_no == account.roll_no)
    ).first()
    if entry is None:
        db.session.add(BlacklistedUser(email=account.email, roll_no=account.roll_no,
                                       reason=reason, blocked_by=g.current_admin.username))
    account.current_session_token = None
    db.session.commit()

    publish(FORCE_LOGOUT, {'reason': 'blocked'}, to=identity_room(STUDENT, account.id))
    audit_logger.log_admin_action(g.current_admin, 'BLOCK_USER',
                                  {'userId': account.id, 'reason': reason})
    publish(DATA_CHANGED, {'reason': 'user-blocked'})
    return jsonify({'success': True, 'message': f'{account.name} has been blacklisted.'})


@access_bp.route('/whitelist', methods=['GET'])
@require_permission(Permission.MANAGE_USERS)
def list_whitelist():
    entries = WhitelistedEmail.query.order_by(WhitelistedEmail.created_at.desc()).all()
    return jsonify({'success': True, 'emails': [e.to_dict() for e in entries]})


@access_bp.route('/whitelist', methods=['POST'])
@require_permission(Permission.MANAGE_USERS)
def add_whitelist():
    data = json_body()
    raw = data.get('emails')
    if raw is None and data.get('email'):
        raw = [data['email']]
    if not isinstance(raw, list) or not raw:
        raise BadRequest('Provide a non-empty list of emails.')

    emails = sorted({validator.normalize_email(e) for e in raw})
    added = []
    for email in emails:
        try:
            if _whitelist_email(email, g.current_admin.username):
                added.append(email)
        except IntegrityError:
            db.session.rollback()

    audit_logger.log_admin_action(g.current_admin, 'WHITELIST_ADD', {'emails': added})
    return jsonify({
        'success': True,
        'message': f'{len(added)} email(s) added to whitelist.',
        'added': added,
        'skipped': len(emails) - len(added),
    }), 201


@access_bp.route('/whitelist/<int:entry_id>', methods=['DELETE'])
@require_permission(Permission.MANAGE_USERS)
def remove_whitelist(entry_id):
    entry = db.session.get(WhitelistedEmail, entry_id)
    if entry is None:
        raise NotFound('Whitelist entry not found.')
    email = entry.email
    db.session.delete(entry)
    db.session.commit()
    audit_logger.log_admin_action(g.current_admin, 'WHITELIST_REMOVE', {'email': email})
    return jsonify({'success': True, 'message': f'{email} removed from whitelist.'})


@access_bp.route('/blacklist', methods=['GET'])
@require_permission(Permission.MANAGE_USERS)
def list_blacklist():
    entries = BlacklistedUser.query.order_by(BlacklistedUser.created_at.desc()).all()
    return jsonify({'success': True, 'users': [e.to_dict() for e in entries]})


@access_bp.route('/blacklist/<int:entry_id>', methods=['DELETE'])
@require_permission(Permission.MANAGE_USERS)
def remove_blacklist(entry_id):
    entry = db.session.get(BlacklistedUser, entry_id)
    if entry is None:
        raise NotFound('Blacklist entry not found.')
    summary = {'email': entry.email, 'rollNo': entry.roll_no}
    db.session.delete(entry)
    db.session.commit()
    audit_logger.log_admin_action(g.current_admin, 'BLACKLIST_REMOVE', summary)
    publish(DATA_CHANGED, {'reason': 'user-unblocked'})
    return jsonify({'success': True, 'message': f"{summary['email']} removed from blacklist."})
