# campus_voting/routes/auth.py

# Registration, login and session lifecycle for students and admins.

from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy import or_

from campus_voting import db, limiter
from campus_voting.audit.audit_logger import audit_logger
from campus_voting.authentication.sessions import (
    admin_required, login_required, resolve_admin, resolve_student, token_from_request,
)
from campus_voting.database.models import Account, AdminAccount, BlacklistedUser, WhitelistedEmail
from campus_voting.encryption.password_hashing import PasswordHashingService
from campus_voting.errors import ApiError, BadRequest, Forbidden, Unauthorized
from campus_voting.realtime.events import DATA_CHANGED, FORCE_LOGOUT, identity_room, publish
from campus_voting.routes import json_body
from campus_voting.security.input_validator import validator
from campus_voting.security.token_manager import ADMIN, STUDENT, token_manager
from campus_voting.voting.config_store import load_config_snapshot
from campus_voting.voting.service import voting_status, votes_for_account

auth_bp = Blueprint('auth', __name__)
password_service = PasswordHashingService()


def _login_limit():
    return current_app.config['LOGIN_RATE_LIMIT']


def find_blacklist_entry(email=None, roll_no=None):
    clauses = []
    if email:
        clauses.append(BlacklistedUser.email == email.lower())
    if roll_no:
        clauses.append(BlacklistedUser.roll_no == roll_no.upper())
    if not clauses:
        return None
    return BlacklistedUser.query.filter(or_(*clauses)).first()


def is_whitelisted(email):
    return WhitelistedEmail.query.filter_by(email=email.lower()).first() is not None


def _hash_or_reject(password):
    try:
        return password_service.hash_password(password)
    except ValueError as e:
        raise BadRequest(str(e))


@auth_bp.route('/register', methods=['POST'])
def register():
    data = json_body()
    fields = validator.validate_registration(data)

    if find_blacklist_entry(fields['email'], fields['roll_no']):
        raise Forbidden('This account has been blacklisted.', status='BLACKLISTED')

    existing = Account.query.filter(
        or_(Account.email == fields['email'], Account.roll_no == fields['roll_no'])
    ).first()
    if existing:
        raise BadRequest('User with this Email or Roll No already exists.')

    account = Account(
        password_hash=_hash_or_reject(data['password']),
        is_approved=is_whitelisted(fields['email']),
        **fields,
    )
    db.session.add(account)
    db.session.commit()

    audit_logger.log_user_action(account, 'REGISTER', {'approved': account.is_approved})
    publish(DATA_CHANGED, {'reason': 'register'})

    status = 'APPROVED' if account.is_approved else 'PENDING'
    message = 'Registration Successful' if account.is_approved else \
        'Registration received. Your account is awaiting admin approval.'
    return jsonify({'success': True, 'message': message, 'status': status,
                    'user': account.to_dict()}), 201


@auth_bp.route('/check-email', methods=['GET'])
def check_email():
    email = (request.args.get('email') or '').strip()
    if not validator.validate_email(email):
        raise BadRequest('Invalid email address.')
    return jsonify({'success': True, 'isWhitelisted': is_whitelisted(email)})


@auth_bp.route('/login', methods=['POST'])
@limiter.limit(_login_limit)
def login():
    data = json_body()
    identifier = (data.get('identifier') or '').strip()
    password = data.get('password')
    if not identifier or not password:
        raise BadRequest('Identifier and password are required.')

    account = Account.query.filter(
        or_(Account.email == identifier.lower(), Account.roll_no == identifier.upper())
    ).first()

    if find_blacklist_entry(identifier if '@' in identifier else None,
                            account.roll_no if account else identifier):
        audit_logger.log_event('LOGIN_BLOCKED', actor_id=identifier, actor_type='USER',
                               details={'reason': 'blacklisted'})
        raise Forbidden('This account has been blacklisted.', status='BLACKLISTED')

    ok, upgraded = password_service.verify_and_upgrade(password, account.password_hash) if account else (False, None)
    if not ok:
        audit_logger.log_event('FAILED_LOGIN', actor_id=identifier, actor_type='USER')
        raise Unauthorized('Invalid Credentials.')
    if upgraded:
        account.password_hash = upgraded

    if not account.is_approved:
        raise Forbidden('Your account is awaiting admin approval.', status='PENDING')

    # Tell any other device holding the old session to drop it
    if account.current_session_token:
        publish(FORCE_LOGOUT, {'reason': 'logged-in-elsewhere'}, to=identity_room(STUDENT, account.id))

    session_id = token_manager.new_session_id()
    account.current_session_token = session_id
    db.session.commit()

    token = token_manager.generate_token(account.id, session_id, STUDENT)
    audit_logger.log_user_action(account, 'LOGIN')
    publish(DATA_CHANGED, {'reason': 'login'})

    response = jsonify({
        'success': True,
        'message': 'Login Successful',
        'user': account.to_dict(votes=votes_for_account(account.id)),
        'mustChangePassword': account.must_change_password,
        'token': token,
    })
    return token_manager.set_session_cookie(response, token, STUDENT)


@auth_bp.route('/admin-login', methods=['POST'])
@limiter.limit(_login_limit)
def admin_login():
    data = json_body()
    username = (data.get('username') or '').strip()
    password = data.get('password')
    admin = AdminAccount.query.filter_by(username=username).first() if username else None
    ok, upgraded = password_service.verify_and_upgrade(password, admin.password_hash) if admin else (False, None)
    if not ok:
        audit_logger.log_event('FAILED_ADMIN_LOGIN', actor_id=username or None, actor_type='ADMIN')
        raise Unauthorized('Invalid Admin Credentials.')
    if upgraded:
        admin.password_hash = upgraded

    if admin.current_session_token:
        publish(FORCE_LOGOUT, {'reason': 'logged-in-elsewhere'}, to=identity_room(ADMIN, admin.username))

    session_id = token_manager.new_session_id()
    admin.current_session_token = session_id
    db.session.commit()

    token = token_manager.generate_token(admin.username, session_id, ADMIN)
    audit_logger.log_admin_action(admin, 'LOGIN')

    response = jsonify({
        'success': True,
        'message': 'Admin Access Granted',
        'adminId': admin.username,
        'role': admin.role,
        'token': token,
    })
    return token_manager.set_session_cookie(response, token, ADMIN)


@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    account = g.current_account
    status = voting_status(load_config_snapshot(), account)
    return jsonify({
        'success': True,
        'user': account.to_dict(votes=votes_for_account(account.id)),
        'votesUsedToday': status['votesUsedToday'],
        'remainingToday': status['remainingToday'],
    })


@auth_bp.route('/admin-me', methods=['GET'])
@admin_required
def admin_me():
    admin = g.current_admin
    return jsonify({'success': True, 'adminId': admin.username, 'role': admin.role})


@auth_bp.route('/logout', methods=['POST'])
def logout():
    # Clearing the cookie always succeeds; the stored session is only
    # cleared when the presented token is still the live one.
    try:
        account = resolve_student(token_from_request(request, STUDENT))
    except ApiError:
        account = None
    if account is not None:
        account.current_session_token = None
        db.session.commit()
        audit_logger.log_user_action(account, 'LOGOUT')
        publish(DATA_CHANGED, {'reason': 'logout'})
    response = jsonify({'success': True, 'message': 'Logout Successful'})
    return token_manager.unset_session_cookie(response, STUDENT)


@auth_bp.route('/admin-logout', methods=['POST'])
def admin_logout():
    try:
        admin = resolve_admin(token_from_request(request, ADMIN))
    except ApiError:
        admin = None
    if admin is not None:
        admin.current_session_token = None
        db.session.commit()
        audit_logger.log_admin_action(admin, 'LOGOUT')
    response = jsonify({'success': True, 'message': 'Logout Successful'})
    return token_manager.unset_session_cookie(response, ADMIN)


@auth_bp.route('/change-password', methods=['POST'])
@login_required
def change_password():
    data = json_body()
    account = g.current_account
    if not password_service.verify_password(data.get('currentPassword'), account.password_hash):
        raise BadRequest('Current password is incorrect.')
    new_password = data.get('newPassword')
    if new_password == data.get('currentPassword'):
        raise BadRequest('New password must be different from the current one.')
    account.password_hash = _hash_or_reject(new_password)
    account.must_change_password = False
    db.session.commit()
    audit_logger.log_user_action(account, 'CHANGE_PASSWORD')
    return jsonify({'success': True, 'message': 'Password updated successfully.'})
