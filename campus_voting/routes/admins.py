# campus_voting/routes/admins.py

from flask import Blueprint, g, jsonify

from campus_voting import db
from campus_voting.audit.audit_logger import audit_logger
from campus_voting.authentication.rbac import AdminRole, Permission, require_permission
from campus_voting.database.models import AdminAccount
from campus_voting.encryption.password_hashing import PasswordHashingService
from campus_voting.errors import BadRequest, NotFound
from campus_voting.realtime.events import FORCE_LOGOUT, identity_room, publish
from campus_voting.routes import json_body
from campus_voting.security.token_manager import ADMIN

admins_bp = Blueprint('admins', __name__)
password_service = PasswordHashingService()


def _admin_from_body(data):
    username = (data.get('username') or '').strip()
    if not username:
        raise BadRequest('username is required.')
    admin = AdminAccount.query.filter_by(username=username).first()
    if admin is None:
        raise NotFound('Admin not found.')
    return admin


@admins_bp.route('/', methods=['GET'], strict_slashes=False)
@require_permission(Permission.MANAGE_ADMINS)
def list_admins():
    admins = AdminAccount.query.order_by(AdminAccount.created_at.asc()).all()
    return jsonify({'success': True, 'admins': [a.to_dict() for a in admins]})


@admins_bp.route('/', methods=['POST'], strict_slashes=False)
@require_permission(Permission.MANAGE_ADMINS)
def create_admin():
    data = json_body()
    username = (data.get('username') or '').strip()
    if not username:
        raise BadRequest('username is required.')
    role = data.get('role') or AdminRole.ADMIN.value
    if role not in [r.value for r in AdminRole]:
        raise BadRequest('Invalid role.')
    if AdminAccount.query.filter_by(username=username).first():
        raise BadRequest('An admin with this username already exists.')
    try:
        password_hash = password_service.hash_password(data.get('password') or '')
    except ValueError as e:
        raise BadRequest(str(e))

    admin = AdminAccount(username=username, password_hash=password_hash, role=role)
    db.session.add(admin)
    db.session.commit()
    audit_logger.log_admin_action(g.current_admin, 'CREATE_ADMIN', {'username': username, 'role': role})
    return jsonify({'success': True, 'message': f'Admin {username} created.', 'admin': admin.to_dict()}), 201


@admins_bp.route('/<int:admin_id>', methods=['DELETE'])
@require_permission(Permission.MANAGE_ADMINS)
def delete_admin(admin_id):
    admin = db.session.get(AdminAccount, admin_id)
    if admin is None:
        raise NotFound('Admin not found.')
    if admin.id == g.current_admin.id:
        raise BadRequest('You cannot delete your own account.')
    username = admin.username
    db.session.delete(admin)
    db.session.commit()
    publish(FORCE_LOGOUT, {'reason': 'account-deleted'}, to=identity_room(ADMIN, username))
    audit_logger.log_admin_action(g.current_admin, 'DELETE_ADMIN', {'username': username})
    return jsonify({'success': True, 'message': f'Admin {username} deleted.'})


@admins_bp.route('/reset-password', methods=['POST'])
@require_permission(Permission.MANAGE_ADMINS)
def reset_admin_password():
    data = json_body()
    admin = _admin_from_body(data)
    new_password = data.get('newPassword') or password_service.generate_secure_password()
    try:
        admin.password_hash = password_service.hash_password(new_password)
    except ValueError as e:
        raise BadRequest(str(e))
    admin.current_session_token = None
    db.session.commit()
    publish(FORCE_LOGOUT, {'reason': 'password-reset'}, to=identity_room(ADMIN, admin.username))
    audit_logger.log_admin_action(g.current_admin, 'RESET_ADMIN_PASSWORD', {'username': admin.username})
    return jsonify({
        'success': True,
        'message': f'Password reset for {admin.username}.',
        'temporaryPassword': new_password,
    })


@admins_bp.route('/logout', methods=['POST'])
@require_permission(Permission.MANAGE_ADMINS)
def logout_admin():
    admin = _admin_from_body(json_body())
    admin.current_session_token = None
    db.session.commit()
    publish(FORCE_LOGOUT, {'reason': 'admin-logout'}, to=identity_room(ADMIN, admin.username))
    audit_logger.log_admin_action(g.current_admin, 'FORCE_ADMIN_LOGOUT', {'username': admin.username})
    return jsonify({'success': True, 'message': f'{admin.username} has been logged out.'})
