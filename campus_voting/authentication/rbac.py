# campus_voting/authentication/rbac.py

from enum import Enum
from functools import wraps

from flask import g

from campus_voting.authentication.sessions import admin_required
from campus_voting.errors import Forbidden

# Role checks for administrators. The session resolver only proves who the
# admin is; routes opt into role gating with the decorator below.


class AdminRole(Enum):
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


class Permission(Enum):
    MANAGE_TEAMS = "manage_teams"
    CONFIGURE_VOTING = "configure_voting"
    MANAGE_USERS = "manage_users"
    MANAGE_SCORES = "manage_scores"
    VIEW_TRANSACTIONS = "view_transactions"
    VIEW_AUDIT_LOGS = "view_audit_logs"
    RESET_PASSWORDS = "reset_passwords"
    DELETE_VOTES = "delete_votes"
    DELETE_USERS = "delete_users"
    MANAGE_ADMINS = "manage_admins"


_ADMIN_PERMISSIONS = [
    Permission.MANAGE_TEAMS,
    Permission.CONFIGURE_VOTING,
    Permission.MANAGE_USERS,
    Permission.MANAGE_SCORES,
]

# Role -> Permissions mapping
ROLE_PERMISSIONS = {
    AdminRole.ADMIN: _ADMIN_PERMISSIONS,
    AdminRole.SUPER_ADMIN: _ADMIN_PERMISSIONS + [
        Permission.VIEW_TRANSACTIONS,
        Permission.VIEW_AUDIT_LOGS,
        Permission.RESET_PASSWORDS,
        Permission.DELETE_VOTES,
        Permission.DELETE_USERS,
        Permission.MANAGE_ADMINS,
    ],
}


class RBACService:
    def has_permission(self, role, permission):
        if isinstance(role, str):
            try:
                role = AdminRole(role)
            except ValueError:
                return False
        if isinstance(permission, str):
            permission = Permission(permission)
        return permission in ROLE_PERMISSIONS.get(role, [])

    def get_permissions(self, role):
        if isinstance(role, str):
            role = AdminRole(role)
        return ROLE_PERMISSIONS.get(role, [])


rbac_service = RBACService()


# Decorator for required permission; implies a valid admin session
def require_permission(permission):
    def decorator(func):
        @wraps(func)
        @admin_required
        def wrapper(*args, **kwargs):
            if not rbac_service.has_permission(g.current_admin.role, permission):
                raise Forbidden("Access denied: insufficient privileges.")
            return func(*args, **kwargs)
        return wrapper
    return decorator

