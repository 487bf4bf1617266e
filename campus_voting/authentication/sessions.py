# campus_voting/authentication/sessions.py

# Single-active-session enforcement shared by the HTTP layer and the socket layer.
# A token is only honoured while its embedded sid equals the account's stored
# current_session_token; every login rotates that value.

from dataclasses import dataclass
from functools import wraps
from typing import Optional

from flask import g, request

from campus_voting import db
from campus_voting.database.models import Account, AdminAccount
from campus_voting.errors import ApiError, SessionExpired, Unauthorized
from campus_voting.security.token_manager import ADMIN, STUDENT, token_manager

SESSION_SUPERSEDED = 'Session Expired: Logged in on another device.'


@dataclass(frozen=True)
class Identity:
    kind: str
    account: Optional[Account] = None
    admin: Optional[AdminAccount] = None

    @property
    def key(self):
        if self.kind == ADMIN:
            return f'admin:{self.admin.username}'
        return f'student:{self.account.id}'


def token_from_request(req, kind):
    """Session token from the kind's cookie, falling back to a bearer header."""
    token = req.cookies.get(token_manager.cookie_name(kind))
    if token:
        return token
    header = req.headers.get('Authorization', '')
    if header.lower().startswith('bearer '):
        return header[7:].strip() or None
    return None


def resolve_student(token):
    if not token:
        raise Unauthorized('Unauthorized: No Token')
    claims = token_manager.validate_token(token, STUDENT)
    if claims is None:
        raise Unauthorized('Unauthorized: Invalid Token')
    account_id, session_id = claims
    try:
        account = db.session.get(Account, int(account_id))
    except (TypeError, ValueError):
        raise Unauthorized('Unauthorized: Invalid Token')
    if account is None or account.current_session_token != session_id:
        raise SessionExpired(SESSION_SUPERSEDED)
    return account


def resolve_admin(token):
    if not token:
        raise Unauthorized('Unauthorized: No Admin Token')
    claims = token_manager.validate_token(token, ADMIN)
    if claims is None:
        raise Unauthorized('Unauthorized: Invalid Admin Token')
    username, session_id = claims
    admin = AdminAccount.query.filter_by(username=username).first()
    if admin is None or admin.current_session_token != session_id:
        raise SessionExpired(SESSION_SUPERSEDED)
    return admin


def resolve_identity(req):
    """Best-effort classification of a request; None when no valid session is present."""
    for kind in (ADMIN, STUDENT):
        token = token_from_request(req, kind)
        if not token:
            continue
        try:
            if kind == ADMIN:
                return Identity(kind=ADMIN, admin=resolve_admin(token))
            return Identity(kind=STUDENT, account=resolve_student(token))
        except ApiError:
            continue
    return None


def login_required(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        g.current_account = resolve_student(token_from_request(request, STUDENT))
        return func(*args, **kwargs)
    return wrapper


def admin_required(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        g.current_admin = resolve_admin(token_from_request(request, ADMIN))
        return func(*args, **kwargs)
    return wrapper
