# campus_voting/security/token_manager.py
import secrets
from datetime import timedelta
from flask_jwt_extended import create_access_token, decode_token
from flask import current_app

# Signed session tokens embedding {identity, sid, kind} via Flask-JWT-Extended

STUDENT = "student"
ADMIN = "admin"


class TokenManager:
    def new_session_id(self) -> str:
        # Opaque per-login value; storing it on the account invalidates older tokens
        return secrets.token_hex(32)

    def generate_token(self, identity: str, session_id: str, kind: str, expires_in: int = None) -> str:
        if expires_in is None:
            expires_in = current_app.config["SESSION_TTL_SECONDS"]
        return create_access_token(
            identity=str(identity),
            expires_delta=timedelta(seconds=expires_in),
            additional_claims={"sid": session_id, "kind": kind},
        )

    def validate_token(self, token: str, kind: str):
        """Return ``(identity, session_id)`` for a valid token of ``kind``, else None."""
        try:
            decoded = decode_token(token, allow_expired=False)
        except Exception as e:
            current_app.logger.warning(f"Token validation failed: {str(e)}")
            return None
        if decoded.get("kind") != kind or not decoded.get("sid"):
            current_app.logger.warning("Token validation failed: wrong token kind")
            return None
        return decoded.get("sub"), decoded.get("sid")

    def cookie_name(self, kind: str) -> str:
        if kind == ADMIN:
            return current_app.config["ADMIN_COOKIE_NAME"]
        return current_app.config["STUDENT_COOKIE_NAME"]

    def set_session_cookie(self, response, token: str, kind: str):
        response.set_cookie(
            self.cookie_name(kind),
            token,
            max_age=current_app.config["SESSION_TTL_SECONDS"],
            httponly=True,
            secure=current_app.config["SESSION_COOKIE_SECURE"],
            samesite="Lax",
            path="/",
        )
        return response

    def unset_session_cookie(self, response, kind: str):
        response.delete_cookie(self.cookie_name(kind), path="/")
        return response


token_manager = TokenManager()
