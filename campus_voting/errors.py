# campus_voting/errors.py

import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Failure that maps onto a ``{"success": false, "message": ...}`` response.

    Extra keyword arguments are merged into the response body, e.g.
    ``Forbidden("Approval pending", status="PENDING")``.
    """

    status_code = 400

    def __init__(self, message, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self):
        body = {"success": False, "message": self.message}
        body.update(self.extra)
        return body


class BadRequest(ApiError):
    status_code = 400


class Unauthorized(ApiError):
    status_code = 401


class SessionExpired(ApiError):
    status_code = 401


class Forbidden(ApiError):
    status_code = 403


class VotingClosed(ApiError):
    status_code = 403


class NotFound(ApiError):
    status_code = 404


class Conflict(ApiError):
    status_code = 409


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({"success": False, "message": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        logger.exception("Unhandled error: %s", error)
        return jsonify({"success": False, "message": "Internal server error"}), 500
