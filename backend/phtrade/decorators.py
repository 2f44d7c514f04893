# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1]


def require_auth(f):
    """
    Require a valid session token.

    Sets g.current_user and g.session_context. Routes pass
    g.current_user.id to services as the acting user.

    Returns 401 if the Authorization header is missing, or the token is
    unknown, expired or revoked.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if token is None:
            return jsonify({"code": "AuthenticationRequired", "description": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"code": "InvalidToken", "description": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function
