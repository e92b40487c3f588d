# Overview: Request and page-access decorators for API routes.

from functools import wraps
from flask import request, jsonify, g, current_app

from .services import session_service, auth_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1]


def require_auth(f):
    """
    Require a valid session token.

    Sets:
    - g.current_user: The authenticated User object
    - g.session_token: The plaintext bearer token (used by logout)

    SECURITY: Returns 401 if the Authorization header is missing, or the token
    is invalid, expired, idle or belongs to a deactivated account.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        user = session_service.validate_session(token)
        if not user:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = user
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Require the authenticated user to hold the admin role."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required"}), 401
        if not g.current_user.is_admin:
            current_app.logger.warning(
                "Admin access denied: user_id=%s path=%s", g.current_user.id, request.path
            )
            return jsonify({"error": "Admin access required"}), 403
        return f(*args, **kwargs)
    return decorated_function


def require_page_access(page_path: str):
    """
    Require access to an admin console page.

    Admins always pass. Staff need a page_permissions row for page_path.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if not auth_service.has_page_access(g.current_user, page_path):
                current_app.logger.warning(
                    "Page access denied: user_id=%s page=%s path=%s",
                    g.current_user.id, page_path, request.path,
                )
                return jsonify({
                    "error": "Permission denied",
                    "required_page": page_path,
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def current_user_id() -> int | None:
    user = getattr(g, 'current_user', None)
    return user.id if user else None
