# Overview: Request and role decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service, security_service


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user')


def log_denial(event_type: str, reason: str) -> None:
    """Record a denied request for the authenticated user in the security log."""
    security_service.log_security_event(
        user_id=g.current_user.id if _is_authenticated() else None,
        event_type=event_type,
        success=False,
        resource=request.path,
        action=request.method,
        reason=reason,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )


def require_auth(f):
    """
    Require a valid bearer session.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_context: The full SessionContext object
    - g.session_token: The plaintext bearer token (for logout)

    Returns 401 if:
    - No Authorization header
    - Invalid, expired, idle or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]

        context = session_service.validate_session(token)

        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.session_context = context
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_user_type(*user_types: str):
    """
    Require the authenticated user to have one of the given user types.

    Must be stacked under @require_auth. Denials are written to the
    security log.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            user = g.current_user
            if user.user_type not in user_types:
                log_denial(
                    "PERMISSION_DENIED",
                    f"user_type {user.user_type} not in {', '.join(user_types)}",
                )
                return jsonify({
                    "error": "Permission denied",
                    "required_user_types": list(user_types),
                    "message": f"Requires user type: {', '.join(user_types)}"
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
