# Overview: Flask API routes for registration, login and sessions.

# backend/delivereth/routes/auth.py
"""
Authentication API routes

- Self-registration for business, stockist and vansales accounts
  (admins are created with `flask users create`)
- Bearer token sessions; include "Authorization: Bearer <token>"
- Failed and successful logins are written to the security log
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..models import User, SELF_REGISTRATION_TYPES
from ..services import auth_service
from ..services import session_service
from ..services import security_service
from ..services.auth_service import AccountError, PasswordValidationError
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")

REGISTRATION_POLICY = ModelValidationPolicy(
    writable_fields={
        "username", "email", "name", "phone", "user_type",
        "business_name", "tin", "address", "is_vat_registered",
    },
    required_on_create={"username", "email", "name", "phone", "user_type"},
    extra_fields={"password"},
)


@auth_bp.post("/register")
def register_route():
    """
    Create an account and log it in.

    Returns the user and a session token (201).
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=User, payload=payload, policy=REGISTRATION_POLICY, partial=False)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    password = patch.pop("password", None)
    if not isinstance(password, str) or not password:
        return jsonify({"error": "password required"}), 400

    if patch["user_type"] not in SELF_REGISTRATION_TYPES:
        return jsonify({
            "error": f"user_type must be one of: {', '.join(SELF_REGISTRATION_TYPES)}"
        }), 400

    try:
        user = auth_service.create_user(password=password, **patch)
        _, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except AccountError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500

    current_app.logger.info("Registered %s user %s", user.user_type, user.username)
    return jsonify({"user": user.to_dict(), "token": token}), 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username") or data.get("email")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "username and password required"}), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        user = auth_service.authenticate(username, password)

        if not user:
            security_service.log_security_event(
                user_id=None,
                event_type="LOGIN_FAILED",
                success=False,
                resource=request.path,
                action=request.method,
                reason=f"Invalid credentials for {username}",
                ip_address=ip_address,
                user_agent=user_agent,
            )
            return jsonify({"error": "Invalid credentials"}), 401

        security_service.log_security_event(
            user_id=user.id,
            event_type="LOGIN_SUCCESS",
            success=True,
            resource=request.path,
            action=request.method,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address
        )

        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "expires_at": session.to_dict()["expires_at"],
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the session used for this request."""
    try:
        session_service.revoke_session(g.session_token)
        return jsonify({"message": "Logged out"}), 200
    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.get("/me")
@require_auth
def me_route():
    """Return the authenticated user."""
    return jsonify({"user": g.current_user.to_dict()}), 200
