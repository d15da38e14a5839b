# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..permissions import effective_permissions
from ..services import auth_service, permission_service, session_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _principal_payload(user) -> dict:
    principal = permission_service.principal_for(user)
    grants = permission_service.active_grants(user.id)
    return {
        "user": user.to_dict(),
        "permissions": sorted(effective_permissions(principal)),
        "temporary_permissions": [grant.to_dict() for grant in grants],
    }


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and create a session token.

    The token must be sent as ``Authorization: Bearer <token>`` on every
    protected route.
    """
    try:
        data = request.get_json(silent=True) or {}
        email = data.get("email") or data.get("username")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required", "code": "VALIDATION_ERROR"}), 400

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        user = auth_service.authenticate(email, password)
        if not user:
            permission_service.log_security_event(
                user_id=None,
                event_type="LOGIN_FAILED",
                success=False,
                resource="/api/auth/login",
                reason=f"Invalid credentials for {email}",
                ip_address=ip_address,
                user_agent=user_agent,
            )
            return jsonify({"error": "Invalid credentials", "code": "AUTHENTICATION_REQUIRED"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        permission_service.log_security_event(
            user_id=user.id,
            event_type="LOGIN",
            success=True,
            resource="/api/auth/login",
            ip_address=ip_address,
            user_agent=user_agent,
        )

        payload = _principal_payload(user)
        payload.update({"token": token, "session": session.to_dict(), "message": "Login successful"})
        return jsonify(payload), 200

    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.session_token)
    return jsonify({"message": "Logout successful"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user, effective permissions and active temporary grants."""
    return jsonify(_principal_payload(g.current_user)), 200
