# Overview: Request and permission decorators for API routes.

from functools import wraps

from flask import g, jsonify, request

from .permissions import AccessCheck
from .services import permission_service, session_service
from .services.permission_service import PermissionDeniedError


def _is_authenticated() -> bool:
    return hasattr(g, "current_user")


def _deny(check: AccessCheck, message: str):
    return jsonify({
        "error": "Permission denied",
        "code": "AUTHORIZATION_DENIED",
        "message": message,
        "details": check.describe(),
    }), 403


def require_auth(f):
    """
    Require a valid bearer token.

    Sets g.current_user to the authenticated User. Returns 401 if the header
    is missing, or the token is unknown, expired, revoked, idle or belongs to
    a deactivated account.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required", "code": "AUTHENTICATION_REQUIRED"}), 401

        token = auth_header.split(" ", 1)[1]
        user = session_service.validate_session(token)

        if not user:
            return jsonify({"error": "Invalid or expired token", "code": "AUTHENTICATION_REQUIRED"}), 401

        g.current_user = user
        g.session_token = token
        return f(*args, **kwargs)

    return decorated_function


def _require(check: AccessCheck, message: str):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required", "code": "AUTHENTICATION_REQUIRED"}), 401

            try:
                permission_service.require_access(
                    g.current_user,
                    check,
                    resource=request.path,
                    ip_address=request.remote_addr,
                    user_agent=request.headers.get("User-Agent"),
                )
            except PermissionDeniedError:
                return _deny(check, message)

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_permission(permission_code: str):
    """Require a specific permission (role table or active temporary grant)."""
    return _require(AccessCheck(permission=permission_code), f"Requires {permission_code}")


def require_level(min_level: int):
    """Require the user's numeric level to be at least ``min_level``."""
    return _require(AccessCheck(min_level=min_level), f"Requires level {min_level} or higher")
