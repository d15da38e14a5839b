# Overview: Flask API routes for staff roles and temporary permissions.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_level, require_permission
from ..extensions import db
from ..models import User
from ..permissions import can_manage_user
from ..pos.errors import ValidationError
from ..services import permission_service
from ..services.permission_service import PermissionDeniedError
from ..validation import parse_int


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


def _forbidden(exc: PermissionDeniedError):
    return jsonify({"error": str(exc), "code": "AUTHORIZATION_DENIED", "details": exc.details}), 403


def _invalid(exc: ValidationError):
    return jsonify({"error": str(exc), "code": exc.code, "details": exc.details}), 400


@users_bp.get("")
@require_auth
@require_permission("staff:view")
def list_users_route():
    """Users at or below the caller's level."""
    users = permission_service.visible_users(g.current_user)
    return jsonify({"users": [u.to_dict() for u in users], "count": len(users)}), 200


@users_bp.put("/<int:user_id>/role")
@require_auth
@require_permission("staff:manage_roles")
def update_role_route(user_id: int):
    try:
        data = request.get_json(silent=True) or {}
        role = data.get("role")
        if not role:
            raise ValidationError("role is required")

        user = permission_service.update_user_role(assigner=g.current_user, user_id=user_id, new_role=role)
        return jsonify({"user": user.to_dict()}), 200

    except PermissionDeniedError as e:
        return _forbidden(e)
    except ValidationError as e:
        return _invalid(e)
    except ValueError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update user role")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.get("/<int:user_id>/temporary-permissions")
@require_auth
def list_temporary_permissions_route(user_id: int):
    """A user may read their own grants; otherwise the caller must be able to manage them."""
    user = db.session.get(User, user_id)
    if not user:
        return jsonify({"error": "User not found"}), 404

    caller = g.current_user
    if caller.id != user.id and not (caller.level >= 2 and can_manage_user(caller.role, user.role)):
        return jsonify({"error": "Permission denied", "code": "AUTHORIZATION_DENIED"}), 403

    grants = permission_service.list_temporary_permissions(user_id)
    return jsonify({"temporary_permissions": [t.to_dict() for t in grants]}), 200


@users_bp.post("/<int:user_id>/temporary-permissions")
@require_auth
@require_level(2)
def grant_temporary_permission_route(user_id: int):
    try:
        data = request.get_json(silent=True) or {}
        permission = (data.get("permission") or "").strip()
        if not permission:
            raise ValidationError("permission is required")

        duration = data.get("duration_minutes")
        if duration is not None:
            duration = parse_int(
                duration,
                "duration_minutes",
                minimum=1,
                maximum=current_app.config["TEMP_PERMISSION_MAX_MINUTES"],
            )

        grant = permission_service.grant_temporary_permission(
            granter=g.current_user,
            user_id=user_id,
            permission=permission,
            duration_minutes=duration,
        )
        return jsonify({"temporary_permission": grant.to_dict()}), 201

    except PermissionDeniedError as e:
        return _forbidden(e)
    except ValidationError as e:
        return _invalid(e)
    except ValueError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to grant temporary permission")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.delete("/<int:user_id>/temporary-permissions/<permission>")
@require_auth
@require_level(2)
def revoke_temporary_permission_route(user_id: int, permission: str):
    try:
        revoked = permission_service.revoke_temporary_permission(
            revoker=g.current_user,
            user_id=user_id,
            permission=permission,
        )
        return jsonify({"message": "Permiso temporal revocado", "revoked": revoked}), 200

    except PermissionDeniedError as e:
        return _forbidden(e)
    except ValueError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to revoke temporary permission")
        return jsonify({"error": "Internal server error"}), 500
