# Overview: Service-layer operations for permission; bridges User rows to the authorization engine.

"""
Permission Checking, Temporary Grants and Security Event Logging

DESIGN PRINCIPLES:
- Fail closed: deny by default; the static role table plus active
  temporary grants is the whole permission set
- One engine: every check goes through economica.permissions so the server
  and the POS terminal cannot disagree
- Log denials only: granted checks are not written to security_events
- Grants lapse on their own; revocation just moves expires_at into the past
"""

from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SecurityEvent, TemporaryPermission, User
from ..permissions import (
    AccessCheck,
    Principal,
    Role,
    TemporaryGrant,
    can_manage_user,
    has_permission,
    is_authorized,
    validate_permission_code,
    validate_role_transition,
)
from ..pos.errors import AuthorizationDenied, ValidationError
from ..time_utils import utcnow


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """
    Append to the security audit trail.

    event_type examples:
    - PERMISSION_DENIED
    - LOGIN_FAILED / LOGIN / LOGOUT
    - ROLE_CHANGED
    - TEMP_PERMISSION_GRANTED / TEMP_PERMISSION_REVOKED
    """
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )

    db.session.add(event)
    db.session.commit()
    return event


# =============================================================================
# PRINCIPALS
# =============================================================================

def active_grants(user_id: int, now=None) -> list[TemporaryPermission]:
    now = now or utcnow()
    return (
        db.session.query(TemporaryPermission)
        .filter(
            TemporaryPermission.user_id == user_id,
            TemporaryPermission.expires_at >= now,
        )
        .order_by(TemporaryPermission.granted_at.desc())
        .all()
    )


def principal_for(user: User, now=None) -> Principal:
    """Build the engine's view of ``user`` with its currently active grants."""
    grants = [
        TemporaryGrant(principal_id=row.user_id, permission=row.permission, expires_at=row.expires_at)
        for row in active_grants(user.id, now)
    ]
    return Principal(
        id=user.id,
        role=Role.parse(user.role),
        level=user.level,
        is_active=user.is_active,
        grants=tuple(grants),
    )


def user_is_authorized(user: User, check) -> bool:
    return is_authorized(principal_for(user), check)


def require_access(
    user: User,
    check,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """Raise PermissionDeniedError (and log the denial) unless authorized."""
    if user_is_authorized(user, check):
        return

    if isinstance(check, str):
        check = AccessCheck(permission=check)
    details = check.describe()
    log_security_event(
        user_id=user.id,
        event_type="PERMISSION_DENIED",
        success=False,
        resource=resource,
        action=check.permission or f"LEVEL>={check.min_level}",
        reason=f"Access check failed: {details}",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    raise PermissionDeniedError("Permission denied", details)


# =============================================================================
# TEMPORARY PERMISSIONS
# =============================================================================

def list_temporary_permissions(user_id: int) -> list[TemporaryPermission]:
    """Active grants only; expired rows are history."""
    return active_grants(user_id)


def grant_temporary_permission(
    *,
    granter: User,
    user_id: int,
    permission: str,
    duration_minutes: int | None = None,
) -> TemporaryPermission:
    """
    Grant ``permission`` to ``user_id`` for ``duration_minutes``.

    Rules:
    - The permission must be a known code
    - The granter must hold it through their role (a grant cannot be re-granted)
    - The granter must be able to manage the target's role
    - Duration is 1..TEMP_PERMISSION_MAX_MINUTES, default TEMP_PERMISSION_DEFAULT_MINUTES
    """
    if duration_minutes is None:
        duration_minutes = current_app.config["TEMP_PERMISSION_DEFAULT_MINUTES"]
    max_minutes = current_app.config["TEMP_PERMISSION_MAX_MINUTES"]
    if not 1 <= duration_minutes <= max_minutes:
        raise ValidationError(
            f"duration_minutes must be between 1 and {max_minutes}",
            {"duration_minutes": duration_minutes},
        )

    if not validate_permission_code(permission):
        raise ValidationError(f"Unknown permission: {permission}", {"permission": permission})

    role_only = Principal(id=granter.id, role=Role.parse(granter.role), level=granter.level, is_active=granter.is_active)
    if not has_permission(role_only, permission):
        raise PermissionDeniedError("Cannot grant a permission you do not hold", {"permission": permission})

    target = db.session.get(User, user_id)
    if not target:
        raise ValueError("User not found")

    if not can_manage_user(granter.role, target.role):
        raise PermissionDeniedError("Not allowed to grant permissions to this user", {"user_id": user_id})

    now = utcnow()
    grant = TemporaryPermission(
        user_id=target.id,
        permission=permission,
        granted_by_user_id=granter.id,
        duration_minutes=duration_minutes,
        granted_at=now,
        expires_at=now + timedelta(minutes=duration_minutes),
    )
    db.session.add(grant)
    db.session.commit()

    log_security_event(
        user_id=granter.id,
        event_type="TEMP_PERMISSION_GRANTED",
        success=True,
        resource=f"user:{target.id}",
        action=permission,
        reason=f"{duration_minutes} minutes",
    )
    return grant


def revoke_temporary_permission(*, revoker: User, user_id: int, permission: str) -> int:
    """Expire every active grant of ``permission`` for the user. Returns how many."""
    target = db.session.get(User, user_id)
    if not target:
        raise ValueError("User not found")

    if not can_manage_user(revoker.role, target.role):
        raise PermissionDeniedError("Not allowed to modify this user", {"user_id": user_id})

    now = utcnow()
    rows = [row for row in active_grants(user_id, now) if row.permission == permission]
    for row in rows:
        row.expires_at = now - timedelta(seconds=1)
        row.revoked_at = now
        row.revoked_by_user_id = revoker.id
    db.session.commit()

    if rows:
        log_security_event(
            user_id=revoker.id,
            event_type="TEMP_PERMISSION_REVOKED",
            success=True,
            resource=f"user:{user_id}",
            action=permission,
        )
    return len(rows)


# =============================================================================
# ROLES
# =============================================================================

def visible_users(viewer: User) -> list[User]:
    """Users at or below the viewer's level, highest level first."""
    return (
        db.session.query(User)
        .filter(User.level <= viewer.level)
        .order_by(User.level.desc(), User.created_at.desc())
        .all()
    )


def update_user_role(*, assigner: User, user_id: int, new_role) -> User:
    target = db.session.get(User, user_id)
    if not target:
        raise ValueError("User not found")

    try:
        new_role = Role.parse(new_role)
    except ValueError:
        raise ValidationError(f"Invalid role: {new_role}", {"role": new_role})

    try:
        validate_role_transition(target.role, new_role, assigner.role)
    except AuthorizationDenied as exc:
        log_security_event(
            user_id=assigner.id,
            event_type="PERMISSION_DENIED",
            success=False,
            resource=f"user:{target.id}",
            action="ROLE_CHANGE",
            reason=str(exc),
        )
        raise PermissionDeniedError(str(exc), exc.details)

    old_role = target.role
    target.set_role(new_role)
    db.session.commit()

    log_security_event(
        user_id=assigner.id,
        event_type="ROLE_CHANGED",
        success=True,
        resource=f"user:{target.id}",
        action="ROLE_CHANGE",
        reason=f"{old_role} -> {target.role}",
    )
    return target
