"""
Authorization Engine

Decides whether a principal may perform a labeled action. Pure and
synchronous: the result depends only on the principal's role, the static
role table, the principal's temporary grants and the current time, which is
read at call time and never cached.

Resolution order for a permission string:
1. Role holds the wildcard -> authorized
2. Permission is in the role's static set -> authorized
3. An unexpired TemporaryGrant for this principal matches -> authorized
4. Otherwise denied
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from ..pos.errors import AuthorizationDenied
from ..time_utils import parse_iso_datetime, utcnow
from .roles import CAN_ASSIGN_ROLES, ROLE_HIERARCHY, ROLE_PERMISSIONS, WILDCARD, Role


@dataclass(frozen=True)
class TemporaryGrant:
    """Time-bounded permission override. Additive only; inert once expired."""
    principal_id: int
    permission: str
    expires_at: datetime

    def is_active(self, now: datetime) -> bool:
        return now <= self.expires_at

    @classmethod
    def from_dict(cls, data: dict) -> "TemporaryGrant":
        return cls(
            principal_id=int(data["user_id"]),
            permission=data["permission"],
            expires_at=parse_iso_datetime(data["expires_at"]),
        )


@dataclass(frozen=True)
class Principal:
    """Authenticated user as seen by authorization checks."""
    id: int
    role: Role
    level: int
    is_active: bool = True
    grants: tuple[TemporaryGrant, ...] = ()

    @classmethod
    def from_dict(cls, data: dict, grants: Iterable[TemporaryGrant] = ()) -> "Principal":
        role = Role.parse(data["role"])
        level = data.get("level")
        return cls(
            id=int(data["id"]),
            role=role,
            level=int(level) if level is not None else role.level,
            is_active=bool(data.get("is_active", True)),
            grants=tuple(grants),
        )


@dataclass(frozen=True)
class AccessCheck:
    """
    What a caller wants verified. Any combination of a permission, a set of
    roles and a minimum level; ``require_all`` picks all() vs any().
    """
    permission: str | None = None
    roles: frozenset = field(default=None)
    min_level: int | None = None
    require_all: bool = True

    def __post_init__(self):
        if self.roles is not None:
            object.__setattr__(self, "roles", frozenset(Role.parse(r) for r in self.roles))

    @property
    def is_empty(self) -> bool:
        return self.permission is None and self.roles is None and self.min_level is None

    def describe(self) -> dict:
        return {
            "permission": self.permission,
            "roles": sorted(r.value for r in self.roles) if self.roles is not None else None,
            "min_level": self.min_level,
            "require_all": self.require_all,
        }


def _as_check(check) -> AccessCheck:
    if check is None:
        return AccessCheck()
    if isinstance(check, AccessCheck):
        return check
    if isinstance(check, str):
        return AccessCheck(permission=check)
    raise TypeError(f"Unsupported access check: {check!r}")


def _usable(principal: Principal | None) -> bool:
    return principal is not None and principal.is_active


def has_permission(principal: Principal | None, permission: str, *, now: datetime | None = None) -> bool:
    if not _usable(principal):
        return False

    static = ROLE_PERMISSIONS.get(principal.role, frozenset())
    if WILDCARD in static:
        return True
    if permission in static:
        return True

    now = now or utcnow()
    return any(
        grant.principal_id == principal.id
        and grant.permission == permission
        and grant.is_active(now)
        for grant in principal.grants
    )


def has_role(principal: Principal | None, roles) -> bool:
    if not _usable(principal):
        return False
    if isinstance(roles, (str, Role)):
        roles = [roles]
    return principal.role in {Role.parse(r) for r in roles}


def has_level(principal: Principal | None, min_level: int) -> bool:
    if not _usable(principal):
        return False
    return principal.level >= min_level


def is_authorized(principal: Principal | None, check=None, *, now: datetime | None = None) -> bool:
    """
    Evaluate ``check`` (an AccessCheck, a permission string or None) for
    ``principal``. Without a principal every check is denied; a check that
    asks for nothing is vacuously authorized.
    """
    if not _usable(principal):
        return False

    check = _as_check(check)
    results: list[bool] = []

    if check.permission is not None:
        results.append(has_permission(principal, check.permission, now=now))
    if check.roles is not None:
        results.append(principal.role in check.roles)
    if check.min_level is not None:
        results.append(principal.level >= check.min_level)

    if not results:
        return True

    return all(results) if check.require_all else any(results)


def require(principal: Principal | None, check=None, *, now: datetime | None = None) -> None:
    """Raise AuthorizationDenied unless ``is_authorized``."""
    if is_authorized(principal, check, now=now):
        return
    check = _as_check(check)
    details = check.describe()
    details["principal_id"] = principal.id if principal else None
    if principal is None:
        raise AuthorizationDenied("Authentication required", details)
    raise AuthorizationDenied("Permission denied", details)


def effective_permissions(principal: Principal | None, *, now: datetime | None = None) -> frozenset[str]:
    """Static role permissions plus active grants (the wildcard stays a wildcard)."""
    if not _usable(principal):
        return frozenset()
    now = now or utcnow()
    granted = {
        g.permission for g in principal.grants
        if g.principal_id == principal.id and g.is_active(now)
    }
    return frozenset(ROLE_PERMISSIONS.get(principal.role, frozenset()) | granted)


# =============================================================================
# ROLE ADMINISTRATION
# =============================================================================

def can_assign_role(assigner_role, target_role) -> bool:
    return Role.parse(target_role) in CAN_ASSIGN_ROLES.get(Role.parse(assigner_role), ())


def can_manage_user(manager_role, target_role) -> bool:
    """Managers need a level at least equal to the target's."""
    return ROLE_HIERARCHY[Role.parse(manager_role)] >= ROLE_HIERARCHY[Role.parse(target_role)]


def accessible_roles(role) -> list[Role]:
    level = ROLE_HIERARCHY[Role.parse(role)]
    return [r for r, r_level in ROLE_HIERARCHY.items() if r_level <= level]


def validate_role_transition(current_role, new_role, assigner_role) -> None:
    if not can_assign_role(assigner_role, new_role):
        raise AuthorizationDenied(
            f"Not allowed to assign role {Role.parse(new_role).value}",
            {"assigner_role": Role.parse(assigner_role).value, "new_role": Role.parse(new_role).value},
        )
    if not can_manage_user(assigner_role, current_role):
        raise AuthorizationDenied(
            "Not allowed to modify this user",
            {"assigner_role": Role.parse(assigner_role).value, "current_role": Role.parse(current_role).value},
        )
