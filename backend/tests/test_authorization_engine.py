"""
Authorization engine tests.

Verifies:
- Wildcard, static role set and temporary grant resolution
- Expired grants never authorize
- Role set, level and combined checks
- Role administration helpers
"""

from datetime import datetime, timedelta

import pytest

from economica.permissions import (
    AccessCheck,
    CAN_ASSIGN_ROLES,
    Principal,
    ROLE_PERMISSIONS,
    Role,
    TemporaryGrant,
    accessible_roles,
    can_assign_role,
    can_manage_user,
    effective_permissions,
    get_all_permission_codes,
    has_level,
    has_role,
    is_authorized,
    require,
    validate_permission_code,
    validate_role_transition,
)
from economica.pos.errors import AuthorizationDenied


NOW = datetime(2024, 6, 1, 12, 0, 0)


def principal(role=Role.CASHIER, grants=(), is_active=True, id=1):
    return Principal(id=id, role=role, level=role.level, is_active=is_active, grants=tuple(grants))


def grant(permission, expires_at, principal_id=1):
    return TemporaryGrant(principal_id=principal_id, permission=permission, expires_at=expires_at)


# =============================================================================
# PERMISSION RESOLUTION
# =============================================================================


class TestPermissionResolution:

    def test_no_principal_is_denied(self):
        assert is_authorized(None, "sales:create") is False
        assert is_authorized(None) is False

    def test_empty_check_is_vacuously_authorized(self):
        assert is_authorized(principal()) is True
        assert is_authorized(principal(), AccessCheck()) is True

    def test_static_role_permission(self):
        assert is_authorized(principal(), "sales:process_payment") is True
        assert is_authorized(principal(), "sales:apply_discount") is False

    def test_developer_wildcard_grants_everything(self):
        dev = principal(Role.DEVELOPER)
        assert is_authorized(dev, "sales:apply_discount")
        assert is_authorized(dev, "anything:at_all")

    def test_inactive_principal_denied_everything(self):
        assert is_authorized(principal(Role.DEVELOPER, is_active=False), "sales:create") is False
        assert is_authorized(principal(is_active=False)) is False

    @pytest.mark.parametrize("permission", ["sales:apply_discount", "staff:manage_roles", "business:manage_pricing"])
    def test_cashier_needs_unexpired_grant_for_higher_permission(self, permission):
        assert not is_authorized(principal(), permission, now=NOW)

        active = principal(grants=[grant(permission, NOW + timedelta(minutes=30))])
        assert is_authorized(active, permission, now=NOW)

        expired = principal(grants=[grant(permission, NOW - timedelta(seconds=1))])
        assert not is_authorized(expired, permission, now=NOW)

    def test_grant_expires_when_clock_passes_expiry(self):
        expires = NOW + timedelta(minutes=5)
        p = principal(grants=[grant("sales:apply_discount", expires)])

        assert is_authorized(p, "sales:apply_discount", now=expires)
        assert not is_authorized(p, "sales:apply_discount", now=expires + timedelta(microseconds=1))

    def test_grant_must_match_exact_permission(self):
        p = principal(grants=[grant("sales:apply_discount", NOW + timedelta(hours=1))])
        assert not is_authorized(p, "sales:handle_return", now=NOW)

    def test_grant_for_another_principal_is_ignored(self):
        p = principal(grants=[grant("sales:apply_discount", NOW + timedelta(hours=1), principal_id=99)])
        assert not is_authorized(p, "sales:apply_discount", now=NOW)

    def test_grants_never_remove_role_permissions(self):
        p = principal(grants=[grant("sales:create", NOW - timedelta(days=1))])
        assert is_authorized(p, "sales:create", now=NOW)

    def test_effective_permissions_include_active_grants_only(self):
        p = principal(grants=[
            grant("sales:apply_discount", NOW + timedelta(hours=1)),
            grant("staff:view", NOW - timedelta(hours=1)),
        ])
        perms = effective_permissions(p, now=NOW)
        assert "sales:apply_discount" in perms
        assert "staff:view" not in perms
        assert ROLE_PERMISSIONS[Role.CASHIER] <= perms


# =============================================================================
# ROLE AND LEVEL CHECKS
# =============================================================================


class TestRoleAndLevelChecks:

    def test_role_set(self):
        check = AccessCheck(roles={"LEVEL_3_MANAGER", Role.OWNER})
        assert is_authorized(principal(Role.MANAGER), check)
        assert not is_authorized(principal(Role.SUPERVISOR), check)
        assert has_role(principal(Role.OWNER), "OWNER")

    def test_min_level_uses_principal_level(self):
        p = Principal(id=1, role=Role.CASHIER, level=3)
        assert is_authorized(p, AccessCheck(min_level=3))
        assert not is_authorized(p, AccessCheck(min_level=4))
        assert has_level(p, 2)

    def test_require_all_versus_any(self):
        check_all = AccessCheck(permission="sales:apply_discount", min_level=1)
        check_any = AccessCheck(permission="sales:apply_discount", min_level=1, require_all=False)
        assert not is_authorized(principal(), check_all)
        assert is_authorized(principal(), check_any)

    def test_require_raises_with_failed_check(self):
        with pytest.raises(AuthorizationDenied) as exc:
            require(principal(), "sales:apply_discount")
        assert exc.value.details["permission"] == "sales:apply_discount"
        assert exc.value.details["principal_id"] == 1

    def test_unsupported_check_type(self):
        with pytest.raises(TypeError):
            is_authorized(principal(), 42)


# =============================================================================
# ROLE ADMINISTRATION
# =============================================================================


class TestRoleAdministration:

    def test_assignable_roles(self):
        assert can_assign_role(Role.OWNER, Role.OWNER)
        assert not can_assign_role(Role.OWNER, Role.DEVELOPER)
        assert can_assign_role(Role.MANAGER, Role.CASHIER)
        assert not can_assign_role(Role.MANAGER, Role.MANAGER)
        assert CAN_ASSIGN_ROLES[Role.CASHIER] == ()

    def test_manage_user_by_level(self):
        assert can_manage_user("LEVEL_3_MANAGER", "LEVEL_3_MANAGER")
        assert not can_manage_user(Role.SUPERVISOR, Role.MANAGER)

    def test_accessible_roles(self):
        assert accessible_roles(Role.SUPERVISOR) == [Role.CASHIER, Role.SUPERVISOR]

    def test_role_transition_rejected_above_assigner(self):
        validate_role_transition(Role.CASHIER, Role.SUPERVISOR, Role.MANAGER)
        with pytest.raises(AuthorizationDenied):
            validate_role_transition(Role.CASHIER, Role.OWNER, Role.MANAGER)
        with pytest.raises(AuthorizationDenied):
            validate_role_transition(Role.OWNER, Role.CASHIER, Role.MANAGER)

    def test_role_parse_accepts_names_and_values(self):
        assert Role.parse("LEVEL_2_SUPERVISOR") is Role.SUPERVISOR
        assert Role.parse("manager") is Role.MANAGER
        with pytest.raises(ValueError):
            Role.parse("LEVEL_9_GOD")

    def test_every_role_permission_is_defined(self):
        codes = set(get_all_permission_codes())
        for role, perms in ROLE_PERMISSIONS.items():
            if role is Role.DEVELOPER:
                continue
            assert perms <= codes, f"{role} has undefined permissions: {perms - codes}"
        assert validate_permission_code("sales:apply_discount")
        assert not validate_permission_code("sales:teleport")
