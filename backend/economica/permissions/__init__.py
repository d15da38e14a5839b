# Overview: Permission system package.
# Re-exports all public APIs for imports from one place.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    SALES_PERMISSIONS,
    INVENTORY_PERMISSIONS,
    REPORT_PERMISSIONS,
    STAFF_PERMISSIONS,
    BUSINESS_PERMISSIONS,
    CUSTOMER_PERMISSIONS,
    SYSTEM_PERMISSIONS,
)
from .roles import Role, ROLE_PERMISSIONS, ROLE_HIERARCHY, CAN_ASSIGN_ROLES, WILDCARD
from .helpers import (
    get_all_permission_codes,
    get_permissions_by_category,
    get_permission_definition,
    validate_permission_code,
)
from .engine import (
    AccessCheck,
    Principal,
    TemporaryGrant,
    accessible_roles,
    can_assign_role,
    can_manage_user,
    effective_permissions,
    has_level,
    has_permission,
    has_role,
    is_authorized,
    require,
    validate_role_transition,
)

# Permission required to move a cart into payment
CHECKOUT_PERMISSION = "sales:process_payment"
DISCOUNT_PERMISSION = "sales:apply_discount"

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "SALES_PERMISSIONS",
    "INVENTORY_PERMISSIONS",
    "REPORT_PERMISSIONS",
    "STAFF_PERMISSIONS",
    "BUSINESS_PERMISSIONS",
    "CUSTOMER_PERMISSIONS",
    "SYSTEM_PERMISSIONS",
    "Role",
    "ROLE_PERMISSIONS",
    "ROLE_HIERARCHY",
    "CAN_ASSIGN_ROLES",
    "WILDCARD",
    "CHECKOUT_PERMISSION",
    "DISCOUNT_PERMISSION",
    "get_all_permission_codes",
    "get_permissions_by_category",
    "get_permission_definition",
    "validate_permission_code",
    "AccessCheck",
    "Principal",
    "TemporaryGrant",
    "accessible_roles",
    "can_assign_role",
    "can_manage_user",
    "effective_permissions",
    "has_level",
    "has_permission",
    "has_role",
    "is_authorized",
    "require",
    "validate_role_transition",
]
