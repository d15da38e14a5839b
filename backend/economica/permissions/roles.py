# Overview: The five-level role hierarchy and its read-only permission table.

from __future__ import annotations

import enum
from types import MappingProxyType


WILDCARD = "*"


class Role(enum.Enum):
    """Ordered authority levels. Values are the names used on the wire."""
    CASHIER = "LEVEL_1_CASHIER"
    SUPERVISOR = "LEVEL_2_SUPERVISOR"
    MANAGER = "LEVEL_3_MANAGER"
    OWNER = "LEVEL_4_OWNER"
    DEVELOPER = "LEVEL_5_DEVELOPER"

    @property
    def level(self) -> int:
        return ROLE_HIERARCHY[self]

    @classmethod
    def parse(cls, value: "Role | str") -> "Role":
        """Accepts a Role, its wire value ("LEVEL_1_CASHIER") or its name ("CASHIER")."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            pass
        try:
            return cls[str(value).upper()]
        except KeyError:
            raise ValueError(f"Unknown role: {value}") from None


ROLE_HIERARCHY = MappingProxyType({
    Role.CASHIER: 1,
    Role.SUPERVISOR: 2,
    Role.MANAGER: 3,
    Role.OWNER: 4,
    Role.DEVELOPER: 5,
})


_CASHIER = frozenset({
    "sales:create",
    "sales:create_order",
    "sales:process_payment",
    "inventory:view",
    "customers:view_basic",
})

_SUPERVISOR = _CASHIER | {
    "sales:view_sales",
    "inventory:view_low_stock",
    "reports:view",
    "reports:view_sales",
    "staff:view",
    "staff:view_attendance",
    "clients:view",
    "customers:handle_complaints",
}

_MANAGER = _SUPERVISOR | {
    "sales:apply_discount",
    "sales:handle_return",
    "inventory:add_item",
    "inventory:update_item",
    "reports:view_inventory",
    "reports:view_employees",
    "staff:update",
    "customers:view_detailed",
}

_OWNER = _MANAGER | {
    "inventory:delete_item",
    "inventory:manage_suppliers",
    "reports:view_financial",
    "reports:export_data",
    "staff:create",
    "staff:delete",
    "staff:manage_roles",
    "business:manage_pricing",
    "business:manage_stores",
    "business:manage_policies",
    "business:view_analytics",
    "customers:manage_loyalty",
    "system:config",
}

# Static permission sets per role. Developer holds the wildcard.
ROLE_PERMISSIONS = MappingProxyType({
    Role.DEVELOPER: frozenset({WILDCARD}),
    Role.OWNER: frozenset(_OWNER),
    Role.MANAGER: frozenset(_MANAGER),
    Role.SUPERVISOR: frozenset(_SUPERVISOR),
    Role.CASHIER: _CASHIER,
})

# Roles each role is allowed to hand out
CAN_ASSIGN_ROLES = MappingProxyType({
    Role.DEVELOPER: (Role.OWNER, Role.MANAGER, Role.SUPERVISOR, Role.CASHIER),
    Role.OWNER: (Role.OWNER, Role.MANAGER, Role.SUPERVISOR, Role.CASHIER),
    Role.MANAGER: (Role.SUPERVISOR, Role.CASHIER),
    Role.SUPERVISOR: (Role.CASHIER,),
    Role.CASHIER: (),
})
