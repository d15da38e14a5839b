# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for organization and UI display."""
    SALES = "sales"
    INVENTORY = "inventory"
    REPORTS = "reports"
    STAFF = "staff"
    BUSINESS = "business"
    CUSTOMERS = "customers"
    CLIENTS = "clients"
    SYSTEM = "system"
