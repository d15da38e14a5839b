# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- SALES --

SALES_PERMISSIONS = [
    (
        "sales:create",
        "Open POS",
        "Access the point-of-sale terminal",
        PermissionCategory.SALES,
    ),
    (
        "sales:create_order",
        "Create Order",
        "Build carts and orders",
        PermissionCategory.SALES,
    ),
    (
        "sales:process_payment",
        "Process Payment",
        "Take payment and finalize a sale (checkout)",
        PermissionCategory.SALES,
    ),
    (
        "sales:apply_discount",
        "Apply Discount",
        "Enter a manual discount at checkout",
        PermissionCategory.SALES,
    ),
    (
        "sales:handle_return",
        "Handle Return",
        "Process product returns",
        PermissionCategory.SALES,
    ),
    (
        "sales:view_sales",
        "View Sales",
        "View sales made by any cashier",
        PermissionCategory.SALES,
    ),
]


# -- INVENTORY --

INVENTORY_PERMISSIONS = [
    (
        "inventory:view",
        "View Inventory",
        "View products and stock quantities",
        PermissionCategory.INVENTORY,
    ),
    (
        "inventory:add_item",
        "Add Item",
        "Create products",
        PermissionCategory.INVENTORY,
    ),
    (
        "inventory:update_item",
        "Update Item",
        "Edit products and stock",
        PermissionCategory.INVENTORY,
    ),
    (
        "inventory:delete_item",
        "Delete Item",
        "Deactivate products",
        PermissionCategory.INVENTORY,
    ),
    (
        "inventory:manage_suppliers",
        "Manage Suppliers",
        "Create and edit suppliers",
        PermissionCategory.INVENTORY,
    ),
    (
        "inventory:view_low_stock",
        "View Low Stock",
        "See low stock alerts",
        PermissionCategory.INVENTORY,
    ),
]


# -- REPORTS --

REPORT_PERMISSIONS = [
    ("reports:view", "View Reports", "Open the reports dashboard", PermissionCategory.REPORTS),
    ("reports:view_sales", "Sales Reports", "View sales reports", PermissionCategory.REPORTS),
    ("reports:view_financial", "Financial Reports", "View financial reports", PermissionCategory.REPORTS),
    ("reports:view_inventory", "Inventory Reports", "View inventory reports", PermissionCategory.REPORTS),
    ("reports:view_employees", "Employee Reports", "View employee performance", PermissionCategory.REPORTS),
    ("reports:export_data", "Export Data", "Export report data", PermissionCategory.REPORTS),
]


# -- STAFF --

STAFF_PERMISSIONS = [
    ("staff:view", "View Staff", "List employees", PermissionCategory.STAFF),
    ("staff:create", "Create Staff", "Create employee accounts", PermissionCategory.STAFF),
    ("staff:update", "Update Staff", "Edit employee accounts", PermissionCategory.STAFF),
    ("staff:delete", "Delete Staff", "Deactivate employee accounts", PermissionCategory.STAFF),
    ("staff:manage_roles", "Manage Roles", "Change employee roles", PermissionCategory.STAFF),
    ("staff:view_attendance", "View Attendance", "View attendance records", PermissionCategory.STAFF),
]


# -- BUSINESS --

BUSINESS_PERMISSIONS = [
    ("business:manage_pricing", "Manage Pricing", "Edit prices and coupons", PermissionCategory.BUSINESS),
    ("business:manage_stores", "Manage Stores", "Edit store profile", PermissionCategory.BUSINESS),
    ("business:manage_policies", "Manage Policies", "Edit business policies", PermissionCategory.BUSINESS),
    ("business:view_analytics", "View Analytics", "Open analytics dashboards", PermissionCategory.BUSINESS),
]


# -- CUSTOMERS --

CUSTOMER_PERMISSIONS = [
    ("clients:view", "View Clients", "Open the client directory", PermissionCategory.CLIENTS),
    ("customers:view_basic", "View Basic Client Data", "Search clients at the POS", PermissionCategory.CUSTOMERS),
    ("customers:view_detailed", "View Client Details", "View purchase history and points", PermissionCategory.CUSTOMERS),
    ("customers:manage_loyalty", "Manage Loyalty", "Adjust loyalty points manually", PermissionCategory.CUSTOMERS),
    ("customers:handle_complaints", "Handle Complaints", "Register client complaints", PermissionCategory.CUSTOMERS),
]


# -- SYSTEM --

SYSTEM_PERMISSIONS = [
    ("system:config", "System Config", "Edit hardware and payment configuration", PermissionCategory.SYSTEM),
]


# Combined list of all permission definitions
PERMISSION_DEFINITIONS = (
    SALES_PERMISSIONS
    + INVENTORY_PERMISSIONS
    + REPORT_PERMISSIONS
    + STAFF_PERMISSIONS
    + BUSINESS_PERMISSIONS
    + CUSTOMER_PERMISSIONS
    + SYSTEM_PERMISSIONS
)
