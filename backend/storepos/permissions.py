# Overview: Permission codes and the role -> permission map.
# Each permission is defined as: (code, name, description)

from storepos.models.auth import ROLE_ADMIN, ROLE_CASHIER, ROLE_MANAGER

PERMISSION_DEFINITIONS = [
    ("VIEW_CATALOG", "View Catalog", "Look up stores, registers, products and receipt templates"),
    ("POST_SALE", "Post Sale", "Record SALE transactions"),
    ("POST_REFUND", "Post Refund", "Record REFUND transactions against prior sales"),
    ("VIEW_TRANSACTIONS", "View Transactions", "Look up transactions and receipts"),
    ("VIEW_INVENTORY", "View Inventory", "View per-store inventory quantities"),
    ("MANAGE_INVENTORY", "Manage Inventory", "Set absolute inventory quantities"),
    ("MANAGE_PRODUCTS", "Manage Products", "Create and edit products"),
    ("MANAGE_RECEIPTS", "Manage Receipts", "Edit store receipt templates"),
    ("VIEW_REPORTS", "View Reports", "View sales summary reports"),
    ("MANAGE_USERS", "Manage Users", "Create, edit and delete user accounts"),
]

ALL_PERMISSIONS = frozenset(code for code, _, _ in PERMISSION_DEFINITIONS)

CASHIER_PERMISSIONS = frozenset({
    "VIEW_CATALOG",
    "POST_SALE",
    "POST_REFUND",
    "VIEW_TRANSACTIONS",
    "VIEW_INVENTORY",
})

MANAGER_PERMISSIONS = CASHIER_PERMISSIONS | {
    "MANAGE_INVENTORY",
    "MANAGE_PRODUCTS",
    "MANAGE_RECEIPTS",
    "VIEW_REPORTS",
}

ROLE_PERMISSIONS = {
    ROLE_CASHIER: CASHIER_PERMISSIONS,
    ROLE_MANAGER: frozenset(MANAGER_PERMISSIONS),
    ROLE_ADMIN: ALL_PERMISSIONS,
}


def get_role_permissions(role: str | None) -> frozenset:
    return ROLE_PERMISSIONS.get(role, frozenset())


def has_permission(user, permission_code: str) -> bool:
    if user is None:
        return False
    return permission_code in get_role_permissions(user.role)
