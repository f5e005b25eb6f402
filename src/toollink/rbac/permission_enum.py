"""
RBAC Permission Enum - Authoritative list of roles and permission strings.

Permissions are grouped into nested enums by domain. Each inner class is a
str Enum, so members compare equal to their string values and can be used
anywhere a plain string is expected without calling .value.

Tokens are namespaced ``<domain>.<action>[.<scope>]``. A token whose last
segment is ``own`` only applies to resources owned by the acting user.

Usage:
    from toollink.rbac.permission_enum import Permission, Role

    has_permission(Role.CASHIER, Permission.Orders.APPROVE)
"""

from enum import Enum
from typing import List


class Role(str, Enum):
    """Closed set of roles assigned to ToolLink users at authentication."""

    ADMIN = "admin"
    CASHIER = "cashier"
    WAREHOUSE = "warehouse"
    CUSTOMER = "customer"
    EDITOR = "editor"


class Permission:
    """Namespace for all RBAC permission strings, grouped by domain."""

    class System(str, Enum):
        FULL_ACCESS = "*"
        MANAGE_USERS = "users.manage"
        MANAGE_ROLES = "users.roles"
        VIEW_AUDIT_LOGS = "audit.view"
        MANAGE_CONFIG = "system.config"
        VIEW_REPORTS = "system.reports"
        BULK_USER_OPERATIONS = "users.bulk"

    class Orders(str, Enum):
        CREATE = "orders.create"
        VIEW = "orders.view"
        VIEW_OWN = "orders.view.own"
        UPDATE = "orders.update"
        UPDATE_OWN = "orders.update.own"
        DELETE = "orders.delete"
        CANCEL_OWN = "orders.cancel.own"
        APPROVE = "orders.approve"
        SCHEDULE = "orders.schedule"
        SPLIT = "orders.split"
        ANALYTICS = "orders.analytics"
        FEEDBACK = "orders.feedback"
        RESCHEDULE_OWN = "orders.reschedule.own"
        ALLOCATE = "orders.allocate"
        PREPARE = "orders.prepare"

    class Inventory(str, Enum):
        VIEW = "inventory.view"
        VIEW_CATALOG = "inventory.view.catalog"
        CREATE = "inventory.create"
        UPDATE = "inventory.update"
        DELETE = "inventory.delete"
        STOCK_IN = "inventory.stock-in"
        STOCK_OUT = "inventory.stock-out"
        TRANSFER = "inventory.transfer"
        ADJUSTMENTS = "inventory.adjustments"
        ANALYTICS = "inventory.analytics"
        PREDICT = "inventory.predict"
        LOW_STOCK = "inventory.low-stock"
        SEARCH = "inventory.search"

    class Delivery(str, Enum):
        VIEW = "delivery.view"
        VIEW_OWN = "delivery.view.own"
        SCHEDULE = "delivery.schedule"
        UPDATE = "delivery.update"
        COMPLETE = "delivery.complete"
        ASSIGN = "delivery.assign"
        TRACK_OWN = "delivery.track.own"
        RESCHEDULE_OWN = "delivery.reschedule.own"
        ANALYTICS = "delivery.analytics"
        FEEDBACK_OWN = "delivery.feedback.own"

    class Customers(str, Enum):
        VIEW = "customers.view"
        APPROVE = "customers.approve"
        UPDATE = "customers.update"

    class Materials(str, Enum):
        PREDICT = "materials.predict"
        REFILL = "materials.refill"
        ANALYTICS = "materials.analytics"

    class Warehouse(str, Enum):
        TASKS = "warehouse.tasks"
        COORDINATION = "warehouse.coordination"
        REPORTS = "warehouse.reports"

    class Reports(str, Enum):
        VIEW = "reports.view"
        ORDERS = "reports.orders"
        CUSTOMERS = "reports.customers"
        SALES = "reports.sales"
        INVENTORY = "reports.inventory"
        DELIVERY = "reports.delivery"
        ANALYTICS = "analytics.view"
        DASHBOARD = "dashboard.view"

    class Notifications(str, Enum):
        VIEW = "notifications.view"
        VIEW_OWN = "notifications.view.own"
        SEND = "notifications.send"
        MANAGE = "notifications.manage"
        INVENTORY_ALERTS = "notifications.inventory-alerts"

    class Feedback(str, Enum):
        VIEW = "feedback.view"
        RESPOND = "feedback.respond"

    class Profile(str, Enum):
        VIEW = "profile.view"
        UPDATE = "profile.update"
        DELETE = "profile.delete"

    class Content(str, Enum):
        EDIT = "content.edit"
        PUBLISH = "content.publish"


WILDCARD = Permission.System.FULL_ACCESS

PERMISSION_GROUPS = (
    Permission.System,
    Permission.Orders,
    Permission.Inventory,
    Permission.Delivery,
    Permission.Customers,
    Permission.Materials,
    Permission.Warehouse,
    Permission.Reports,
    Permission.Notifications,
    Permission.Feedback,
    Permission.Profile,
    Permission.Content,
)


def all_permissions() -> List[str]:
    """Every token in the catalog, wildcard included, in declaration order."""
    return [member.value for group in PERMISSION_GROUPS for member in group]
