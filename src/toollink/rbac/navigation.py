"""
Role-specific navigation entries and route access decisions.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from toollink.rbac.permission_enum import Role
from toollink.rbac.permissions import get_user_capabilities
from toollink.rbac.registry import DEFAULT_REGISTRY, DefaultAllow, DefaultDeny, Explicit, RBACRegistry

__all__ = [
    'NavigationEntry',
    'get_navigation_items',
    'resolve_route_policy',
    'check_route_access',
]


@dataclass(frozen=True)
class NavigationEntry:
    name: str
    path: str
    icon: str
    available: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


DASHBOARD = NavigationEntry('Dashboard', '/dashboard', 'dashboard')
ORDERS = NavigationEntry('Orders', '/orders', 'orders')
INVENTORY = NavigationEntry('Inventory', '/inventory', 'inventory')
DELIVERY_CALENDAR = NavigationEntry('Delivery Calendar', '/delivery-calendar', 'calendar')
REPORTS = NavigationEntry('Reports', '/reports', 'reports')

# Gated on role identity, not on capabilities
ROLE_EXCLUSIVE_ENTRIES = (
    (Role.ADMIN, (
        NavigationEntry('User Management', '/user-management', 'users'),
        NavigationEntry('Admin Dashboard', '/admin', 'admin'),
        NavigationEntry('System Reports', '/admin/reports', 'system-reports'),
        NavigationEntry('Audit Logs', '/admin/audit-logs', 'audit'),
    )),
    (Role.CASHIER, (
        NavigationEntry('Customer Approval', '/customer-approval', 'approval'),
    )),
    (Role.CUSTOMER, (
        NavigationEntry('My Orders', '/customer/orders', 'my-orders'),
    )),
    (Role.WAREHOUSE, (
        NavigationEntry('Material Prediction', '/material-prediction', 'prediction'),
    )),
)

COMMON_ENTRIES = (
    NavigationEntry('Notifications', '/notifications', 'notifications'),
    NavigationEntry('Profile', '/profile', 'profile'),
)


def get_navigation_items(role: Any, registry: Optional[RBACRegistry] = None) -> List[NavigationEntry]:
    """
    Navigation entries for a role, in display order.

    Dashboard always comes first and Notifications/Profile always last. The
    order is part of the contract and is never re-sorted.
    """
    caps = get_user_capabilities(role, registry=registry)
    role_value = role.value if isinstance(role, Enum) else role

    items = [DASHBOARD]

    if caps.can('orderManagement', 'view') or caps.can('orderManagement', 'create'):
        items.append(ORDERS)

    if caps.can('inventoryManagement', 'view'):
        items.append(INVENTORY)

    if caps.can('deliveryManagement', 'view') or caps.can('deliveryManagement', 'schedule'):
        items.append(DELIVERY_CALENDAR)

    if caps.can('reportingAnalytics', 'view'):
        items.append(REPORTS)

    for exclusive_role, entries in ROLE_EXCLUSIVE_ENTRIES:
        if role_value == exclusive_role.value:
            items.extend(entries)

    items.extend(COMMON_ENTRIES)
    return items


def resolve_route_policy(path: str, registry: Optional[RBACRegistry] = None):
    """RouteAccessPolicy governing ``path``."""
    return (registry or DEFAULT_REGISTRY).resolve_route_policy(path)


def check_route_access(role: Any, path: str, registry: Optional[RBACRegistry] = None) -> bool:
    """
    Decide whether an authenticated user with ``role`` may open ``path``.

    Listed paths need one of their permissions. Unlisted paths follow the
    registry's default policy, DefaultAllow unless configured otherwise;
    that default only suits a UI layer backed by server-side authorization.
    """
    registry = registry or DEFAULT_REGISTRY
    policy = registry.resolve_route_policy(path)

    if isinstance(policy, Explicit):
        return any(registry.role_holds(role, p) for p in policy.permissions)
    if isinstance(policy, DefaultDeny):
        return False
    if isinstance(policy, DefaultAllow):
        return True
    return False
