"""
RBAC (Role-Based Access Control) Module for ToolLink

This module decides what each ToolLink role may see and do:
- Permission catalog and role-to-permission mappings
- Capability evaluation over feature modules
- Navigation entries and route access decisions
- Async checks against the signed-in user
- Flask route guards and audit logging

Client-side checks only shape the UI; the backend enforces authorization.

Usage:
    from toollink.rbac import Permission, Role, has_permission

    if has_permission(Role.WAREHOUSE, Permission.Inventory.PREDICT):
        ...
"""

from toollink.rbac.permission_enum import Permission, Role, WILDCARD, all_permissions
from toollink.rbac.registry import (
    DEFAULT_REGISTRY,
    DefaultAllow,
    DefaultDeny,
    Explicit,
    RBACConfigError,
    RBACRegistry,
    RouteAccessPolicy,
    load_rbac_config,
)
from toollink.rbac.permissions import (
    CapabilitySet,
    can_access_feature,
    get_role_name,
    get_role_permissions,
    get_roles_with_permission,
    get_user_capabilities,
    has_all_permissions,
    has_any_permission,
    has_permission,
    is_admin,
    is_own_resource_access,
    normalize_role,
)
from toollink.rbac.navigation import (
    NavigationEntry,
    check_route_access,
    get_navigation_items,
    resolve_route_policy,
)
from toollink.rbac.current_user import (
    CurrentUserProvider,
    HttpCurrentUserProvider,
    StaticCurrentUserProvider,
    TokenCurrentUserProvider,
    User,
    http_provider_from_config,
)
from toollink.rbac.guard import AccessGuard

__all__ = [
    # Catalog
    'Permission',
    'Role',
    'WILDCARD',
    'all_permissions',
    # Registry
    'DEFAULT_REGISTRY',
    'DefaultAllow',
    'DefaultDeny',
    'Explicit',
    'RBACConfigError',
    'RBACRegistry',
    'RouteAccessPolicy',
    'load_rbac_config',
    # Evaluator
    'CapabilitySet',
    'can_access_feature',
    'get_role_name',
    'get_role_permissions',
    'get_roles_with_permission',
    'get_user_capabilities',
    'has_all_permissions',
    'has_any_permission',
    'has_permission',
    'is_admin',
    'is_own_resource_access',
    'normalize_role',
    # Navigation
    'NavigationEntry',
    'check_route_access',
    'get_navigation_items',
    'resolve_route_policy',
    # Current user
    'CurrentUserProvider',
    'HttpCurrentUserProvider',
    'StaticCurrentUserProvider',
    'TokenCurrentUserProvider',
    'User',
    'http_provider_from_config',
    # Guard
    'AccessGuard',
]
