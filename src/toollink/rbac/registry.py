"""
RBAC Registry - Static permission tables and their validated, read-only view

This module holds the plain-data tables that drive every access decision:
- ROLE_PERMISSIONS: role -> granted permission tokens
- FEATURE_MODULES: module -> action -> permissions (any one suffices)
- ROUTE_ACCESS: URL path -> permissions (any one suffices)

RBACRegistry wraps the tables, validates them once at construction and
answers lookups. It never mutates after construction, so DEFAULT_REGISTRY is
shared freely by every caller. Deployment-specific settings (the default
policy for routes missing from ROUTE_ACCESS, the auth endpoint) come from
an optional rbac.yaml file loaded by load_rbac_config().
"""

import os
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import yaml

from toollink.rbac.permission_enum import WILDCARD, Permission, Role, all_permissions
from toollink.utils.logging import get_logger

logger = get_logger(__name__)

P = Permission

CONFIG_ENV_VAR = 'TOOLLINK_RBAC_CONFIG'


class RBACConfigError(Exception):
    """Raised when RBAC tables or configuration are invalid."""
    pass


def _key(value: Any) -> Any:
    """Reduce enum members to their plain string value for table lookups."""
    return value.value if isinstance(value, Enum) else value


def _tokens(*permissions: Any) -> Tuple[str, ...]:
    return tuple(_key(p) for p in permissions)


# =============================================================================
# Role -> Permission map
# =============================================================================

ROLE_PERMISSIONS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    Role.ADMIN.value: _tokens(
        WILDCARD,
    ),

    Role.CASHIER.value: _tokens(
        # Order desk
        P.Orders.CREATE,
        P.Orders.VIEW,
        P.Orders.UPDATE,
        P.Orders.APPROVE,
        P.Orders.SCHEDULE,
        P.Orders.SPLIT,
        P.Orders.ANALYTICS,
        # Customer approval
        P.Customers.APPROVE,
        P.Customers.VIEW,
        P.Customers.UPDATE,
        # Inventory (read-only)
        P.Inventory.VIEW,
        P.Inventory.LOW_STOCK,
        P.Inventory.SEARCH,
        # Reports
        P.Reports.ORDERS,
        P.Reports.CUSTOMERS,
        P.Reports.SALES,
        # Notifications
        P.Notifications.VIEW,
        P.Notifications.SEND,
        P.Notifications.MANAGE,
        # Feedback
        P.Feedback.VIEW,
        P.Feedback.RESPOND,
    ),

    Role.WAREHOUSE.value: _tokens(
        # Inventory
        P.Inventory.VIEW,
        P.Inventory.UPDATE,
        P.Inventory.CREATE,
        P.Inventory.DELETE,
        P.Inventory.STOCK_IN,
        P.Inventory.STOCK_OUT,
        P.Inventory.TRANSFER,
        P.Inventory.ADJUSTMENTS,
        P.Inventory.ANALYTICS,
        P.Inventory.PREDICT,
        # Orders (fulfilment side)
        P.Orders.VIEW,
        P.Orders.ALLOCATE,
        P.Orders.PREPARE,
        # Deliveries
        P.Delivery.VIEW,
        P.Delivery.SCHEDULE,
        P.Delivery.UPDATE,
        P.Delivery.COMPLETE,
        P.Delivery.ASSIGN,
        P.Delivery.ANALYTICS,
        # Materials & prediction
        P.Materials.PREDICT,
        P.Materials.REFILL,
        P.Materials.ANALYTICS,
        # Warehouse operations
        P.Warehouse.TASKS,
        P.Warehouse.COORDINATION,
        P.Warehouse.REPORTS,
        # Notifications
        P.Notifications.VIEW,
        P.Notifications.INVENTORY_ALERTS,
    ),

    Role.CUSTOMER.value: _tokens(
        # Own orders
        P.Orders.CREATE,
        P.Orders.VIEW_OWN,
        P.Orders.UPDATE_OWN,
        P.Orders.CANCEL_OWN,
        P.Orders.FEEDBACK,
        P.Orders.RESCHEDULE_OWN,
        # Own deliveries
        P.Delivery.VIEW_OWN,
        P.Delivery.RESCHEDULE_OWN,
        P.Delivery.TRACK_OWN,
        P.Delivery.FEEDBACK_OWN,
        # Profile
        P.Profile.VIEW,
        P.Profile.UPDATE,
        P.Profile.DELETE,
        # Own notifications
        P.Notifications.VIEW_OWN,
        # Catalog browsing for ordering
        P.Inventory.VIEW_CATALOG,
    ),

    Role.EDITOR.value: _tokens(
        # Read-only reporting
        P.Orders.VIEW,
        P.Inventory.VIEW,
        P.Delivery.VIEW,
        P.Reports.VIEW,
        P.Reports.ANALYTICS,
        P.Reports.DASHBOARD,
        # Content
        P.Content.EDIT,
        P.Content.PUBLISH,
        P.Notifications.VIEW,
    ),
})

# Tokens no role is granted directly; only the admin wildcard reaches them.
ADMIN_ONLY_PERMISSIONS = frozenset(_tokens(
    P.System.MANAGE_USERS,
    P.System.MANAGE_ROLES,
    P.System.VIEW_AUDIT_LOGS,
    P.System.MANAGE_CONFIG,
    P.System.VIEW_REPORTS,
    P.System.BULK_USER_OPERATIONS,
    P.Orders.DELETE,
    P.Reports.INVENTORY,
    P.Reports.DELIVERY,
))

ROLE_DISPLAY_NAMES: Mapping[str, str] = MappingProxyType({
    Role.ADMIN.value: 'Administrator',
    Role.CASHIER.value: 'Cashier',
    Role.WAREHOUSE.value: 'Warehouse Manager',
    Role.CUSTOMER.value: 'Customer',
    Role.EDITOR.value: 'Content Editor',
})


# =============================================================================
# Feature modules
# =============================================================================

FEATURE_MODULES: Mapping[str, Mapping[str, Tuple[str, ...]]] = MappingProxyType({
    'orderManagement': MappingProxyType({
        'create': _tokens(P.Orders.CREATE),
        'view': _tokens(P.Orders.VIEW, P.Orders.VIEW_OWN),
        'update': _tokens(P.Orders.UPDATE, P.Orders.UPDATE_OWN),
        'delete': _tokens(P.Orders.DELETE, P.Orders.CANCEL_OWN),
        'approve': _tokens(P.Orders.APPROVE),
        'schedule': _tokens(P.Orders.SCHEDULE),
        'split': _tokens(P.Orders.SPLIT),
        'analytics': _tokens(P.Orders.ANALYTICS),
    }),
    'inventoryManagement': MappingProxyType({
        'view': _tokens(P.Inventory.VIEW, P.Inventory.VIEW_CATALOG),
        'create': _tokens(P.Inventory.CREATE),
        'update': _tokens(P.Inventory.UPDATE),
        'delete': _tokens(P.Inventory.DELETE),
        'stockIn': _tokens(P.Inventory.STOCK_IN),
        'stockOut': _tokens(P.Inventory.STOCK_OUT),
        'transfer': _tokens(P.Inventory.TRANSFER),
        'analytics': _tokens(P.Inventory.ANALYTICS),
        'predict': _tokens(P.Inventory.PREDICT),
    }),
    'deliveryManagement': MappingProxyType({
        'view': _tokens(P.Delivery.VIEW, P.Delivery.VIEW_OWN),
        'schedule': _tokens(P.Delivery.SCHEDULE),
        'update': _tokens(P.Delivery.UPDATE),
        'complete': _tokens(P.Delivery.COMPLETE),
        'track': _tokens(P.Delivery.TRACK_OWN),
        'reschedule': _tokens(P.Delivery.RESCHEDULE_OWN),
        'analytics': _tokens(P.Delivery.ANALYTICS),
    }),
    'userManagement': MappingProxyType({
        'view': _tokens(P.System.MANAGE_USERS),
        'create': _tokens(P.System.MANAGE_USERS),
        'update': _tokens(P.System.MANAGE_USERS),
        'delete': _tokens(P.System.MANAGE_USERS),
        'approve': _tokens(P.Customers.APPROVE),
        'roles': _tokens(P.System.MANAGE_ROLES),
    }),
    'reportingAnalytics': MappingProxyType({
        'view': _tokens(P.Reports.VIEW),
        'orders': _tokens(P.Reports.ORDERS),
        'inventory': _tokens(P.Reports.INVENTORY),
        'delivery': _tokens(P.Reports.DELIVERY),
        'analytics': _tokens(P.Reports.ANALYTICS),
    }),
    'notifications': MappingProxyType({
        'view': _tokens(P.Notifications.VIEW, P.Notifications.VIEW_OWN),
        'send': _tokens(P.Notifications.SEND),
        'manage': _tokens(P.Notifications.MANAGE),
    }),
})


# =============================================================================
# Route access
# =============================================================================

ROUTE_ACCESS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    '/admin': _tokens(WILDCARD),
    '/admin/dashboard': _tokens(WILDCARD),
    '/admin/audit-logs': _tokens(P.System.VIEW_AUDIT_LOGS),
    '/admin/reports': _tokens(P.System.VIEW_REPORTS),
    '/user-management': _tokens(P.System.MANAGE_USERS),
    '/customer-approval': _tokens(P.Customers.APPROVE),
    '/orders': _tokens(P.Orders.VIEW, P.Orders.VIEW_OWN, P.Orders.CREATE),
    '/inventory': _tokens(P.Inventory.VIEW, P.Inventory.VIEW_CATALOG),
    '/delivery-calendar': _tokens(P.Delivery.VIEW, P.Delivery.VIEW_OWN, P.Delivery.SCHEDULE),
    '/reports': _tokens(P.Reports.VIEW),
    '/material-prediction': _tokens(P.Materials.PREDICT),
    '/notifications': _tokens(P.Notifications.VIEW, P.Notifications.VIEW_OWN),
    '/profile': _tokens(P.Profile.VIEW),
    '/feedback': _tokens(P.Feedback.VIEW),
})


@dataclass(frozen=True)
class DefaultAllow:
    """Any authenticated user may open the route."""


@dataclass(frozen=True)
class DefaultDeny:
    """Nobody may open the route."""


@dataclass(frozen=True)
class Explicit:
    """The user needs at least one of ``permissions``."""
    permissions: Tuple[str, ...]


RouteAccessPolicy = Union[DefaultAllow, DefaultDeny, Explicit]

ROUTE_DEFAULTS = {
    'allow': DefaultAllow(),
    'deny': DefaultDeny(),
}


class RBACRegistry:
    """
    Validated, read-only view over the RBAC tables.

    Every lookup is total: unknown roles, modules, actions and paths resolve
    to an empty grant or the configured default instead of raising. The only
    error raised is RBACConfigError, at construction, when the tables break
    one of the catalog invariants.
    """

    def __init__(
        self,
        role_permissions: Optional[Mapping[Any, Iterable[Any]]] = None,
        feature_modules: Optional[Mapping[str, Mapping[str, Iterable[Any]]]] = None,
        route_access: Optional[Mapping[str, Iterable[Any]]] = None,
        route_default: Optional[RouteAccessPolicy] = None,
        admin_only: Optional[Iterable[Any]] = None,
    ):
        """
        Args:
            role_permissions: role -> permissions; defaults to ROLE_PERMISSIONS
            feature_modules: module -> action -> permissions; defaults to FEATURE_MODULES
            route_access: path -> permissions; defaults to ROUTE_ACCESS
            route_default: policy for paths missing from route_access
                           (DefaultAllow when not given)
            admin_only: tokens intentionally granted to no role; defaults to
                        ADMIN_ONLY_PERMISSIONS
        """
        if role_permissions is None:
            role_permissions = ROLE_PERMISSIONS
        if feature_modules is None:
            feature_modules = FEATURE_MODULES
        if route_access is None:
            route_access = ROUTE_ACCESS
        if admin_only is None:
            admin_only = ADMIN_ONLY_PERMISSIONS

        self._role_permissions: Mapping[str, Tuple[str, ...]] = MappingProxyType({
            _key(role): _tokens(*perms) for role, perms in role_permissions.items()
        })
        self._feature_modules: Mapping[str, Mapping[str, Tuple[str, ...]]] = MappingProxyType({
            module: MappingProxyType({action: _tokens(*perms) for action, perms in actions.items()})
            for module, actions in feature_modules.items()
        })
        self._route_access: Mapping[str, Tuple[str, ...]] = MappingProxyType({
            path: _tokens(*perms) for path, perms in route_access.items()
        })
        self._route_default = route_default if route_default is not None else DefaultAllow()
        self._admin_only = frozenset(_tokens(*admin_only))

        # Lookup sets, one per role
        self._permission_sets = {role: frozenset(perms) for role, perms in self._role_permissions.items()}

        self._validate_config()

        logger.debug(
            f"RBAC registry initialized: {len(self._role_permissions)} roles, "
            f"{len(self._feature_modules)} feature modules, {len(self._route_access)} routes, "
            f"route default {type(self._route_default).__name__}"
        )

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> 'RBACRegistry':
        """
        Build a registry over the static tables using deployment settings.

        Only ``route_policy.default`` is read here; the tables themselves are
        a code-level edit, not configuration.
        """
        config = config or {}
        route_default = route_default_from_config(config)
        return cls(route_default=route_default)

    def _validate_config(self) -> None:
        """
        Check the catalog invariants.

        Raises:
            RBACConfigError: If any table breaks an invariant
        """
        catalog = all_permissions()
        if len(catalog) != len(set(catalog)):
            duplicates = sorted({p for p in catalog if catalog.count(p) > 1})
            raise RBACConfigError(f"Duplicate permission tokens in catalog: {duplicates}")
        known = set(catalog)

        for role in Role:
            if role.value not in self._role_permissions:
                raise RBACConfigError(f"Role '{role.value}' has no permission entry")

        for role, perms in self._role_permissions.items():
            if len(perms) != len(set(perms)):
                raise RBACConfigError(f"Role '{role}' lists a permission more than once")
            unknown = [p for p in perms if p not in known]
            if unknown:
                raise RBACConfigError(f"Role '{role}' references unknown permissions: {unknown}")
            if WILDCARD.value in perms and role != Role.ADMIN.value:
                raise RBACConfigError(f"Only the admin role may hold the wildcard permission, found on '{role}'")

        admin_perms = self._role_permissions[Role.ADMIN.value]
        if admin_perms != (WILDCARD.value,):
            raise RBACConfigError("The admin role must map to exactly the wildcard permission")

        granted = set()
        for perms in self._role_permissions.values():
            granted.update(perms)
        unassigned = known - granted - self._admin_only
        if unassigned:
            raise RBACConfigError(
                f"Permissions granted to no role and not marked admin-only: {sorted(unassigned)}"
            )

        for module, actions in self._feature_modules.items():
            for action, perms in actions.items():
                unknown = [p for p in perms if p not in known]
                if unknown:
                    raise RBACConfigError(f"Feature '{module}.{action}' references unknown permissions: {unknown}")

        for path, perms in self._route_access.items():
            unknown = [p for p in perms if p not in known]
            if unknown:
                raise RBACConfigError(f"Route '{path}' references unknown permissions: {unknown}")

        if not isinstance(self._route_default, (DefaultAllow, DefaultDeny, Explicit)):
            raise RBACConfigError(f"Invalid route default policy: {self._route_default!r}")

    @property
    def roles(self) -> List[str]:
        """Role names that have a permission entry."""
        return list(self._role_permissions)

    @property
    def feature_modules(self) -> Mapping[str, Mapping[str, Tuple[str, ...]]]:
        return self._feature_modules

    @property
    def route_access(self) -> Mapping[str, Tuple[str, ...]]:
        return self._route_access

    @property
    def route_default(self) -> RouteAccessPolicy:
        return self._route_default

    @property
    def admin_only_permissions(self) -> frozenset:
        return self._admin_only

    def is_valid_role(self, role: Any) -> bool:
        """True if ``role`` has an entry in the role map."""
        role = _key(role)
        return isinstance(role, str) and role in self._role_permissions

    def get_role_permissions(self, role: Any) -> Tuple[str, ...]:
        """
        Permissions granted to a role, in table order.

        Unknown roles (including non-string input) get an empty tuple.
        """
        role = _key(role)
        if not isinstance(role, str):
            return ()
        return self._role_permissions.get(role, ())

    def role_holds(self, role: Any, permission: Any) -> bool:
        """Wildcard-aware membership test, with no ownership semantics."""
        role = _key(role)
        permission = _key(permission)
        if not isinstance(role, str) or not isinstance(permission, str) or not permission:
            return False
        perms = self._permission_sets.get(role)
        if not perms:
            return False
        # Wildcard first: it never equals a concrete token
        if WILDCARD.value in perms:
            return True
        return permission in perms

    def get_roles_with_permission(self, permission: Any) -> List[str]:
        """
        Roles that grant ``permission`` (wildcard holders included).

        Useful for error messages ("You need role X or Y to do this").
        """
        return [role for role in self._role_permissions if self.role_holds(role, permission)]

    def get_feature_permissions(self, module: str, action: str) -> Optional[Tuple[str, ...]]:
        """Permissions for a module/action pair, or None when not in the table."""
        actions = self._feature_modules.get(module)
        if actions is None:
            return None
        return actions.get(action)

    def resolve_route_policy(self, path: str) -> RouteAccessPolicy:
        """Explicit policy for listed paths, the configured default otherwise."""
        perms = self._route_access.get(path)
        if perms is None:
            return self._route_default
        return Explicit(perms)

    def get_role_name(self, role: Any) -> str:
        """User-facing role name; unknown roles are shown as given."""
        role = _key(role)
        return ROLE_DISPLAY_NAMES.get(role, str(role)) if isinstance(role, str) else str(role)


def route_default_from_config(config: Dict[str, Any]) -> RouteAccessPolicy:
    """
    Read ``route_policy.default`` ('allow' or 'deny').

    Raises:
        RBACConfigError: If the value is not a known policy name
    """
    route_policy = config.get('route_policy') or {}
    if not isinstance(route_policy, dict):
        raise RBACConfigError("'route_policy' must be a mapping")
    name = str(route_policy.get('default', 'allow')).strip().lower()
    if name not in ROUTE_DEFAULTS:
        raise RBACConfigError(
            f"Unknown route default policy '{name}', expected one of: {', '.join(ROUTE_DEFAULTS)}"
        )
    return ROUTE_DEFAULTS[name]


DEFAULT_CONFIG: Dict[str, Any] = {
    'route_policy': {'default': 'allow'},
    'auth': {
        'base_url': 'http://localhost:5000/api',
        'me_endpoint': '/auth/me',
        'timeout': 10,
    },
    'unauthorized_endpoint': '/unauthorized',
}


def load_rbac_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load deployment settings for the RBAC layer from YAML.

    Priority order:
    1. Explicit config_path if provided
    2. $TOOLLINK_RBAC_CONFIG
    3. ./configs/rbac.yaml
    4. Built-in defaults

    Values missing from the file fall back to DEFAULT_CONFIG section by
    section.

    Args:
        config_path: Optional path to rbac.yaml

    Returns:
        Configuration dictionary

    Raises:
        RBACConfigError: If the file cannot be parsed or is not a mapping
    """
    search_paths = [
        config_path,
        os.environ.get(CONFIG_ENV_VAR),
        os.path.join(os.getcwd(), 'configs', 'rbac.yaml'),
    ]

    if config_path and not os.path.isfile(config_path):
        raise RBACConfigError(f"RBAC configuration file not found: {config_path}")

    config_file = None
    for path in search_paths:
        if path and os.path.isfile(path):
            config_file = path
            break

    if not config_file:
        logger.info("No rbac.yaml found, using built-in defaults")
        return _merge_defaults({})

    logger.info(f"Loading RBAC configuration from: {config_file}")
    try:
        with open(config_file, 'r') as f:
            loaded = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise RBACConfigError(f"Could not parse {config_file}: {e}") from e

    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise RBACConfigError(f"{config_file} must contain a mapping at the top level")

    config = _merge_defaults(loaded)
    # Fail at load time rather than at the first route check
    route_default_from_config(config)
    return config


def _merge_defaults(loaded: Dict[str, Any]) -> Dict[str, Any]:
    config: Dict[str, Any] = {}
    for section, default in DEFAULT_CONFIG.items():
        value = loaded.get(section)
        if isinstance(default, dict):
            if value is not None and not isinstance(value, dict):
                raise RBACConfigError(f"'{section}' must be a mapping")
            merged = dict(default)
            merged.update(value or {})
            config[section] = merged
        else:
            config[section] = default if value is None else value
    for section, value in loaded.items():
        config.setdefault(section, value)
    return config


DEFAULT_REGISTRY = RBACRegistry()
