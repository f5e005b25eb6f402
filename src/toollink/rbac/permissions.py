"""
RBAC Permissions - Capability evaluation

Pure functions answering "does role R hold permission P" and "can role R
perform feature F action A". Nothing here performs I/O or raises: unknown
roles, modules and actions all evaluate to False.

Each function takes an optional ``registry``; DEFAULT_REGISTRY (the static
tables) is used when it is omitted.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from toollink.rbac.permission_enum import Role
from toollink.rbac.registry import DEFAULT_REGISTRY, RBACRegistry
from toollink.utils.logging import get_logger

logger = get_logger(__name__)

OWN_SCOPE_SUFFIX = '.own'


@dataclass(frozen=True)
class CapabilitySet:
    """Projection of a role through the feature-module table."""

    role: str
    permissions: Tuple[str, ...]
    capabilities: Mapping[str, Mapping[str, bool]] = field(default_factory=dict)
    is_admin: bool = False
    is_cashier: bool = False
    is_warehouse: bool = False
    is_customer: bool = False
    is_editor: bool = False

    def can(self, module: str, action: str) -> bool:
        """Lookup into ``capabilities``; absent pairs are False."""
        return bool(self.capabilities.get(module, {}).get(action, False))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'role': self.role,
            'permissions': list(self.permissions),
            'capabilities': {module: dict(actions) for module, actions in self.capabilities.items()},
            'isAdmin': self.is_admin,
            'isCashier': self.is_cashier,
            'isWarehouse': self.is_warehouse,
            'isCustomer': self.is_customer,
            'isEditor': self.is_editor,
        }


def _registry(registry: Optional[RBACRegistry]) -> RBACRegistry:
    return DEFAULT_REGISTRY if registry is None else registry


def _value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def normalize_role(value: Any) -> Optional[Role]:
    """
    Coerce external input (e.g. a backend payload) to a Role.

    Matching is case-insensitive and ignores surrounding whitespace.
    Returns None for anything that is not a known role.
    """
    if isinstance(value, Role):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Role(value.strip().lower())
    except ValueError:
        return None


def is_own_resource_access(permission: Any) -> bool:
    """
    True if ``permission`` is self-scoped (it ends in ``.own``).

    Classification only: this never checks who owns a resource.
    """
    permission = _value(permission)
    if not isinstance(permission, str):
        return False
    return permission.endswith(OWN_SCOPE_SUFFIX)


def has_permission(
    role: Any,
    permission: Any,
    resource_owner_id: Any = None,
    current_user_id: Any = None,
    registry: Optional[RBACRegistry] = None,
) -> bool:
    """
    Check whether ``role`` holds ``permission``.

    The wildcard grants everything. Otherwise the token must appear verbatim
    in the role's list: ``orders.view`` and ``orders.view.own`` are unrelated.

    For self-scoped permissions a caller that knows the resource owner passes
    ``resource_owner_id``; the check then also requires ``current_user_id``
    to be given and equal to it. Ids are compared as strings so that 42 and
    "42" match.

    Args:
        role: Role (or role string) of the acting user
        permission: Permission token to check
        resource_owner_id: Owner of the resource being acted on, if known
        current_user_id: Id of the acting user
        registry: Tables to evaluate against

    Returns:
        True if granted. Unknown roles are always denied.
    """
    registry = _registry(registry)
    if not registry.role_holds(role, permission):
        return False

    if resource_owner_id is None or not is_own_resource_access(permission):
        return True

    # Wildcard holders are not restricted to their own resources
    if registry.role_holds(role, '*'):
        return True

    if current_user_id is None:
        logger.debug(f"Ownership check for '{_value(permission)}' denied: no current user id supplied")
        return False
    return str(resource_owner_id) == str(current_user_id)


def has_any_permission(role: Any, permissions: Iterable[Any], registry: Optional[RBACRegistry] = None) -> bool:
    """True if the role holds at least one of ``permissions``."""
    registry = _registry(registry)
    return any(registry.role_holds(role, p) for p in permissions)


def has_all_permissions(role: Any, permissions: Iterable[Any], registry: Optional[RBACRegistry] = None) -> bool:
    """True if the role holds every one of ``permissions``."""
    registry = _registry(registry)
    return all(registry.role_holds(role, p) for p in permissions)


def can_access_feature(role: Any, module: str, action: str, registry: Optional[RBACRegistry] = None) -> bool:
    """
    Check a module/action capability.

    The role needs only one of the action's listed permissions. A module or
    action missing from the feature table is never satisfiable.
    """
    registry = _registry(registry)
    required = registry.get_feature_permissions(module, action)
    if not required:
        return False
    return any(registry.role_holds(role, p) for p in required)


def get_role_permissions(role: Any, registry: Optional[RBACRegistry] = None) -> Tuple[str, ...]:
    """Permissions listed for the role; empty for unknown roles."""
    return _registry(registry).get_role_permissions(role)


def get_roles_with_permission(permission: Any, registry: Optional[RBACRegistry] = None) -> List[str]:
    return _registry(registry).get_roles_with_permission(permission)


def get_role_name(role: Any, registry: Optional[RBACRegistry] = None) -> str:
    return _registry(registry).get_role_name(role)


def is_admin(role: Any) -> bool:
    return _value(role) == Role.ADMIN.value


def get_user_capabilities(role: Any, registry: Optional[RBACRegistry] = None) -> CapabilitySet:
    """
    Build the full module -> action -> bool grid for a role.

    Deterministic and recomputed on every call.
    """
    registry = _registry(registry)
    role_value = _value(role)

    capabilities = {
        module: {
            action: can_access_feature(role, module, action, registry=registry)
            for action in actions
        }
        for module, actions in registry.feature_modules.items()
    }

    return CapabilitySet(
        role=role_value if isinstance(role_value, str) else str(role_value),
        permissions=registry.get_role_permissions(role),
        capabilities=capabilities,
        is_admin=role_value == Role.ADMIN.value,
        is_cashier=role_value == Role.CASHIER.value,
        is_warehouse=role_value == Role.WAREHOUSE.value,
        is_customer=role_value == Role.CUSTOMER.value,
        is_editor=role_value == Role.EDITOR.value,
    )
