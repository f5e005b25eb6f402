"""
Async access checks for the signed-in user.

AccessGuard binds a CurrentUserProvider to the pure evaluator. Every method
resolves to a bool: a missing session, a provider error or an unknown role
all mean "deny", and errors are logged instead of raised.

Providers only have to report an object with a ``role``; ``id`` and
``email`` are read when present. Roles are normalised once per call, so a
provider reporting "Cashier" is treated as the cashier role everywhere.
"""

from typing import Any, Iterable, Optional

from toollink.rbac.audit import (
    log_guard_evaluation_failure,
    log_identity_lookup_failure,
    log_permission_check,
    log_route_decision,
    log_unverified_ownership,
)
from toollink.rbac.current_user import CurrentUserProvider, User
from toollink.rbac.navigation import check_route_access
from toollink.rbac.permissions import has_permission, is_own_resource_access, normalize_role
from toollink.rbac.registry import DEFAULT_REGISTRY, RBACRegistry
from toollink.utils.logging import get_logger

logger = get_logger(__name__)


def _who(user: Any) -> str:
    return str(getattr(user, 'email', None) or getattr(user, 'id', None) or 'unknown')


def _role(user: Any) -> Optional[str]:
    """Normalised role value of ``user``, or None for unknown roles."""
    role = normalize_role(getattr(user, 'role', None))
    return role.value if role is not None else None


class AccessGuard:
    """Role and permission checks against whoever the provider reports."""

    def __init__(self, provider: CurrentUserProvider, registry: Optional[RBACRegistry] = None):
        self.provider = provider
        self.registry = registry or DEFAULT_REGISTRY

    async def _current_user(self, operation: str) -> Optional[User]:
        try:
            return await self.provider.get_current_user()
        except Exception as e:
            log_identity_lookup_failure(operation, e)
            return None

    async def require_role(self, required_roles: Iterable[Any]) -> bool:
        """True if the current user's role is one of ``required_roles``."""
        user = await self._current_user('require_role')
        if user is None:
            return False

        try:
            role = _role(user)
            allowed = {normalize_role(r) for r in required_roles} - {None}
            return role is not None and normalize_role(role) in allowed
        except Exception as e:
            log_guard_evaluation_failure('require_role', e)
            return False

    async def can_perform_action(
        self,
        permission: Any,
        resource_type: Optional[str] = None,
        resource_id: Any = None,
        resource_owner_id: Any = None,
    ) -> bool:
        """
        Check a permission for the current user, optionally on a resource.

        For own-scoped permissions on a specific resource, pass the
        resource's owner as ``resource_owner_id``; it is compared with the
        current user's id. Ownership is never looked up here: without an
        owner id the action is allowed once the base permission check
        passes, and a warning is logged.
        """
        user = await self._current_user('can_perform_action')
        if user is None:
            return False

        try:
            return self._evaluate_action(user, permission, resource_type, resource_id, resource_owner_id)
        except Exception as e:
            log_guard_evaluation_failure('can_perform_action', e)
            return False

    def _evaluate_action(
        self,
        user: Any,
        permission: Any,
        resource_type: Optional[str],
        resource_id: Any,
        resource_owner_id: Any,
    ) -> bool:
        role = _role(user)
        who = _who(user)
        permission_value = str(getattr(permission, 'value', permission))
        target = f"{resource_type}:{resource_id}" if resource_id is not None else (resource_type or 'action')

        granted = has_permission(
            role,
            permission,
            resource_owner_id=resource_owner_id,
            current_user_id=getattr(user, 'id', None),
            registry=self.registry,
        )

        if (
            granted
            and resource_id is not None
            and resource_owner_id is None
            and is_own_resource_access(permission)
            and not self.registry.role_holds(role, '*')
        ):
            log_unverified_ownership(who, permission_value, resource_type, resource_id)

        log_permission_check(
            user=who,
            permission=permission_value,
            granted=granted,
            target=target,
            role=role,
        )
        return granted

    async def can_access_route(self, path: str) -> bool:
        """True if the current user may open ``path``."""
        user = await self._current_user('can_access_route')
        if user is None:
            return False

        try:
            role = _role(user)
            granted = check_route_access(role, path, registry=self.registry)
            log_route_decision(_who(user), path, role, self.registry.resolve_route_policy(path), granted)
            return granted
        except Exception as e:
            log_guard_evaluation_failure('can_access_route', e)
            return False
