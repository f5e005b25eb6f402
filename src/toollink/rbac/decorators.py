"""
RBAC Decorators - Route guards for Flask views

The signed-in user is read from ``session['user']`` (the same payload the
backend returns from ``/auth/me``). Unauthenticated requests get a 401 JSON
body for API/JSON requests and a redirect to the login page otherwise.
Denied requests get a 403 JSON body or a redirect to the Unauthorized view.

App config keys:
    RBAC_REGISTRY          RBACRegistry to evaluate against (default tables)
    RBAC_LOGIN_URL         redirect target for anonymous users ('/login')
    RBAC_UNAUTHORIZED_URL  redirect target for denied users ('/unauthorized')

configure_app() fills the first and last from rbac.yaml.
"""

from functools import wraps
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from flask import current_app, jsonify, redirect, request, session

from toollink.rbac.audit import log_permission_check
from toollink.rbac.navigation import check_route_access
from toollink.rbac.permission_enum import Permission
from toollink.rbac.permissions import can_access_feature, is_admin, normalize_role
from toollink.rbac.registry import DEFAULT_REGISTRY, RBACRegistry, load_rbac_config
from toollink.utils.logging import get_logger

logger = get_logger(__name__)


def configure_app(app, config: Optional[Dict[str, Any]] = None) -> None:
    """
    Apply rbac.yaml settings to a Flask app.

    Sets RBAC_REGISTRY from ``route_policy`` and RBAC_UNAUTHORIZED_URL from
    ``unauthorized_endpoint``. Keys already present in app.config win.
    """
    config = config if config is not None else load_rbac_config()
    app.config.setdefault('RBAC_REGISTRY', RBACRegistry.from_config(config))
    app.config.setdefault('RBAC_UNAUTHORIZED_URL', config.get('unauthorized_endpoint', '/unauthorized'))
    logger.info(
        f"RBAC guards configured: unlisted routes "
        f"{type(app.config['RBAC_REGISTRY'].route_default).__name__}, "
        f"unauthorized -> {app.config['RBAC_UNAUTHORIZED_URL']}"
    )


def _registry() -> RBACRegistry:
    return current_app.config.get('RBAC_REGISTRY') or DEFAULT_REGISTRY


def _wants_json() -> bool:
    return request.is_json or request.path.startswith('/api/')


def _value(permission: Any) -> str:
    return str(getattr(permission, 'value', permission))


def get_current_user() -> Optional[Dict[str, Any]]:
    """The session's user payload, or None if not signed in."""
    user = session.get('user')
    if not isinstance(user, dict) or not user.get('role'):
        return None
    return user


def get_current_role() -> Optional[str]:
    """
    Role of the signed-in user, lowercased.

    Returns:
        Role string, or None if not authenticated
    """
    user = get_current_user()
    if user is None:
        return None
    return str(user['role']).strip().lower()


def is_authenticated() -> bool:
    return get_current_user() is not None


def _user_label() -> str:
    user = get_current_user() or {}
    return str(user.get('email') or user.get('id') or 'unknown')


def _unauthenticated(description: str):
    log_permission_check(
        user='anonymous',
        permission=description,
        granted=False,
        target=request.endpoint or request.path,
        role=None,
    )

    if _wants_json():
        return jsonify({
            'error': 'Authentication required',
            'message': 'Please log in to access this resource',
            'status': 401
        }), 401

    return redirect(current_app.config.get('RBAC_LOGIN_URL', '/login'))


def _denied(description: str, role: Optional[str], required: List[str], missing: Optional[List[str]] = None):
    log_permission_check(
        user=_user_label(),
        permission=description,
        granted=False,
        target=request.endpoint or request.path,
        role=role,
        missing=missing,
    )

    registry = _registry()
    roles_with_permission = set()
    for perm in (missing or required):
        roles_with_permission.update(registry.get_roles_with_permission(perm))

    if _wants_json():
        return jsonify({
            'error': 'Insufficient permissions',
            'required_permissions': required,
            'user_role': role,
            'roles_with_permission': sorted(roles_with_permission),
            'message': "You don't have permission to access this feature.",
            'status': 403
        }), 403

    return redirect(current_app.config.get('RBAC_UNAUTHORIZED_URL', '/unauthorized'))


def _granted(description: str, role: Optional[str]) -> None:
    log_permission_check(
        user=_user_label(),
        permission=description,
        granted=True,
        target=request.endpoint or request.path,
        role=role,
    )


def require_authenticated(f: Callable) -> Callable:
    """
    Decorator that requires a signed-in user, whatever the role.

    Usage:
        @app.route('/profile')
        @require_authenticated
        def profile():
            ...
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not is_authenticated():
            return _unauthenticated('authenticated')
        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission: Union[Any, List[Any]]) -> Callable:
    """
    Decorator that requires specific permission(s) to access a view.

    If a list is given the user must hold ALL of them; use
    require_any_permission for "any of" logic.

    Usage:
        @app.route('/api/orders/<order_id>/approve', methods=['POST'])
        @require_permission(Permission.Orders.APPROVE)
        def approve_order(order_id):
            ...
    """
    if isinstance(permission, (list, tuple, set, frozenset)):
        required_permissions = [_value(p) for p in permission]
    else:
        required_permissions = [_value(permission)]
    description = ','.join(required_permissions)

    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not is_authenticated():
                return _unauthenticated(description)

            role = get_current_role()
            registry = _registry()
            missing = [p for p in required_permissions if not registry.role_holds(role, p)]
            if missing:
                return _denied(description, role, required_permissions, missing)

            _granted(description, role)
            return f(*args, **kwargs)

        return decorated_function

    return decorator


def require_any_permission(permissions: Iterable[Any]) -> Callable:
    """
    Decorator that requires ANY ONE of the specified permissions.

    Usage:
        @app.route('/api/orders')
        @require_any_permission([Permission.Orders.VIEW, Permission.Orders.VIEW_OWN])
        def list_orders():
            ...
    """
    required_permissions = [_value(p) for p in permissions]
    description = f"any({','.join(required_permissions)})"

    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not is_authenticated():
                return _unauthenticated(description)

            role = get_current_role()
            registry = _registry()
            if not any(registry.role_holds(role, p) for p in required_permissions):
                return _denied(description, role, required_permissions)

            _granted(description, role)
            return f(*args, **kwargs)

        return decorated_function

    return decorator


def require_role(roles: Iterable[Any]) -> Callable:
    """
    Decorator that requires the user's role to be one of ``roles``.

    Usage:
        @app.route('/admin')
        @require_role([Role.ADMIN])
        def admin_dashboard():
            ...
    """
    allowed = {normalize_role(r) for r in roles} - {None}
    description = f"role({','.join(sorted(r.value for r in allowed))})"

    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not is_authenticated():
                return _unauthenticated(description)

            role = get_current_role()
            if normalize_role(role) not in allowed:
                return _denied(description, role, [])

            _granted(description, role)
            return f(*args, **kwargs)

        return decorated_function

    return decorator


def require_route_access(path: Optional[str] = None) -> Callable:
    """
    Decorator that applies the route-access table to a view.

    Args:
        path: Route-table path to check. Defaults to the request path.

    Usage:
        @app.route('/material-prediction')
        @require_route_access()
        def material_prediction():
            ...
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            route = path or request.path
            description = f"route({route})"

            if not is_authenticated():
                return _unauthenticated(description)

            role = get_current_role()
            registry = _registry()
            if not check_route_access(role, route, registry=registry):
                policy = registry.resolve_route_policy(route)
                return _denied(description, role, list(getattr(policy, 'permissions', ())))

            _granted(description, role)
            return f(*args, **kwargs)

        return decorated_function

    return decorator


def get_permission_context() -> dict:
    """
    Boolean flags for templates, so views can show or hide controls.

    Returns:
        Dictionary with one flag per major capability
    """
    role = get_current_role()
    if role is None:
        return {
            'is_authenticated': False,
            'can_view_orders': False,
            'can_create_orders': False,
            'can_manage_inventory': False,
            'can_view_deliveries': False,
            'can_view_reports': False,
            'can_approve_customers': False,
            'can_manage_users': False,
            'is_admin': False,
            'user_role': None,
        }

    registry = _registry()
    return {
        'is_authenticated': True,
        'can_view_orders': can_access_feature(role, 'orderManagement', 'view', registry=registry),
        'can_create_orders': can_access_feature(role, 'orderManagement', 'create', registry=registry),
        'can_manage_inventory': can_access_feature(role, 'inventoryManagement', 'update', registry=registry),
        'can_view_deliveries': can_access_feature(role, 'deliveryManagement', 'view', registry=registry),
        'can_view_reports': can_access_feature(role, 'reportingAnalytics', 'view', registry=registry),
        'can_approve_customers': registry.role_holds(role, Permission.Customers.APPROVE),
        'can_manage_users': registry.role_holds(role, Permission.System.MANAGE_USERS),
        'is_admin': is_admin(role),
        'user_role': role,
    }
