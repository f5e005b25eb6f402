"""
RBAC Audit Logging - Access decision events

Every guard decision goes through here so that grants, denials and failed
identity lookups end up on one dedicated logger (``toollink.rbac.audit``).
These logs are a side channel; nothing here raises or alters a decision.
"""

import json
from datetime import datetime, timezone
from typing import Any, List, Optional

from toollink.utils.logging import get_logger

# Dedicated audit logger
audit_logger = get_logger('rbac.audit')


def _json(entry: dict) -> str:
    return json.dumps(entry, default=str)


def log_permission_check(
    user: str,
    permission: str,
    granted: bool,
    target: str,
    role: Optional[str],
    missing: Optional[List[str]] = None,
    extra: Optional[dict] = None
) -> None:
    """
    Log a permission check event for audit trail.

    Args:
        user: Email or id of the user (or 'anonymous')
        permission: Permission(s) being checked
        granted: Whether access was granted
        target: What was being accessed (route path, endpoint, action)
        role: User's role, if known
        missing: Permissions that were missing (if denied)
        extra: Additional context information
    """
    timestamp = datetime.now(timezone.utc).isoformat()
    result = 'GRANTED' if granted else 'DENIED'

    log_entry = {
        'timestamp': timestamp,
        'user': user,
        'permission': permission,
        'result': result,
        'target': target,
        'role': role,
    }

    if missing:
        log_entry['missing_permissions'] = missing

    if extra:
        log_entry.update(extra)

    log_message = f"{user} | {permission} | {result} | {target} | role: {role}"

    if granted:
        audit_logger.debug(log_message)
    else:
        audit_logger.warning(log_message)
        audit_logger.info(f"AUDIT: {_json(log_entry)}")


def log_route_decision(user: str, path: str, role: Optional[str], policy: Any, granted: bool) -> None:
    """Log the outcome of a route guard check together with the policy applied."""
    log_permission_check(
        user=user,
        permission=f"route({type(policy).__name__})",
        granted=granted,
        target=path,
        role=role,
        extra={'policy': repr(policy)},
    )


def log_identity_lookup_failure(operation: str, error: BaseException) -> None:
    """
    Log a failed current-user lookup. The caller denies access afterwards.

    Args:
        operation: Guard operation that needed the user ('require_role', ...)
        error: The exception raised by the provider
    """
    log_entry = {
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'event': 'identity_lookup_failure',
        'operation': operation,
        'error': f"{type(error).__name__}: {error}",
    }
    audit_logger.error(f"{operation}: current user lookup failed, denying access ({type(error).__name__}: {error})")
    audit_logger.debug(f"AUDIT: {_json(log_entry)}")


def log_unverified_ownership(user: str, permission: str, resource_type: Optional[str], resource_id: Any) -> None:
    """Log an own-scoped action allowed without a known resource owner."""
    audit_logger.warning(
        f"{user} | {permission} | ownership of {resource_type or 'resource'} {resource_id} not verified "
        f"(no resource owner supplied)"
    )


def log_guard_evaluation_failure(operation: str, error: BaseException) -> None:
    """Log an error raised while evaluating a guard check. The caller denies access afterwards."""
    log_entry = {
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'event': 'guard_evaluation_failure',
        'operation': operation,
        'error': f"{type(error).__name__}: {error}",
    }
    audit_logger.error(f"{operation}: access check failed, denying access ({type(error).__name__}: {error})")
    audit_logger.debug(f"AUDIT: {_json(log_entry)}")
