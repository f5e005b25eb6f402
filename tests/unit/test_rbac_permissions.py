"""
Unit tests for capability evaluation.

Tests cover:
- has_permission (wildcard, exact match, unknown roles, ownership)
- can_access_feature OR semantics and default-deny
- get_user_capabilities
- is_own_resource_access and helpers
"""
import pytest

from toollink.rbac.permission_enum import Permission, Role, all_permissions
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
from toollink.rbac.registry import FEATURE_MODULES, ROLE_PERMISSIONS


NON_ADMIN_ROLES = ['cashier', 'warehouse', 'customer', 'editor']


# =============================================================================
# has_permission
# =============================================================================

class TestHasPermission:
    """Tests for has_permission."""

    @pytest.mark.parametrize('permission', all_permissions())
    def test_admin_holds_every_permission(self, permission):
        assert has_permission('admin', permission) is True

    def test_admin_holds_tokens_outside_the_catalog(self):
        assert has_permission(Role.ADMIN, 'anything.at.all') is True

    @pytest.mark.parametrize('role', NON_ADMIN_ROLES)
    def test_no_leakage_outside_assigned_list(self, role):
        assigned = set(ROLE_PERMISSIONS[role])
        for permission in all_permissions():
            assert has_permission(role, permission) is (permission in assigned)

    def test_customer_cannot_manage_users(self):
        assert has_permission('customer', 'users.manage') is False

    def test_exact_match_only(self):
        assert has_permission('cashier', 'orders.view') is True
        assert has_permission('cashier', 'orders.view.own') is False
        assert has_permission('customer', 'orders.view.own') is True
        assert has_permission('customer', 'orders.view') is False

    def test_no_prefix_matching(self):
        assert has_permission('warehouse', 'inventory') is False
        assert has_permission('warehouse', 'inventory.') is False

    def test_unknown_role_fails_closed(self):
        assert has_permission('bogus-role', 'orders.view') is False

    @pytest.mark.parametrize('role', [None, '', 42, ['admin'], {'role': 'admin'}])
    def test_malformed_role_fails_closed(self, role):
        assert has_permission(role, 'orders.view') is False

    @pytest.mark.parametrize('permission', [None, '', 3, ['orders.view']])
    def test_malformed_permission_is_denied(self, permission):
        assert has_permission('admin', permission) is False
        assert has_permission('cashier', permission) is False

    def test_role_lookup_is_case_sensitive(self):
        # Normalise external input with normalize_role first
        assert has_permission('Cashier', 'orders.view') is False
        assert has_permission(normalize_role('Cashier'), 'orders.view') is True

    def test_enum_arguments(self):
        assert has_permission(Role.WAREHOUSE, Permission.Inventory.PREDICT) is True


class TestOwnership:
    """Ownership checks for self-scoped permissions."""

    def test_own_permission_without_owner_is_granted(self):
        assert has_permission('customer', 'orders.update.own') is True

    def test_matching_owner(self):
        assert has_permission('customer', 'orders.update.own', resource_owner_id='u1', current_user_id='u1') is True

    def test_ids_compared_as_strings(self):
        assert has_permission('customer', 'orders.cancel.own', resource_owner_id=42, current_user_id='42') is True

    def test_other_owner_denied(self):
        assert has_permission('customer', 'orders.update.own', resource_owner_id='u2', current_user_id='u1') is False

    def test_owner_without_current_user_denied(self):
        assert has_permission('customer', 'delivery.reschedule.own', resource_owner_id='u2') is False

    def test_unscoped_permission_ignores_owner(self):
        assert has_permission('cashier', 'orders.update', resource_owner_id='u2', current_user_id='u1') is True

    def test_admin_not_restricted_to_own_resources(self):
        assert has_permission('admin', 'orders.update.own', resource_owner_id='u2', current_user_id='u1') is True

    def test_ownership_never_grants_missing_permission(self):
        assert has_permission('cashier', 'orders.update.own', resource_owner_id='u1', current_user_id='u1') is False


# =============================================================================
# Feature checks
# =============================================================================

class TestCanAccessFeature:
    """Tests for can_access_feature."""

    def test_or_semantics(self):
        # customer holds orders.view.own but not orders.view
        assert can_access_feature('customer', 'orderManagement', 'view') is True

    def test_catalog_view_grants_inventory_view(self):
        assert can_access_feature('customer', 'inventoryManagement', 'view') is True

    def test_warehouse_predict(self):
        assert can_access_feature('warehouse', 'inventoryManagement', 'predict') is True
        assert can_access_feature('cashier', 'inventoryManagement', 'predict') is False

    def test_unknown_module_denied(self):
        assert can_access_feature('admin', 'payroll', 'view') is False

    def test_unknown_action_denied(self):
        assert can_access_feature('admin', 'orderManagement', 'teleport') is False

    def test_unknown_role_denied(self):
        assert can_access_feature('driver', 'deliveryManagement', 'view') is False

    def test_admin_passes_every_listed_action(self):
        for module, actions in FEATURE_MODULES.items():
            for action in actions:
                assert can_access_feature('admin', module, action) is True

    def test_cashier_approves_users_via_customer_approval(self):
        assert can_access_feature('cashier', 'userManagement', 'approve') is True
        assert can_access_feature('cashier', 'userManagement', 'view') is False


class TestCapabilities:
    """Tests for get_user_capabilities."""

    def test_grid_covers_every_module_and_action(self):
        caps = get_user_capabilities('editor')
        assert set(caps.capabilities) == set(FEATURE_MODULES)
        for module, actions in FEATURE_MODULES.items():
            assert set(caps.capabilities[module]) == set(actions)

    def test_grid_matches_feature_checks(self):
        for role in ['admin'] + NON_ADMIN_ROLES:
            caps = get_user_capabilities(role)
            for module, actions in caps.capabilities.items():
                for action, allowed in actions.items():
                    assert allowed == can_access_feature(role, module, action)

    def test_role_flags(self):
        caps = get_user_capabilities(Role.WAREHOUSE)
        assert isinstance(caps, CapabilitySet)
        assert caps.role == 'warehouse'
        assert caps.is_warehouse
        assert not caps.is_admin
        assert caps.permissions == ROLE_PERMISSIONS['warehouse']

    def test_unknown_role_has_no_capabilities(self):
        caps = get_user_capabilities('bogus-role')
        assert caps.permissions == ()
        assert not any(ok for actions in caps.capabilities.values() for ok in actions.values())

    def test_can_helper(self):
        caps = get_user_capabilities('customer')
        assert caps.can('deliveryManagement', 'track') is True
        assert caps.can('deliveryManagement', 'complete') is False
        assert caps.can('nope', 'view') is False

    def test_deterministic(self):
        assert get_user_capabilities('cashier') == get_user_capabilities('cashier')

    def test_to_dict(self):
        data = get_user_capabilities('customer').to_dict()
        assert data['role'] == 'customer'
        assert data['isCustomer'] is True
        assert data['capabilities']['orderManagement']['create'] is True
        assert 'orders.view.own' in data['permissions']


# =============================================================================
# Helpers
# =============================================================================

class TestHelpers:
    """Tests for classification and lookup helpers."""

    def test_own_suffix_classification(self):
        assert is_own_resource_access('delivery.reschedule.own') is True
        assert is_own_resource_access(Permission.Orders.VIEW_OWN) is True
        assert is_own_resource_access('delivery.schedule') is False

    def test_own_must_be_the_last_segment(self):
        assert is_own_resource_access('owners.view') is False
        assert is_own_resource_access('orders.own.view') is False
        assert is_own_resource_access('own') is False
        assert is_own_resource_access('orders.view.owner') is False
        assert is_own_resource_access(None) is False

    def test_any_and_all(self):
        assert has_any_permission('editor', ['users.manage', 'content.edit']) is True
        assert has_any_permission('editor', []) is False
        assert has_all_permissions('editor', ['content.edit', 'content.publish']) is True
        assert has_all_permissions('editor', ['content.edit', 'users.manage']) is False

    def test_role_permissions_for_unknown_role(self):
        assert get_role_permissions('bogus-role') == ()

    def test_roles_with_permission(self):
        assert get_roles_with_permission('materials.predict') == ['admin', 'warehouse']

    def test_is_admin(self):
        assert is_admin('admin') and is_admin(Role.ADMIN)
        assert not is_admin('cashier')

    def test_role_name(self):
        assert get_role_name('admin') == 'Administrator'

    @pytest.mark.parametrize('value,expected', [
        ('admin', Role.ADMIN),
        (' Warehouse ', Role.WAREHOUSE),
        (Role.EDITOR, Role.EDITOR),
        ('driver', None),
        (None, None),
        (7, None),
    ])
    def test_normalize_role(self, value, expected):
        assert normalize_role(value) == expected
