"""
Unit tests for the toollink-rbac command line.
"""
import json
import logging

import pytest
from click.testing import CliRunner

from toollink.cli.cli_main import cli
from toollink.rbac.registry import CONFIG_ENV_VAR
from toollink.utils.logging import get_logger


@pytest.fixture
def runner(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    yield CliRunner()

    # The CLI installs a stream handler bound to the runner's stderr
    root = get_logger()
    for handler in list(root.handlers):
        if getattr(handler, '_toollink_handler', False):
            root.removeHandler(handler)
    root.setLevel(logging.NOTSET)


class TestCli:
    """Tests for the click commands."""

    def test_roles(self, runner):
        result = runner.invoke(cli, ['roles'])
        assert result.exit_code == 0
        assert 'Warehouse Manager' in result.output
        assert result.output.splitlines()[0].startswith('admin')

    def test_permissions_marks_own_scope(self, runner):
        result = runner.invoke(cli, ['permissions', 'customer'])
        assert result.exit_code == 0
        assert 'orders.view.own  (own resources only)' in result.output
        assert 'orders.create\n' in result.output

    def test_permissions_rejects_unknown_role(self, runner):
        result = runner.invoke(cli, ['permissions', 'driver'])
        assert result.exit_code == 2

    def test_check_granted(self, runner):
        result = runner.invoke(cli, ['check', 'cashier', 'orders.approve'])
        assert result.exit_code == 0
        assert result.output.strip() == 'GRANTED'

    def test_check_denied(self, runner):
        result = runner.invoke(cli, ['check', 'customer', 'users.manage'])
        assert result.exit_code == 1
        assert result.output.strip() == 'DENIED'

    def test_check_ownership(self, runner):
        args = ['check', 'customer', 'orders.cancel.own', '--owner-id', 'c-2', '--user-id', 'c-1']
        assert runner.invoke(cli, args).exit_code == 1

    def test_feature(self, runner):
        assert runner.invoke(cli, ['feature', 'warehouse', 'inventoryManagement', 'predict']).exit_code == 0
        assert runner.invoke(cli, ['feature', 'warehouse', 'inventoryManagement', 'teleport']).exit_code == 1

    def test_capabilities_json(self, runner):
        result = runner.invoke(cli, ['capabilities', 'editor', '--json'])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data['isEditor'] is True
        assert data['capabilities']['reportingAnalytics']['view'] is True

    def test_capabilities_text(self, runner):
        result = runner.invoke(cli, ['capabilities', 'customer'])
        assert 'userManagement: -' in result.output

    def test_nav(self, runner):
        result = runner.invoke(cli, ['nav', 'cashier'])
        assert result.exit_code == 0
        names = [line.split('  ')[0].strip() for line in result.output.splitlines()]
        assert names == ['Dashboard', 'Orders', 'Inventory', 'Customer Approval', 'Notifications', 'Profile']

    def test_nav_json(self, runner):
        result = runner.invoke(cli, ['nav', 'warehouse', '--json'])
        paths = [item['path'] for item in json.loads(result.output)]
        assert '/material-prediction' in paths

    def test_route(self, runner):
        result = runner.invoke(cli, ['route', 'cashier', '/material-prediction'])
        assert result.exit_code == 1
        assert result.output.strip() == 'Explicit: DENIED'

    def test_route_default_from_config(self, runner, tmp_path):
        config = tmp_path / 'rbac.yaml'
        config.write_text("route_policy:\n  default: deny\n")
        result = runner.invoke(cli, ['--config', str(config), 'route', 'admin', '/help'])
        assert result.exit_code == 1
        assert result.output.strip() == 'DefaultDeny: DENIED'

    def test_validate(self, runner):
        result = runner.invoke(cli, ['validate'])
        assert result.exit_code == 0
        assert result.output.startswith('OK: 5 roles, 6 feature modules, 14 routes')

    def test_bad_config_is_reported(self, runner, tmp_path):
        config = tmp_path / 'rbac.yaml'
        config.write_text("route_policy:\n  default: sometimes\n")
        result = runner.invoke(cli, ['--config', str(config), 'validate'])
        assert result.exit_code == 1
        assert 'sometimes' in result.output
