import json

import click

from toollink.rbac.navigation import check_route_access, get_navigation_items
from toollink.rbac.permission_enum import Role
from toollink.rbac.permissions import (
    can_access_feature,
    get_role_name,
    get_role_permissions,
    get_user_capabilities,
    has_permission,
    is_own_resource_access,
)
from toollink.rbac.registry import RBACConfigError, RBACRegistry, load_rbac_config
from toollink.utils.logging import get_logger, setup_cli_logging

ROLE_CHOICE = click.Choice([r.value for r in Role], case_sensitive=False)


def _registry(ctx: click.Context) -> RBACRegistry:
    return ctx.obj['registry']


def _echo_decision(granted: bool) -> None:
    click.echo("GRANTED" if granted else "DENIED")


@click.group()
@click.option('--config', '-c', 'config_path', type=str, default=None, help="Path to rbac.yaml")
@click.option('--verbosity', '-v', type=int, default=2, help="Logging verbosity level (0-4)")
@click.pass_context
def cli(ctx: click.Context, config_path: str, verbosity: int):
    """Inspect ToolLink roles, permissions, navigation and route access."""
    setup_cli_logging(verbosity=verbosity)
    try:
        config = load_rbac_config(config_path)
        registry = RBACRegistry.from_config(config)
    except RBACConfigError as e:
        raise click.ClickException(str(e))
    ctx.obj = {'config': config, 'registry': registry}


@cli.command()
@click.pass_context
def roles(ctx: click.Context):
    """List roles with their display names and permission counts."""
    registry = _registry(ctx)
    for role in registry.roles:
        perms = registry.get_role_permissions(role)
        click.echo(f"{role:<10} {get_role_name(role, registry=registry):<18} {len(perms)} permission(s)")


@cli.command()
@click.argument('role', type=ROLE_CHOICE)
@click.pass_context
def permissions(ctx: click.Context, role: str):
    """List the permissions granted to ROLE."""
    for perm in get_role_permissions(role.lower(), registry=_registry(ctx)):
        suffix = "  (own resources only)" if is_own_resource_access(perm) else ""
        click.echo(f"{perm}{suffix}")


@cli.command()
@click.argument('role', type=str)
@click.argument('permission', type=str)
@click.option('--owner-id', type=str, default=None, help="Owner of the resource being acted on")
@click.option('--user-id', type=str, default=None, help="Id of the acting user")
@click.pass_context
def check(ctx: click.Context, role: str, permission: str, owner_id: str, user_id: str):
    """Check whether ROLE holds PERMISSION."""
    granted = has_permission(
        role.lower(), permission,
        resource_owner_id=owner_id,
        current_user_id=user_id,
        registry=_registry(ctx),
    )
    _echo_decision(granted)
    if not granted:
        ctx.exit(1)


@cli.command()
@click.argument('role', type=str)
@click.argument('module', type=str)
@click.argument('action', type=str)
@click.pass_context
def feature(ctx: click.Context, role: str, module: str, action: str):
    """Check whether ROLE can perform ACTION in feature MODULE."""
    granted = can_access_feature(role.lower(), module, action, registry=_registry(ctx))
    _echo_decision(granted)
    if not granted:
        ctx.exit(1)


@cli.command()
@click.argument('role', type=ROLE_CHOICE)
@click.option('--json', 'as_json', is_flag=True, help="Print as JSON")
@click.pass_context
def capabilities(ctx: click.Context, role: str, as_json: bool):
    """Show the module/action capability grid for ROLE."""
    caps = get_user_capabilities(role.lower(), registry=_registry(ctx))
    if as_json:
        click.echo(json.dumps(caps.to_dict(), indent=2))
        return

    for module, actions in caps.capabilities.items():
        allowed = [action for action, ok in actions.items() if ok]
        click.echo(f"{module}: {', '.join(allowed) if allowed else '-'}")


@cli.command()
@click.argument('role', type=ROLE_CHOICE)
@click.option('--json', 'as_json', is_flag=True, help="Print as JSON")
@click.pass_context
def nav(ctx: click.Context, role: str, as_json: bool):
    """Show the navigation entries for ROLE, in display order."""
    items = get_navigation_items(role.lower(), registry=_registry(ctx))
    if as_json:
        click.echo(json.dumps([item.to_dict() for item in items], indent=2))
        return

    for item in items:
        click.echo(f"{item.name:<20} {item.path}")


@cli.command()
@click.argument('role', type=str)
@click.argument('path', type=str)
@click.pass_context
def route(ctx: click.Context, role: str, path: str):
    """Check whether ROLE may open PATH."""
    registry = _registry(ctx)
    policy = registry.resolve_route_policy(path)
    granted = check_route_access(role.lower(), path, registry=registry)
    click.echo(f"{type(policy).__name__}: ", nl=False)
    _echo_decision(granted)
    if not granted:
        ctx.exit(1)


@cli.command()
@click.pass_context
def validate(ctx: click.Context):
    """Validate the RBAC tables and configuration."""
    logger = get_logger(__name__)
    registry = _registry(ctx)
    logger.info("RBAC tables validated")
    click.echo(
        f"OK: {len(registry.roles)} roles, {len(registry.feature_modules)} feature modules, "
        f"{len(registry.route_access)} routes, unlisted routes: {type(registry.route_default).__name__}"
    )


def main():
    cli()


if __name__ == '__main__':
    main()
