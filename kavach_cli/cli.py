"""Main CLI interface for Kavach."""

import sys
from typing import NoReturn, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm

from . import __version__
from .api import RequestExecutor
from .bindings import resolve_bindings
from .config import Config, ConfigError
from .credentials import FileCredentialStore, TokenData
from .encryption import EncryptionError
from .errors import ErrorHandler, ErrorKind, KavachAPIError, KavachError, handle_keyboard_interrupt
from .logger import get_logger
from .models import GrantRoleBindingInput, RevokeRoleBindingInput, Role
from .orgs import OrganizationClient, organization_rows
from .ui.display import display_binding_groups, display_organization_table
from .validators import InputValidator, ValidationError

console = Console()
error_handler = ErrorHandler()
config = Config()


def confirm_destructive_action(action: str, resource: str, force: bool = False) -> bool:
    """Confirm destructive actions with user.

    Args:
        action: The action being performed (e.g., "delete").
        resource: The resource being acted upon.
        force: Whether to skip confirmation.

    Returns:
        True if action should proceed, False otherwise.
    """
    if force:
        return True

    console.print(
        Panel(
            f"[bold red]Warning:[/bold red] You are about to {action} '{resource}'.\n"
            f"This action cannot be undone.",
            title="Confirmation Required",
            border_style="red"
        )
    )

    return Confirm.ask(f"Are you sure you want to {action} '{resource}'?", default=False)


def get_credential_store() -> FileCredentialStore:
    return FileCredentialStore(
        backend_endpoint=config.get_backend_endpoint(),
        path=config.config_dir / "credentials.json",
        timeout=config.get_timeout()
    )


def get_org_client() -> OrganizationClient:
    """Build an organization client from the local configuration."""
    executor = RequestExecutor(
        base_url=config.get_backend_endpoint(),
        credentials=get_credential_store(),
        timeout=config.get_timeout(),
        logger=get_logger()
    )
    return OrganizationClient(executor)


def fail(error: Exception, context: str) -> NoReturn:
    """Show an error panel and exit with status 1."""
    error_handler.display_error(error, context)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """Kavach CLI - Manage organizations and access from the command line."""
    pass


@main.command(name='config')
@click.option('--url', help='Backend URL (e.g., https://kavach.example.com/api/v1/)')
@click.option('--token', help='Access token')
@click.option('--refresh-token', help='Refresh token used to renew the access token')
@click.option('--timeout', type=click.IntRange(5, 300), help='Request timeout in seconds')
@click.option('--name', help='Display name stored with the token')
@click.option('--email', help='Email stored with the token')
def config_cmd(
    url: Optional[str],
    token: Optional[str],
    refresh_token: Optional[str],
    timeout: Optional[int],
    name: Optional[str],
    email: Optional[str]
) -> None:
    """Configure Kavach CLI."""
    store = get_credential_store()

    if not any([url, token, refresh_token, timeout, name, email]):
        console.print(f"[green]Backend:[/green] {config.get_backend_endpoint()}")
        console.print(f"[green]Timeout:[/green] {config.get_timeout()}s")
        console.print(f"[green]Active organization:[/green] {config.get_active_organization() or 'none'}")
        stored = store.load()
        if stored:
            masked = stored.access_token[:8] + "..." + stored.access_token[-4:]
            console.print(f"[green]Token:[/green] {masked}")
        else:
            console.print("\n[yellow]Not logged in.[/yellow]")
            console.print("Usage: [cyan]kavach config --token <TOKEN> --refresh-token <TOKEN>[/cyan]")
        return

    if (refresh_token or name or email) and not token:
        fail(
            ValidationError("--refresh-token, --name and --email require --token"),
            "Failed to update configuration"
        )

    try:
        if url:
            validated_url = InputValidator.validate_url(url)
            config.set('backend_endpoint', validated_url)
            console.print(f"[green]✓[/green] Backend URL set to: {validated_url}")

        if timeout:
            config.set('timeout', timeout)
            console.print(f"[green]✓[/green] Timeout set to: {timeout}s")

        if token:
            validated_token = InputValidator.validate_api_token(token)
            validated_refresh = InputValidator.validate_api_token(refresh_token) if refresh_token else ""
            store.save(TokenData(
                access_token=validated_token,
                refresh_token=validated_refresh,
                name=name or "",
                email=email or ""
            ))
            console.print("[green]✓[/green] Token saved")

    except (ValidationError, ConfigError, EncryptionError, OSError) as e:
        get_logger().error("Failed to update configuration", e, {"cmd": "config"})
        fail(e, "Failed to update configuration")


@main.command()
def logout() -> None:
    """Remove stored credentials."""
    if get_credential_store().clear():
        console.print("[green]✓[/green] Logged out")
    else:
        console.print("[yellow]You are not logged in.[/yellow]")


@main.command()
def status() -> None:
    """Show who is logged in, without revealing tokens."""
    stored = get_credential_store().load()
    if stored is None:
        console.print("[yellow]You are not logged in.[/yellow]")
        console.print("Usage: [cyan]kavach config --token <TOKEN> --refresh-token <TOKEN>[/cyan]")
        return

    console.print("[bold]Current login status[/bold]")
    console.print(f"[green]Name:[/green] {stored.name or 'unknown'}")
    console.print(f"[green]Email:[/green] {stored.email or 'unknown'}")
    console.print(f"[green]Backend:[/green] {config.get_backend_endpoint()}")
    console.print(f"[green]Active organization:[/green] {config.get_active_organization() or 'none'}")
    get_logger().info("Displayed current login status", {"cmd": "status"})


@main.group()
def org() -> None:
    """Manage organizations and their role bindings."""
    pass


@org.command(name='create')
@click.argument('name')
@click.option('--description', '-d', default='', help='Organization description')
def create_org(name: str, description: str) -> None:
    """Create a new organization."""
    client = get_org_client()
    try:
        with console.status(f"[cyan]Creating organization {name}...", spinner="dots"):
            client.create_organization(name, description)
    except KavachError as e:
        fail(e, f"Failed to create organization '{name}'")
    except KeyboardInterrupt:
        handle_keyboard_interrupt()

    console.print(f"[green]✓[/green] Organization '{name}' created")
    console.print(f"Use [cyan]kavach org activate {name}[/cyan] to make it the active organization")


@org.command(name='list')
def list_orgs() -> None:
    """List your organizations."""
    client = get_org_client()
    try:
        with console.status("[cyan]Fetching organizations...", spinner="dots"):
            memberships = client.list_my_organizations()
    except KavachError as e:
        fail(e, "Failed to list organizations")
    except KeyboardInterrupt:
        handle_keyboard_interrupt()

    display_organization_table(organization_rows(memberships, config.get_active_organization()))


@org.command(name='activate')
@click.argument('name')
def activate_org(name: str) -> None:
    """Set the active organization."""
    client = get_org_client()
    try:
        with console.status(f"[cyan]Looking up organization {name}...", spinner="dots"):
            organization = client.get_organization_by_name(name)
        config.set_active_organization(organization.name)
    except (KavachError, ConfigError) as e:
        fail(e, f"Failed to activate organization '{name}'")
    except KeyboardInterrupt:
        handle_keyboard_interrupt()

    get_logger().info("Organization activated", {"cmd": "org activate", "org": organization.name})
    console.print(f"[green]✓[/green] Organization '{organization.name}' is now active")


@org.command(name='delete')
@click.argument('name')
@click.option('--force', '-f', is_flag=True, help='Skip the confirmation prompt')
def delete_org(name: str, force: bool) -> None:
    """Delete an organization that has no remaining resources."""
    if not confirm_destructive_action("delete organization", name, force):
        console.print("[yellow]Deletion cancelled.[/yellow]")
        return

    client = get_org_client()
    try:
        with console.status(f"[cyan]Deleting organization {name}...", spinner="dots"):
            client.delete_organization(name)
    except KavachError as e:
        fail(e, f"Failed to delete organization '{name}'")
    except KeyboardInterrupt:
        handle_keyboard_interrupt()

    if config.get_active_organization() == name:
        config.unset('organization')
        console.print("[yellow]The deleted organization was active; no organization is active now.[/yellow]")

    console.print(f"[green]✓[/green] Organization '{name}' deleted")


def _binding_options(func):
    func = click.option('--group', '-g', 'group_name', default='', help='User group name')(func)
    func = click.option('--user', '-u', 'user_name', default='', help='User name')(func)
    func = click.option(
        '--role', '-r',
        required=True,
        type=click.Choice(Role.all_roles()),
        help='Permission level (admin, editor, viewer)'
    )(func)
    return func


@org.command(name='grant')
@click.argument('name')
@_binding_options
def grant(name: str, role: str, user_name: str, group_name: str) -> None:
    """Grant a role on an organization to a user or group."""
    client = get_org_client()
    req = GrantRoleBindingInput(org_name=name, role=role, user_name=user_name, group_name=group_name)
    try:
        with console.status(f"[cyan]Granting {role} on {name}...", spinner="dots"):
            outcome = client.grant_role_binding(req)
    except KavachError as e:
        fail(e, f"Failed to grant '{role}' on organization '{name}'")
    except KeyboardInterrupt:
        handle_keyboard_interrupt()

    target = user_name or group_name
    if outcome == ErrorKind.DUPLICATE_ROLE_BINDING:
        console.print(f"[yellow]![/yellow] A role binding for '{target}' already existed on '{name}'.")
        console.print(f"  The existing permissions have been updated to '{role}'.")
        return

    console.print(f"[green]✓[/green] Granted '{role}' to '{target}' on organization '{name}'")


@org.command(name='revoke')
@click.argument('name')
@_binding_options
def revoke(name: str, role: str, user_name: str, group_name: str) -> None:
    """Revoke a role on an organization from a user or group."""
    client = get_org_client()
    req = RevokeRoleBindingInput(org_name=name, role=role, user_name=user_name, group_name=group_name)
    try:
        with console.status(f"[cyan]Revoking {role} on {name}...", spinner="dots"):
            outcome = client.revoke_role_binding(req)
    except KavachError as e:
        fail(e, f"Failed to revoke '{role}' on organization '{name}'")
    except KeyboardInterrupt:
        handle_keyboard_interrupt()

    target = user_name or group_name
    if outcome == ErrorKind.ROLE_BINDING_NOT_FOUND:
        console.print(f"[yellow]![/yellow] '{target}' has no '{role}' binding on '{name}'; nothing to revoke.")
        return

    console.print(f"[green]✓[/green] Revoked '{role}' from '{target}' on organization '{name}'")


@org.command(name='list-bindings')
@click.argument('name')
def list_bindings(name: str) -> None:
    """List the role bindings of an organization."""
    client = get_org_client()
    try:
        with console.status(f"[cyan]Fetching role bindings for {name}...", spinner="dots"):
            bindings = client.list_role_bindings(name)
    except KavachAPIError as e:
        if e.kind == ErrorKind.NO_ROLE_BINDINGS_FOUND:
            console.print(f"[yellow]No role bindings found for organization '{name}'.[/yellow]")
            return
        fail(e, f"Failed to list role bindings for '{name}'")
    except KavachError as e:
        fail(e, f"Failed to list role bindings for '{name}'")
    except KeyboardInterrupt:
        handle_keyboard_interrupt()

    display_binding_groups(name, resolve_bindings(bindings), len(bindings))


if __name__ == '__main__':
    main()
