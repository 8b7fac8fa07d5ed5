"""Display utilities for Kavach CLI."""

from typing import List

from rich.console import Console
from rich.table import Table

from ..bindings import BindingRow, ResolvedBindings, binding_rows
from ..orgs import OrganizationRow

console = Console()


def display_organization_table(rows: List[OrganizationRow], title: str = "Organizations") -> None:
    """Display organizations in a formatted table.

    Args:
        rows: Organization rows, the active one flagged.
        title: Table title to display.
    """
    if not rows:
        console.print("[yellow]You are not a member of any organization.[/yellow]")
        return

    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Org Id", style="dim", no_wrap=True)
    table.add_column("Org Name", style="cyan")
    table.add_column("Role", style="green")
    table.add_column("Active", justify="center")

    for row in rows:
        table.add_row(
            row.id,
            row.name,
            f"[{_get_role_style(row.role)}]{row.role}[/{_get_role_style(row.role)}]",
            "[green]●[/green]" if row.active else ""
        )

    console.print(table)


def _binding_table(rows: List[BindingRow], title: str) -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Type", style="blue")
    table.add_column("Name", style="cyan")
    table.add_column("Role")
    for row in rows:
        style = _get_role_style(row.role)
        table.add_row(row.type, row.name, f"[{style}]{row.role}[/{style}]")
    return table


def display_binding_groups(org_name: str, resolved: ResolvedBindings, total: int) -> None:
    """Display direct and inherited bindings of an organization.

    Args:
        org_name: Organization the bindings belong to.
        resolved: Bindings grouped by the resolver.
        total: Number of bindings the backend returned.
    """
    console.print(f"Role bindings for organization [cyan]{org_name}[/cyan]")
    console.print(f"Total bindings: {total}\n")

    direct = binding_rows(resolved.direct)
    if direct:
        console.print(_binding_table(direct, "Direct Bindings"))

    inherited = binding_rows(resolved.inherited)
    if inherited:
        console.print(_binding_table(inherited, f"Inherited from Organization: {org_name}"))

    if not direct and not inherited:
        console.print("[yellow]No direct or organization-level bindings to display.[/yellow]")


def _get_role_style(role: str) -> str:
    """Get Rich style for a role."""
    role_styles = {
        'admin': 'bold red',
        'editor': 'yellow',
        'viewer': 'green',
    }
    return role_styles.get((role or '').lower(), 'white')
