"""Grouping and naming of role bindings for display.

The backend returns a flat list of bindings for a resource. Here they are
split into direct bindings and bindings inherited from the organization, and
each entity gets a display name. Nothing in this module fails or sorts; the
backend order is kept.
"""

from dataclasses import dataclass, field
from typing import Iterable, List

from .models import BindingType, EntityType, RoleBinding, SourceType

UNKNOWN_USER = "Unknown User"
UNKNOWN_GROUP = "Unknown Group"


@dataclass
class ResolvedBindings:
    direct: List[RoleBinding] = field(default_factory=list)
    inherited: List[RoleBinding] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.direct and not self.inherited


@dataclass
class BindingRow:
    """One rendered binding: entity type label, display name and role."""

    type: str
    name: str
    role: str


def resolve_bindings(records: Iterable[RoleBinding]) -> ResolvedBindings:
    """Partition bindings into direct and inherited-from-organization groups.

    Bindings that are neither direct nor inherited from an organization
    (for example inherited from a secret group) are left out.

    Args:
        records: Bindings for a single organization, in backend order.

    Returns:
        The two groups, each in input order.
    """
    resolved = ResolvedBindings()
    for binding in records:
        if binding.binding_type == BindingType.DIRECT:
            resolved.direct.append(binding)
        elif binding.source_type == SourceType.ORGANIZATION:
            resolved.inherited.append(binding)
    return resolved


def display_name(binding: RoleBinding) -> str:
    """Name shown for the bound entity, with a fallback when unresolved."""
    if binding.entity_type == EntityType.GROUP:
        return binding.group_name or UNKNOWN_GROUP
    if binding.entity_type == EntityType.USER:
        return binding.entity_name or UNKNOWN_USER
    return binding.entity_name or binding.entity_id or ""


def binding_rows(bindings: Iterable[RoleBinding]) -> List[BindingRow]:
    """Convert bindings to rows for the presentation layer.

    Only user and group entities produce a row.
    """
    rows = []
    for binding in bindings:
        if binding.entity_type == EntityType.USER:
            rows.append(BindingRow("User", display_name(binding), binding.role))
        elif binding.entity_type == EntityType.GROUP:
            rows.append(BindingRow("Group", display_name(binding), binding.role))
    return rows
