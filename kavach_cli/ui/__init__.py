"""UI components for Kavach CLI.

Rendering of the structured rows produced by the organization operations.
"""

from .display import display_binding_groups, display_organization_table

__all__ = [
    'display_binding_groups',
    'display_organization_table',
]
