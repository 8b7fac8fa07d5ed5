"""Organization operations against the Kavach backend."""

from dataclasses import dataclass
from typing import Any, List, Optional, Self
from urllib.parse import quote

from .api import RequestExecutor
from .errors import ErrorKind, KavachAPIError
from .models import (
    GrantRoleBindingInput,
    MembershipRow,
    Organization,
    RevokeRoleBindingInput,
    RoleBinding,
    RoleBindingList,
    SourceType,
)
from .validators import InputValidator

ORG_RESOURCE_TYPE = SourceType.ORGANIZATION


@dataclass
class OrganizationRow:
    """One row of the organization listing."""

    id: str
    name: str
    role: str
    active: bool


def organization_rows(memberships: List[MembershipRow], active_org: Optional[str]) -> List[OrganizationRow]:
    """Build listing rows, flagging the locally active organization.

    Args:
        memberships: Rows returned by ``list_my_organizations``.
        active_org: Name of the active organization from the config, if any.

    Returns:
        Rows in the same order as ``memberships``.
    """
    return [
        OrganizationRow(
            id=row.org_id,
            name=row.name,
            role=row.role,
            active=bool(active_org) and row.name == active_org,
        )
        for row in memberships
    ]


class OrganizationClient:
    """Organization and organization role-binding operations.

    Each operation validates its input, sends at most the requests it needs
    through the executor and returns typed results. Errors raised by the
    executor are passed on unchanged.
    """

    def __init__(self: Self, executor: RequestExecutor, logger: Any = None) -> None:
        """Initialize the client.

        Args:
            executor: Request executor bound to the backend and credentials.
            logger: CLILogger instance. Defaults to the executor's logger.
        """
        self.executor = executor
        self._logger = logger

    @property
    def logger(self: Self) -> Any:
        return self._logger if self._logger is not None else self.executor.logger

    def create_organization(self: Self, name: str, description: str = "") -> None:
        """Create a new organization.

        Args:
            name: Organization name, unique across the backend.
            description: Free-form description.

        Raises:
            ValidationError: If name or description is invalid.
            KavachAPIError: ``DUPLICATE_ORGANIZATION`` if the name is taken.
        """
        name = InputValidator.validate_org_name(name)
        description = InputValidator.validate_description(description)
        fields = {"cmd": "org create", "org": name}

        try:
            self.executor.execute(
                'POST',
                'organizations/',
                json={"name": name, "description": description}
            )
        except KavachAPIError as e:
            self.logger.error("Failed to create organization", e, fields)
            raise

        self.logger.info("Organization created successfully", fields)

    def list_my_organizations(self: Self) -> List[MembershipRow]:
        """List organizations the caller is a member of.

        Returns:
            Membership rows in backend order.
        """
        fields = {"cmd": "org list"}
        try:
            envelope = self.executor.execute(
                'GET',
                'organizations/my',
                decode=MembershipRow.list_from_data
            )
        except KavachAPIError as e:
            self.logger.error("Failed to list organizations", e, fields)
            raise

        memberships = envelope.data or []
        self.logger.info("Listed organizations successfully", {**fields, "count": len(memberships)})
        return memberships

    def get_organization_by_name(self: Self, name: str) -> Organization:
        """Resolve an organization by its name.

        Raises:
            KavachAPIError: ``ORGANIZATION_NOT_FOUND`` if no such organization.
        """
        name = InputValidator.validate_org_name(name)
        fields = {"cmd": "org get", "org": name}

        try:
            envelope = self.executor.execute(
                'GET',
                f'organizations/by-name/{quote(name, safe="")}',
                decode=Organization.from_dict
            )
        except KavachAPIError as e:
            if e.kind == ErrorKind.ORGANIZATION_NOT_FOUND:
                self.logger.warn("Organization not found during get by name", fields)
            else:
                self.logger.error("Failed to get organization by name", e, fields)
            raise

        if envelope.data is None:
            self.logger.warn("Organization lookup returned no data", fields)
            raise KavachAPIError(ErrorKind.ORGANIZATION_NOT_FOUND)

        self.logger.debug("Organization fetched by name successfully", fields)
        return envelope.data

    def delete_organization(self: Self, name: str) -> None:
        """Delete an organization by name.

        The name is resolved to an ID first; if that fails nothing is
        deleted.

        Raises:
            KavachAPIError: ``ORGANIZATION_NOT_FOUND`` if the name does not
                resolve, ``FOREIGN_KEY_VIOLATION`` if it still has resources.
        """
        org = self.get_organization_by_name(name)
        fields = {"cmd": "org delete", "org": org.name, "org_id": org.id}

        try:
            self.executor.execute('DELETE', f'organizations/{quote(org.id, safe="")}')
        except KavachAPIError as e:
            self.logger.error("Failed to delete organization", e, fields)
            raise

        self.logger.info("Organization deleted successfully", fields)

    def grant_role_binding(self: Self, req: GrantRoleBindingInput) -> Optional[ErrorKind]:
        """Grant a role on an organization to a user or a group.

        Args:
            req: Exactly one of ``user_name`` / ``group_name`` must be set.

        Returns:
            None for a new binding, or ``ErrorKind.DUPLICATE_ROLE_BINDING``
            when the binding already existed and was updated in place.

        Raises:
            ValidationError: Before any request, if the input is invalid.
            KavachAPIError: For every other failure.
        """
        user_name, group_name = InputValidator.validate_binding_target(req.user_name, req.group_name)
        role = InputValidator.validate_role(req.role)
        org_name = InputValidator.validate_org_name(req.org_name)
        fields = {"cmd": "org grant", "org": org_name, "role": role}

        org = self.get_organization_by_name(org_name)
        body = self._binding_body(org, user_name, group_name, role)

        try:
            self.executor.execute('POST', 'permissions/grant', json=body)
        except KavachAPIError as e:
            if e.kind == ErrorKind.DUPLICATE_ROLE_BINDING:
                self.logger.info("Organization role binding already existed", fields)
                return e.kind
            self.logger.error("Failed to grant organization role binding", e, fields)
            raise

        self.logger.info("Organization role binding granted successfully", fields)
        return None

    def revoke_role_binding(self: Self, req: RevokeRoleBindingInput) -> Optional[ErrorKind]:
        """Revoke a role on an organization from a user or a group.

        Returns:
            None when a binding was removed, or
            ``ErrorKind.ROLE_BINDING_NOT_FOUND`` when there was nothing to
            remove.

        Raises:
            ValidationError: Before any request, if the input is invalid.
            KavachAPIError: For every other failure.
        """
        user_name, group_name = InputValidator.validate_binding_target(req.user_name, req.group_name)
        role = InputValidator.validate_role(req.role)
        org_name = InputValidator.validate_org_name(req.org_name)
        fields = {"cmd": "org revoke", "org": org_name, "role": role}

        org = self.get_organization_by_name(org_name)
        body = self._binding_body(org, user_name, group_name, role)

        try:
            self.executor.execute('DELETE', 'permissions/revoke', json=body)
        except KavachAPIError as e:
            if e.kind == ErrorKind.ROLE_BINDING_NOT_FOUND:
                self.logger.info("No matching organization role binding to revoke", fields)
                return e.kind
            self.logger.error("Failed to revoke organization role binding", e, fields)
            raise

        self.logger.info("Organization role binding revoked successfully", fields)
        return None

    def list_role_bindings(self: Self, name: str) -> List[RoleBinding]:
        """List all role bindings on an organization.

        Raises:
            KavachAPIError: ``NO_ROLE_BINDINGS_FOUND`` when the backend
                reports none, among the other listing failures.
        """
        org = self.get_organization_by_name(name)
        fields = {"cmd": "org list-bindings", "org": org.name}

        try:
            envelope = self.executor.execute(
                'GET',
                f'organizations/{quote(org.id, safe="")}/role-bindings',
                decode=RoleBindingList.from_dict
            )
        except KavachAPIError as e:
            self.logger.error("Failed to list organization role bindings", e, fields)
            raise

        bindings = envelope.data.bindings if envelope.data else []
        self.logger.info("Organization role bindings listed successfully", {**fields, "count": len(bindings)})
        return bindings

    @staticmethod
    def _binding_body(org: Organization, user_name: str, group_name: str, role: str) -> dict:
        return {
            "user_name": user_name,
            "group_name": group_name,
            "role": role,
            "resource_type": ORG_RESOURCE_TYPE,
            "resource_id": org.id,
            "organization_id": org.id,
        }
