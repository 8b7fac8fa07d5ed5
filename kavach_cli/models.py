"""Data types exchanged with the Kavach backend."""

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


class Role:
    """Organization roles."""

    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"

    @classmethod
    def all_roles(cls) -> List[str]:
        """Get all available roles, highest first."""
        return [cls.ADMIN, cls.EDITOR, cls.VIEWER]

    @classmethod
    def is_valid_role(cls, role: str) -> bool:
        """Check if a role is valid."""
        return role in cls.all_roles()


class EntityType:
    USER = "user"
    GROUP = "group"


class BindingType:
    DIRECT = "direct"
    INHERITED = "inherited"


class SourceType:
    ORGANIZATION = "organization"
    SECRET_GROUP = "secret_group"
    ENVIRONMENT = "environment"


@dataclass
class Envelope(Generic[T]):
    """Generic success/data/error wrapper returned by every backend call.

    When ``success`` is true the error fields are not authoritative; when it
    is false ``data`` is never populated.
    """

    success: bool
    data: Optional[T] = None
    error_code: str = ""
    error_msg: str = ""


@dataclass
class Organization:
    id: str
    name: str
    description: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Organization":
        return cls(
            id=str(data["id"]),
            name=data["name"],
            description=data.get("description") or "",
        )


@dataclass
class MembershipRow:
    """One organization the caller belongs to, with the caller's role."""

    org_id: str
    name: str
    role: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MembershipRow":
        return cls(
            org_id=str(data["id"]),
            name=data["org_name"],
            role=data.get("role") or "",
        )

    @classmethod
    def list_from_data(cls, data: Optional[List[Dict[str, Any]]]) -> List["MembershipRow"]:
        return [cls.from_dict(item) for item in data or []]


@dataclass
class RoleBinding:
    """A role granted to a user or group, as reported by the backend."""

    entity_type: str
    role: str
    binding_type: str
    source_type: str = ""
    entity_id: Optional[str] = None
    entity_name: Optional[str] = None
    group_id: Optional[str] = None
    group_name: Optional[str] = None
    organization_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RoleBinding":
        return cls(
            entity_type=data.get("entity_type") or "",
            role=data.get("role") or "",
            binding_type=data.get("binding_type") or "",
            source_type=data.get("source_type") or "",
            entity_id=data.get("entity_id"),
            entity_name=data.get("entity_name"),
            group_id=data.get("group_id"),
            group_name=data.get("group_name"),
            organization_id=data.get("organization_id"),
        )


@dataclass
class RoleBindingList:
    organization_id: str = ""
    bindings: List[RoleBinding] = field(default_factory=list)
    count: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RoleBindingList":
        bindings = [RoleBinding.from_dict(item) for item in data.get("bindings") or []]
        return cls(
            organization_id=str(data.get("organization_id") or ""),
            bindings=bindings,
            count=data.get("count", len(bindings)),
        )


@dataclass
class GrantRoleBindingInput:
    org_name: str
    role: str
    user_name: str = ""
    group_name: str = ""


@dataclass
class RevokeRoleBindingInput:
    org_name: str
    role: str
    user_name: str = ""
    group_name: str = ""
