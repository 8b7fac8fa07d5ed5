"""Input validation for Kavach CLI.

All checks here run before any network call is made.
"""

import re
from typing import Optional, Tuple
from urllib.parse import urlparse

from .errors import ValidationError
from .models import Role


class InputValidator:
    """Validates and sanitizes user inputs."""

    PATTERNS = {
        'org_name': re.compile(r'^[^/\\\x00-\x1F\x7F]+$'),
        'api_token': re.compile(r'^[a-zA-Z0-9\-_\.]+$'),
    }

    MAX_LENGTHS = {
        'org_name': 255,
        'description': 1024,
        'url': 2048,
        'api_token': 4096,
    }

    @classmethod
    def validate_org_name(cls, name: str) -> str:
        """Validate an organization name.

        Names are case-sensitive and are used verbatim in request paths, so
        only path separators and control characters are rejected.

        Args:
            name: Organization name to validate

        Returns:
            The name, stripped of surrounding whitespace

        Raises:
            ValidationError: If name is invalid
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Organization name cannot be empty")

        if len(name) > cls.MAX_LENGTHS['org_name']:
            raise ValidationError(
                f"Organization name cannot exceed {cls.MAX_LENGTHS['org_name']} characters"
            )

        if not cls.PATTERNS['org_name'].match(name):
            raise ValidationError("Organization name cannot contain slashes or control characters")

        return name

    @classmethod
    def validate_description(cls, description: Optional[str]) -> str:
        description = description or ""
        if len(description) > cls.MAX_LENGTHS['description']:
            raise ValidationError(
                f"Description cannot exceed {cls.MAX_LENGTHS['description']} characters"
            )
        return description

    @classmethod
    def validate_role(cls, role: Optional[str]) -> str:
        """Validate a role name.

        Raises:
            ValidationError: If role is missing or not one of admin, editor, viewer
        """
        if not role:
            raise ValidationError(
                "Role is required. Use --role to specify the permission level (admin, editor, or viewer)"
            )
        if not Role.is_valid_role(role):
            raise ValidationError(
                f"Invalid role '{role}'. Valid roles are: {', '.join(Role.all_roles())}"
            )
        return role

    @classmethod
    def validate_binding_target(
        cls,
        user_name: Optional[str],
        group_name: Optional[str]
    ) -> Tuple[str, str]:
        """Validate that exactly one of user and group is given.

        Args:
            user_name: User to bind, may be empty
            group_name: Group to bind, may be empty

        Returns:
            Tuple of (user_name, group_name) with one element empty

        Raises:
            ValidationError: If both or neither are provided
        """
        user_name = (user_name or "").strip()
        group_name = (group_name or "").strip()

        if user_name and group_name:
            raise ValidationError(
                "Cannot specify both user and group. Please provide either --user or --group, not both"
            )
        if not user_name and not group_name:
            raise ValidationError(
                "Please specify either a user (--user) or a group (--group)"
            )
        return user_name, group_name

    @classmethod
    def validate_url(cls, url: str) -> str:
        """Validate the backend URL.

        Returns:
            The URL with a trailing slash, so paths can be appended directly

        Raises:
            ValidationError: If URL is invalid
        """
        if not url:
            raise ValidationError("URL cannot be empty")

        if len(url) > cls.MAX_LENGTHS['url']:
            raise ValidationError(f"URL cannot exceed {cls.MAX_LENGTHS['url']} characters")

        parsed = urlparse(url)
        if parsed.scheme not in ('http', 'https'):
            raise ValidationError("URL must use http or https protocol")
        if not parsed.netloc:
            raise ValidationError("URL must include a hostname")

        return url if url.endswith('/') else url + '/'

    @classmethod
    def validate_api_token(cls, token: str) -> str:
        """Validate API token format.

        Raises:
            ValidationError: If token is invalid
        """
        if not token:
            raise ValidationError("API token cannot be empty")

        if len(token) < 10:
            raise ValidationError("API token is too short (minimum 10 characters)")

        if len(token) > cls.MAX_LENGTHS['api_token']:
            raise ValidationError(
                f"API token cannot exceed {cls.MAX_LENGTHS['api_token']} characters"
            )

        if not cls.PATTERNS['api_token'].match(token):
            raise ValidationError("API token contains invalid characters")

        return token
