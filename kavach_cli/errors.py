"""Error taxonomy and error display for Kavach CLI.

Every failure coming out of the request pipeline is a ``KavachAPIError``
carrying one member of the closed ``ErrorKind`` enumeration. Callers branch on
``error.kind``; the message is for humans only.
"""

import sys
from enum import Enum
from typing import Dict, List, Optional, Self

from rich.console import Console
from rich.panel import Panel

console = Console()


class ErrorKind(Enum):
    """Classified error kinds returned by the backend pipeline."""

    NOT_LOGGED_IN = "not_logged_in"
    INVALID_TOKEN = "invalid_token"
    UNREACHABLE = "unreachable"
    ACCESS_DENIED = "access_denied"
    ORGANIZATION_NOT_FOUND = "organization_not_found"
    DUPLICATE_ORGANIZATION = "duplicate_organization"
    DUPLICATE_ROLE_BINDING = "duplicate_role_binding"
    ROLE_BINDING_NOT_FOUND = "role_binding_not_found"
    FOREIGN_KEY_VIOLATION = "foreign_key_violation"
    NO_ROLE_BINDINGS_FOUND = "no_role_bindings_found"
    PERMISSION_DENIED_FOR_ROLE_BINDINGS = "permission_denied_for_role_bindings"
    INVALID_RESOURCE_ID = "invalid_resource_id"
    ROLE_BINDINGS_LIST_FAILED = "role_bindings_list_failed"
    UNCLASSIFIED = "unclassified"


DEFAULT_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.NOT_LOGGED_IN: "You are not logged in. Please run 'kavach config --token <TOKEN>'",
    ErrorKind.INVALID_TOKEN: "Please login again, the session is expired, unable to authenticate you",
    ErrorKind.UNREACHABLE: "The backend is not reachable at this time",
    ErrorKind.ACCESS_DENIED: "You don't have access to perform this action",
    ErrorKind.ORGANIZATION_NOT_FOUND: "Sorry, the organization was not found",
    ErrorKind.DUPLICATE_ORGANIZATION: "The organization already exists",
    ErrorKind.DUPLICATE_ROLE_BINDING: "The role binding already exists",
    ErrorKind.ROLE_BINDING_NOT_FOUND: "Sorry, the role binding was not found",
    ErrorKind.FOREIGN_KEY_VIOLATION: "The resource still has dependent resources",
    ErrorKind.NO_ROLE_BINDINGS_FOUND: "No role bindings found for this resource",
    ErrorKind.PERMISSION_DENIED_FOR_ROLE_BINDINGS: (
        "You don't have permission to view role bindings for this resource"
    ),
    ErrorKind.INVALID_RESOURCE_ID: "Invalid resource ID provided",
    ErrorKind.ROLE_BINDINGS_LIST_FAILED: "Failed to list role bindings. Please try again",
    ErrorKind.UNCLASSIFIED: "Unexpected error from the backend",
}

# Structured classification: backend error_code -> kind.
ERROR_CODE_KINDS: Dict[str, ErrorKind] = {
    "invalid_token": ErrorKind.INVALID_TOKEN,
    "expired_token": ErrorKind.INVALID_TOKEN,
    "unauthorized": ErrorKind.INVALID_TOKEN,
    "authentication_failed": ErrorKind.INVALID_TOKEN,
    "access_denied": ErrorKind.ACCESS_DENIED,
    "forbidden": ErrorKind.ACCESS_DENIED,
    "organisation_not_exist": ErrorKind.ORGANIZATION_NOT_FOUND,
    "organization_not_exist": ErrorKind.ORGANIZATION_NOT_FOUND,
    "resource_not_found_role_bindings": ErrorKind.ORGANIZATION_NOT_FOUND,
    "duplicate_organization": ErrorKind.DUPLICATE_ORGANIZATION,
    "duplicate_role_binding": ErrorKind.DUPLICATE_ROLE_BINDING,
    "role_binding_not_found": ErrorKind.ROLE_BINDING_NOT_FOUND,
    "foreign_key_constraint_violation": ErrorKind.FOREIGN_KEY_VIOLATION,
    "no_role_bindings_found": ErrorKind.NO_ROLE_BINDINGS_FOUND,
    "permission_denied_role_bindings": ErrorKind.PERMISSION_DENIED_FOR_ROLE_BINDINGS,
    "invalid_resource_id": ErrorKind.INVALID_RESOURCE_ID,
    "role_bindings_list_failed": ErrorKind.ROLE_BINDINGS_LIST_FAILED,
}

# Codes that mean the access token was rejected and a refresh is worth trying.
AUTH_ERROR_CODES = frozenset({
    "invalid_token",
    "expired_token",
    "unauthorized",
    "authentication_failed",
})

NOT_LOGGED_IN_PHRASES = ("not logged in", "please login", "please log in")

INVALID_TOKEN_PHRASES = (
    "invalid token",
    "expired token",
    "token expired",
    "session expired",
    "session is expired",
    "unauthorized",
    "authentication failed",
)


class KavachError(Exception):
    """Base exception class for Kavach CLI errors."""

    def __init__(self: Self, message: str, suggestions: Optional[List[str]] = None) -> None:
        """Initialize Kavach error.

        Args:
            message: The error message to display.
            suggestions: Optional list of recovery suggestions.
        """
        super().__init__(message)
        self.message = message
        self.suggestions = suggestions or []


class KavachAPIError(KavachError):
    """A classified failure of a backend call."""

    def __init__(self: Self, kind: ErrorKind, message: Optional[str] = None) -> None:
        """Initialize API error.

        Args:
            kind: Classified error kind.
            message: Message to show. Defaults to the kind's standard message;
                for ``UNCLASSIFIED`` this is the raw backend message.
        """
        super().__init__(message or DEFAULT_MESSAGES[kind], ErrorHandler.SUGGESTIONS.get(kind))
        self.kind = kind

    def __repr__(self: Self) -> str:
        return f"KavachAPIError({self.kind.name}, {self.message!r})"


class ValidationError(KavachError):
    """Raised when caller-supplied input fails validation."""
    pass


def sniff_auth_failure(error_message: Optional[str]) -> Optional[ErrorKind]:
    """Detect authentication failures reported only as prose.

    Args:
        error_message: Free-form backend or transport message.

    Returns:
        ``INVALID_TOKEN`` when the text mentions a rejected or expired
        session, else ``NOT_LOGGED_IN`` when it asks the user to log in,
        otherwise None.
    """
    if not error_message:
        return None
    lowered = error_message.lower()
    if any(phrase in lowered for phrase in INVALID_TOKEN_PHRASES):
        return ErrorKind.INVALID_TOKEN
    if any(phrase in lowered for phrase in NOT_LOGGED_IN_PHRASES):
        return ErrorKind.NOT_LOGGED_IN
    return None


def classify_error(error_code: Optional[str], error_message: Optional[str]) -> KavachAPIError:
    """Classify a ``success=false`` envelope.

    The structured code always wins; message sniffing only runs when the code
    is missing or unknown.

    Args:
        error_code: The envelope ``error_code``.
        error_message: The envelope ``error_msg``.

    Returns:
        The classified error, ready to raise.
    """
    kind = ERROR_CODE_KINDS.get((error_code or "").strip())
    if kind is not None:
        return KavachAPIError(kind)

    sniffed = sniff_auth_failure(error_message)
    if sniffed is not None:
        return KavachAPIError(sniffed)

    return KavachAPIError(
        ErrorKind.UNCLASSIFIED,
        error_message or f"Backend returned error code '{error_code or 'unknown'}'"
    )


class ErrorHandler:
    """Handles and displays errors with recovery suggestions."""

    SUGGESTIONS: Dict[ErrorKind, List[str]] = {
        ErrorKind.NOT_LOGGED_IN: [
            "Store your access token: kavach config --token <TOKEN> --refresh-token <TOKEN>",
            "Check that ~/.kavach/credentials.json exists and is readable",
        ],
        ErrorKind.INVALID_TOKEN: [
            "Your session could not be refreshed, obtain a new token",
            "Store the new token: kavach config --token <TOKEN> --refresh-token <TOKEN>",
        ],
        ErrorKind.UNREACHABLE: [
            "Check that the Kavach backend is running",
            "Verify the backend URL: kavach config",
            "Check network connectivity to the backend",
        ],
        ErrorKind.ACCESS_DENIED: [
            "Ask an organization admin to grant you a role",
            "List your memberships: kavach org list",
        ],
        ErrorKind.ORGANIZATION_NOT_FOUND: [
            "Check the spelling of the organization name (names are case-sensitive)",
            "List your organizations: kavach org list",
        ],
        ErrorKind.DUPLICATE_ORGANIZATION: [
            "Choose another organization name",
        ],
        ErrorKind.FOREIGN_KEY_VIOLATION: [
            "Delete the secret groups and environments of the organization first",
        ],
        ErrorKind.PERMISSION_DENIED_FOR_ROLE_BINDINGS: [
            "Only organization admins can view role bindings",
        ],
    }

    GENERIC_SUGGESTIONS = [
        "Verify your configuration: kavach config",
        "Review the log for more details: ~/.kavach/kavach.log",
    ]

    def get_suggestions(self: Self, error: Exception) -> List[str]:
        """Get recovery suggestions for an error.

        Args:
            error: The exception to analyze.

        Returns:
            List of recovery suggestions.
        """
        if isinstance(error, KavachError) and error.suggestions:
            return error.suggestions
        if isinstance(error, ValidationError):
            return ["Run the command with --help to see the expected arguments"]
        return self.GENERIC_SUGGESTIONS

    def display_error(
        self: Self,
        error: Exception,
        context: Optional[str] = None,
        show_suggestions: bool = True
    ) -> None:
        """Display an error with formatting and suggestions.

        Args:
            error: The exception that occurred.
            context: Optional context about what was being attempted.
            show_suggestions: Whether to show recovery suggestions.
        """
        content = []

        if context:
            content.append(f"[bold]Context:[/bold] {context}")
            content.append("")

        content.append(f"[bold red]Error:[/bold red] {error}")

        if show_suggestions:
            suggestions = self.get_suggestions(error)
            if suggestions:
                content.append("")
                content.append("[bold blue]Suggested solutions:[/bold blue]")
                for i, suggestion in enumerate(suggestions, 1):
                    content.append(f"  {i}. {suggestion}")

        console.print(Panel(
            "\n".join(content),
            title="[bold red]Kavach CLI Error[/bold red]",
            border_style="red",
            expand=False
        ))


def handle_keyboard_interrupt() -> None:
    """Handle Ctrl+C gracefully."""
    console.print("\n[yellow]Operation cancelled by user[/yellow]")
    sys.exit(130)  # Standard exit code for SIGINT
