"""Credential stores used by the request executor.

The executor only talks to the ``CredentialStore`` interface; how tokens are
kept and refreshed is up to the implementation.
"""

import json
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Self

import requests

from . import __version__
from .encryption import EncryptionError, SecureStore
from .errors import ErrorKind, KavachAPIError


@dataclass
class TokenData:
    """The user's tokens and profile info."""

    access_token: str
    refresh_token: str = ""
    name: str = ""
    email: str = ""


class CredentialStore:
    """Interface for bearer-token storage."""

    def is_authenticated(self: Self) -> bool:
        """Whether a session exists that requests can be sent with."""
        raise NotImplementedError

    def attach_auth_header(self: Self, headers: Dict[str, str]) -> None:
        """Set the ``Authorization`` header in place."""
        raise NotImplementedError

    def refresh(self: Self) -> None:
        """Exchange the refresh token for a new access token.

        Raises:
            KavachAPIError: ``INVALID_TOKEN`` if the session cannot be
                refreshed, ``UNREACHABLE`` if the backend cannot be reached.
        """
        raise NotImplementedError


class FileCredentialStore(CredentialStore):
    """Keeps tokens in ~/.kavach/credentials.json, encrypted at rest."""

    SENSITIVE_KEYS = ("access_token", "refresh_token")

    def __init__(
        self: Self,
        backend_endpoint: str,
        path: Optional[Path] = None,
        secure_store: Optional[SecureStore] = None,
        session: Optional[requests.Session] = None,
        timeout: int = 30,
        logger: Any = None
    ) -> None:
        """Initialize the store.

        Args:
            backend_endpoint: Backend base URL ending with a slash.
            path: Credentials file. Defaults to ~/.kavach/credentials.json
            secure_store: Encryption helper for the token values.
            session: HTTP session used for the refresh call.
            timeout: Refresh request timeout in seconds.
            logger: CLILogger instance. Defaults to the global logger.
        """
        self.backend_endpoint = backend_endpoint
        self.path = Path(path) if path else Path.home() / ".kavach" / "credentials.json"
        self._secure_store = secure_store
        self.session = session or requests.Session()
        self.timeout = timeout
        self._logger = logger
        self._token: Optional[TokenData] = None

    @property
    def logger(self: Self) -> Any:
        if self._logger is None:
            from .logger import get_logger
            self._logger = get_logger()
        return self._logger

    @property
    def secure_store(self: Self) -> SecureStore:
        if self._secure_store is None:
            self._secure_store = SecureStore(key_file=self.path.parent / ".encryption_key")
        return self._secure_store

    def load(self: Self) -> Optional[TokenData]:
        """Load tokens from disk.

        Returns:
            The stored tokens, or None when the file is missing or unusable.
        """
        if self._token is not None:
            return self._token

        if not self.path.exists():
            return None

        try:
            with open(self.path, 'r') as f:
                raw = json.load(f)
            data = self.secure_store.decrypt_dict_values(raw, self.SENSITIVE_KEYS)
            token = TokenData(
                access_token=data.get("access_token") or "",
                refresh_token=data.get("refresh_token") or "",
                name=data.get("name") or "",
                email=data.get("email") or "",
            )
        except (OSError, ValueError, TypeError, AttributeError, EncryptionError) as e:
            self.logger.error("Corrupt credentials file", e, {"cmd": "load-token", "path": str(self.path)})
            return None

        if not token.access_token:
            return None

        self._token = token
        return token

    def save(self: Self, token: TokenData) -> None:
        """Persist tokens, replacing whatever was stored."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        os.chmod(self.path.parent, 0o700)

        encrypted = self.secure_store.encrypt_dict_values(asdict(token), self.SENSITIVE_KEYS)
        temp_file = self.path.with_suffix('.tmp')
        with open(temp_file, 'w') as f:
            json.dump(encrypted, f, indent=2)
        os.chmod(temp_file, 0o600)
        temp_file.replace(self.path)

        self._token = token
        self.logger.debug("Credentials saved", {"cmd": "save-token", "path": str(self.path)})

    def clear(self: Self) -> bool:
        """Delete the credentials file.

        Returns:
            True if a file was removed, False if there was nothing to remove.
        """
        self._token = None
        if not self.path.exists():
            return False
        self.path.unlink()
        self.logger.info("Credentials file deleted", {"cmd": "logout", "path": str(self.path)})
        return True

    def is_authenticated(self: Self) -> bool:
        return self.load() is not None

    def attach_auth_header(self: Self, headers: Dict[str, str]) -> None:
        token = self.load()
        if token is None:
            raise KavachAPIError(ErrorKind.NOT_LOGGED_IN)
        headers['Authorization'] = f"Bearer {token.access_token}"

    def refresh(self: Self) -> None:
        token = self.load()
        if token is None or not token.refresh_token:
            raise KavachAPIError(ErrorKind.INVALID_TOKEN)

        url = f"{self.backend_endpoint}auth/refresh"
        try:
            response = self.session.post(
                url,
                json={"refresh_token": token.refresh_token},
                headers={
                    'Content-Type': 'application/json',
                    'User-Agent': f'kavach-cli/{__version__}'
                },
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            self.logger.error("Token refresh failed to reach backend", e, {"cmd": "refresh-token"})
            raise KavachAPIError(ErrorKind.UNREACHABLE)

        try:
            payload = response.json()
        except ValueError:
            payload = None

        data = payload.get("data") if isinstance(payload, dict) and payload.get("success") is True else None
        if not isinstance(data, dict) or not data.get("token"):
            self.logger.warn("Token refresh rejected", {"cmd": "refresh-token", "status": response.status_code})
            raise KavachAPIError(ErrorKind.INVALID_TOKEN)

        self.save(TokenData(
            access_token=data["token"],
            refresh_token=data.get("refresh_token") or token.refresh_token,
            name=token.name,
            email=token.email,
        ))
        self.logger.info("Access token refreshed", {"cmd": "refresh-token"})
