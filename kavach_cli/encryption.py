"""Encryption of credentials stored on disk.

Access and refresh tokens are never written to ``credentials.json`` in clear
text; they are Fernet tokens keyed by ``KAVACH_ENCRYPTION_KEY`` or by a key
file created on first use.
"""

import os
from pathlib import Path
from typing import Dict, Iterable, Optional

from cryptography.fernet import Fernet, InvalidToken

ENCRYPTION_KEY_ENV = "KAVACH_ENCRYPTION_KEY"


class EncryptionError(Exception):
    """Raised when encryption/decryption operations fail."""
    pass


class SecureStore:
    """Encrypts and decrypts individual string values."""

    def __init__(self, encryption_key: Optional[bytes] = None, key_file: Optional[Path] = None) -> None:
        """Initialize the store.

        Args:
            encryption_key: Optional Fernet key. If not provided, the key is
                read from the environment or from ``key_file``.
            key_file: Location of the generated key. Defaults to
                ~/.kavach/.encryption_key

        Raises:
            EncryptionError: If the key cannot be obtained or is malformed.
        """
        self.key_file = Path(key_file) if key_file else Path.home() / ".kavach" / ".encryption_key"
        self.key = encryption_key or self._get_or_create_key()
        try:
            self.cipher = Fernet(self.key)
        except (ValueError, TypeError) as e:
            raise EncryptionError(f"Invalid encryption key: {e}")

    def _get_or_create_key(self) -> bytes:
        """Get encryption key from environment or key file, creating one if needed.

        Returns:
            Encryption key as bytes.

        Raises:
            EncryptionError: If key generation fails.
        """
        env_key = os.environ.get(ENCRYPTION_KEY_ENV)
        if env_key:
            return env_key.encode()

        if self.key_file.exists():
            try:
                return self.key_file.read_bytes().strip()
            except OSError as e:
                raise EncryptionError(f"Failed to read encryption key file: {e}")

        try:
            key = Fernet.generate_key()
            self.key_file.parent.mkdir(parents=True, exist_ok=True)
            self.key_file.write_bytes(key)
            os.chmod(self.key_file, 0o600)
            return key
        except OSError as e:
            raise EncryptionError(f"Failed to generate encryption key: {e}")

    def encrypt_value(self, value: str) -> str:
        """Encrypt a string value.

        Raises:
            EncryptionError: If value is not a string.
        """
        if not isinstance(value, str):
            raise EncryptionError("Value must be a string")
        return self.cipher.encrypt(value.encode('utf-8')).decode('utf-8')

    def decrypt_value(self, encrypted_value: str) -> str:
        """Decrypt a value produced by ``encrypt_value``.

        Raises:
            EncryptionError: If decryption fails (wrong key or tampered data).
        """
        if not isinstance(encrypted_value, str):
            raise EncryptionError("Encrypted value must be a string")
        try:
            return self.cipher.decrypt(encrypted_value.encode('utf-8')).decode('utf-8')
        except InvalidToken:
            raise EncryptionError("Failed to decrypt value: invalid key or corrupted data")

    def encrypt_dict_values(self, data: Dict[str, str], sensitive_keys: Iterable[str]) -> Dict[str, str]:
        result = dict(data)
        for key in sensitive_keys:
            if result.get(key):
                result[key] = self.encrypt_value(result[key])
        return result

    def decrypt_dict_values(self, data: Dict[str, str], sensitive_keys: Iterable[str]) -> Dict[str, str]:
        result = dict(data)
        for key in sensitive_keys:
            if result.get(key):
                result[key] = self.decrypt_value(result[key])
        return result
