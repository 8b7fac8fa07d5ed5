"""Configuration management for Kavach CLI with validation."""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Self

DEFAULT_BACKEND_ENDPOINT = "https://kavach.gkem.cloud/api/v1/"
BACKEND_ENDPOINT_ENV = "KAVACH_BACKEND_ENDPOINT"


class ConfigError(Exception):
    """Configuration-related errors."""
    pass


class ConfigValidationError(ConfigError):
    """Raised when configuration validation fails."""
    pass


class Config:
    """Manages the local CLI configuration file.

    Holds the backend endpoint, the active organization and a few tuning
    values. The active organization is used for display only.
    """

    CONFIG_SCHEMA = {
        'backend_endpoint': {'type': str, 'required': False, 'validator': 'validate_url'},
        'organization': {'type': str, 'required': False},
        'timeout': {'type': int, 'required': False, 'min': 5, 'max': 300, 'default': 30},
        'log_max_size': {'type': int, 'required': False, 'min': 1, 'max': 100, 'default': 1},
        'log_max_backups': {'type': int, 'required': False, 'min': 0, 'max': 50, 'default': 3},
    }

    def __init__(self: Self, config_dir: Optional[Path] = None) -> None:
        """Initialize configuration manager.

        Args:
            config_dir: Directory holding config.json. Defaults to ~/.kavach
        """
        self.config_dir = Path(config_dir) if config_dir else Path.home() / ".kavach"
        self.config_file = self.config_dir / "config.json"
        self._ensure_directories()

    def _ensure_directories(self: Self) -> None:
        """Create config directory with proper permissions."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        os.chmod(self.config_dir, 0o700)

    def _validate_config_schema(self: Self, config: Dict[str, Any]) -> None:
        """Validate configuration against schema.

        Args:
            config: Configuration dictionary to validate.

        Raises:
            ConfigValidationError: If validation fails.
        """
        errors = []

        for key, schema in self.CONFIG_SCHEMA.items():
            value = config.get(key)

            if schema['required'] and value is None:
                errors.append(f"Required field '{key}' is missing")
                continue

            if value is None:
                continue

            # bool is a subclass of int, reject it explicitly
            if not isinstance(value, schema['type']) or isinstance(value, bool):
                errors.append(f"Field '{key}' must be of type {schema['type'].__name__}")
                continue

            if 'min' in schema and value < schema['min']:
                errors.append(f"Field '{key}' must be >= {schema['min']}")
            if 'max' in schema and value > schema['max']:
                errors.append(f"Field '{key}' must be <= {schema['max']}")

            if 'validator' in schema:
                validator = getattr(self, schema['validator'], None)
                if validator and not validator(value):
                    errors.append(f"Field '{key}' failed validation")

        if errors:
            raise ConfigValidationError(f"Configuration validation failed: {'; '.join(errors)}")

    def validate_url(self: Self, url: str) -> bool:
        """Validate URL format.

        Args:
            url: URL to validate.

        Returns:
            True if valid, False otherwise.
        """
        if not isinstance(url, str):
            return False
        return url.startswith(('http://', 'https://'))

    def load(self: Self, validate: bool = True) -> Dict[str, Any]:
        """Load configuration from file with optional validation.

        Args:
            validate: Whether to validate the configuration schema.

        Returns:
            Dictionary containing configuration data, with defaults applied.

        Raises:
            ConfigError: If loading fails.
        """
        config: Dict[str, Any] = {}

        if self.config_file.exists():
            try:
                with open(self.config_file, 'r') as f:
                    content = f.read()
                if content.strip():
                    config = json.loads(content)
            except (json.JSONDecodeError, IOError) as e:
                raise ConfigError(f"Failed to load configuration: {e}")

            if not isinstance(config, dict):
                raise ConfigError("Failed to load configuration: expected a JSON object")

        for key, schema in self.CONFIG_SCHEMA.items():
            if key not in config and 'default' in schema:
                config[key] = schema['default']

        if validate:
            self._validate_config_schema(config)

        return config

    def save(self: Self, config: Dict[str, Any]) -> None:
        """Save configuration to file.

        Args:
            config: Configuration dictionary to save.

        Raises:
            ConfigError: If validation or saving fails.
        """
        self._validate_config_schema(config)

        # Write to temporary file first, then move to prevent corruption
        temp_file = self.config_file.with_suffix('.tmp')
        try:
            with open(temp_file, 'w') as f:
                json.dump(config, f, indent=2)
            os.chmod(temp_file, 0o600)
            temp_file.replace(self.config_file)
        except OSError as e:
            if temp_file.exists():
                temp_file.unlink()
            raise ConfigError(f"Failed to save configuration: {e}")

    def get(self: Self, key: str, default: Any = None) -> Any:
        """Get configuration value.

        Args:
            key: Configuration key to retrieve.
            default: Default value if key not found.

        Returns:
            Configuration value or default.
        """
        try:
            config = self.load(validate=False)
            return config.get(key, default)
        except ConfigError:
            return default

    def set(self: Self, key: str, value: Any) -> None:
        """Set configuration value with validation.

        Raises:
            ConfigError: If validation or saving fails.
        """
        config = self.load(validate=False)
        config[key] = value
        self.save(config)

    def unset(self: Self, key: str) -> None:
        config = self.load(validate=False)
        if key in config:
            del config[key]
            self.save(config)

    def get_backend_endpoint(self: Self) -> str:
        """Get the backend base URL.

        The ``KAVACH_BACKEND_ENDPOINT`` environment variable wins over the
        config file. The result always ends with a slash.

        Returns:
            Backend base URL.
        """
        endpoint = (
            os.environ.get(BACKEND_ENDPOINT_ENV)
            or self.get('backend_endpoint')
            or DEFAULT_BACKEND_ENDPOINT
        )
        return endpoint if endpoint.endswith('/') else endpoint + '/'

    def get_active_organization(self: Self) -> Optional[str]:
        """Get the name of the active organization, if any."""
        return self.get('organization') or None

    def set_active_organization(self: Self, name: str) -> None:
        self.set('organization', name)

    def get_timeout(self: Self) -> int:
        return self.get('timeout', 30)
