"""Tests for the local configuration file."""

import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from kavach_cli.config import (
    BACKEND_ENDPOINT_ENV,
    DEFAULT_BACKEND_ENDPOINT,
    Config,
    ConfigError,
    ConfigValidationError,
)


class TestConfig(unittest.TestCase):
    """Test configuration loading, validation and saving."""

    def setUp(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.config = Config(config_dir=Path(self.temp_dir))

    def tearDown(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_defaults_without_file(self):
        """Test defaults are applied when no file exists."""
        config = self.config.load()
        self.assertEqual(config['timeout'], 30)
        self.assertEqual(config['log_max_size'], 1)
        self.assertEqual(config['log_max_backups'], 3)

    def test_directory_permissions(self):
        """Test the config directory is private."""
        self.assertEqual(os.stat(self.temp_dir).st_mode & 0o777, 0o700)

    def test_set_and_get(self):
        """Test values survive a round trip through the file."""
        self.config.set('organization', 'acme')
        self.assertEqual(Config(config_dir=Path(self.temp_dir)).get('organization'), 'acme')

    def test_saved_file_permissions(self):
        """Test the config file is written with restricted permissions."""
        self.config.set('timeout', 60)
        mode = os.stat(self.config.config_file).st_mode & 0o777
        self.assertEqual(mode, 0o600)

    def test_unset(self):
        """Test removing a key."""
        self.config.set_active_organization('acme')
        self.config.unset('organization')
        self.assertIsNone(self.config.get_active_organization())

    def test_invalid_timeout_rejected(self):
        """Test range validation on save."""
        for value in [1, 301, "30", True]:
            with self.subTest(value=value):
                with self.assertRaises(ConfigValidationError):
                    self.config.set('timeout', value)

    def test_invalid_backend_rejected(self):
        """Test that a non-HTTP backend URL is rejected."""
        with self.assertRaises(ConfigValidationError):
            self.config.set('backend_endpoint', 'ftp://example.com')

    def test_corrupt_file(self):
        """Test that unreadable JSON is a configuration error."""
        self.config.config_file.write_text("{not json")
        with self.assertRaises(ConfigError):
            self.config.load()
        self.assertEqual(self.config.get('timeout', 42), 42)

    def test_non_object_file(self):
        """Test that a JSON list is rejected."""
        self.config.config_file.write_text(json.dumps([1, 2]))
        with self.assertRaises(ConfigError):
            self.config.load()

    @patch.dict(os.environ, {}, clear=True)
    def test_backend_endpoint_default(self):
        """Test the built-in default backend."""
        self.assertEqual(self.config.get_backend_endpoint(), DEFAULT_BACKEND_ENDPOINT)

    @patch.dict(os.environ, {}, clear=True)
    def test_backend_endpoint_from_file_gets_slash(self):
        """Test the configured backend gains a trailing slash."""
        self.config.set('backend_endpoint', 'https://kavach.example.com/api/v1')
        self.assertEqual(self.config.get_backend_endpoint(), 'https://kavach.example.com/api/v1/')

    def test_backend_endpoint_env_wins(self):
        """Test the environment variable overrides the file."""
        self.config.set('backend_endpoint', 'https://file.example.com/')
        with patch.dict(os.environ, {BACKEND_ENDPOINT_ENV: 'http://localhost:8080/api/v1/'}):
            self.assertEqual(self.config.get_backend_endpoint(), 'http://localhost:8080/api/v1/')


if __name__ == '__main__':
    unittest.main()
