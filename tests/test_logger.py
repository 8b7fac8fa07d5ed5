"""Tests for structured file logging."""

import json
import logging
import tempfile
import unittest
from pathlib import Path

from kavach_cli.errors import ErrorKind, KavachAPIError
from kavach_cli.logger import CLILogger


class TestCLILogger(unittest.TestCase):
    """Test the JSON-lines log file."""

    def setUp(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.logger = CLILogger(log_dir=Path(self.temp_dir))

    def tearDown(self):
        """Clean up test environment."""
        for handler in list(self.logger.logger.handlers):
            self.logger.logger.removeHandler(handler)
            handler.close()
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def read_entries(self):
        for handler in self.logger.logger.handlers:
            handler.flush()
        lines = self.logger.log_file.read_text().splitlines()
        return [json.loads(line) for line in lines if line.strip()]

    def test_info_entry(self):
        """Test an entry carries message, level and fields."""
        self.logger.info("Organization created successfully", {"cmd": "org create", "org": "acme"})

        entry = self.read_entries()[-1]
        self.assertEqual(entry["level"], "info")
        self.assertEqual(entry["message"], "Organization created successfully")
        self.assertEqual(entry["org"], "acme")
        self.assertIn("timestamp", entry)

    def test_error_entry_records_kind(self):
        """Test that classified errors record their kind."""
        self.logger.error("Failed", KavachAPIError(ErrorKind.ACCESS_DENIED), {"cmd": "org delete"})

        entry = self.read_entries()[-1]
        self.assertEqual(entry["level"], "error")
        self.assertEqual(entry["error_kind"], "ACCESS_DENIED")

    def test_does_not_propagate(self):
        """Test that log lines stay out of the root logger."""
        self.assertFalse(logging.getLogger('kavach_cli').propagate)


if __name__ == '__main__':
    unittest.main()
