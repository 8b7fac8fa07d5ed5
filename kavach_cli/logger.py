"""Structured file logging for Kavach CLI.

Entries are written as one JSON object per line to ``~/.kavach/kavach.log``
and rotated by size. Console output is left to the commands themselves.
"""

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from . import __version__


class CLILogger:
    """Writes structured log entries for CLI operations."""

    def __init__(
        self,
        log_dir: Optional[Path] = None,
        max_size_mb: int = 1,
        max_backups: int = 3
    ) -> None:
        """Initialize the logger.

        Args:
            log_dir: Directory for the log file. Defaults to ~/.kavach
            max_size_mb: Rotate the log once it reaches this many megabytes
            max_backups: Number of rotated files to keep
        """
        if log_dir is None:
            log_dir = Path.home() / ".kavach"

        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        os.chmod(self.log_dir, 0o700)

        self.log_file = self.log_dir / "kavach.log"
        self._setup_logging(max_size_mb, max_backups)

    def _setup_logging(self, max_size_mb: int, max_backups: int) -> None:
        """Configure the rotating file handler."""
        self.logger = logging.getLogger('kavach_cli')
        self.logger.setLevel(logging.DEBUG)

        # Keep CLI logs out of the root logger and the terminal
        self.logger.propagate = False

        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

        if not self.log_file.exists():
            self.log_file.touch()
        os.chmod(self.log_file, 0o600)

        handler = RotatingFileHandler(
            self.log_file,
            maxBytes=max(max_size_mb, 1) * 1024 * 1024,
            backupCount=max(max_backups, 0),
            encoding="utf-8"
        )
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter('%(message)s'))
        self.logger.addHandler(handler)

    def _create_log_entry(
        self,
        level: str,
        message: str,
        error: Optional[BaseException] = None,
        fields: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Create a structured log entry.

        Args:
            level: Level name
            message: Log message
            error: Exception to record, if any
            fields: Additional structured fields such as ``cmd`` and ``org``

        Returns:
            Structured log entry as dictionary
        """
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "message": message,
            "source": "kavach_cli",
            "version": __version__,
        }
        if error is not None:
            entry["error"] = str(error)
            kind = getattr(error, "kind", None)
            if kind is not None:
                entry["error_kind"] = kind.name
        if fields:
            entry.update(fields)
        return entry

    def _write(self, levelno: int, entry: Dict[str, Any]) -> None:
        self.logger.log(levelno, json.dumps(entry, default=str))

    def debug(self, message: str, fields: Optional[Dict[str, Any]] = None) -> None:
        self._write(logging.DEBUG, self._create_log_entry("debug", message, fields=fields))

    def info(self, message: str, fields: Optional[Dict[str, Any]] = None) -> None:
        self._write(logging.INFO, self._create_log_entry("info", message, fields=fields))

    def warn(self, message: str, fields: Optional[Dict[str, Any]] = None) -> None:
        self._write(logging.WARNING, self._create_log_entry("warn", message, fields=fields))

    def error(
        self,
        message: str,
        error: Optional[BaseException] = None,
        fields: Optional[Dict[str, Any]] = None
    ) -> None:
        """Log an error with the exception that caused it."""
        self._write(logging.ERROR, self._create_log_entry("error", message, error, fields))


# Global logger instance
_cli_logger = None


def get_logger() -> CLILogger:
    """Get the global CLI logger instance, configured from the CLI config.

    Returns:
        CLILogger instance
    """
    global _cli_logger
    if _cli_logger is None:
        from .config import Config

        config = Config()
        _cli_logger = CLILogger(
            log_dir=config.config_dir,
            max_size_mb=config.get('log_max_size', 1),
            max_backups=config.get('log_max_backups', 3)
        )
    return _cli_logger
