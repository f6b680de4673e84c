"""Typed exception hierarchy for CLI-related errors."""

from typing import Optional


class CLIError(Exception):
    """Base exception for all CLI-related errors."""
    pass


class ContentFileError(CLIError):
    """Raised when a page content file cannot be read."""

    def __init__(self, file_path: str, reason: Optional[str] = None):
        message = f"Cannot read content file {file_path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.file_path = file_path
        self.reason = reason
