"""Command-line interface for the wiki content store.

This package provides the `wiki-store` CLI tool for inspecting and editing
wiki pages on the configured storage backend.
"""

from .models import ExitCode
from .errors import CLIError, ContentFileError

__all__ = [
    'ExitCode',
    'CLIError',
    'ContentFileError',
]
