"""Data models for CLI operations."""

from enum import IntEnum
from typing import Optional

from src.wiki_core.errors import AuthorizationError, BackendError, WikiStoreError


class ExitCode(IntEnum):
    """Exit codes for CLI operations.

    - SUCCESS (0): Operation completed successfully
    - GENERAL_ERROR (1): Configuration, validation or not-found failures
    - AUTH_ERROR (3): Missing identity or role
    - BACKEND_ERROR (4): Storage or transport failure

    Example:
        >>> raise typer.Exit(ExitCode.AUTH_ERROR)
    """
    SUCCESS = 0
    GENERAL_ERROR = 1
    AUTH_ERROR = 3
    BACKEND_ERROR = 4

    @classmethod
    def for_error(cls, error: Optional[WikiStoreError]) -> "ExitCode":
        if isinstance(error, AuthorizationError):
            return cls.AUTH_ERROR
        if isinstance(error, BackendError):
            return cls.BACKEND_ERROR
        return cls.GENERAL_ERROR
