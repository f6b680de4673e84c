"""Typed exception hierarchy for wiki store errors.

This module defines the error taxonomy shared by every PageStore backend.
All exceptions inherit from WikiStoreError so callers can catch any
application-level failure, and each class carries a stable ``code`` that is
reported through StoreResult when an operation fails at the store boundary.
"""

from typing import Optional


class WikiStoreError(Exception):
    """Base exception for all wiki-store errors.

    Use this to catch any application-level error from the wiki store.
    """
    code = "WikiStoreError"


class PageNotFoundError(WikiStoreError):
    """Raised when a requested page (or its version history) does not exist."""
    code = "NotFound"

    def __init__(self, page_ref: str, by: str = "id"):
        super().__init__(f"Page not found ({by}: {page_ref})")
        self.page_ref = page_ref
        self.by = by


class SlugConflictError(WikiStoreError):
    """Raised when creating a page whose derived slug already exists."""
    code = "Conflict"

    def __init__(self, slug: str):
        super().__init__(f"A page with slug '{slug}' already exists")
        self.slug = slug


class ValidationError(WikiStoreError):
    """Raised when page input is invalid (empty title/content, unusable slug)."""
    code = "ValidationError"

    def __init__(self, message: str, field: Optional[str] = None):
        if field:
            full_message = f"Invalid value for '{field}': {message}"
        else:
            full_message = message
        super().__init__(full_message)
        self.field = field
        self.original_message = message


class AuthorizationError(WikiStoreError):
    """Raised when the acting identity lacks a role required by the backend."""
    code = "AuthorizationError"

    def __init__(self, operation: str, required_role: Optional[str] = None):
        if required_role:
            message = (
                f"Operation '{operation}' requires membership in role '{required_role}'"
            )
        else:
            message = f"Operation '{operation}' requires an authenticated identity"
        super().__init__(message)
        self.operation = operation
        self.required_role = required_role


class FrontmatterFormatError(WikiStoreError):
    """Raised when a frontmatter document cannot be decoded."""
    code = "FormatError"

    def __init__(self, message: str, line: Optional[str] = None):
        if line is not None:
            full_message = f"Frontmatter error: {message} (line: {line!r})"
        else:
            full_message = f"Frontmatter error: {message}"
        super().__init__(full_message)
        self.line = line
        self.original_message = message


class BackendError(WikiStoreError):
    """Raised when the underlying storage or transport fails.

    Attributes:
        backend: Name of the backend that failed (e.g. "table")
        operation: Operation in progress when the failure happened
        schema_mismatch: True when the failure is a schema/field mismatch
    """
    code = "BackendError"

    def __init__(
        self,
        backend: str,
        operation: str,
        reason: Optional[str] = None,
        schema_mismatch: bool = False,
    ):
        message = f"Backend '{backend}' failed during {operation}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.backend = backend
        self.operation = operation
        self.reason = reason
        self.schema_mismatch = schema_mismatch


class ConfigError(WikiStoreError):
    """Raised when configuration validation or backend selection fails."""
    code = "ConfigError"

    def __init__(self, message: str, config_field: Optional[str] = None):
        if config_field:
            full_message = f"Configuration error in field '{config_field}': {message}"
        else:
            full_message = f"Configuration error: {message}"
        super().__init__(full_message)
        self.config_field = config_field
        self.original_message = message


class ConfigFilesystemError(ConfigError):
    """Raised when the configuration file cannot be read."""

    def __init__(self, file_path: str, operation: str, reason: Optional[str] = None):
        message = f"Filesystem operation '{operation}' failed for {file_path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.file_path = file_path
        self.operation = operation
        self.reason = reason
