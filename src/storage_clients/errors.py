"""Typed exception hierarchy for storage client errors.

Storage clients (SQL database, object stores, revision repositories) raise
these errors; backends translate them into BackendError at the PageStore
boundary. All exceptions inherit from StorageClientError.
"""

from typing import Optional


class StorageClientError(Exception):
    """Base exception for all storage client errors."""
    pass


class ObjectStoreError(StorageClientError):
    """Raised when an object store upload/download/delete fails.

    Attributes:
        blob_id: Blob the operation targeted
        operation: upload, download or delete
        not_found: True when the blob does not exist
    """

    def __init__(
        self,
        blob_id: str,
        operation: str,
        reason: Optional[str] = None,
        not_found: bool = False,
    ):
        message = f"Object store {operation} failed for blob {blob_id}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.blob_id = blob_id
        self.operation = operation
        self.reason = reason
        self.not_found = not_found


class GitRepositoryError(StorageClientError):
    """Raised when local git repository operations fail.

    Attributes:
        repo_path: Path to git repository
        message: Error description
        git_output: Git command stderr output
    """

    def __init__(self, repo_path: str, message: str, git_output: str = ""):
        super().__init__(f"Git repository error at {repo_path}: {message}")
        self.repo_path = repo_path
        self.message = message
        self.git_output = git_output


class RepositoryAPIError(StorageClientError):
    """Raised when a hosted repository REST API call fails.

    Attributes:
        endpoint: API path that failed
        status_code: HTTP status, if a response was received
    """

    def __init__(self, endpoint: str, message: str, status_code: Optional[int] = None):
        if status_code is not None:
            full_message = f"Repository API error ({status_code}) at {endpoint}: {message}"
        else:
            full_message = f"Repository API error at {endpoint}: {message}"
        super().__init__(full_message)
        self.endpoint = endpoint
        self.status_code = status_code
        self.message = message


class RateLimitExceededError(StorageClientError):
    """Raised when a remote service keeps rate limiting after all retries."""

    def __init__(self, service: str, retries: int = 3):
        super().__init__(f"{service} rate limit persisted after {retries} retries")
        self.service = service
        self.retries = retries


class MissingCredentialsError(StorageClientError):
    """Raised when a required credential environment variable is not set."""

    def __init__(self, variables):
        names = ", ".join(variables)
        super().__init__(f"Missing required environment variable(s): {names}")
        self.variables = list(variables)
