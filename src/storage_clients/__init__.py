"""Storage clients used by the wiki backends.

This package wraps the external systems the backends write to: the SQL
database, object stores, and local or GitHub-hosted git repositories, plus
credential and identity loading from the environment.
"""

from .errors import (
    StorageClientError,
    ObjectStoreError,
    GitRepositoryError,
    RepositoryAPIError,
    RateLimitExceededError,
    MissingCredentialsError,
)
from .auth import CredentialLoader, EnvIdentityProvider
from .git_repository import GitRepository
from .github_repository import GitHubRepository
from .object_store import HttpObjectStore, LocalObjectStore, ObjectStore
from .revision_repository import CommitAuthor, CommitInfo, RevisionRepository
from .sql_database import SqlDatabase

__all__ = [
    "StorageClientError",
    "ObjectStoreError",
    "GitRepositoryError",
    "RepositoryAPIError",
    "RateLimitExceededError",
    "MissingCredentialsError",
    "CredentialLoader",
    "EnvIdentityProvider",
    "GitRepository",
    "GitHubRepository",
    "HttpObjectStore",
    "LocalObjectStore",
    "ObjectStore",
    "CommitAuthor",
    "CommitInfo",
    "RevisionRepository",
    "SqlDatabase",
]
