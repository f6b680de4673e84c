"""Process-wide selection of the active storage backend.

The backend is chosen once at startup from configuration; callers then use
``BackendSelector.get_store()`` as the single accessor. Switching to another
backend requires an explicit ``reset()``, which closes the active store's
clients.

Example:
    >>> config = ConfigLoader.load("wiki.yaml")
    >>> BackendSelector.configure(config, EnvIdentityProvider())
    >>> store = BackendSelector.get_store()
"""

import logging
from enum import Enum
from typing import Optional

from src.storage_clients.auth import CredentialLoader
from src.storage_clients.errors import StorageClientError
from src.storage_clients.git_repository import GitRepository
from src.storage_clients.github_repository import GitHubRepository
from src.storage_clients.object_store import HttpObjectStore, LocalObjectStore, ObjectStore
from src.storage_clients.revision_repository import RevisionRepository
from src.storage_clients.sql_database import SqlDatabase
from src.wiki_core.errors import ConfigError
from src.wiki_core.identity import IdentityProvider
from src.wiki_core.page_store import PageStore

from .blob_index_backend import BlobIndexBackend
from .config_models import ObjectStoreConfig, RevisionConfig, WikiConfig
from .revision_backend import RevisionBackend
from .table_backend import TableBackend

logger = logging.getLogger(__name__)


class BackendKind(str, Enum):
    """Available storage backends."""
    TABLE = "table"
    BLOB_INDEX = "blob-index"
    REVISION = "revision"

    @classmethod
    def parse(cls, value: str) -> "BackendKind":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ConfigError(
                f"Unknown backend '{value}', expected one of: "
                f"{', '.join(kind.value for kind in cls)}",
                config_field='backend',
            )


class BackendSelector:
    """Holds the single active PageStore of the process."""

    _store: Optional[PageStore] = None
    _kind: Optional[BackendKind] = None

    @classmethod
    def configure(
        cls,
        config: WikiConfig,
        identity_provider: IdentityProvider,
        object_store: Optional[ObjectStore] = None,
        repository: Optional[RevisionRepository] = None,
        credentials: Optional[CredentialLoader] = None,
    ) -> PageStore:
        """Build and activate the configured backend.

        Configuring the already active backend again returns the existing
        store.

        Args:
            config: Loaded configuration
            identity_provider: Source of the acting identity
            object_store: Prebuilt object store for the blob-index backend
            repository: Prebuilt revision repository for the revision backend
            credentials: Credential loader for remote clients

        Raises:
            ConfigError: If another backend is active or the clients cannot be built
        """
        kind = BackendKind.parse(config.backend)

        if cls._store is not None:
            if kind == cls._kind:
                logger.debug(f"Backend '{kind.value}' already configured")
                return cls._store
            raise ConfigError(
                f"Backend '{cls._kind.value}' is already active; reset() before "
                f"switching to '{kind.value}'",
                config_field='backend',
            )

        try:
            store = cls._build(kind, config, identity_provider, object_store, repository, credentials)
        except StorageClientError as e:
            raise ConfigError(f"Could not initialize backend '{kind.value}': {e}") from e

        cls._store = store
        cls._kind = kind
        logger.info(f"Using wiki backend '{kind.value}'")
        return store

    @classmethod
    def get_store(cls) -> PageStore:
        """The active store.

        Raises:
            ConfigError: If no backend has been configured
        """
        if cls._store is None:
            raise ConfigError("No wiki backend configured; call BackendSelector.configure() first")
        return cls._store

    @classmethod
    def active_kind(cls) -> Optional[BackendKind]:
        return cls._kind

    @classmethod
    def reset(cls) -> None:
        """Close and forget the active store."""
        store = cls._store
        cls._store = None
        cls._kind = None
        if store is not None:
            try:
                store.close()
            except Exception as e:
                logger.warning(f"Error while closing backend '{store.backend_name}': {e}")

    @classmethod
    def _build(
        cls,
        kind: BackendKind,
        config: WikiConfig,
        identity_provider: IdentityProvider,
        object_store: Optional[ObjectStore],
        repository: Optional[RevisionRepository],
        credentials: Optional[CredentialLoader],
    ) -> PageStore:
        if kind == BackendKind.TABLE:
            database = SqlDatabase(config.table.database_url, echo=config.table.echo)
            return TableBackend(database, identity_provider)

        if kind == BackendKind.BLOB_INDEX:
            blob = config.blob_index
            database = SqlDatabase(blob.database_url, echo=blob.echo)
            store = object_store or cls._build_object_store(blob.object_store, credentials)
            return BlobIndexBackend(database, store, identity_provider, admin_role=blob.admin_role)

        revision = config.revision
        repo = repository or cls._build_repository(revision, credentials)
        return RevisionBackend(
            repo,
            identity_provider,
            wiki_path=revision.wiki_path,
            history_limit=revision.history_limit,
            content_fetch_limit=revision.content_fetch_limit,
        )

    @staticmethod
    def _build_object_store(
        store_config: ObjectStoreConfig,
        credentials: Optional[CredentialLoader],
    ) -> ObjectStore:
        if store_config.type == "http":
            creds = (credentials or CredentialLoader()).object_store()
            return HttpObjectStore(
                store_config.endpoint,
                store_config.bucket,
                creds.api_key,
                project=store_config.project,
            )
        return LocalObjectStore(store_config.path)

    @staticmethod
    def _build_repository(
        revision: RevisionConfig,
        credentials: Optional[CredentialLoader],
    ) -> RevisionRepository:
        if revision.repository == "github":
            creds = (credentials or CredentialLoader()).github()
            return GitHubRepository(revision.owner, revision.repo, creds.token, branch=revision.branch)

        repo = GitRepository(revision.path)
        repo.init_if_not_exists()
        return repo
