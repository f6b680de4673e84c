"""Configuration models for the wiki store.

All models use dataclasses with the defaults applied when a key is absent
from the YAML file.
"""

from dataclasses import dataclass, field
from typing import Optional

from src.wiki_core.version_history import DEFAULT_HISTORY_LIMIT

DEFAULT_TABLE_DATABASE_URL = "sqlite:///wiki.db"
DEFAULT_INDEX_DATABASE_URL = "sqlite:///wiki-index.db"


@dataclass
class ObjectStoreConfig:
    """Object store holding the blob-index documents.

    Attributes:
        type: "local" (directory) or "http" (bucket REST API)
        path: Directory for the local store
        endpoint: Base URL of the HTTP store
        bucket: Bucket id of the HTTP store
        project: Optional project header of the HTTP store
    """
    type: str = "local"
    path: str = "./wiki-blobs"
    endpoint: Optional[str] = None
    bucket: Optional[str] = None
    project: Optional[str] = None


@dataclass
class TableConfig:
    database_url: str = DEFAULT_TABLE_DATABASE_URL
    echo: bool = False


@dataclass
class BlobIndexConfig:
    database_url: str = DEFAULT_INDEX_DATABASE_URL
    admin_role: str = "admin"
    echo: bool = False
    object_store: ObjectStoreConfig = field(default_factory=ObjectStoreConfig)


@dataclass
class RevisionConfig:
    """Revision repository settings.

    Attributes:
        repository: "git" (local working tree at ``path``) or "github"
        path: Local git repository path
        owner: GitHub owner (user or organization)
        repo: GitHub repository name
        branch: Branch the GitHub client commits to
        wiki_path: Directory holding the page files
        history_limit: Maximum commits listed per page history
        content_fetch_limit: Versions whose content is fetched
    """
    repository: str = "git"
    path: str = "./wiki-repo"
    owner: Optional[str] = None
    repo: Optional[str] = None
    branch: str = "main"
    wiki_path: str = "wiki"
    history_limit: int = DEFAULT_HISTORY_LIMIT
    content_fetch_limit: int = 10


@dataclass
class WikiConfig:
    """Top-level configuration.

    Attributes:
        backend: Active backend name (table, blob-index or revision)
    """
    backend: str = "table"
    table: TableConfig = field(default_factory=TableConfig)
    blob_index: BlobIndexConfig = field(default_factory=BlobIndexConfig)
    revision: RevisionConfig = field(default_factory=RevisionConfig)
