"""Storage backends implementing the PageStore contract.

This package provides the table, blob-index and revision backends, the
configuration loader and the process-wide BackendSelector.
"""

from .blob_index_backend import BlobIndexBackend
from .config_loader import ConfigLoader
from .config_models import (
    BlobIndexConfig,
    ObjectStoreConfig,
    RevisionConfig,
    TableConfig,
    WikiConfig,
)
from .revision_backend import LimitedVersionHistory, RevisionBackend
from .selector import BackendKind, BackendSelector
from .sql_version_history import SqlVersionHistory
from .table_backend import TableBackend

__all__ = [
    "BlobIndexBackend",
    "ConfigLoader",
    "BlobIndexConfig",
    "ObjectStoreConfig",
    "RevisionConfig",
    "TableConfig",
    "WikiConfig",
    "LimitedVersionHistory",
    "RevisionBackend",
    "BackendKind",
    "BackendSelector",
    "SqlVersionHistory",
    "TableBackend",
]
