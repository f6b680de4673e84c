"""Test helper modules for wiki store testing.

This package provides in-process fakes shared by unit and integration tests:
- in_memory_repository: RevisionRepository backed by dicts
- fake_stores: object store and version history with failure injection
- store_builders: ready-to-use PageStore instances for every backend
"""

from .fake_stores import FailingVersionHistory, InMemoryObjectStore
from .in_memory_repository import InMemoryRevisionRepository
from .store_builders import (
    ADMIN_ID,
    ADMIN_NAME,
    EDITOR_ID,
    EDITOR_NAME,
    STORE_BUILDERS,
    admin_provider,
    build_blob_index_store,
    build_revision_store,
    build_table_store,
    editor_provider,
)

__all__ = [
    'FailingVersionHistory',
    'InMemoryObjectStore',
    'InMemoryRevisionRepository',
    'ADMIN_ID',
    'ADMIN_NAME',
    'EDITOR_ID',
    'EDITOR_NAME',
    'STORE_BUILDERS',
    'admin_provider',
    'build_blob_index_store',
    'build_revision_store',
    'build_table_store',
    'editor_provider',
]
