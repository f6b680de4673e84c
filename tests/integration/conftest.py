"""Pytest configuration and fixtures for integration tests.

Every PageStore backend must satisfy the same contract. The ``store``
fixture is parametrized over all of them, built fully in-process (SQLite in
memory, in-memory object store, in-memory revision repository).
"""

import shutil
from typing import Generator

import pytest

from src.storage_clients.git_repository import GitRepository
from src.wiki_core.page_store import PageStore
from tests.helpers.store_builders import STORE_BUILDERS, admin_provider


@pytest.fixture(params=sorted(STORE_BUILDERS))
def store(request) -> Generator[PageStore, None, None]:
    """A fresh store of each backend kind, acting as an admin."""
    store = STORE_BUILDERS[request.param](admin_provider())
    yield store
    store.close()


@pytest.fixture
def git_repo(tmp_path) -> GitRepository:
    """An initialized local git repository.

    Skips the test when no git executable is available.
    """
    if shutil.which("git") is None:
        pytest.skip("git executable not available")
    repo = GitRepository(str(tmp_path / "wiki-repo"))
    repo.init_if_not_exists()
    return repo
