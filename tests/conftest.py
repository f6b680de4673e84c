"""Root pytest configuration for all tests.

This conftest applies to all test types (unit, integration).
"""

import pytest

from src.backends.selector import BackendSelector


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Keep wiki environment variables and the active backend out of tests.

    Tests that need an identity or backend override set the variables
    themselves with monkeypatch.
    """
    for name in (
        "WIKI_BACKEND",
        "WIKI_CONFIG",
        "WIKI_USER_ID",
        "WIKI_USER_NAME",
        "WIKI_USER_ROLES",
        "WIKI_GITHUB_TOKEN",
        "WIKI_OBJECT_STORE_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)

    BackendSelector.reset()
    yield
    BackendSelector.reset()
