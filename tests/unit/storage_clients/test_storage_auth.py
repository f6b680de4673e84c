"""Unit tests for storage_clients.auth module."""

from unittest.mock import patch

import pytest

from src.storage_clients.auth import CredentialLoader, EnvIdentityProvider
from src.storage_clients.errors import MissingCredentialsError


@patch('src.storage_clients.auth.load_dotenv')
class TestCredentialLoader:
    """Test cases for CredentialLoader."""

    def test_loads_dotenv_file(self, mock_load_dotenv):
        CredentialLoader(dotenv_path="/tmp/wiki.env")
        mock_load_dotenv.assert_called_once_with(dotenv_path="/tmp/wiki.env")

    def test_github_token(self, mock_load_dotenv, monkeypatch):
        monkeypatch.setenv("WIKI_GITHUB_TOKEN", "ghp_secret")
        assert CredentialLoader().github().token == "ghp_secret"

    def test_missing_github_token(self, mock_load_dotenv):
        with pytest.raises(MissingCredentialsError) as exc_info:
            CredentialLoader().github()
        assert exc_info.value.variables == ["WIKI_GITHUB_TOKEN"]

    def test_object_store_key(self, mock_load_dotenv, monkeypatch):
        monkeypatch.setenv("WIKI_OBJECT_STORE_API_KEY", "key-123")
        assert CredentialLoader().object_store().api_key == "key-123"

    def test_missing_object_store_key(self, mock_load_dotenv):
        with pytest.raises(MissingCredentialsError, match="WIKI_OBJECT_STORE_API_KEY"):
            CredentialLoader().object_store()


@patch('src.storage_clients.auth.load_dotenv')
class TestEnvIdentityProvider:
    """Test cases for EnvIdentityProvider."""

    def test_anonymous_without_user_id(self, mock_load_dotenv):
        assert EnvIdentityProvider().current_identity() is None

    def test_full_identity(self, mock_load_dotenv, monkeypatch):
        monkeypatch.setenv("WIKI_USER_ID", "u-ada")
        monkeypatch.setenv("WIKI_USER_NAME", "Ada Lovelace")
        monkeypatch.setenv("WIKI_USER_ROLES", "admin, editors,,")

        identity = EnvIdentityProvider().current_identity()

        assert identity.id == "u-ada"
        assert identity.display_name == "Ada Lovelace"
        assert identity.roles == frozenset({"admin", "editors"})

    def test_display_name_defaults_to_id(self, mock_load_dotenv, monkeypatch):
        monkeypatch.setenv("WIKI_USER_ID", "u-ada")

        identity = EnvIdentityProvider().current_identity()

        assert identity.display_name == "u-ada"
        assert identity.roles == frozenset()

    def test_reads_environment_on_each_call(self, mock_load_dotenv, monkeypatch):
        provider = EnvIdentityProvider()
        assert provider.current_identity() is None

        monkeypatch.setenv("WIKI_USER_ID", "u-grace")
        assert provider.current_identity().id == "u-grace"
