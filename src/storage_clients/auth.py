"""Credential and identity loading from environment variables.

Secrets are never read from the YAML configuration file. They are loaded
from the process environment, optionally populated from a .env file using
python-dotenv.

Environment variables:
    WIKI_GITHUB_TOKEN: Token for the GitHub revision repository
    WIKI_OBJECT_STORE_API_KEY: API key for the HTTP object store
    WIKI_USER_ID / WIKI_USER_NAME / WIKI_USER_ROLES: acting identity for the CLI
"""

import logging
import os
from typing import NamedTuple, Optional

from dotenv import load_dotenv

from src.wiki_core.identity import IdentityProvider
from src.wiki_core.models import Identity

from .errors import MissingCredentialsError

logger = logging.getLogger(__name__)

GITHUB_TOKEN_VAR = "WIKI_GITHUB_TOKEN"
OBJECT_STORE_KEY_VAR = "WIKI_OBJECT_STORE_API_KEY"
USER_ID_VAR = "WIKI_USER_ID"
USER_NAME_VAR = "WIKI_USER_NAME"
USER_ROLES_VAR = "WIKI_USER_ROLES"


class GitHubCredentials(NamedTuple):
    """GitHub API credentials."""
    token: str


class ObjectStoreCredentials(NamedTuple):
    """HTTP object store credentials."""
    api_key: str


class CredentialLoader:
    """Loads and validates storage credentials from environment variables.

    Credentials are read on each call and never cached or logged.

    Example:
        >>> loader = CredentialLoader()
        >>> creds = loader.github()
    """

    def __init__(self, dotenv_path: Optional[str] = None):
        load_dotenv(dotenv_path=dotenv_path)

    def github(self) -> GitHubCredentials:
        """Get the GitHub token.

        Raises:
            MissingCredentialsError: If WIKI_GITHUB_TOKEN is not set
        """
        token = os.getenv(GITHUB_TOKEN_VAR)
        if not token:
            raise MissingCredentialsError([GITHUB_TOKEN_VAR])
        return GitHubCredentials(token=token)

    def object_store(self) -> ObjectStoreCredentials:
        """Get the HTTP object store API key.

        Raises:
            MissingCredentialsError: If WIKI_OBJECT_STORE_API_KEY is not set
        """
        api_key = os.getenv(OBJECT_STORE_KEY_VAR)
        if not api_key:
            raise MissingCredentialsError([OBJECT_STORE_KEY_VAR])
        return ObjectStoreCredentials(api_key=api_key)


class EnvIdentityProvider(IdentityProvider):
    """Identity provider reading the acting user from the environment.

    Returns None (anonymous) when WIKI_USER_ID is unset. Roles are a
    comma-separated list in WIKI_USER_ROLES.
    """

    def __init__(self, dotenv_path: Optional[str] = None):
        load_dotenv(dotenv_path=dotenv_path)

    def current_identity(self) -> Optional[Identity]:
        user_id = os.getenv(USER_ID_VAR, "").strip()
        if not user_id:
            logger.debug(f"{USER_ID_VAR} not set, acting anonymously")
            return None

        display_name = os.getenv(USER_NAME_VAR, "").strip() or user_id
        roles = frozenset(
            role.strip()
            for role in os.getenv(USER_ROLES_VAR, "").split(",")
            if role.strip()
        )
        return Identity(id=user_id, display_name=display_name, roles=roles)
