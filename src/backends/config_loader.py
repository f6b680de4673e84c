"""YAML configuration loading and validation.

Configuration file structure:
    backend: table              # table | blob-index | revision
    table:
      database_url: sqlite:///wiki.db
    blob_index:
      database_url: sqlite:///wiki-index.db
      admin_role: admin
      object_store:
        type: local             # local | http
        path: ./wiki-blobs
    revision:
      repository: git           # git | github
      path: ./wiki-repo
      wiki_path: wiki

The WIKI_BACKEND environment variable overrides ``backend``. Secrets are
never read from this file (see src.storage_clients.auth).
"""

import logging
import os
from dataclasses import fields
from typing import Any, Dict, Optional

import yaml

from src.wiki_core.errors import ConfigError, ConfigFilesystemError

from .config_models import (
    BlobIndexConfig,
    ObjectStoreConfig,
    RevisionConfig,
    TableConfig,
    WikiConfig,
)

logger = logging.getLogger(__name__)

BACKEND_ENV_VAR = "WIKI_BACKEND"

VALID_BACKENDS = ("table", "blob-index", "revision")
VALID_OBJECT_STORES = ("local", "http")
VALID_REPOSITORIES = ("git", "github")


class ConfigLoader:
    """Loads WikiConfig from YAML files or dictionaries."""

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> WikiConfig:
        """Load configuration from a YAML file.

        With no path, defaults are used. The WIKI_BACKEND environment
        variable is applied in both cases.

        Raises:
            ConfigFilesystemError: If the file cannot be read
            ConfigError: If the configuration is invalid
        """
        if config_path is None:
            return cls.from_dict({})

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            raise ConfigFilesystemError(config_path, 'read', 'Configuration file not found')
        except PermissionError:
            raise ConfigFilesystemError(config_path, 'read', 'Permission denied')
        except OSError as e:
            raise ConfigFilesystemError(config_path, 'read', str(e))

        try:
            config_dict = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML syntax: {str(e)}")

        if config_dict is None:
            config_dict = {}
        if not isinstance(config_dict, dict):
            raise ConfigError(
                f"Configuration must be a YAML dictionary, got {type(config_dict).__name__}"
            )

        logger.debug(f"Loaded configuration from {config_path}")
        return cls.from_dict(config_dict)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> WikiConfig:
        """Validate a configuration dictionary and apply the env override.

        Raises:
            ConfigError: If a section or value is invalid
        """
        backend = os.getenv(BACKEND_ENV_VAR) or config_dict.get('backend') or 'table'
        backend = str(backend).strip().lower()
        if backend not in VALID_BACKENDS:
            raise ConfigError(
                f"Unknown backend '{backend}', expected one of: {', '.join(VALID_BACKENDS)}",
                config_field='backend',
            )

        blob_raw = dict(cls._section(config_dict, 'blob_index'))
        store_raw = cls._section(blob_raw, 'object_store', 'blob_index.object_store')
        blob_raw.pop('object_store', None)

        blob_index = cls._build(BlobIndexConfig, blob_raw, 'blob_index')
        blob_index.object_store = cls._build(ObjectStoreConfig, store_raw, 'blob_index.object_store')

        config = WikiConfig(
            backend=backend,
            table=cls._build(TableConfig, cls._section(config_dict, 'table'), 'table'),
            blob_index=blob_index,
            revision=cls._build(RevisionConfig, cls._section(config_dict, 'revision'), 'revision'),
        )
        cls._validate(config)
        return config

    @staticmethod
    def _section(parent: Dict[str, Any], key: str, field_name: Optional[str] = None) -> Dict[str, Any]:
        value = parent.get(key)
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ConfigError(
                f"Section must be a dictionary, got {type(value).__name__}",
                config_field=field_name or key,
            )
        return value

    @staticmethod
    def _build(model, raw: Dict[str, Any], section: str):
        known = {f.name for f in fields(model)}
        unknown = set(raw) - known
        if unknown:
            raise ConfigError(
                f"Unknown field(s): {', '.join(sorted(unknown))}",
                config_field=section,
            )
        return model(**raw)

    @classmethod
    def _validate(cls, config: WikiConfig) -> None:
        if config.backend == 'table' and not config.table.database_url:
            raise ConfigError("database_url is required", config_field='table.database_url')

        if config.backend == 'blob-index':
            blob = config.blob_index
            if not blob.database_url:
                raise ConfigError("database_url is required", config_field='blob_index.database_url')
            if not blob.admin_role:
                raise ConfigError("admin_role must not be empty", config_field='blob_index.admin_role')

            store = blob.object_store
            if store.type not in VALID_OBJECT_STORES:
                raise ConfigError(
                    f"Unknown object store type '{store.type}', expected one of: "
                    f"{', '.join(VALID_OBJECT_STORES)}",
                    config_field='blob_index.object_store.type',
                )
            if store.type == 'http' and not (store.endpoint and store.bucket):
                raise ConfigError(
                    "endpoint and bucket are required for the http object store",
                    config_field='blob_index.object_store',
                )

        if config.backend == 'revision':
            revision = config.revision
            if revision.repository not in VALID_REPOSITORIES:
                raise ConfigError(
                    f"Unknown repository type '{revision.repository}', expected one of: "
                    f"{', '.join(VALID_REPOSITORIES)}",
                    config_field='revision.repository',
                )
            if revision.repository == 'github' and not (revision.owner and revision.repo):
                raise ConfigError(
                    "owner and repo are required for the github repository",
                    config_field='revision',
                )
            if not revision.wiki_path or not str(revision.wiki_path).strip("/"):
                raise ConfigError("wiki_path must not be empty", config_field='revision.wiki_path')
            for name in ('history_limit', 'content_fetch_limit'):
                value = getattr(revision, name)
                if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                    raise ConfigError(
                        f"must be a positive integer, got {value!r}",
                        config_field=f'revision.{name}',
                    )
