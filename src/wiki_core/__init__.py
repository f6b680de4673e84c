"""Backend-independent core of the wiki content store.

This package provides the page data model, the slug and frontmatter codecs,
search ranking, version history abstractions and the PageStore contract
implemented by every storage backend.
"""

from .errors import (
    WikiStoreError,
    PageNotFoundError,
    SlugConflictError,
    ValidationError,
    AuthorizationError,
    FrontmatterFormatError,
    BackendError,
    ConfigError,
    ConfigFilesystemError,
)
from .frontmatter_codec import FrontmatterCodec
from .identity import IdentityProvider, StaticIdentityProvider
from .models import (
    MISSING,
    Category,
    Contributor,
    CreatePageData,
    Identity,
    Page,
    PageVersion,
    PaginatedResult,
    Pagination,
    SearchResult,
    StoreResult,
    UpdatePageData,
    WikiFilters,
    WikiStats,
)
from .page_store import ListQuery, PageStore
from .search_ranker import SearchRanker
from .slug_codec import SlugCodec, create_slug
from .version_history import VersionHistory, VersionHistoryCapability

__all__ = [
    "WikiStoreError",
    "PageNotFoundError",
    "SlugConflictError",
    "ValidationError",
    "AuthorizationError",
    "FrontmatterFormatError",
    "BackendError",
    "ConfigError",
    "ConfigFilesystemError",
    "FrontmatterCodec",
    "IdentityProvider",
    "StaticIdentityProvider",
    "MISSING",
    "Category",
    "Contributor",
    "CreatePageData",
    "Identity",
    "Page",
    "PageVersion",
    "PaginatedResult",
    "Pagination",
    "SearchResult",
    "StoreResult",
    "UpdatePageData",
    "WikiFilters",
    "WikiStats",
    "ListQuery",
    "PageStore",
    "SearchRanker",
    "SlugCodec",
    "create_slug",
    "VersionHistory",
    "VersionHistoryCapability",
]
