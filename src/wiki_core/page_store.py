"""PageStore contract shared by every storage backend.

A backend subclasses PageStore and implements the protected ``_*`` hooks,
which raise typed WikiStoreError exceptions. The public methods wrap those
hooks and convert every outcome into a StoreResult, so no exception crosses
the store boundary:

    - WikiStoreError → StoreResult.fail(error)
    - any other exception → logged with traceback, reported as BackendError
    - list/search/stats failures → degraded empty result (listing retries
      once without sorting when the failure is a schema/field mismatch)

This module also holds the cross-backend rules every backend applies the
same way: filter normalization (page/limit clamping, sort fallback), page
construction on create, and patch merging on update.
"""

import dataclasses
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .errors import AuthorizationError, BackendError, ValidationError, WikiStoreError
from .frontmatter_codec import FrontmatterCodec
from .identity import IdentityProvider
from .models import (
    Category,
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
    make_excerpt,
    normalize_tags,
    utc_now_iso,
)
from .slug_codec import SlugCodec
from .version_history import VersionHistoryCapability

logger = logging.getLogger(__name__)

DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100
RECENT_PAGES_LIMIT = 5
TOP_CONTRIBUTORS_LIMIT = 5

# Public sort keys → Page attribute. Unknown keys fall back to creation time.
SORT_FIELDS = {
    "createdAt": "created_at",
    "created": "created_at",
    "updatedAt": "updated_at",
    "updated": "updated_at",
    "title": "title",
    "version": "version",
}
DEFAULT_SORT_FIELD = "created_at"


def _int_filter(value: Any, default: int, name: str) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"must be an integer, got {value!r}", field=name)


@dataclass(frozen=True)
class ListQuery:
    """Normalized listing filters.

    Attributes:
        page: 1-based page number (never below 1)
        limit: Page size clamped to [1, MAX_PAGE_LIMIT]
        sort_field: Page attribute to sort by, or None for storage order
        descending: Sort direction
    """
    page: int = 1
    limit: int = DEFAULT_PAGE_LIMIT
    category_id: Optional[str] = None
    author_id: Optional[str] = None
    is_published: Optional[bool] = None
    search: Optional[str] = None
    sort_field: Optional[str] = DEFAULT_SORT_FIELD
    descending: bool = True

    @classmethod
    def from_filters(cls, filters: Optional[WikiFilters]) -> "ListQuery":
        filters = filters or WikiFilters()

        page = max(1, _int_filter(filters.page, 1, "page"))
        limit = max(1, min(_int_filter(filters.limit, DEFAULT_PAGE_LIMIT, "limit"), MAX_PAGE_LIMIT))

        sort_field = SORT_FIELDS.get(filters.sort_by or "", DEFAULT_SORT_FIELD)
        descending = str(filters.sort_order or "desc").lower() != "asc"

        search = filters.search.strip() if filters.search else None

        return cls(
            page=page,
            limit=limit,
            category_id=filters.category_id,
            author_id=filters.author_id,
            is_published=filters.is_published,
            search=search or None,
            sort_field=sort_field,
            descending=descending,
        )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def unsorted(self) -> "ListQuery":
        """Reduced query used for the single schema-mismatch retry."""
        return dataclasses.replace(self, sort_field=None)

    def matches(self, page: Page) -> bool:
        """In-memory filter for backends that list from an index document."""
        if self.category_id and page.category_id != self.category_id:
            return False
        if self.author_id and page.author_id != self.author_id:
            return False
        if self.is_published is not None and page.is_published != self.is_published:
            return False
        if self.search:
            needle = self.search.lower()
            in_title = needle in (page.title or "").lower()
            in_tags = any(needle in tag.lower() for tag in page.tags)
            if not (in_title or in_tags):
                return False
        return True

    def apply(self, pages: Iterable[Page]) -> Tuple[List[Page], int]:
        """Filter, sort and paginate pages in memory.

        Returns:
            Tuple of (page slice, total matching count)
        """
        matching = [page for page in pages if self.matches(page)]
        if self.sort_field:
            # Secondary key keeps equal sort values in a stable, deterministic order
            matching.sort(key=lambda p: p.slug)
            matching.sort(key=lambda p: getattr(p, self.sort_field), reverse=self.descending)
        total = len(matching)
        return matching[self.offset:self.offset + self.limit], total


def build_new_page(
    data: CreatePageData,
    author: Identity,
    page_id: str,
    now: Optional[str] = None,
) -> Page:
    """Validate create input and build the version-1 page.

    Raises:
        ValidationError: If title or content is empty, or the slug is unusable
    """
    if data.title is None or not data.title.strip():
        raise ValidationError("Title is required", field="title")
    if data.content is None or not data.content.strip():
        raise ValidationError("Content is required", field="content")

    title = data.title.strip()
    slug = SlugCodec.create_slug(title)
    content = FrontmatterCodec.normalize_content(data.content)
    now = now or utc_now_iso()

    return Page(
        id=page_id,
        slug=slug,
        title=title,
        content=content,
        excerpt=make_excerpt(content),
        category_id=data.category_id or None,
        author_id=author.id,
        author_name=author.display_name,
        last_edited_by=author.id,
        last_edited_by_name=author.display_name,
        version=1,
        is_published=bool(data.is_published),
        is_locked=False,
        tags=normalize_tags(data.tags),
        metadata=dict(data.metadata or {}),
        created_at=now,
        updated_at=now,
    )


def merge_update(
    current: Page,
    patch: UpdatePageData,
    editor: Identity,
    now: Optional[str] = None,
) -> Tuple[Page, bool]:
    """Merge a patch into the current page.

    The slug is fixed at creation and never re-derived from a new title.
    ``version`` is bumped by exactly 1 when the patch changes the title or
    the content; metadata-only patches keep the version.

    Returns:
        Tuple of (updated page, whether title/content changed)

    Raises:
        ValidationError: If a provided title or content is empty
    """
    changes: Dict[str, Any] = {}

    if patch.is_set("title"):
        if patch.title is None or not str(patch.title).strip():
            raise ValidationError("Title cannot be empty", field="title")
        title = str(patch.title).strip()
        # Title must still be sluggable even though the slug is kept
        SlugCodec.create_slug(title)
        if title != current.title:
            changes["title"] = title

    if patch.is_set("content"):
        if patch.content is None or not str(patch.content).strip():
            raise ValidationError("Content cannot be empty", field="content")
        content = FrontmatterCodec.normalize_content(str(patch.content))
        if content != FrontmatterCodec.normalize_content(current.content or ""):
            changes["content"] = content
            changes["excerpt"] = make_excerpt(content)

    content_changed = "title" in changes or "content" in changes

    if patch.is_set("category_id"):
        changes["category_id"] = patch.category_id or None
    if patch.is_set("tags"):
        changes["tags"] = normalize_tags(patch.tags)
    if patch.is_set("is_published"):
        changes["is_published"] = bool(patch.is_published)
    if patch.is_set("is_locked"):
        changes["is_locked"] = bool(patch.is_locked)
    if patch.is_set("metadata"):
        changes["metadata"] = dict(patch.metadata or {})

    changes["last_edited_by"] = editor.id
    changes["last_edited_by_name"] = editor.display_name
    changes["updated_at"] = now or utc_now_iso()
    if content_changed:
        changes["version"] = current.version + 1

    return dataclasses.replace(current, **changes), content_changed


class PageStore(ABC):
    """Common interface of every wiki storage backend.

    Subclasses set ``backend_name`` and implement the protected hooks.
    Public operations return StoreResult/PaginatedResult and never raise.
    """

    backend_name = "abstract"
    version_history_capability = VersionHistoryCapability.FULL

    def __init__(self, identity_provider: IdentityProvider):
        self._identity_provider = identity_provider

    # ------------------------------------------------------------------
    # Public contract
    # ------------------------------------------------------------------

    def create_page(self, data: CreatePageData) -> StoreResult[Page]:
        return self._guard("create_page", self._create_page, data)

    def get_page(self, page_id: str) -> StoreResult[Page]:
        return self._guard("get_page", self._get_page, page_id)

    def get_page_by_slug(self, slug: str) -> StoreResult[Page]:
        return self._guard("get_page_by_slug", self._get_page_by_slug, slug)

    def update_page(self, page_id: str, patch: UpdatePageData) -> StoreResult[Page]:
        return self._guard("update_page", self._update_page, page_id, patch)

    def delete_page(self, page_id: str) -> StoreResult[None]:
        return self._guard("delete_page", self._delete_page, page_id)

    def get_page_versions(self, page_id: str) -> StoreResult[List[PageVersion]]:
        return self._guard("get_page_versions", self._get_page_versions, page_id)

    def get_categories(self) -> StoreResult[List[Category]]:
        return self._guard("get_categories", self._get_categories)

    def list_pages(self, filters: Optional[WikiFilters] = None) -> PaginatedResult[Page]:
        try:
            query = self._call("list_pages", ListQuery.from_filters, filters)
        except WikiStoreError as e:
            logger.warning(f"{self.backend_name}: list_pages rejected filters: {e}")
            return PaginatedResult.fail(e)

        try:
            items, total = self._call("list_pages", self._list_pages, query)
        except BackendError as e:
            if not e.schema_mismatch:
                logger.error(f"{self.backend_name}: listing failed, returning empty result: {e}")
                return PaginatedResult.empty(e)

            logger.warning(
                f"{self.backend_name}: schema mismatch while listing, retrying without sorting: {e}"
            )
            query = query.unsorted()
            try:
                items, total = self._call("list_pages", self._list_pages, query)
            except WikiStoreError as retry_error:
                logger.error(f"{self.backend_name}: unsorted listing also failed: {retry_error}")
                return PaginatedResult.empty(retry_error)
        except WikiStoreError as e:
            logger.error(f"{self.backend_name}: listing failed, returning empty result: {e}")
            return PaginatedResult.empty(e)

        return PaginatedResult.page_of(items, Pagination.build(query.page, query.limit, total))

    def search_pages(self, query: str) -> StoreResult[List[SearchResult]]:
        if not query or not query.strip():
            return StoreResult.ok([])
        try:
            return StoreResult.ok(self._call("search_pages", self._search_pages, query.strip()))
        except WikiStoreError as e:
            logger.error(f"{self.backend_name}: search failed, returning no results: {e}")
            return StoreResult(success=True, data=[], error=e)

    def get_stats(self) -> StoreResult[WikiStats]:
        try:
            return StoreResult.ok(self._call("get_stats", self._get_stats))
        except WikiStoreError as e:
            logger.error(f"{self.backend_name}: stats failed, returning empty stats: {e}")
            return StoreResult(success=True, data=WikiStats(), error=e)

    def close(self) -> None:
        """Release client resources. Safe to call more than once."""

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _create_page(self, data: CreatePageData) -> Page:
        ...

    @abstractmethod
    def _get_page(self, page_id: str) -> Page:
        ...

    @abstractmethod
    def _get_page_by_slug(self, slug: str) -> Page:
        ...

    @abstractmethod
    def _update_page(self, page_id: str, patch: UpdatePageData) -> Page:
        ...

    @abstractmethod
    def _delete_page(self, page_id: str) -> None:
        ...

    @abstractmethod
    def _list_pages(self, query: ListQuery) -> Tuple[List[Page], int]:
        ...

    @abstractmethod
    def _search_pages(self, query: str) -> List[SearchResult]:
        ...

    @abstractmethod
    def _get_page_versions(self, page_id: str) -> List[PageVersion]:
        ...

    @abstractmethod
    def _get_categories(self) -> List[Category]:
        ...

    @abstractmethod
    def _get_stats(self) -> WikiStats:
        ...

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_identity(self, operation: str) -> Identity:
        """Current identity, or AuthorizationError when anonymous."""
        identity = self._identity_provider.current_identity()
        if identity is None or not identity.id:
            raise AuthorizationError(operation)
        return identity

    def _require_role(self, operation: str, role: str) -> Identity:
        """Current identity if it is a member of ``role``."""
        identity = self._require_identity(operation)
        if not identity.has_role(role):
            logger.warning(
                f"{self.backend_name}: identity {identity.id} denied {operation} "
                f"(missing role '{role}')"
            )
            raise AuthorizationError(operation, required_role=role)
        return identity

    def _call(self, operation: str, func: Callable[..., Any], *args: Any) -> Any:
        """Run a hook, converting unexpected exceptions into BackendError."""
        try:
            return func(*args)
        except WikiStoreError:
            raise
        except Exception as e:
            logger.exception(f"{self.backend_name}: unexpected error during {operation}")
            raise BackendError(self.backend_name, operation, str(e)) from e

    def _guard(self, operation: str, func: Callable[..., Any], *args: Any) -> StoreResult:
        try:
            return StoreResult.ok(self._call(operation, func, *args))
        except WikiStoreError as e:
            logger.warning(f"{self.backend_name}: {operation} failed: {e}")
            return StoreResult.fail(e)
