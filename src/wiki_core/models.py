"""Data models for the wiki content store.

This module defines the page, category, version and search models shared by
every backend, the input payloads of the PageStore contract, and the
StoreResult wrapper returned at the store boundary. All models use
dataclasses; ``to_dict()`` produces the external camelCase JSON shape.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, FrozenSet, Generic, List, Optional, TypeVar, Union

from .errors import ValidationError, WikiStoreError

T = TypeVar('T')

# Number of content characters kept in a page excerpt
EXCERPT_LENGTH = 200


class _Missing:
    """Singleton marking a patch field that was not provided.

    Distinguishes "leave unchanged" from an explicit ``None`` (e.g. clearing
    a page's category).
    """
    _instance: ClassVar[Optional["_Missing"]] = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def to_iso(value: Optional[datetime]) -> str:
    """Render a datetime as ISO 8601, treating naive values as UTC."""
    if value is None:
        return ""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def make_excerpt(content: str) -> str:
    """First EXCERPT_LENGTH characters of the content."""
    return (content or "")[:EXCERPT_LENGTH]


def normalize_tags(tags: Optional[List[str]]) -> List[str]:
    """Strip, drop empties and de-duplicate tags while preserving order.

    Raises:
        ValidationError: If a tag contains a comma (tags are stored comma-joined)
    """
    if not tags:
        return []
    result: List[str] = []
    for tag in tags:
        cleaned = str(tag).strip()
        if not cleaned:
            continue
        if "," in cleaned:
            raise ValidationError(f"Tag '{cleaned}' must not contain a comma", field="tags")
        if cleaned not in result:
            result.append(cleaned)
    return result


def split_tags(tags_csv: Optional[str]) -> List[str]:
    """Parse a comma-joined tag string."""
    if not tags_csv:
        return []
    return [tag.strip() for tag in tags_csv.split(",") if tag.strip()]


@dataclass(frozen=True)
class Identity:
    """Authenticated identity supplied by the identity provider.

    Attributes:
        id: Stable identity reference
        display_name: Name shown as author/editor
        roles: Role (authorization group) memberships
    """
    id: str
    display_name: str
    roles: FrozenSet[str] = frozenset()

    def has_role(self, role: str) -> bool:
        return role in self.roles


@dataclass
class Page:
    """A wiki page.

    Attributes:
        id: Backend-assigned identifier
        slug: Unique slug derived from the title at creation
        title: Page title
        content: Raw body text (empty for index-only listings)
        excerpt: First characters of the content
        category_id: Optional category reference
        author_id: Creator identity (immutable)
        author_name: Creator display name (immutable)
        last_edited_by: Last editor identity
        last_edited_by_name: Last editor display name
        version: Monotonic version, starts at 1
        is_published: Whether the page is visible in search/stats
        is_locked: Lock flag (stored, not enforced by the store)
        tags: Ordered, de-duplicated tags
        attachments: Attachment descriptors (always empty in this store)
        metadata: Backend-specific extras
        created_at: ISO 8601 creation time
        updated_at: ISO 8601 last update time
    """
    id: str
    slug: str
    title: str
    content: str = ""
    excerpt: str = ""
    category_id: Optional[str] = None
    author_id: str = ""
    author_name: str = ""
    last_edited_by: str = ""
    last_edited_by_name: str = ""
    version: int = 1
    is_published: bool = True
    is_locked: bool = False
    tags: List[str] = field(default_factory=list)
    attachments: List[Dict[str, Any]] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "title": self.title,
            "slug": self.slug,
            "content": self.content,
            "excerpt": self.excerpt,
            "categoryId": self.category_id,
            "authorId": self.author_id,
            "authorName": self.author_name,
            "lastEditedBy": self.last_edited_by,
            "lastEditedByName": self.last_edited_by_name,
            "version": self.version,
            "isPublished": self.is_published,
            "isLocked": self.is_locked,
            "tags": list(self.tags),
            "attachments": list(self.attachments),
            "metadata": dict(self.metadata),
        }


@dataclass
class Category:
    """A wiki category."""
    id: str
    name: str
    slug: str
    description: str = ""
    color: Optional[str] = None
    icon: Optional[str] = None
    order: int = 0
    is_active: bool = True
    moderators: List[str] = field(default_factory=list)
    created_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "createdAt": self.created_at,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "color": self.color,
            "icon": self.icon,
            "order": self.order,
            "isActive": self.is_active,
            "moderators": list(self.moderators),
        }


@dataclass
class PageVersion:
    """Immutable snapshot of a page at a given version.

    ``title`` and ``content`` are None when the backend could not afford to
    fetch the historical content (LimitedVersionHistory).
    """
    id: str
    page_id: str
    version: int
    title: Optional[str]
    content: Optional[str]
    author_id: str
    author_name: str
    change_description: str = ""
    created_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "createdAt": self.created_at,
            "pageId": self.page_id,
            "version": self.version,
            "title": self.title,
            "content": self.content,
            "authorId": self.author_id,
            "authorName": self.author_name,
            "changeDescription": self.change_description,
        }


@dataclass
class SearchResult:
    """A ranked search hit."""
    page: Page
    relevance_score: int
    matched_content: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page": self.page.to_dict(),
            "relevanceScore": self.relevance_score,
            "matchedContent": self.matched_content,
        }


@dataclass
class Contributor:
    """Author with the number of page versions they wrote."""
    author_id: str
    author_name: str
    edit_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "authorId": self.author_id,
            "authorName": self.author_name,
            "editCount": self.edit_count,
        }


@dataclass
class WikiStats:
    """Aggregated wiki statistics."""
    total_pages: int = 0
    total_categories: int = 0
    recent_pages: List[Page] = field(default_factory=list)
    top_contributors: List[Contributor] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalPages": self.total_pages,
            "totalCategories": self.total_categories,
            "recentPages": [page.to_dict() for page in self.recent_pages],
            "topContributors": [c.to_dict() for c in self.top_contributors],
        }


@dataclass
class CreatePageData:
    """Input for PageStore.create_page."""
    title: str
    content: str
    category_id: Optional[str] = None
    tags: Optional[List[str]] = None
    is_published: bool = True
    metadata: Optional[Dict[str, Any]] = None


@dataclass
class UpdatePageData:
    """Partial page update; fields left as MISSING are not changed."""
    title: Union[str, _Missing] = MISSING
    content: Union[str, _Missing] = MISSING
    category_id: Union[Optional[str], _Missing] = MISSING
    tags: Union[List[str], _Missing] = MISSING
    is_published: Union[bool, _Missing] = MISSING
    is_locked: Union[bool, _Missing] = MISSING
    metadata: Union[Dict[str, Any], _Missing] = MISSING
    change_description: Optional[str] = None

    def is_set(self, name: str) -> bool:
        return getattr(self, name) is not MISSING


@dataclass
class WikiFilters:
    """Listing filters for PageStore.list_pages."""
    page: Optional[int] = None
    limit: Optional[int] = None
    category_id: Optional[str] = None
    author_id: Optional[str] = None
    is_published: Optional[bool] = None
    search: Optional[str] = None
    sort_by: Optional[str] = None
    sort_order: Optional[str] = None


@dataclass
class Pagination:
    """Pagination block of a listing."""
    current_page: int = 1
    total_pages: int = 0
    total_count: int = 0
    has_next: bool = False
    has_prev: bool = False

    @classmethod
    def build(cls, current_page: int, limit: int, total_count: int) -> "Pagination":
        total_pages = math.ceil(total_count / limit) if limit > 0 else 0
        return cls(
            current_page=current_page,
            total_pages=total_pages,
            total_count=total_count,
            has_next=current_page < total_pages,
            has_prev=current_page > 1,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            "totalCount": self.total_count,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev,
        }


@dataclass
class StoreResult(Generic[T]):
    """Discriminated result returned by every public PageStore operation.

    Callers must inspect ``success``; failures carry the typed error and
    its ``error_code`` (NotFound, Conflict, ValidationError, ...).
    """
    success: bool
    data: Optional[T] = None
    error: Optional[WikiStoreError] = None

    @classmethod
    def ok(cls, data: Optional[T] = None) -> "StoreResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: WikiStoreError) -> "StoreResult[T]":
        return cls(success=False, error=error)

    @property
    def error_code(self) -> Optional[str]:
        return self.error.code if self.error is not None else None

    @property
    def error_message(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None


@dataclass
class PaginatedResult(StoreResult[List[T]]):
    """StoreResult for listings, with a pagination block."""
    pagination: Pagination = field(default_factory=Pagination)

    @classmethod
    def page_of(cls, items: List[T], pagination: Pagination) -> "PaginatedResult[T]":
        return cls(success=True, data=items, pagination=pagination)

    @classmethod
    def empty(cls, error: Optional[WikiStoreError] = None) -> "PaginatedResult[T]":
        """Degraded listing: no items, zero totals.

        A degraded listing still reports success; the swallowed error is
        kept for logging/diagnostics.
        """
        return cls(success=True, data=[], error=error, pagination=Pagination())
