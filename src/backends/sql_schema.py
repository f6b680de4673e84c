"""SQLAlchemy tables of the SQL-backed wiki stores.

    wiki_pages       one row per page, content inline (table backend)
    wiki_index       one index row per page, content in a blob (blob-index backend)
    wiki_versions    append-only version records (both SQL backends)
    wiki_categories  categories (both SQL backends)
"""

import json
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, Integer, String, Text, UniqueConstraint, select
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column

from src.wiki_core.models import Category, Page, PageVersion, split_tags, to_iso


class Base(DeclarativeBase):
    pass


def from_iso(value: Optional[str]) -> datetime:
    """Parse an ISO 8601 timestamp, defaulting to now (UTC)."""
    if not value:
        return datetime.now(timezone.utc)
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class _PageColumns:
    """Columns shared by wiki_pages and wiki_index."""
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    excerpt: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    tags: Mapped[str] = mapped_column(Text, nullable=False, default="")
    author_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    author_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    last_edited_by: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    last_edited_by_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def fill_from(self, page: Page) -> None:
        """Copy every indexed field of ``page`` onto the row (slug excluded)."""
        self.title = page.title
        self.excerpt = page.excerpt
        self.category_id = page.category_id
        self.tags = ",".join(page.tags)
        self.author_id = page.author_id
        self.author_name = page.author_name
        self.last_edited_by = page.last_edited_by
        self.last_edited_by_name = page.last_edited_by_name
        self.version = page.version
        self.is_published = page.is_published
        self.is_locked = page.is_locked
        self.created_at = from_iso(page.created_at)
        self.updated_at = from_iso(page.updated_at)

    def to_page(self, content: str = "") -> Page:
        return Page(
            id=self.id,
            slug=self.slug,
            title=self.title,
            content=content,
            excerpt=self.excerpt or "",
            category_id=self.category_id,
            author_id=self.author_id,
            author_name=self.author_name,
            last_edited_by=self.last_edited_by,
            last_edited_by_name=self.last_edited_by_name,
            version=self.version,
            is_published=self.is_published,
            is_locked=self.is_locked,
            tags=split_tags(self.tags),
            created_at=to_iso(self.created_at),
            updated_at=to_iso(self.updated_at),
        )


class PageRow(_PageColumns, Base):
    __tablename__ = "wiki_pages"

    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # "metadata" is reserved on declarative classes
    metadata_json: Mapped[str] = mapped_column("metadata", Text, nullable=False, default="{}")

    @classmethod
    def from_page(cls, page: Page) -> "PageRow":
        row = cls(id=page.id, slug=page.slug)
        row.fill_from(page)
        return row

    def fill_from(self, page: Page) -> None:
        super().fill_from(page)
        self.content = page.content
        self.metadata_json = json.dumps(page.metadata)

    def to_page(self, content: Optional[str] = None) -> Page:
        page = super().to_page(self.content if content is None else content)
        page.metadata = json.loads(self.metadata_json or "{}")
        return page


class IndexRow(_PageColumns, Base):
    __tablename__ = "wiki_index"

    blob_id: Mapped[str] = mapped_column(String(128), nullable=False)

    @classmethod
    def from_page(cls, page: Page, blob_id: str) -> "IndexRow":
        row = cls(id=page.id, slug=page.slug, blob_id=blob_id)
        row.fill_from(page)
        return row


class VersionRow(Base):
    __tablename__ = "wiki_versions"
    __table_args__ = (UniqueConstraint("page_id", "version", name="uq_wiki_versions_page_version"),)

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    page_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    author_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    author_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    change_description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    @classmethod
    def from_version(cls, version: PageVersion) -> "VersionRow":
        return cls(
            id=version.id,
            page_id=version.page_id,
            version=version.version,
            title=version.title or "",
            content=version.content or "",
            author_id=version.author_id,
            author_name=version.author_name,
            change_description=version.change_description,
            created_at=from_iso(version.created_at),
        )

    def to_version(self) -> PageVersion:
        return PageVersion(
            id=self.id,
            page_id=self.page_id,
            version=self.version,
            title=self.title,
            content=self.content,
            author_id=self.author_id,
            author_name=self.author_name,
            change_description=self.change_description,
            created_at=to_iso(self.created_at),
        )


class CategoryRow(Base):
    __tablename__ = "wiki_categories"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    color: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    icon: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    order: Mapped[int] = mapped_column("sort_order", Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    moderators: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    @classmethod
    def from_category(cls, category: Category) -> "CategoryRow":
        return cls(
            id=category.id,
            name=category.name,
            slug=category.slug,
            description=category.description,
            color=category.color,
            icon=category.icon,
            order=category.order,
            is_active=category.is_active,
            moderators=",".join(category.moderators),
            created_at=from_iso(category.created_at),
        )

    def to_category(self) -> Category:
        return Category(
            id=self.id,
            name=self.name,
            slug=self.slug,
            description=self.description or "",
            color=self.color,
            icon=self.icon,
            order=self.order,
            is_active=self.is_active,
            moderators=split_tags(self.moderators),
            created_at=to_iso(self.created_at),
        )


def active_categories(session: Session) -> List[Category]:
    """Active categories ordered by their display order."""
    stmt = (
        select(CategoryRow)
        .where(CategoryRow.is_active.is_(True))
        .order_by(CategoryRow.order.asc(), CategoryRow.name.asc())
    )
    return [row.to_category() for row in session.scalars(stmt)]
