"""Row-per-page backend.

Each page is one wiki_pages row with its content inline, tags comma-joined
and metadata as JSON text. Page writes are single SQL transactions; the
version record is appended afterwards and a failed append is logged, never
surfaced.
"""

import logging
import uuid
from typing import List

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from src.wiki_core.errors import SlugConflictError
from src.wiki_core.models import CreatePageData, Page, SearchResult, UpdatePageData
from src.wiki_core.page_store import build_new_page, merge_update
from src.wiki_core.search_ranker import SearchRanker
from src.wiki_core.version_history import (
    DEFAULT_CHANGE_DESCRIPTION,
    INITIAL_CHANGE_DESCRIPTION,
    snapshot,
)

from . import sql_queries
from .sql_schema import PageRow, VersionRow
from .sql_store import SqlPageStore

logger = logging.getLogger(__name__)


class TableBackend(SqlPageStore):
    """Wiki store keeping full pages in one SQL table.

    Example:
        >>> db = SqlDatabase("sqlite:///wiki.db")
        >>> store = TableBackend(db, StaticIdentityProvider.of("u1", "Ada"))
        >>> result = store.create_page(CreatePageData(title="Getting Started", content="Hello"))
        >>> result.data.slug
        'getting-started'
    """

    backend_name = "table"
    _model = PageRow

    def _create_page(self, data: CreatePageData) -> Page:
        author = self._require_identity("create_page")
        page = build_new_page(data, author, page_id=str(uuid.uuid4()))

        try:
            with self._database.session() as s:
                if self._slug_taken(s, page.slug):
                    raise SlugConflictError(page.slug)
                s.add(PageRow.from_page(page))
        except IntegrityError as e:
            # Lost a race with a concurrent create of the same slug
            raise SlugConflictError(page.slug) from e
        except SQLAlchemyError as e:
            raise self._sql_error("create_page", e) from e

        logger.info(f"Created page '{page.slug}' ({page.id})")
        self._history.append_best_effort(snapshot(page, INITIAL_CHANGE_DESCRIPTION))
        return page

    def _get_page(self, page_id: str) -> Page:
        try:
            with self._database.session() as s:
                return self._find_row(s, page_id).to_page()
        except SQLAlchemyError as e:
            raise self._sql_error("get_page", e) from e

    def _get_page_by_slug(self, slug: str) -> Page:
        try:
            with self._database.session() as s:
                return self._find_row_by_slug(s, slug).to_page()
        except SQLAlchemyError as e:
            raise self._sql_error("get_page_by_slug", e) from e

    def _update_page(self, page_id: str, patch: UpdatePageData) -> Page:
        editor = self._require_identity("update_page")

        try:
            with self._database.session() as s:
                row = self._find_row(s, page_id)
                updated, content_changed = merge_update(row.to_page(), patch, editor)
                row.fill_from(updated)
        except SQLAlchemyError as e:
            raise self._sql_error("update_page", e) from e

        if content_changed:
            logger.info(f"Updated page '{updated.slug}' to version {updated.version}")
            description = patch.change_description or DEFAULT_CHANGE_DESCRIPTION
            self._history.append_best_effort(snapshot(updated, description))
        else:
            logger.info(f"Updated metadata of page '{updated.slug}'")
        return updated

    def _delete_page(self, page_id: str) -> None:
        self._require_identity("delete_page")

        try:
            with self._database.session() as s:
                row = self._find_row(s, page_id)
                slug = row.slug
                s.delete(row)
                # Page and its versions live in the same database
                s.execute(delete(VersionRow).where(VersionRow.page_id == page_id))
        except SQLAlchemyError as e:
            raise self._sql_error("delete_page", e) from e

        logger.info(f"Deleted page '{slug}' ({page_id})")

    def _search_pages(self, query: str) -> List[SearchResult]:
        try:
            with self._database.session() as s:
                pages = [row.to_page() for row in sql_queries.search_candidates(s, PageRow, query)]
        except SQLAlchemyError as e:
            raise self._sql_error("search_pages", e) from e
        return SearchRanker.rank(pages, query)
