"""Common base of the PageStore backends that keep their rows in SQL."""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from src.storage_clients.sql_database import SqlDatabase
from src.wiki_core.errors import BackendError, PageNotFoundError
from src.wiki_core.identity import IdentityProvider
from src.wiki_core.models import Category, Page, PageVersion, WikiStats
from src.wiki_core.page_store import TOP_CONTRIBUTORS_LIMIT, ListQuery, PageStore
from src.wiki_core.version_history import VersionHistory

from . import sql_queries
from .sql_schema import Base, active_categories
from .sql_version_history import SqlVersionHistory

logger = logging.getLogger(__name__)


class SqlPageStore(PageStore):
    """PageStore over a SQL database.

    Subclasses set ``_model`` to the mapped row class holding one row per
    page; listing, versions, categories and stats are shared.
    """

    _model = None

    def __init__(
        self,
        database: SqlDatabase,
        identity_provider: IdentityProvider,
        version_history: Optional[VersionHistory] = None,
        create_schema: bool = True,
    ):
        super().__init__(identity_provider)
        self._database = database
        self._history = version_history or SqlVersionHistory(database, self.backend_name)
        if create_schema:
            database.create_all(Base)

    @property
    def history(self) -> VersionHistory:
        return self._history

    def _sql_error(self, operation: str, error: SQLAlchemyError) -> BackendError:
        return BackendError(
            self.backend_name,
            operation,
            SqlDatabase.describe(error),
            schema_mismatch=SqlDatabase.is_schema_mismatch(error),
        )

    def _find_row(self, session, page_id: str):
        row = session.get(self._model, page_id)
        if row is None:
            raise PageNotFoundError(page_id)
        return row

    def _find_row_by_slug(self, session, slug: str):
        row = session.scalar(select(self._model).where(self._model.slug == slug))
        if row is None:
            raise PageNotFoundError(slug, by="slug")
        return row

    def _slug_taken(self, session, slug: str) -> bool:
        return session.scalar(select(self._model.id).where(self._model.slug == slug)) is not None

    def _row_to_listed_page(self, row) -> Page:
        return row.to_page()

    def _list_pages(self, query: ListQuery) -> Tuple[List[Page], int]:
        try:
            with self._database.session() as s:
                rows, total = sql_queries.list_rows(s, self._model, query)
                return [self._row_to_listed_page(row) for row in rows], total
        except SQLAlchemyError as e:
            raise self._sql_error("list_pages", e) from e

    def _get_page_versions(self, page_id: str) -> List[PageVersion]:
        try:
            with self._database.session() as s:
                self._find_row(s, page_id)
        except SQLAlchemyError as e:
            raise self._sql_error("get_page_versions", e) from e
        return self._history.list_versions(page_id)

    def _get_categories(self) -> List[Category]:
        try:
            with self._database.session() as s:
                return active_categories(s)
        except SQLAlchemyError as e:
            raise self._sql_error("get_categories", e) from e

    def _get_stats(self) -> WikiStats:
        try:
            with self._database.session() as s:
                total_pages = sql_queries.published_count(s, self._model)
                total_categories = sql_queries.active_category_count(s)
                recent = [self._row_to_listed_page(row) for row in sql_queries.recent_published(s, self._model)]
        except SQLAlchemyError as e:
            raise self._sql_error("get_stats", e) from e

        return WikiStats(
            total_pages=total_pages,
            total_categories=total_categories,
            recent_pages=recent,
            top_contributors=self._history.top_contributors(TOP_CONTRIBUTORS_LIMIT),
        )

    def close(self) -> None:
        self._database.dispose()
