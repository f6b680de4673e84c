"""Version history stored in the wiki_versions table."""

import logging
from typing import List

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError

from src.storage_clients.sql_database import SqlDatabase
from src.wiki_core.errors import BackendError
from src.wiki_core.models import Contributor, PageVersion
from src.wiki_core.version_history import DEFAULT_HISTORY_LIMIT, VersionHistory

from .sql_schema import VersionRow

logger = logging.getLogger(__name__)


class SqlVersionHistory(VersionHistory):
    """FULL version history: every record keeps the title/content snapshot.

    Record ids are ``"{page_id}:v{version}"``, so appending a version that
    already exists is a no-op and a retried append never duplicates.
    """

    def __init__(self, database: SqlDatabase, backend_name: str):
        self._database = database
        self._backend_name = backend_name

    def append(self, version: PageVersion) -> None:
        try:
            with self._database.session() as s:
                if s.get(VersionRow, version.id) is not None:
                    logger.debug(f"Version record {version.id} already stored")
                    return
                s.add(VersionRow.from_version(version))
        except SQLAlchemyError as e:
            raise BackendError(self._backend_name, "append_version", SqlDatabase.describe(e)) from e

    def list_versions(self, page_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> List[PageVersion]:
        stmt = (
            select(VersionRow)
            .where(VersionRow.page_id == page_id)
            .order_by(VersionRow.version.desc())
            .limit(limit)
        )
        try:
            with self._database.session() as s:
                return [row.to_version() for row in s.scalars(stmt)]
        except SQLAlchemyError as e:
            raise BackendError(self._backend_name, "list_versions", SqlDatabase.describe(e)) from e

    def delete_all(self, page_id: str) -> int:
        try:
            with self._database.session() as s:
                result = s.execute(delete(VersionRow).where(VersionRow.page_id == page_id))
                removed = result.rowcount or 0
        except SQLAlchemyError as e:
            raise BackendError(self._backend_name, "delete_versions", SqlDatabase.describe(e)) from e
        logger.debug(f"Deleted {removed} version(s) of page {page_id}")
        return removed

    def top_contributors(self, limit: int = 5) -> List[Contributor]:
        edits = func.count(VersionRow.id).label("edits")
        stmt = (
            select(VersionRow.author_id, func.max(VersionRow.author_name), edits)
            .group_by(VersionRow.author_id)
            .order_by(edits.desc(), VersionRow.author_id.asc())
            .limit(limit)
        )
        try:
            with self._database.session() as s:
                return [
                    Contributor(author_id=author_id, author_name=author_name or "", edit_count=count)
                    for author_id, author_name, count in s.execute(stmt)
                ]
        except SQLAlchemyError as e:
            raise BackendError(self._backend_name, "top_contributors", SqlDatabase.describe(e)) from e
