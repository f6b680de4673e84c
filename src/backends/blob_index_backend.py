"""Blob-plus-index backend.

Every page is two records: an index row in wiki_index (listing fields plus
``blob_id``) and a blob in the object store holding the full frontmatter
document. Writes are two-step sagas with compensation, not transactions:

    create: upload blob → insert index row
            (index insert fails → delete the uploaded blob)
    update: upload new blob → repoint index row → delete old blob
            (index update fails → delete the new blob; old blob stays live)
    delete: delete index row → delete blob (best effort) → delete versions

Failure window: an index row whose blob is missing makes reads of that page
fail with BackendError; the dangling blob id is logged.

Creating and deleting pages requires membership in the admin role;
updating only requires an authenticated identity.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from src.storage_clients.errors import ObjectStoreError, StorageClientError
from src.storage_clients.object_store import ObjectStore
from src.storage_clients.sql_database import SqlDatabase
from src.wiki_core.errors import BackendError, SlugConflictError
from src.wiki_core.identity import IdentityProvider
from src.wiki_core.models import CreatePageData, Page, SearchResult, UpdatePageData
from src.wiki_core.page_document import page_from_document, page_to_document
from src.wiki_core.page_store import build_new_page, merge_update
from src.wiki_core.search_ranker import SearchRanker
from src.wiki_core.version_history import (
    DEFAULT_CHANGE_DESCRIPTION,
    INITIAL_CHANGE_DESCRIPTION,
    VersionHistory,
    snapshot,
)

from . import sql_queries
from .sql_schema import IndexRow
from .sql_store import SqlPageStore

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_ROLE = "admin"


class BlobIndexBackend(SqlPageStore):
    """Wiki store with an SQL index and page documents in an object store."""

    backend_name = "blob-index"
    _model = IndexRow

    def __init__(
        self,
        database: SqlDatabase,
        object_store: ObjectStore,
        identity_provider: IdentityProvider,
        admin_role: str = DEFAULT_ADMIN_ROLE,
        version_history: Optional[VersionHistory] = None,
        create_schema: bool = True,
    ):
        super().__init__(database, identity_provider, version_history, create_schema)
        self._object_store = object_store
        self.admin_role = admin_role

    @staticmethod
    def _new_blob_id() -> str:
        return uuid.uuid4().hex

    def _upload(self, page: Page, blob_id: str, operation: str) -> None:
        try:
            self._object_store.upload(page_to_document(page).encode("utf-8"), blob_id)
        except StorageClientError as e:
            raise BackendError(self.backend_name, operation, str(e)) from e

    def _discard_blob(self, blob_id: str, operation: str) -> None:
        """Delete a blob, logging instead of raising on failure."""
        try:
            self._object_store.delete(blob_id)
            logger.debug(f"Discarded blob {blob_id} ({operation})")
        except Exception as e:
            logger.warning(f"Could not delete blob {blob_id} during {operation}, blob is orphaned: {e}")

    def _load_page(self, page_id: str, blob_id: str, operation: str) -> Page:
        try:
            data = self._object_store.download(blob_id)
        except ObjectStoreError as e:
            if e.not_found:
                logger.error(f"Index row of page {page_id} points at missing blob {blob_id}")
                raise BackendError(
                    self.backend_name, operation, f"document blob {blob_id} is missing"
                ) from e
            raise BackendError(self.backend_name, operation, str(e)) from e
        except StorageClientError as e:
            raise BackendError(self.backend_name, operation, str(e)) from e

        return page_from_document(data.decode("utf-8"), page_id=page_id)

    def _create_page(self, data: CreatePageData) -> Page:
        author = self._require_role("create_page", self.admin_role)
        page = build_new_page(data, author, page_id=str(uuid.uuid4()))

        try:
            with self._database.session() as s:
                if self._slug_taken(s, page.slug):
                    raise SlugConflictError(page.slug)
        except SQLAlchemyError as e:
            raise self._sql_error("create_page", e) from e

        blob_id = self._new_blob_id()
        self._upload(page, blob_id, "create_page")

        try:
            with self._database.session() as s:
                s.add(IndexRow.from_page(page, blob_id))
        except IntegrityError as e:
            self._discard_blob(blob_id, "create_page")
            raise SlugConflictError(page.slug) from e
        except SQLAlchemyError as e:
            self._discard_blob(blob_id, "create_page")
            raise self._sql_error("create_page", e) from e
        except Exception:
            self._discard_blob(blob_id, "create_page")
            raise

        logger.info(f"Created page '{page.slug}' ({page.id}) in blob {blob_id}")
        self._history.append_best_effort(snapshot(page, INITIAL_CHANGE_DESCRIPTION))
        return page

    def _get_page(self, page_id: str) -> Page:
        try:
            with self._database.session() as s:
                row = self._find_row(s, page_id)
                blob_id = row.blob_id
        except SQLAlchemyError as e:
            raise self._sql_error("get_page", e) from e
        return self._load_page(page_id, blob_id, "get_page")

    def _get_page_by_slug(self, slug: str) -> Page:
        try:
            with self._database.session() as s:
                row = self._find_row_by_slug(s, slug)
                page_id, blob_id = row.id, row.blob_id
        except SQLAlchemyError as e:
            raise self._sql_error("get_page_by_slug", e) from e
        return self._load_page(page_id, blob_id, "get_page_by_slug")

    def _update_page(self, page_id: str, patch: UpdatePageData) -> Page:
        editor = self._require_identity("update_page")

        try:
            with self._database.session() as s:
                old_blob_id = self._find_row(s, page_id).blob_id
        except SQLAlchemyError as e:
            raise self._sql_error("update_page", e) from e

        current = self._load_page(page_id, old_blob_id, "update_page")
        updated, content_changed = merge_update(current, patch, editor)

        new_blob_id = self._new_blob_id()
        self._upload(updated, new_blob_id, "update_page")

        try:
            with self._database.session() as s:
                row = self._find_row(s, page_id)
                row.fill_from(updated)
                row.blob_id = new_blob_id
        except SQLAlchemyError as e:
            self._discard_blob(new_blob_id, "update_page")
            raise self._sql_error("update_page", e) from e
        except Exception:
            self._discard_blob(new_blob_id, "update_page")
            raise

        self._discard_blob(old_blob_id, "update_page")

        if content_changed:
            logger.info(f"Updated page '{updated.slug}' to version {updated.version}")
            description = patch.change_description or DEFAULT_CHANGE_DESCRIPTION
            self._history.append_best_effort(snapshot(updated, description))
        else:
            logger.info(f"Updated metadata of page '{updated.slug}'")
        return updated

    def _delete_page(self, page_id: str) -> None:
        self._require_role("delete_page", self.admin_role)

        try:
            with self._database.session() as s:
                row = self._find_row(s, page_id)
                blob_id, slug = row.blob_id, row.slug
                s.delete(row)
        except SQLAlchemyError as e:
            raise self._sql_error("delete_page", e) from e

        self._discard_blob(blob_id, "delete_page")

        try:
            self._history.delete_all(page_id)
        except Exception as e:
            logger.error(f"Page '{slug}' deleted but its versions could not be removed: {e}")

        logger.info(f"Deleted page '{slug}' ({page_id})")

    def _search_pages(self, query: str) -> List[SearchResult]:
        try:
            with self._database.session() as s:
                pages = [row.to_page() for row in sql_queries.search_candidates(s, IndexRow, query)]
        except SQLAlchemyError as e:
            raise self._sql_error("search_pages", e) from e
        return SearchRanker.rank(pages, query)

    def close(self) -> None:
        self._object_store.close()
        super().close()
