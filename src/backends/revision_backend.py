"""Revision-controlled file backend.

Pages are frontmatter documents at ``{wiki_path}/{slug}.md`` in a git-style
repository; the page id is its slug. Every mutating call is one commit on
the page file whose message carries a ``Page {slug}: version {n}`` trailer:

    Create wiki page: Getting Started

    Page getting-started: version 1

Updates also record the full change description as a JSON-quoted
``Change:`` trailer, since the subject line only holds its first line:

    Update wiki page: Getting Started - Fix typo

    Change: "Fix typo"
    Page getting-started: version 2

Listings read a JSON index document (``{wiki_path}/_index.json``) that is
rewritten in a separate commit after each page write. Index failures are
logged; the index is reconciled against the page files when it is read.

Version history comes from the commit log of the page file (LIMITED).
"""

import dataclasses
import json
import logging
import re
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from src.storage_clients.errors import StorageClientError
from src.storage_clients.revision_repository import CommitAuthor, CommitInfo, RevisionRepository
from src.wiki_core.errors import BackendError, PageNotFoundError, SlugConflictError, WikiStoreError
from src.wiki_core.identity import IdentityProvider
from src.wiki_core.models import (
    Category,
    Contributor,
    CreatePageData,
    Identity,
    Page,
    PageVersion,
    SearchResult,
    UpdatePageData,
    WikiStats,
)
from src.wiki_core.page_document import page_from_document, page_to_document
from src.wiki_core.page_store import (
    RECENT_PAGES_LIMIT,
    TOP_CONTRIBUTORS_LIMIT,
    ListQuery,
    PageStore,
    build_new_page,
    merge_update,
)
from src.wiki_core.search_ranker import SearchRanker
from src.wiki_core.slug_codec import SlugCodec
from src.wiki_core.version_history import (
    DEFAULT_CHANGE_DESCRIPTION,
    DEFAULT_HISTORY_LIMIT,
    INITIAL_CHANGE_DESCRIPTION,
    VersionHistory,
    VersionHistoryCapability,
)

logger = logging.getLogger(__name__)

DEFAULT_WIKI_PATH = "wiki"
INDEX_FILE = "_index.json"
CATEGORIES_FILE = "_categories.json"
PAGE_SUFFIX = ".md"

DEFAULT_CONTENT_FETCH_LIMIT = 10
# Commits scanned when counting top contributors
CONTRIBUTOR_COMMIT_WINDOW = 100

CREATE_PREFIX = "Create wiki page: "
UPDATE_PREFIX = "Update wiki page: "
DELETE_PREFIX = "Delete wiki page: "

_TRAILER = re.compile(r"^Page (?P<slug>[a-z0-9-]+): version (?P<version>\d+)\s*$", re.MULTILINE)
_UPDATE_SUBJECT = re.compile(r"^Update wiki page: .* - (?P<description>.+)$")
# Full change description, JSON-quoted so multi-line text fits on one line
_CHANGE_TRAILER = re.compile(r'^Change: (?P<description>".*")\s*$', re.MULTILINE)

# Index entries are Page.to_dict() without the heavy/open fields
_INDEX_EXCLUDED = ("content", "attachments", "metadata")


def version_trailer(slug: str, version: int) -> str:
    return f"Page {slug}: version {version}"


def parse_trailer(message: str, slug: str) -> Optional[int]:
    """Version number recorded in a commit message for ``slug``, if any."""
    for match in _TRAILER.finditer(message or ""):
        if match.group("slug") == slug:
            return int(match.group("version"))
    return None


def change_trailer(description: str) -> str:
    return f"Change: {json.dumps(description, ensure_ascii=False)}"


def update_message(title: str, slug: str, version: int, description: str) -> str:
    """Commit message of an update; the subject carries the first description line."""
    summary = description.strip().splitlines()[0] if description.strip() else description
    return (
        f"{UPDATE_PREFIX}{title} - {summary}\n\n"
        f"{change_trailer(description)}\n"
        f"{version_trailer(slug, version)}"
    )


def _change_description(message: str) -> str:
    trailer = _CHANGE_TRAILER.search(message or "")
    if trailer:
        try:
            return json.loads(trailer.group("description"))
        except json.JSONDecodeError:
            logger.debug(f"Unreadable change trailer: {trailer.group(0)}")

    # Commits written without a Change trailer
    lines = (message or "").strip().splitlines()
    subject = lines[0] if lines else ""
    if subject.startswith(CREATE_PREFIX):
        return INITIAL_CHANGE_DESCRIPTION
    match = _UPDATE_SUBJECT.match(subject)
    if match:
        return match.group("description")
    return subject


def default_categories() -> List[Category]:
    """Categories served when the repository has no categories document."""
    now = datetime.now(timezone.utc).isoformat()
    return [
        Category(
            id="getting-started",
            name="Getting Started",
            slug="getting-started",
            description="Basic guides for new members",
            order=1,
            created_at=now,
        ),
        Category(
            id="flight-operations",
            name="Flight Operations",
            slug="flight-operations",
            description="Procedures and operations",
            order=2,
            created_at=now,
        ),
    ]


def category_from_dict(data: Dict[str, Any]) -> Category:
    return Category(
        id=str(data.get("id") or data.get("slug", "")),
        name=str(data.get("name", "")),
        slug=str(data.get("slug", "")),
        description=str(data.get("description", "")),
        color=data.get("color"),
        icon=data.get("icon"),
        order=int(data.get("order", 0)),
        is_active=bool(data.get("isActive", True)),
        moderators=list(data.get("moderators", [])),
        created_at=str(data.get("createdAt", "")),
    )


def index_entry(page: Page) -> Dict[str, Any]:
    entry = page.to_dict()
    for key in _INDEX_EXCLUDED:
        entry.pop(key, None)
    return entry


def page_from_entry(entry: Dict[str, Any]) -> Page:
    return Page(
        id=entry["id"],
        slug=entry["slug"],
        title=entry.get("title", ""),
        excerpt=entry.get("excerpt", ""),
        category_id=entry.get("categoryId"),
        author_id=entry.get("authorId", ""),
        author_name=entry.get("authorName", ""),
        last_edited_by=entry.get("lastEditedBy", ""),
        last_edited_by_name=entry.get("lastEditedByName", ""),
        version=int(entry.get("version", 1)),
        is_published=bool(entry.get("isPublished", True)),
        is_locked=bool(entry.get("isLocked", False)),
        tags=list(entry.get("tags", [])),
        created_at=entry.get("createdAt", ""),
        updated_at=entry.get("updatedAt", ""),
    )


def _is_usable_entry(slug: str, entry: Any) -> bool:
    """Whether an index entry describes ``slug`` and converts to a Page."""
    if not isinstance(entry, dict) or entry.get("id") != slug or entry.get("slug") != slug:
        return False
    try:
        page_from_entry(entry)
    except (TypeError, ValueError):
        return False
    return True


class LimitedVersionHistory(VersionHistory):
    """Version history derived from a page file's commit log.

    - At most ``history_limit`` commits are read.
    - Title/content are fetched for the ``content_fetch_limit`` most recent
      versions only; older versions carry ``title=None, content=None``.
    - Version numbers come from the commit trailer, or count up from the
      previous commit when the trailer is absent.
    - Consecutive commits with the same version (metadata-only edits) are
      collapsed into the commit that introduced the version.
    - History stops at the newest delete commit, so a re-created page does
      not inherit the history of a deleted page with the same slug.
    """

    capability = VersionHistoryCapability.LIMITED

    def __init__(
        self,
        repository: RevisionRepository,
        wiki_path: str = DEFAULT_WIKI_PATH,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        content_fetch_limit: int = DEFAULT_CONTENT_FETCH_LIMIT,
    ):
        self._repository = repository
        self._wiki_path = wiki_path.strip("/")
        self.history_limit = history_limit
        self.content_fetch_limit = content_fetch_limit

    def page_path(self, slug: str) -> str:
        return f"{self._wiki_path}/{slug}{PAGE_SUFFIX}"

    def append(self, version: PageVersion) -> None:
        # The page commit is the version record
        logger.debug(f"Version {version.version} of {version.page_id} recorded by its commit")

    def delete_all(self, page_id: str) -> int:
        # Commit history is never rewritten
        return 0

    def list_versions(self, page_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> List[PageVersion]:
        path = self.page_path(page_id)
        commits = self._repository.file_history(path, self.history_limit)

        live: List[CommitInfo] = []
        for commit in commits:
            if commit.message.startswith(DELETE_PREFIX):
                break
            live.append(commit)

        # Walk oldest → newest to number and collapse
        versions: List[PageVersion] = []
        previous = 0
        for commit in reversed(live):
            number = parse_trailer(commit.message, page_id)
            if number is None:
                number = previous + 1
            if versions and number == versions[-1].version:
                previous = number
                continue
            previous = number
            versions.append(
                PageVersion(
                    id=commit.sha,
                    page_id=page_id,
                    version=number,
                    title=None,
                    content=None,
                    author_id=commit.author_email,
                    author_name=commit.author_name,
                    change_description=_change_description(commit.message),
                    created_at=commit.committed_at,
                )
            )

        versions.reverse()
        versions = versions[:limit]

        for version in versions[:self.content_fetch_limit]:
            self._fill_snapshot(path, version)

        return versions

    def _fill_snapshot(self, path: str, version: PageVersion) -> None:
        try:
            text = self._repository.read_file_at(path, version.id)
            if text is None:
                return
            page = page_from_document(text, page_id=version.page_id)
        except (StorageClientError, WikiStoreError) as e:
            logger.warning(f"Could not load {path} at {version.id[:8]}: {e}")
            return
        version.title = page.title
        version.content = page.content

    def top_contributors(self, limit: int = TOP_CONTRIBUTORS_LIMIT) -> List[Contributor]:
        commits = self._repository.recent_commits(self._wiki_path, CONTRIBUTOR_COMMIT_WINDOW)
        counts: Counter = Counter()
        names: Dict[str, str] = {}
        for commit in commits:
            if not _TRAILER.search(commit.message):
                continue
            counts[commit.author_email] += 1
            names.setdefault(commit.author_email, commit.author_name)

        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return [
            Contributor(author_id=author_id, author_name=names[author_id], edit_count=count)
            for author_id, count in ranked[:limit]
        ]


class RevisionBackend(PageStore):
    """Wiki store keeping one file per page in a revision repository."""

    backend_name = "revision"
    version_history_capability = VersionHistoryCapability.LIMITED

    def __init__(
        self,
        repository: RevisionRepository,
        identity_provider: IdentityProvider,
        wiki_path: str = DEFAULT_WIKI_PATH,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        content_fetch_limit: int = DEFAULT_CONTENT_FETCH_LIMIT,
    ):
        super().__init__(identity_provider)
        self._repository = repository
        self.wiki_path = wiki_path.strip("/")
        self._history = LimitedVersionHistory(
            repository, self.wiki_path, history_limit, content_fetch_limit
        )

    @property
    def history(self) -> LimitedVersionHistory:
        return self._history

    @property
    def index_path(self) -> str:
        return f"{self.wiki_path}/{INDEX_FILE}"

    @property
    def categories_path(self) -> str:
        return f"{self.wiki_path}/{CATEGORIES_FILE}"

    def _page_path(self, slug: str) -> str:
        if not SlugCodec.is_valid_slug(slug):
            raise PageNotFoundError(slug, by="slug")
        return self._history.page_path(slug)

    def _repo(self, operation: str, func: Callable[..., Any], *args: Any) -> Any:
        """Call the repository, translating client errors into BackendError."""
        try:
            return func(*args)
        except StorageClientError as e:
            raise BackendError(self.backend_name, operation, str(e)) from e

    @staticmethod
    def _commit_author(identity: Identity) -> CommitAuthor:
        return CommitAuthor(name=identity.display_name, email=identity.id)

    # ------------------------------------------------------------------
    # Index document
    # ------------------------------------------------------------------

    def _read_index(self) -> Dict[str, Dict[str, Any]]:
        raw = self._repo("read_index", self._repository.read_file, self.index_path)
        if raw is None:
            return {}
        try:
            index = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Wiki index {self.index_path} is not valid JSON, rebuilding: {e}")
            return {}
        return index if isinstance(index, dict) else {}

    def _load_index(self) -> Dict[str, Dict[str, Any]]:
        """Index document reconciled with the page files present."""
        index = self._read_index()
        files = self._repo("list_pages", self._repository.list_files, self.wiki_path)
        slugs = {
            name[:-len(PAGE_SUFFIX)]
            for name in files
            if name.endswith(PAGE_SUFFIX) and not name.startswith("_")
        }

        for stale in set(index) - slugs:
            logger.debug(f"Dropping index entry for missing page '{stale}'")
            del index[stale]

        for slug in sorted(slugs):
            if slug not in index:
                logger.info(f"Page '{slug}' missing from wiki index, reading its file")
            elif not _is_usable_entry(slug, index[slug]):
                logger.warning(f"Malformed wiki index entry for '{slug}', reading its file")
            else:
                continue
            try:
                index[slug] = index_entry(self._read_page(slug, "list_pages"))
            except WikiStoreError as e:
                logger.warning(f"Skipping unreadable page file '{slug}': {e}")
                index.pop(slug, None)
        return index

    def _update_index(self, slug: str, page: Optional[Page], author: Identity) -> None:
        """Rewrite the index document; failures are logged, not raised."""
        try:
            index = self._read_index()
            if page is None:
                index.pop(slug, None)
            else:
                index[slug] = index_entry(page)
            self._repository.write_file(
                self.index_path,
                json.dumps(index, indent=2, sort_keys=True) + "\n",
                f"Update wiki index: {slug}",
                self._commit_author(author),
            )
        except Exception as e:
            logger.warning(f"Wiki index update for '{slug}' failed, index will be reconciled on read: {e}")

    # ------------------------------------------------------------------
    # Pages
    # ------------------------------------------------------------------

    def _read_page(self, slug: str, operation: str, by: str = "id") -> Page:
        path = self._page_path(slug)
        text = self._repo(operation, self._repository.read_file, path)
        if text is None:
            raise PageNotFoundError(slug, by=by)
        page = page_from_document(text, page_id=slug)
        return dataclasses.replace(page, id=slug, slug=slug)

    def _create_page(self, data: CreatePageData) -> Page:
        author = self._require_identity("create_page")
        page = build_new_page(data, author, page_id="")
        page = dataclasses.replace(page, id=page.slug)
        path = self._page_path(page.slug)

        if self._repo("create_page", self._repository.file_exists, path):
            raise SlugConflictError(page.slug)

        message = f"{CREATE_PREFIX}{page.title}\n\n{version_trailer(page.slug, 1)}"
        self._repo(
            "create_page",
            self._repository.write_file,
            path,
            page_to_document(page),
            message,
            self._commit_author(author),
        )
        logger.info(f"Created page '{page.slug}'")

        self._update_index(page.slug, page, author)
        return page

    def _get_page(self, page_id: str) -> Page:
        return self._read_page(page_id, "get_page")

    def _get_page_by_slug(self, slug: str) -> Page:
        return self._read_page(slug, "get_page_by_slug", by="slug")

    def _update_page(self, page_id: str, patch: UpdatePageData) -> Page:
        editor = self._require_identity("update_page")
        current = self._read_page(page_id, "update_page")
        updated, content_changed = merge_update(current, patch, editor)

        description = patch.change_description or DEFAULT_CHANGE_DESCRIPTION
        message = update_message(updated.title, updated.slug, updated.version, description)
        self._repo(
            "update_page",
            self._repository.write_file,
            self._page_path(updated.slug),
            page_to_document(updated),
            message,
            self._commit_author(editor),
        )
        if content_changed:
            logger.info(f"Updated page '{updated.slug}' to version {updated.version}")
        else:
            logger.info(f"Updated metadata of page '{updated.slug}'")

        self._update_index(updated.slug, updated, editor)
        return updated

    def _delete_page(self, page_id: str) -> None:
        author = self._require_identity("delete_page")
        current = self._read_page(page_id, "delete_page")

        self._repo(
            "delete_page",
            self._repository.delete_file,
            self._page_path(current.slug),
            f"{DELETE_PREFIX}{current.slug}",
            self._commit_author(author),
        )
        logger.info(f"Deleted page '{current.slug}'")

        self._update_index(current.slug, None, author)

    def _list_pages(self, query: ListQuery):
        pages = [page_from_entry(entry) for entry in self._load_index().values()]
        return query.apply(pages)

    def _search_pages(self, query: str) -> List[SearchResult]:
        pages = [page_from_entry(entry) for entry in self._load_index().values()]
        return SearchRanker.rank(pages, query)

    def _get_page_versions(self, page_id: str) -> List[PageVersion]:
        path = self._page_path(page_id)
        if not self._repo("get_page_versions", self._repository.file_exists, path):
            raise PageNotFoundError(page_id)
        return self._repo("get_page_versions", self._history.list_versions, page_id)

    def _get_categories(self) -> List[Category]:
        raw = self._repo("get_categories", self._repository.read_file, self.categories_path)
        if raw is None:
            return default_categories()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise BackendError(self.backend_name, "get_categories", f"invalid {CATEGORIES_FILE}: {e.msg}") from e

        categories = [category_from_dict(item) for item in data if isinstance(item, dict)]
        return sorted((c for c in categories if c.is_active), key=lambda c: (c.order, c.name))

    def _get_stats(self) -> WikiStats:
        published = [
            page_from_entry(entry)
            for entry in self._load_index().values()
            if entry.get("isPublished", True)
        ]
        published.sort(key=lambda p: p.slug)
        recent = sorted(published, key=lambda p: p.updated_at, reverse=True)[:RECENT_PAGES_LIMIT]
        return WikiStats(
            total_pages=len(published),
            total_categories=len(self._get_categories()),
            recent_pages=recent,
            top_contributors=self._repo(
                "get_stats", self._history.top_contributors, TOP_CONTRIBUTORS_LIMIT
            ),
        )

    def close(self) -> None:
        self._repository.close()
