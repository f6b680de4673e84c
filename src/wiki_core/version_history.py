"""Append-only per-page version log abstraction.

Backends with an explicit version table (table, blob-index) provide FULL
history: every version record carries the title/content snapshot. The
revision backend derives history from its commit log and only provides
LIMITED history (see LimitedVersionHistory in src.backends.revision_backend).
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import List

from .models import Contributor, Page, PageVersion, utc_now_iso

logger = logging.getLogger(__name__)

# Maximum number of versions returned by a history listing
DEFAULT_HISTORY_LIMIT = 50

INITIAL_CHANGE_DESCRIPTION = "Initial version"
DEFAULT_CHANGE_DESCRIPTION = "Updated page"


class VersionHistoryCapability(str, Enum):
    """How much history a backend can return.

    FULL: every version has its title/content snapshot.
    LIMITED: versions are derived from a revision log; snapshots of older
        revisions may be missing.
    """
    FULL = "full"
    LIMITED = "limited"


def version_record_id(page_id: str, version: int) -> str:
    """Stable identifier of a version record.

    Appending the same (page_id, version) twice targets the same record,
    which makes retries of a failed append idempotent.
    """
    return f"{page_id}:v{version}"


def snapshot(page: Page, change_description: str) -> PageVersion:
    """Build the version record for the page's current (post-write) state."""
    return PageVersion(
        id=version_record_id(page.id, page.version),
        page_id=page.id,
        version=page.version,
        title=page.title,
        content=page.content,
        author_id=page.last_edited_by,
        author_name=page.last_edited_by_name,
        change_description=change_description,
        created_at=page.updated_at or utc_now_iso(),
    )


class VersionHistory(ABC):
    """Append-only version log keyed by page id."""

    capability = VersionHistoryCapability.FULL

    @abstractmethod
    def append(self, version: PageVersion) -> None:
        """Store a version record; re-appending an existing record is a no-op."""

    @abstractmethod
    def list_versions(self, page_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> List[PageVersion]:
        """Versions of a page, newest first."""

    @abstractmethod
    def delete_all(self, page_id: str) -> int:
        """Delete every version of a page; returns the number removed."""

    def top_contributors(self, limit: int = 5) -> List[Contributor]:
        """Authors ordered by number of versions written."""
        return []

    def append_best_effort(self, version: PageVersion) -> bool:
        """Append a version, logging and swallowing any failure.

        The page write is the source of truth; history is advisory, so a
        failed append never fails or rolls back the page write.

        Returns:
            True if the version was stored
        """
        try:
            self.append(version)
            return True
        except Exception as e:
            logger.error(
                f"Failed to append version {version.version} for page {version.page_id}: {e}"
            )
            return False
