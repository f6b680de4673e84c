"""Interface of the revision-controlled file repositories.

The revision backend stores one file per page and reads its history from
the repository's commit log. Local git and the GitHub REST API both
implement RevisionRepository.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, NamedTuple, Optional


class CommitAuthor(NamedTuple):
    """Author recorded on a commit (name and identity reference)."""
    name: str
    email: str


@dataclass
class CommitInfo:
    """A commit that touched a file or directory.

    Attributes:
        sha: Commit SHA
        message: Full commit message (subject, body and trailers)
        author_name: Author display name
        author_email: Author e-mail field (the wiki identity id)
        committed_at: ISO 8601 author date
    """
    sha: str
    message: str
    author_name: str
    author_email: str
    committed_at: str


class RevisionRepository(ABC):
    """File repository where every write is a commit."""

    @abstractmethod
    def read_file(self, path: str) -> Optional[str]:
        """Current content of ``path``, or None if it does not exist."""

    @abstractmethod
    def write_file(self, path: str, content: str, message: str, author: CommitAuthor) -> str:
        """Create or replace ``path`` in one commit; returns the commit SHA."""

    @abstractmethod
    def delete_file(self, path: str, message: str, author: CommitAuthor) -> str:
        """Remove ``path`` in one commit; returns the commit SHA."""

    @abstractmethod
    def list_files(self, directory: str) -> List[str]:
        """Names of the files directly inside ``directory``."""

    @abstractmethod
    def file_history(self, path: str, limit: int) -> List[CommitInfo]:
        """Commits that touched ``path``, newest first, at most ``limit``."""

    @abstractmethod
    def read_file_at(self, path: str, sha: str) -> Optional[str]:
        """Content of ``path`` as of commit ``sha``, or None."""

    @abstractmethod
    def recent_commits(self, path_prefix: str, limit: int) -> List[CommitInfo]:
        """Most recent commits touching anything under ``path_prefix``."""

    def file_exists(self, path: str) -> bool:
        return self.read_file(path) is not None

    def close(self) -> None:
        """Release client resources."""
