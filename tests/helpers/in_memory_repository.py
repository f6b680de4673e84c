"""In-memory RevisionRepository for revision backend tests.

Keeps the working tree as a dict and every write as a commit record, so
history, point-in-time reads and failure injection can be exercised without
a git executable.

Usage:
    from tests.helpers.in_memory_repository import InMemoryRevisionRepository

    repo = InMemoryRevisionRepository()
    backend = RevisionBackend(repo, identity_provider)
"""

import hashlib
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set, Tuple

from src.storage_clients.errors import GitRepositoryError
from src.storage_clients.revision_repository import CommitAuthor, CommitInfo, RevisionRepository

REPO_PATH = "memory://wiki-repo"

# Commit timestamps start here and advance one second per commit
EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


@dataclass
class _Commit:
    info: CommitInfo
    path: str
    content: Optional[str]


class InMemoryRevisionRepository(RevisionRepository):
    """RevisionRepository keeping files and commits in memory.

    Attributes:
        files: Current working tree (path → content)
        commits: Every commit, oldest first
        fail_writes_to: Paths whose writes raise GitRepositoryError
        fail_reads: When True, every read raises GitRepositoryError
        read_at_calls: (path, sha) of every read_file_at call
    """

    def __init__(self):
        self.files: Dict[str, str] = {}
        self.commits: List[_Commit] = []
        self.fail_writes_to: Set[str] = set()
        self.fail_reads = False
        self.read_at_calls: List[Tuple[str, str]] = []
        self.closed = False

    def _record(self, path: str, content: Optional[str], message: str, author: CommitAuthor) -> str:
        index = len(self.commits)
        sha = hashlib.sha1(f"{index}:{path}:{message}".encode("utf-8")).hexdigest()
        committed_at = (EPOCH + timedelta(seconds=index)).isoformat()
        self.commits.append(
            _Commit(
                info=CommitInfo(
                    sha=sha,
                    message=message,
                    author_name=author.name,
                    author_email=author.email,
                    committed_at=committed_at,
                ),
                path=path,
                content=content,
            )
        )
        return sha

    def read_file(self, path: str) -> Optional[str]:
        if self.fail_reads:
            raise GitRepositoryError(REPO_PATH, f"read of {path} rejected")
        return self.files.get(path)

    def write_file(self, path: str, content: str, message: str, author: CommitAuthor) -> str:
        if path in self.fail_writes_to:
            raise GitRepositoryError(REPO_PATH, f"write to {path} rejected")
        self.files[path] = content
        return self._record(path, content, message, author)

    def delete_file(self, path: str, message: str, author: CommitAuthor) -> str:
        if path not in self.files:
            raise GitRepositoryError(REPO_PATH, f"pathspec '{path}' did not match any files")
        del self.files[path]
        return self._record(path, None, message, author)

    def list_files(self, directory: str) -> List[str]:
        prefix = directory.rstrip("/") + "/"
        return sorted(
            path[len(prefix):]
            for path in self.files
            if path.startswith(prefix) and "/" not in path[len(prefix):]
        )

    def file_history(self, path: str, limit: int) -> List[CommitInfo]:
        return [c.info for c in reversed(self.commits) if c.path == path][:limit]

    def read_file_at(self, path: str, sha: str) -> Optional[str]:
        self.read_at_calls.append((path, sha))
        position = next(
            (i for i, commit in enumerate(self.commits) if commit.info.sha == sha), None
        )
        if position is None:
            return None
        for commit in reversed(self.commits[:position + 1]):
            if commit.path == path:
                return commit.content
        return None

    def recent_commits(self, path_prefix: str, limit: int) -> List[CommitInfo]:
        prefix = path_prefix.rstrip("/") + "/"
        return [c.info for c in reversed(self.commits) if c.path.startswith(prefix)][:limit]

    def close(self) -> None:
        self.closed = True

    def messages_for(self, path: str) -> List[str]:
        """Commit messages touching ``path``, oldest first."""
        return [c.info.message for c in self.commits if c.path == path]
