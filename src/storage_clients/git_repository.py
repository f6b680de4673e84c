"""Local git repository holding the revision backend's page files.

This module provides the GitRepository class, which runs git commands through
subprocess. Pages are stored as markdown files below the wiki directory, and
every write is a single commit whose author is the acting wiki identity.
"""

import logging
import os
import subprocess
from typing import List, Optional

from .errors import GitRepositoryError
from .revision_repository import CommitAuthor, CommitInfo, RevisionRepository

logger = logging.getLogger(__name__)

# Git command timeout in seconds
GIT_TIMEOUT = 10

# Committer recorded on every commit; the wiki identity goes in --author
COMMITTER_NAME = "wiki-store"
COMMITTER_EMAIL = "wiki-store@localhost"

# Field and record separators for parsing git log output
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = f"%H{_FIELD_SEP}%an{_FIELD_SEP}%ae{_FIELD_SEP}%aI{_FIELD_SEP}%B{_RECORD_SEP}"


class GitRepository(RevisionRepository):
    """Revision repository backed by a local git working tree.

    File structure:
        wiki-repo/
          .git/
          README.md
          wiki/
            _index.json
            getting-started.md

    Example:
        >>> repo = GitRepository("./wiki-repo")
        >>> repo.init_if_not_exists()
        >>> sha = repo.write_file("wiki/hello.md", "# Hello", "Create wiki page: Hello",
        ...                       CommitAuthor("Ada", "u1"))
    """

    def __init__(self, repo_path: str):
        self.repo_path = repo_path
        self._ensure_absolute_path()

    def _ensure_absolute_path(self) -> None:
        if not os.path.isabs(self.repo_path):
            self.repo_path = os.path.abspath(self.repo_path)

    def init_if_not_exists(self) -> None:
        """Initialize the git repo if it doesn't exist.

        Creates the directory, runs 'git init' and commits a README. If the
        repo already exists (has .git), this is a no-op.

        Raises:
            GitRepositoryError: If initialization fails
        """
        git_dir = os.path.join(self.repo_path, ".git")
        if os.path.exists(git_dir):
            logger.debug(f"Git repository already exists at {self.repo_path}")
            return

        try:
            os.makedirs(self.repo_path, exist_ok=True)
        except OSError as e:
            raise GitRepositoryError(
                repo_path=self.repo_path,
                message=f"Failed to create directory: {e}",
            )

        result = self._run_git(["init"], "init")
        if result.returncode != 0:
            raise GitRepositoryError(
                repo_path=self.repo_path,
                message="Failed to initialize git repository",
                git_output=result.stderr,
            )
        logger.info(f"Initialized git repository at {self.repo_path}")

        self.write_file(
            "README.md",
            "# Wiki Content\n\nThis repository is managed by wiki-store.\n",
            "Initial commit: Add README",
            CommitAuthor(COMMITTER_NAME, COMMITTER_EMAIL),
        )

    def _run_git(self, args: List[str], action: str, timeout: int = GIT_TIMEOUT) -> subprocess.CompletedProcess:
        """Run a git command in the repository.

        Raises:
            GitRepositoryError: If git is missing or the command times out
        """
        try:
            return subprocess.run(
                ["git"] + args,
                cwd=self.repo_path,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            raise GitRepositoryError(
                repo_path=self.repo_path,
                message=f"Git {action} timed out after {timeout} seconds",
            )
        except FileNotFoundError:
            raise GitRepositoryError(
                repo_path=self.repo_path,
                message="Git command not found. Please install git.",
            )

    def _abs(self, path: str) -> str:
        full_path = os.path.abspath(os.path.join(self.repo_path, path))
        if not full_path.startswith(self.repo_path + os.sep):
            raise GitRepositoryError(
                repo_path=self.repo_path,
                message=f"Path escapes repository: {path}",
            )
        return full_path

    def read_file(self, path: str) -> Optional[str]:
        try:
            with open(self._abs(path), "r", encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise GitRepositoryError(
                repo_path=self.repo_path,
                message=f"Failed to read file {path}: {e}",
            )

    def write_file(self, path: str, content: str, message: str, author: CommitAuthor) -> str:
        """Write ``path`` and commit it.

        Returns:
            Commit SHA (the current HEAD if the content did not change)

        Raises:
            GitRepositoryError: If writing, staging or committing fails
        """
        full_path = self._abs(path)
        try:
            os.makedirs(os.path.dirname(full_path), exist_ok=True)
            with open(full_path, "w", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            raise GitRepositoryError(
                repo_path=self.repo_path,
                message=f"Failed to write file {path}: {e}",
            )

        result = self._run_git(["add", "--", path], "add")
        if result.returncode != 0:
            raise GitRepositoryError(
                repo_path=self.repo_path,
                message=f"Failed to add file {path}",
                git_output=result.stderr,
            )

        return self._commit(path, message, author)

    def delete_file(self, path: str, message: str, author: CommitAuthor) -> str:
        result = self._run_git(["rm", "-q", "--", path], "rm")
        if result.returncode != 0:
            raise GitRepositoryError(
                repo_path=self.repo_path,
                message=f"Failed to remove file {path}",
                git_output=result.stderr,
            )
        return self._commit(path, message, author)

    def _commit(self, path: str, message: str, author: CommitAuthor) -> str:
        result = self._run_git(
            [
                "-c", f"user.name={COMMITTER_NAME}",
                "-c", f"user.email={COMMITTER_EMAIL}",
                "commit",
                "-m", message,
                f"--author={author.name} <{author.email}>",
            ],
            "commit",
        )

        if result.returncode != 0:
            if "nothing to commit" in result.stdout or "nothing to commit" in result.stderr:
                logger.debug(f"No changes to commit for {path}")
                return self._get_head_sha()
            raise GitRepositoryError(
                repo_path=self.repo_path,
                message=f"Failed to commit {path}",
                git_output=result.stderr,
            )

        sha = self._get_head_sha()
        logger.info(f"Committed {path}: {sha[:8]}")
        return sha

    def _get_head_sha(self) -> str:
        result = self._run_git(["rev-parse", "HEAD"], "rev-parse")
        if result.returncode != 0:
            raise GitRepositoryError(
                repo_path=self.repo_path,
                message="Failed to get HEAD SHA",
                git_output=result.stderr,
            )
        return result.stdout.strip()

    def list_files(self, directory: str) -> List[str]:
        full_path = self._abs(directory)
        if not os.path.isdir(full_path):
            return []
        return sorted(
            name for name in os.listdir(full_path)
            if os.path.isfile(os.path.join(full_path, name))
        )

    def file_history(self, path: str, limit: int) -> List[CommitInfo]:
        return self._log(path, limit)

    def recent_commits(self, path_prefix: str, limit: int) -> List[CommitInfo]:
        return self._log(path_prefix, limit)

    def _log(self, path: str, limit: int) -> List[CommitInfo]:
        result = self._run_git(
            ["log", f"--format={_LOG_FORMAT}", "-n", str(limit), "--", path],
            "log",
        )

        if result.returncode != 0:
            if "does not have any commits" in result.stderr:
                return []
            raise GitRepositoryError(
                repo_path=self.repo_path,
                message=f"Failed to read history of {path}",
                git_output=result.stderr,
            )

        commits = []
        for record in result.stdout.split(_RECORD_SEP):
            record = record.strip("\n")
            if not record:
                continue
            fields = record.split(_FIELD_SEP, 4)
            if len(fields) != 5:
                logger.warning(f"Skipping unparseable git log record: {record[:80]!r}")
                continue
            sha, author_name, author_email, committed_at, message = fields
            commits.append(
                CommitInfo(
                    sha=sha,
                    message=message.strip(),
                    author_name=author_name,
                    author_email=author_email,
                    committed_at=committed_at,
                )
            )
        return commits

    def read_file_at(self, path: str, sha: str) -> Optional[str]:
        result = self._run_git(["show", f"{sha}:{path}"], "show")
        if result.returncode != 0:
            logger.warning(f"File {path} not found at commit {sha[:8]}")
            return None
        return result.stdout
