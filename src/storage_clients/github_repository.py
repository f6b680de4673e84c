"""GitHub-hosted revision repository.

Implements RevisionRepository over the GitHub REST API (contents and commits
endpoints) using a requests Session. Every write is one commit created by
the contents API.
"""

import base64
import logging
from typing import Any, Dict, List, Optional

import requests
from requests.exceptions import ConnectionError, Timeout

from .errors import RepositoryAPIError
from .object_store import sanitize_credentials
from .retry_logic import retry_on_rate_limit
from .revision_repository import CommitAuthor, CommitInfo, RevisionRepository

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
HTTP_TIMEOUT = 30

# GitHub caps per_page at 100
MAX_PER_PAGE = 100


class GitHubRepository(RevisionRepository):
    """Revision repository stored in a GitHub repo.

    Example:
        >>> repo = GitHubRepository("my-org", "wiki-content", token)
        >>> repo.read_file("wiki/getting-started.md")
    """

    def __init__(
        self,
        owner: str,
        repo: str,
        token: str,
        branch: str = "main",
        api_url: str = GITHUB_API_URL,
        session: Optional[requests.Session] = None,
    ):
        self.owner = owner
        self.repo = repo
        self.branch = branch
        self._base_url = f"{api_url.rstrip('/')}/repos/{owner}/{repo}"
        self._session = session or requests.Session()
        self._session.headers.update({
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
        })

    def _request(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        """Send a request, retrying on rate limits.

        Raises:
            RepositoryAPIError: On transport failure or authentication errors
        """
        url = f"{self._base_url}/{endpoint.lstrip('/')}"

        def _send() -> requests.Response:
            response = self._session.request(method, url, timeout=HTTP_TIMEOUT, **kwargs)
            if response.status_code == 429 or (
                response.status_code == 403
                and response.headers.get("X-RateLimit-Remaining") == "0"
            ):
                response.status_code = 429
                response.raise_for_status()
            return response

        try:
            response = retry_on_rate_limit(_send, service="GitHub")
        except (Timeout, ConnectionError) as e:
            raise RepositoryAPIError(endpoint, "GitHub API is unreachable") from e
        except requests.RequestException as e:
            raise RepositoryAPIError(endpoint, sanitize_credentials(str(e))) from e

        if response.status_code in (401, 403):
            raise RepositoryAPIError(endpoint, "access denied", status_code=response.status_code)
        return response

    def _check(self, response: requests.Response, endpoint: str, expected=(200,)) -> Dict[str, Any]:
        if response.status_code not in expected:
            raise RepositoryAPIError(
                endpoint,
                sanitize_credentials(response.text[:200]),
                status_code=response.status_code,
            )
        return response.json() if response.content else {}

    def _get_contents(self, path: str, ref: Optional[str] = None) -> Optional[Dict[str, Any]]:
        endpoint = f"contents/{path}"
        response = self._request("GET", endpoint, params={"ref": ref or self.branch})
        if response.status_code == 404:
            return None
        return self._check(response, endpoint)

    @staticmethod
    def _decode(payload: Dict[str, Any]) -> str:
        return base64.b64decode(payload.get("content", "")).decode("utf-8")

    def read_file(self, path: str) -> Optional[str]:
        payload = self._get_contents(path)
        if payload is None or isinstance(payload, list):
            return None
        return self._decode(payload)

    def read_file_at(self, path: str, sha: str) -> Optional[str]:
        payload = self._get_contents(path, ref=sha)
        if payload is None or isinstance(payload, list):
            return None
        return self._decode(payload)

    def write_file(self, path: str, content: str, message: str, author: CommitAuthor) -> str:
        existing = self._get_contents(path)
        body: Dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": self.branch,
            "author": {"name": author.name, "email": author.email},
        }
        if existing and not isinstance(existing, list):
            body["sha"] = existing["sha"]

        endpoint = f"contents/{path}"
        payload = self._check(self._request("PUT", endpoint, json=body), endpoint, expected=(200, 201))
        sha = payload.get("commit", {}).get("sha", "")
        logger.info(f"Committed {path} to {self.owner}/{self.repo}: {sha[:8]}")
        return sha

    def delete_file(self, path: str, message: str, author: CommitAuthor) -> str:
        existing = self._get_contents(path)
        if existing is None or isinstance(existing, list):
            raise RepositoryAPIError(f"contents/{path}", "file does not exist", status_code=404)

        endpoint = f"contents/{path}"
        body = {
            "message": message,
            "sha": existing["sha"],
            "branch": self.branch,
            "author": {"name": author.name, "email": author.email},
        }
        payload = self._check(self._request("DELETE", endpoint, json=body), endpoint)
        return payload.get("commit", {}).get("sha", "")

    def list_files(self, directory: str) -> List[str]:
        payload = self._get_contents(directory)
        if not isinstance(payload, list):
            return []
        return sorted(item["name"] for item in payload if item.get("type") == "file")

    def file_history(self, path: str, limit: int) -> List[CommitInfo]:
        return self._commits(path, limit)

    def recent_commits(self, path_prefix: str, limit: int) -> List[CommitInfo]:
        return self._commits(path_prefix, limit)

    def _commits(self, path: str, limit: int) -> List[CommitInfo]:
        endpoint = "commits"
        params = {"path": path, "sha": self.branch, "per_page": min(limit, MAX_PER_PAGE)}
        response = self._request("GET", endpoint, params=params)
        if response.status_code == 409:
            # Empty repository
            return []
        payload = self._check(response, endpoint)

        commits = []
        for item in payload[:limit]:
            commit = item.get("commit", {})
            author = commit.get("author") or {}
            commits.append(
                CommitInfo(
                    sha=item.get("sha", ""),
                    message=commit.get("message", ""),
                    author_name=author.get("name", ""),
                    author_email=author.get("email", ""),
                    committed_at=author.get("date", ""),
                )
            )
        return commits

    def close(self) -> None:
        self._session.close()
