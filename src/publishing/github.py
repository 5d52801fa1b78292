"""GitHub contents API client.

The calls the publish step needs: look up a file's blob sha, create or
update a file on a branch, and for manual publishes cut a branch and open
a pull request against the default branch.
"""

from __future__ import annotations

import base64
import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass

from inkpress.config import GitHubConfig
from inkpress.shared.errors import ConfigurationError, PublishError

logger = logging.getLogger(__name__)

USER_AGENT = "inkpress-publisher"


@dataclass
class CommitRef:
    """The commit a file write produced."""

    sha: str
    url: str


@dataclass
class PullRequestRef:
    """An open pull request."""

    number: int
    url: str


class GitHubContentStore:
    """Reads and writes files in one repository via urllib."""

    def __init__(self, config: GitHubConfig) -> None:
        self.config = config
        self.api_url = config.api_url.rstrip("/")

    def ensure_configured(self) -> None:
        if not self.config.token:
            raise ConfigurationError("GITHUB_TOKEN is not set")
        if not (self.config.owner and self.config.repo):
            raise ConfigurationError("GITHUB_REPO_OWNER and GITHUB_REPO_NAME must both be set")

    def _contents_url(self, path: str) -> str:
        quoted = urllib.parse.quote(path.lstrip("/"))
        return f"{self._repo_url()}/contents/{quoted}"

    def commit_url(self, sha: str) -> str:
        web = self.config.web_url.rstrip("/")
        return f"{web}/{self.config.owner}/{self.config.repo}/commit/{sha}"

    def _request(self, method: str, url: str, data: dict | None = None) -> dict | list:
        """Make an authenticated request to the GitHub API."""
        body = json.dumps(data).encode("utf-8") if data is not None else None
        req = urllib.request.Request(
            url,
            data=body,
            method=method,
            headers={
                "Authorization": f"Bearer {self.config.token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "Content-Type": "application/json",
                "User-Agent": USER_AGENT,
            },
        )
        with urllib.request.urlopen(req, timeout=30) as resp:
            return json.loads(resp.read().decode("utf-8"))

    def get_file_sha(self, path: str, branch: str | None = None) -> str | None:
        """Return the blob sha of *path*, or None if the file does not exist.

        Raises:
            PublishError: On any failure other than a 404.
        """
        branch = branch or self.config.default_branch
        url = f"{self._contents_url(path)}?ref={urllib.parse.quote(branch)}"
        try:
            data = self._request("GET", url)
        except urllib.error.HTTPError as exc:
            if exc.code == 404:
                return None
            raise PublishError(f"GitHub lookup of {path} failed: HTTP {exc.code}") from exc
        except (urllib.error.URLError, OSError, ValueError) as exc:
            raise PublishError(f"GitHub lookup of {path} failed: {exc}") from exc

        if isinstance(data, list):
            raise PublishError(f"{path} is a directory, not a file")
        return data.get("sha")

    def put_file(
        self,
        path: str,
        content: str,
        message: str,
        *,
        sha: str | None = None,
        branch: str | None = None,
    ) -> CommitRef:
        """Create or overwrite *path* with *content* in a single commit.

        Raises:
            PublishError: If GitHub rejects the write or cannot be reached.
        """
        payload: dict[str, str] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": branch or self.config.default_branch,
        }
        if sha:
            payload["sha"] = sha

        try:
            data = self._request("PUT", self._contents_url(path), payload)
        except urllib.error.HTTPError as exc:
            raise PublishError(f"GitHub write of {path} failed: HTTP {exc.code}") from exc
        except (urllib.error.URLError, OSError, ValueError) as exc:
            raise PublishError(f"GitHub write of {path} failed: {exc}") from exc

        try:
            commit_sha = data["commit"]["sha"]
        except (KeyError, TypeError) as exc:
            raise PublishError(f"GitHub write of {path} returned no commit") from exc

        logger.info("Committed %s as %s", path, commit_sha[:7])
        return CommitRef(sha=commit_sha, url=self.commit_url(commit_sha))

    # ── Branches and pull requests ───────────────────────────────

    def _repo_url(self) -> str:
        return f"{self.api_url}/repos/{self.config.owner}/{self.config.repo}"

    def get_branch_sha(self, branch: str | None = None) -> str:
        """Return the head commit sha of *branch*.

        Raises:
            PublishError: If the branch cannot be read.
        """
        branch = branch or self.config.default_branch
        url = f"{self._repo_url()}/git/ref/heads/{urllib.parse.quote(branch)}"
        try:
            data = self._request("GET", url)
            return data["object"]["sha"]
        except urllib.error.HTTPError as exc:
            raise PublishError(f"GitHub lookup of branch {branch} failed: HTTP {exc.code}") from exc
        except (urllib.error.URLError, OSError, ValueError, KeyError, TypeError) as exc:
            raise PublishError(f"GitHub lookup of branch {branch} failed: {exc}") from exc

    def create_branch(self, branch: str, from_sha: str) -> bool:
        """Create *branch* at *from_sha*; return False if it already exists.

        Raises:
            PublishError: On any other failure.
        """
        payload = {"ref": f"refs/heads/{branch}", "sha": from_sha}
        try:
            self._request("POST", f"{self._repo_url()}/git/refs", payload)
        except urllib.error.HTTPError as exc:
            if exc.code == 422:
                logger.info("Branch %s already exists, reusing it", branch)
                return False
            raise PublishError(f"GitHub branch {branch} could not be created: HTTP {exc.code}") from exc
        except (urllib.error.URLError, OSError, ValueError) as exc:
            raise PublishError(f"GitHub branch {branch} could not be created: {exc}") from exc
        return True

    def _find_open_pull_request(self, head: str, base: str) -> PullRequestRef | None:
        query = urllib.parse.urlencode(
            {"head": f"{self.config.owner}:{head}", "base": base, "state": "open"}
        )
        data = self._request("GET", f"{self._repo_url()}/pulls?{query}")
        if isinstance(data, list) and data:
            return PullRequestRef(number=data[0]["number"], url=data[0]["html_url"])
        return None

    def open_pull_request(
        self, title: str, head: str, *, body: str = "", base: str | None = None
    ) -> PullRequestRef:
        """Open a pull request from *head*, or return the one already open.

        Raises:
            PublishError: If GitHub rejects the request.
        """
        base = base or self.config.default_branch
        payload = {"title": title, "head": head, "base": base, "body": body}
        try:
            data = self._request("POST", f"{self._repo_url()}/pulls", payload)
            ref = PullRequestRef(number=data["number"], url=data["html_url"])
        except urllib.error.HTTPError as exc:
            if exc.code != 422:
                raise PublishError(f"Pull request for {head} failed: HTTP {exc.code}") from exc
            try:
                existing = self._find_open_pull_request(head, base)
            except (urllib.error.URLError, OSError, ValueError, KeyError) as lookup_exc:
                raise PublishError(f"Pull request for {head} failed: {lookup_exc}") from lookup_exc
            if existing is None:
                raise PublishError(f"Pull request for {head} failed: HTTP 422") from exc
            ref = existing
        except (urllib.error.URLError, OSError, ValueError, KeyError, TypeError) as exc:
            raise PublishError(f"Pull request for {head} failed: {exc}") from exc

        logger.info("Pull request #%d for %s: %s", ref.number, head, ref.url)
        return ref
