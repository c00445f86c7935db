"""Minimal client for the GitHub REST API of a single repository."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
from loguru import logger

from lon.core.exceptions import TransportError
from lon.core.revision import RevList

GITHUB_API = "https://api.github.com"
USER_AGENT = "LonBot"


@dataclass(frozen=True)
class PullRequestResponse:
    html_url: str
    number: int


def check_response(response: httpx.Response, action: str) -> httpx.Response:
    """Raise TransportError unless the response has a 2xx status.

    Args:
        response: Response to check
        action: Description used in the error, e.g. "open Pull Request"
    """
    if not response.is_success:
        raise TransportError(
            f"Failed to {action} at {response.request.url}: {response.status_code}",
            response.text,
        )
    return response


def json_field(response: httpx.Response, *keys: str) -> Any:
    """Read a nested field from a JSON response body."""
    try:
        value = response.json()
        for key in keys:
            value = value[key]
    except (ValueError, KeyError, TypeError) as e:
        raise TransportError(
            f"Unexpected response from {response.request.url}: missing {'.'.join(keys)}"
        ) from e
    return value


class GitHubRepoApi:
    """GitHub API of one repository (owner/repo)."""

    def __init__(
        self,
        repository: str,
        token: str | None = None,
        api_url: str = GITHUB_API,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": USER_AGENT,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self.repository = repository
        self.repo_api_url = f"{api_url}/repos/{repository}"
        self._client = httpx.Client(
            headers=headers,
            transport=transport,
            timeout=30.0,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> GitHubRepoApi:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _request(self, method: str, path: str, action: str, **kwargs: Any) -> httpx.Response:
        url = f"{self.repo_api_url}{path}"
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to send {method} request to {url}: {e}") from e
        return check_response(response, action)

    def default_branch(self) -> str:
        response = self._request("GET", "", "get repository information")
        return json_field(response, "default_branch")

    def compare_commits(self, old_revision: str, new_revision: str, max_count: int) -> RevList:
        """List the commits between two revisions via the compare API, newest first.

        The compare API returns commits oldest first.
        """
        response = self._request(
            "GET", f"/compare/{old_revision}...{new_revision}", "compare commits"
        )
        commits = json_field(response, "commits")
        try:
            pairs = [(c["sha"], c["commit"]["message"]) for c in reversed(commits)]
        except (KeyError, TypeError) as e:
            raise TransportError(f"Unexpected commit in comparison {old_revision}...{new_revision}") from e
        return RevList.from_commits(pairs[:max_count])

    def open_pull_request(self, branch: str, title: str, body: str | None = None) -> PullRequestResponse:
        base = self.default_branch()
        logger.debug(f"Opening Pull Request {branch} → {base}")

        payload: dict[str, Any] = {
            "head": branch,
            "base": base,
            "title": title,
            "maintainer_can_modify": True,
        }
        if body is not None:
            payload["body"] = body

        response = self._request("POST", "/pulls", "open Pull Request", json=payload)
        return PullRequestResponse(
            html_url=json_field(response, "html_url"),
            number=json_field(response, "number"),
        )

    def add_labels_to_issue(self, number: int, labels: list[str]) -> None:
        self._request("POST", f"/issues/{number}/labels", "add labels", json={"labels": labels})
