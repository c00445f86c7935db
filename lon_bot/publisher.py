"""Forges the bot opens pull (merge) requests on.

Every forge exposes one capability, open_pull_request, and raises
TransportError when the forge rejects the request or cannot be reached.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol

import httpx
from loguru import logger

from lon.core.commit_message import TAG
from lon.core.exceptions import ConfigError, TransportError
from lon.github import USER_AGENT, GitHubRepoApi, check_response, json_field
from lon_bot.config import required_env


def pull_request_title(name: str) -> str:
    return f"{TAG}: update {name}"


class Forge(Protocol):
    def open_pull_request(self, source_branch: str, name: str, body: str | None = None) -> str:
        """Open a pull request for the update of source name from source_branch.

        Returns:
            URL of the pull request
        """
        ...

    def close(self) -> None: ...


class GitHubForge:
    """GitHub (e.g. from GitHub Actions)."""

    def __init__(self, api: GitHubRepoApi, labels: Sequence[str] = ()) -> None:
        self.api = api
        self.labels = list(labels)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        labels: Sequence[str] = (),
        transport: httpx.BaseTransport | None = None,
    ) -> GitHubForge:
        repository = required_env("GITHUB_REPOSITORY", environ)
        token = required_env("LON_TOKEN", environ)
        return cls(GitHubRepoApi(repository, token=token, transport=transport), labels)

    def open_pull_request(self, source_branch: str, name: str, body: str | None = None) -> str:
        response = self.api.open_pull_request(source_branch, pull_request_title(name), body)
        if self.labels:
            self.api.add_labels_to_issue(response.number, self.labels)
        return response.html_url

    def close(self) -> None:
        self.api.close()


class _HttpForge:
    """Shared request handling for forges without a dedicated API client."""

    def __init__(self, headers: dict[str, str], transport: httpx.BaseTransport | None = None) -> None:
        self._client = httpx.Client(
            headers={"User-Agent": USER_AGENT, "Accept": "application/json", **headers},
            transport=transport,
            timeout=30.0,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> _HttpForge:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _request(self, method: str, url: str, action: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to send {method} request to {url}: {e}") from e
        return check_response(response, action)


class GitLabForge(_HttpForge):
    """GitLab (e.g. from GitLab CI). Labels are set when the merge request is created."""

    def __init__(
        self,
        api_url: str,
        project_id: str,
        default_branch: str,
        token: str,
        labels: Sequence[str] = (),
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__({"Authorization": f"Bearer {token}"}, transport)
        self.api_url = api_url.rstrip("/")
        self.project_id = project_id
        self.default_branch = default_branch
        self.labels = list(labels)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        labels: Sequence[str] = (),
        transport: httpx.BaseTransport | None = None,
    ) -> GitLabForge:
        return cls(
            api_url=required_env("CI_API_V4_URL", environ),
            project_id=required_env("CI_PROJECT_ID", environ),
            default_branch=required_env("CI_DEFAULT_BRANCH", environ),
            token=required_env("LON_TOKEN", environ),
            labels=labels,
            transport=transport,
        )

    def open_pull_request(self, source_branch: str, name: str, body: str | None = None) -> str:
        merge_request: dict[str, Any] = {
            "source_branch": source_branch,
            "target_branch": self.default_branch,
            "title": pull_request_title(name),
            "remove_source_branch": True,
            "allow_collaboration": True,
            "labels": ",".join(self.labels),
        }
        if body is not None:
            merge_request["description"] = body

        url = f"{self.api_url}/projects/{self.project_id}/merge_requests"
        response = self._request("POST", url, "open Merge Request", json=merge_request)
        return json_field(response, "web_url")


class ForgejoForge(_HttpForge):
    """Forgejo / Gitea (e.g. from Forgejo Actions, which mimic the GitHub variables)."""

    def __init__(
        self,
        api_url: str,
        repository: str,
        token: str,
        labels: Sequence[str] = (),
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__({"Authorization": f"token {token}"}, transport)
        self.repo_api_url = f"{api_url.rstrip('/')}/repos/{repository}"
        self.labels = list(labels)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        labels: Sequence[str] = (),
        transport: httpx.BaseTransport | None = None,
    ) -> ForgejoForge:
        return cls(
            api_url=required_env("GITHUB_API_URL", environ),
            repository=required_env("GITHUB_REPOSITORY", environ),
            token=required_env("LON_TOKEN", environ),
            labels=labels,
            transport=transport,
        )

    def open_pull_request(self, source_branch: str, name: str, body: str | None = None) -> str:
        response = self._request("GET", self.repo_api_url, "get repository information")
        base = json_field(response, "default_branch")

        pull_request: dict[str, Any] = {
            "head": source_branch,
            "base": base,
            "title": pull_request_title(name),
        }
        if body is not None:
            pull_request["body"] = body

        response = self._request("POST", f"{self.repo_api_url}/pulls", "open Pull Request", json=pull_request)
        html_url = json_field(response, "html_url")
        number = json_field(response, "number")

        if self.labels:
            self._request(
                "POST",
                f"{self.repo_api_url}/issues/{number}/labels",
                "add labels",
                json={"labels": self.labels},
            )
        return html_url


FORGES = {
    "github": GitHubForge,
    "gitlab": GitLabForge,
    "forgejo": ForgejoForge,
}


def forge_from_env(
    name: str,
    environ: Mapping[str, str] | None = None,
    labels: Sequence[str] = (),
) -> Forge:
    """Build the forge called name from the environment.

    Raises:
        ConfigError: Unknown forge or a required variable is missing
    """
    forge_cls = FORGES.get(name)
    if forge_cls is None:
        raise ConfigError(f"Unknown forge: {name} (choose from {', '.join(FORGES)})")
    logger.debug(f"Using forge {name}")
    return forge_cls.from_env(environ, labels)
