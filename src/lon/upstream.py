"""Source discovery collaborator.

Sources never call git, the prefetch tools or the GitHub API directly; they go
through an Upstream so the whole discovery side can be replaced at once.
"""

from __future__ import annotations

from lon import git, nix
from lon.core.revision import Revision, RevList
from lon.github import GitHubRepoApi


class Upstream:
    """Discovers revisions, hashes and history of upstream repositories."""

    def find_newest_revision(self, url: str, branch: str) -> Revision:
        return git.find_newest_revision(url, branch)

    def prefetch_git(self, url: str, revision: str, submodules: bool) -> str:
        return nix.prefetch_git(url, revision, submodules)

    def prefetch_tarball(self, url: str) -> str:
        return nix.prefetch_tarball(url)

    def get_last_modified(self, url: str, revision: str) -> int:
        return git.get_last_modified(url, revision)

    def rev_list(self, url: str, old_revision: str, new_revision: str, max_count: int) -> RevList:
        return git.rev_list(url, old_revision, new_revision, max_count)

    def compare_commits(
        self, owner: str, repo: str, old_revision: str, new_revision: str, max_count: int
    ) -> RevList:
        with GitHubRepoApi(f"{owner}/{repo}") as api:
            return api.compare_commits(old_revision, new_revision, max_count)
