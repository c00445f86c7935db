"""Integration tests for the bot against a real checkout and a bare remote.

Only discovery and the forge are faked; branch switching, commits and pushes
go through the git binary.
"""

import json
from collections.abc import Callable
from pathlib import Path

import pytest
from conftest import NEW_REV, FakeUpstream, requires_git

from lon.core.exceptions import LonError
from lon.core.lon_nix import TEMPLATE
from lon.git import Worktree
from lon_bot.config import BotConfig
from lon_bot.main import CycleStatus, run_bot

NIXPKGS = ("https://github.com/nixos/nixpkgs.git", "nixos-unstable")
REPO = ("git@remote:repo.git", "main")
NIXPKGS_REV = "4633a7c72337ea8fd23a4f2ba3972865e3ec685d"
REPO_REV = "b6b12ee9cb64f547f129d7d64c104b8d2938dc0f"


class FakeForge:
    def __init__(self) -> None:
        self.requests: list[tuple[str, str, str | None]] = []

    def open_pull_request(self, source_branch: str, name: str, body: str | None = None) -> str:
        self.requests.append((source_branch, name, body))
        return f"https://forge.example.org/pulls/{len(self.requests)}"

    def close(self) -> None:
        pass


def remote_revisions(git: Callable[..., str], remote: Path, branch: str) -> dict[str, str]:
    text = git(["show", f"{branch}:lon.lock"], remote)
    return {name: record["revision"] for name, record in json.loads(text)["sources"].items()}


@requires_git
@pytest.mark.integration
class TestBotWorkflow:
    def test_pushes_one_branch_per_update(
        self, git_checkout: tuple[Path, Path], git: Callable[..., str]
    ) -> None:
        """ソースごとのブランチがリモートにpushされ、互いに独立していること."""
        checkout, remote = git_checkout
        upstream = FakeUpstream(newest={NIXPKGS: NEW_REV, REPO: NEW_REV})
        forge = FakeForge()

        results = run_bot(Worktree(checkout), forge, BotConfig(), upstream)

        assert sum(r.status is CycleStatus.PROPOSED for r in results) == 2
        nixpkgs = remote_revisions(git, remote, "lon/nixpkgs")
        repo = remote_revisions(git, remote, "lon/repo")
        assert (nixpkgs["nixpkgs"], nixpkgs["repo"]) == (NEW_REV, REPO_REV)
        assert (repo["nixpkgs"], repo["repo"]) == (NIXPKGS_REV, NEW_REV)

        log = git(["log", "-1", "--format=%an <%ae>%n%B", "lon/nixpkgs"], remote)
        assert log.startswith("LonBot <lonbot@lonbot>\nlon: update nixpkgs\n")

    def test_commits_lon_nix(self, git_checkout: tuple[Path, Path], git: Callable[..., str]) -> None:
        """pushされたブランチにlon.lockとlon.nixの両方がコミットされていること."""
        checkout, remote = git_checkout
        upstream = FakeUpstream(newest={NIXPKGS: NEW_REV, REPO: REPO_REV})

        run_bot(Worktree(checkout), FakeForge(), BotConfig(), upstream)

        assert git(["show", "lon/nixpkgs:lon.nix"], remote) == TEMPLATE
        changed = git(["diff", "--name-only", "main", "lon/nixpkgs"], remote).split()
        assert changed == ["lon.lock", "lon.nix"]
        assert not (checkout / "lon.nix").exists()

    def test_returns_to_base_branch(
        self, git_checkout: tuple[Path, Path], git: Callable[..., str], lock_text: str
    ) -> None:
        checkout, _ = git_checkout
        upstream = FakeUpstream(newest={NIXPKGS: NEW_REV, REPO: NEW_REV})

        run_bot(Worktree(checkout), FakeForge(), BotConfig(), upstream)

        assert git(["symbolic-ref", "--short", "HEAD"], checkout).strip() == "main"
        assert (checkout / "lon.lock").read_text(encoding="utf-8") == lock_text
        assert git(["status", "--porcelain"], checkout) == ""

    def test_push_url(self, git_checkout: tuple[Path, Path], git: Callable[..., str], tmp_path: Path) -> None:
        """LON_PUSH_URL相当の設定でorigin以外にpushできること."""
        checkout, remote = git_checkout
        other = tmp_path / "other.git"
        git(["init", "--bare", str(other)], tmp_path)
        upstream = FakeUpstream(newest={NIXPKGS: NEW_REV, REPO: REPO_REV})

        run_bot(Worktree(checkout), FakeForge(), BotConfig(push_url=str(other)), upstream)

        assert "lon/nixpkgs" in git(["branch", "--list"], other)
        assert "lon/nixpkgs" not in git(["branch", "--list"], remote)

    def test_rerun_force_pushes_from_base(self, git_checkout: tuple[Path, Path], git: Callable[..., str]) -> None:
        """再実行時はベースからブランチを作り直して強制pushすること."""
        checkout, remote = git_checkout
        worktree = Worktree(checkout)

        run_bot(worktree, FakeForge(), BotConfig(), FakeUpstream(newest={NIXPKGS: NEW_REV, REPO: REPO_REV}))
        newer = "1111111111111111111111111111111111111111"
        run_bot(worktree, FakeForge(), BotConfig(), FakeUpstream(newest={NIXPKGS: newer, REPO: REPO_REV}))

        assert remote_revisions(git, remote, "lon/nixpkgs")["nixpkgs"] == newer
        count = git(["rev-list", "--count", "main..lon/nixpkgs"], remote).strip()
        assert count == "1"

    def test_update_failure_restores_base(self, git_checkout: tuple[Path, Path], git: Callable[..., str]) -> None:
        checkout, _ = git_checkout
        upstream = FakeUpstream(newest={NIXPKGS: NEW_REV, REPO: NEW_REV}, fail_on={"prefetch_tarball"})

        with pytest.raises(LonError, match="Failed to update nixpkgs"):
            run_bot(Worktree(checkout), FakeForge(), BotConfig(), upstream)

        assert git(["symbolic-ref", "--short", "HEAD"], checkout).strip() == "main"
