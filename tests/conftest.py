"""Shared fixtures: a fake upstream, lock files and git repositories."""

from __future__ import annotations

import hashlib
import os
import shutil
import subprocess
import sys
from collections.abc import Callable, Generator
from pathlib import Path

import pytest
from loguru import logger

from lon.core.hashes import sri_sha256
from lon.core.revision import Revision, RevList
from lon.upstream import Upstream

FIXTURES = Path(__file__).parent / "fixtures"

OLD_REV = "043344a1c19619435e2b79cd42de6592308af0aa"
NEW_REV = "21386f9d14831b594048e1e4340ac7a300e312d6"


class FakeUpstream(Upstream):
    """Upstream answering from dictionaries and recording every call.

    Hashes are derived from the revision so tests can check that hash and
    revision always belong together.
    """

    def __init__(
        self,
        newest: dict[tuple[str, str], str] | None = None,
        last_modified: dict[str, int] | None = None,
        history: RevList | None = None,
        fail_on: set[str] | None = None,
    ) -> None:
        self.newest = newest or {}
        self.last_modified = last_modified or {}
        self.history = history or RevList()
        self.fail_on = fail_on or set()
        self.calls: list[tuple] = []

    def _record(self, name: str, *args: object) -> None:
        self.calls.append((name, *args))
        if name in self.fail_on:
            from lon.core.exceptions import TransportError

            raise TransportError(f"{name} failed")

    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]

    def find_newest_revision(self, url: str, branch: str) -> Revision:
        self._record("find_newest_revision", url, branch)
        return Revision(self.newest[(url, branch)])

    def prefetch_git(self, url: str, revision: str, submodules: bool) -> str:
        self._record("prefetch_git", url, revision, submodules)
        return git_hash(revision)

    def prefetch_tarball(self, url: str) -> str:
        self._record("prefetch_tarball", url)
        revision = url.rsplit("/", 1)[1].removesuffix(".tar.gz")
        return tarball_hash(revision)

    def get_last_modified(self, url: str, revision: str) -> int:
        self._record("get_last_modified", url, revision)
        return self.last_modified.get(revision, 1700000000)

    def rev_list(self, url: str, old_revision: str, new_revision: str, max_count: int) -> RevList:
        self._record("rev_list", url, old_revision, new_revision, max_count)
        return RevList(self.history.commits[:max_count])

    def compare_commits(
        self, owner: str, repo: str, old_revision: str, new_revision: str, max_count: int
    ) -> RevList:
        self._record("compare_commits", owner, repo, old_revision, new_revision, max_count)
        return RevList(self.history.commits[:max_count])


def git_hash(revision: str) -> str:
    return sri_sha256(hashlib.sha256(f"git:{revision}".encode()).digest())


def tarball_hash(revision: str) -> str:
    return sri_sha256(hashlib.sha256(f"tarball:{revision}".encode()).digest())


@pytest.fixture(autouse=True)
def reset_logger() -> Generator[None]:
    """Undo handlers installed by cli.configure_logging."""
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def lock_text() -> str:
    return (FIXTURES / "lon.lock").read_text(encoding="utf-8")


@pytest.fixture
def lock_dir(tmp_path: Path, lock_text: str) -> Path:
    """Directory containing a copy of the fixture lon.lock."""
    (tmp_path / "lon.lock").write_text(lock_text, encoding="utf-8")
    return tmp_path


def _git(args: list[str], cwd: Path, env: dict[str, str] | None = None) -> str:
    full_env = os.environ.copy()
    full_env.update(
        {
            "GIT_AUTHOR_NAME": "Test User",
            "GIT_AUTHOR_EMAIL": "test@test.com",
            "GIT_COMMITTER_NAME": "Test User",
            "GIT_COMMITTER_EMAIL": "test@test.com",
        }
    )
    full_env.update(env or {})
    result = subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True, text=True, env=full_env)
    return result.stdout


@pytest.fixture
def git() -> Callable[..., str]:
    """Run git in a directory: git(["status"], cwd)."""
    return _git


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


@pytest.fixture
def git_checkout(tmp_path: Path, lock_text: str) -> Generator[tuple[Path, Path]]:
    """A checkout on branch main with lon.lock committed, plus a bare remote as origin.

    Yields:
        (checkout directory, bare remote directory)
    """
    remote = tmp_path / "remote.git"
    checkout = tmp_path / "checkout"
    checkout.mkdir()

    _git(["init", "--bare", str(remote)], tmp_path)
    _git(["init", "-b", "main"], checkout)
    _git(["config", "user.email", "test@test.com"], checkout)
    _git(["config", "user.name", "Test User"], checkout)
    _git(["config", "commit.gpgsign", "false"], checkout)
    _git(["remote", "add", "origin", str(remote)], checkout)

    (checkout / "lon.lock").write_text(lock_text, encoding="utf-8")
    _git(["add", "lon.lock"], checkout)
    _git(["commit", "-m", "Initial commit"], checkout)
    _git(["push", "origin", "main"], checkout)

    yield checkout, remote
