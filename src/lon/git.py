"""Thin wrappers around the git command line.

Remote queries (ls-remote, last modified, history) run against throwaway bare
repositories in a temporary directory. Operations on the checkout that holds
lon.lock go through a Worktree handle.
"""

from __future__ import annotations

import subprocess
import tempfile
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from lon.core.exceptions import AmbiguousRefError, MissingRefError, TransportError
from lon.core.revision import Revision, RevList


@dataclass(frozen=True)
class RemoteInfo:
    """One line of `git ls-remote` output."""

    revision: str
    reference: str


@dataclass(frozen=True)
class User:
    """Identity used for commits made by lon."""

    name: str
    email: str


def _run_git(args: Sequence[str], failure: str, cwd: Path | None = None) -> str:
    """Run git and return its stdout.

    Args:
        args: Arguments after `git`
        failure: Message used when git exits with a non-zero status
        cwd: Working directory

    Returns:
        stdout of the command

    Raises:
        TransportError: git is missing or returned a non-zero exit code
    """
    cmd = ["git", *args]
    logger.trace(f"Running {cmd[:2]}")
    try:
        result = subprocess.run(cmd, cwd=cwd, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise TransportError(f"Failed to execute git {args[0]}. Most likely it's not on PATH") from e

    if result.returncode != 0:
        raise TransportError(f"{failure} (exit code {result.returncode})", result.stderr.strip())
    return result.stdout


def ls_remote(args: Sequence[str]) -> list[RemoteInfo]:
    """Call `git ls-remote` with the provided args and parse its output."""
    stdout = _run_git(["ls-remote", *args], "git ls-remote failed")

    references = []
    for line in stdout.splitlines():
        if not line:
            continue
        fields = line.split("\t")
        if len(fields) != 2:
            raise TransportError(f"Unexpected git ls-remote output line: {line!r}")
        references.append(RemoteInfo(revision=fields[0], reference=fields[1]))
    return references


def find_newest_revision(url: str, branch: str) -> Revision:
    """Find the newest revision for a branch of a git repository.

    Raises:
        MissingRefError: The branch does not exist on the remote
        AmbiguousRefError: The branch resolves to more than one revision
        TransportError: The remote could not be reached
    """
    reference = f"refs/heads/{branch}"
    references = ls_remote(["--refs", url, reference])

    if not references:
        raise MissingRefError(url, reference)
    if len(references) > 1:
        raise AmbiguousRefError(url, reference)

    return Revision(references[0].revision)


def _init_bare(git_dir: Path, url: str) -> None:
    _run_git(["--git-dir", str(git_dir), "init"], "Failed to initialize a fresh git repository")
    _run_git(["--git-dir", str(git_dir), "remote", "add", "origin", url], f"Failed to add the remote {url}")


def _fetch(git_dir: Path, revision: str, *extra: str) -> None:
    _run_git(
        ["--git-dir", str(git_dir), "fetch", "--no-show-forced-updates", *extra, "origin", revision],
        f"Failed to fetch the revision {revision}",
    )


def get_last_modified(url: str, revision: str) -> int:
    """Obtain the commit timestamp (lastModified) of a revision."""
    with tempfile.TemporaryDirectory(prefix="lon-") as tmp:
        git_dir = Path(tmp)
        _init_bare(git_dir, url)
        _fetch(git_dir, revision, "--depth=1")
        stdout = _run_git(
            ["--git-dir", str(git_dir), "log", "-1", "--format=%ct", "--no-show-signature", revision],
            f"Failed to log the revision {revision}",
        )

    try:
        return int(stdout.strip())
    except ValueError as e:
        raise TransportError(f"Failed to parse last modified timestamp {stdout.strip()!r}") from e


def rev_list(url: str, old_revision: str, new_revision: str, max_count: int) -> RevList:
    """List at most max_count commits in old_revision..new_revision, newest first."""
    with tempfile.TemporaryDirectory(prefix="lon-") as tmp:
        git_dir = Path(tmp)
        _init_bare(git_dir, url)
        _fetch(git_dir, old_revision, "--depth=1")
        # Only fetch the history down to the old revision
        _fetch(git_dir, new_revision, "--negotiation-tip", old_revision, f"--depth={max_count}")
        stdout = _run_git(
            [
                "--git-dir",
                str(git_dir),
                "rev-list",
                "--oneline",
                "--max-count",
                str(max_count),
                f"{old_revision}..{new_revision}",
            ],
            f"Failed to list the history for {old_revision}..{new_revision}",
        )

    return RevList.from_git_output(stdout.rstrip())


class Worktree:
    """Handle to the checkout containing lon.lock.

    All branch switching, committing and pushing done by lon goes through this
    object so callers (and tests) decide which directory is touched.
    """

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def _git(self, args: Sequence[str], failure: str) -> str:
        return _run_git(["-C", str(self.directory), *args], failure)

    def current_rev(self) -> str:
        """Return the current branch, or the commit hash on a detached HEAD."""
        try:
            return self._git(["symbolic-ref", "--short", "HEAD"], "Not on a branch").rstrip()
        except TransportError:
            logger.debug("HEAD is detached, falling back to the commit hash")
        return self._git(["rev-parse", "HEAD"], "Failed to find current commit").rstrip()

    def checkout(self, reference: str, create_or_reset: bool = False) -> None:
        args = ["checkout"]
        if create_or_reset:
            args.append("-B")
        args.append(reference)
        self._git(args, f"Failed to checkout ref {reference}")

    def add(self, paths: Sequence[Path]) -> None:
        self._git(["add", *(str(p) for p in paths)], "Failed to add files to git staging")

    def commit(self, message: str, user: User | None = None) -> None:
        args = []
        if user is not None:
            args += ["-c", f"user.name={user.name}", "-c", f"user.email={user.email}"]
        args += ["commit", "--message", message]
        self._git(args, "Failed to commit files")

    def commit_files(self, paths: Sequence[Path], message: str, user: User | None = None) -> None:
        """Stage paths and commit them."""
        self.add(paths)
        self.commit(message, user)

    def force_push(self, branch: str, url: str | None = None) -> None:
        """Force push a branch to url, or to the origin remote."""
        self._git(["push", "--force", url or "origin", branch], f"Failed to force push {branch}")
