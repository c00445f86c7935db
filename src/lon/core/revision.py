"""Revision and commit value types shared by sources, git and the GitHub API."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

SHORT_REVISION_LENGTH = 7


@dataclass(frozen=True)
class Revision:
    """A git revision (just the SHA hash)."""

    value: str

    def short(self) -> str:
        return self.value[:SHORT_REVISION_LENGTH]

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Commit:
    """A commit made up of a revision and a message."""

    revision: Revision
    message: str

    @classmethod
    def from_str(cls, revision: str, message: str) -> Commit:
        return cls(Revision(revision), message)

    def message_summary(self) -> str:
        """First line of the commit message."""
        lines = self.message.splitlines()
        return lines[0] if lines else ""


@dataclass(frozen=True)
class RevList:
    """Commits between two revisions, newest first."""

    commits: tuple[Commit, ...] = ()

    @classmethod
    def from_commits(cls, commits: Iterable[Commit | tuple[str, str]]) -> RevList:
        """Build a RevList from commits or (revision, message) pairs, e.g. from a forge API."""
        revs = []
        for commit in commits:
            if not isinstance(commit, Commit):
                revision, message = commit
                commit = Commit.from_str(revision, message)
            revs.append(commit)
        return cls(tuple(revs))

    @classmethod
    def from_git_output(cls, output: str) -> RevList:
        """Parse the output of `git rev-list --oneline`.

        Args:
            output: Lines of the form "<short-rev> <message>"; lines without a space are ignored

        Returns:
            RevList in the order of the output
        """
        revs = []
        for line in output.splitlines():
            revision, sep, message = line.partition(" ")
            if not sep:
                continue
            revs.append(Commit.from_str(revision, message))
        return cls(tuple(revs))

    def __iter__(self) -> Iterator[Commit]:
        return iter(self.commits)

    def __len__(self) -> int:
        return len(self.commits)
