"""Locked sources and their update algorithms.

A source is either a GitSource (fetched by checking out the repository) or a
GitHubSource (fetched as a tarball). Both follow the same state machine:
find the newest revision of the tracked branch and, if it moved, re-lock, i.e.
recompute the hash and every field derived from the revision in one step.
"""

from __future__ import annotations

import copy
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, TypeAlias

from loguru import logger

from . import lock
from .exceptions import DecodeError, SourceExistsError, SourceNotFoundError
from .revision import Revision, RevList

if TYPE_CHECKING:
    from lon.upstream import Upstream

GITHUB_URL = "https://github.com"


@dataclass
class UpdateSummary:
    """Information summarizing the update of a single source."""

    old_revision: Revision
    new_revision: Revision
    rev_list: RevList | None = None

    def add_rev_list(self, rev_list: RevList) -> None:
        self.rev_list = rev_list


@dataclass
class GitSource:
    url: str
    branch: str
    revision: Revision
    hash: str
    last_modified: int | None = None
    # Whether submodules are part of the hash
    submodules: bool = False
    frozen: bool = False

    @classmethod
    def new(
        cls,
        upstream: Upstream,
        url: str,
        branch: str,
        revision: str | None = None,
        submodules: bool = False,
        frozen: bool = False,
    ) -> GitSource:
        """Lock a new git source to revision, or to the newest revision of branch."""
        rev = Revision(revision) if revision else upstream.find_newest_revision(url, branch)
        logger.info(f"Locked revision: {rev}")

        source_hash = upstream.prefetch_git(url, rev.value, submodules)
        logger.info(f"Locked hash: {source_hash}")

        last_modified = upstream.get_last_modified(url, rev.value)
        logger.info(f"Locked lastModified: {last_modified}")

        return cls(
            url=url,
            branch=branch,
            revision=rev,
            hash=source_hash,
            last_modified=last_modified,
            submodules=submodules,
            frozen=frozen,
        )

    @property
    def discovery_url(self) -> str:
        return self.url

    def update(self, upstream: Upstream) -> UpdateSummary | None:
        return _update(self, upstream)

    def modify(self, upstream: Upstream, branch: str | None = None, revision: str | None = None) -> None:
        _modify(self, upstream, branch, revision)

    def freeze(self) -> None:
        self.frozen = True

    def unfreeze(self) -> None:
        self.frozen = False

    def rev_list(self, upstream: Upstream, summary: UpdateSummary, max_count: int) -> RevList:
        return upstream.rev_list(self.url, summary.old_revision.value, summary.new_revision.value, max_count)

    def _lock(self, upstream: Upstream, revision: Revision) -> None:
        new_hash = upstream.prefetch_git(self.url, revision.value, self.submodules)
        last_modified = upstream.get_last_modified(self.url, revision.value)

        logger.info(f"Updated hash: {self.hash} → {new_hash}")
        if self.last_modified is None:
            logger.info(f"Added lastModified: {last_modified}")
        else:
            logger.info(f"Updated lastModified: {self.last_modified} → {last_modified}")

        self.revision = revision
        self.hash = new_hash
        self.last_modified = last_modified

    def to_record(self) -> lock.Record:
        record: lock.Record = {
            "type": "Git",
            "fetchType": "git",
            "frozen": self.frozen,
            "branch": self.branch,
            "revision": self.revision.value,
            "url": self.url,
            "hash": self.hash,
            "submodules": self.submodules,
        }
        if self.last_modified is not None:
            record["lastModified"] = self.last_modified
        return record

    @classmethod
    def from_record(cls, record: lock.Record) -> GitSource:
        return cls(
            url=record["url"],
            branch=record["branch"],
            revision=Revision(record["revision"]),
            hash=record["hash"],
            last_modified=record.get("lastModified"),
            submodules=record.get("submodules", False),
            frozen=record.get("frozen", False),
        )


@dataclass
class GitHubSource:
    owner: str
    repo: str
    branch: str
    revision: Revision
    url: str
    hash: str
    frozen: bool = False

    @classmethod
    def new(
        cls,
        upstream: Upstream,
        owner: str,
        repo: str,
        branch: str,
        revision: str | None = None,
        frozen: bool = False,
    ) -> GitHubSource:
        """Lock a new GitHub source to revision, or to the newest revision of branch."""
        if revision:
            rev = Revision(revision)
        else:
            rev = upstream.find_newest_revision(github_git_url(owner, repo), branch)
        logger.info(f"Locked revision: {rev}")

        url = github_tarball_url(owner, repo, rev.value)
        source_hash = upstream.prefetch_tarball(url)
        logger.info(f"Locked hash: {source_hash}")

        return cls(
            owner=owner,
            repo=repo,
            branch=branch,
            revision=rev,
            url=url,
            hash=source_hash,
            frozen=frozen,
        )

    @property
    def discovery_url(self) -> str:
        return github_git_url(self.owner, self.repo)

    def update(self, upstream: Upstream) -> UpdateSummary | None:
        return _update(self, upstream)

    def modify(self, upstream: Upstream, branch: str | None = None, revision: str | None = None) -> None:
        _modify(self, upstream, branch, revision)

    def freeze(self) -> None:
        self.frozen = True

    def unfreeze(self) -> None:
        self.frozen = False

    def rev_list(self, upstream: Upstream, summary: UpdateSummary, max_count: int) -> RevList:
        return upstream.compare_commits(
            self.owner,
            self.repo,
            summary.old_revision.value,
            summary.new_revision.value,
            max_count,
        )

    def _lock(self, upstream: Upstream, revision: Revision) -> None:
        new_url = github_tarball_url(self.owner, self.repo, revision.value)
        new_hash = upstream.prefetch_tarball(new_url)
        logger.info(f"Updated hash: {self.hash} → {new_hash}")

        self.revision = revision
        self.hash = new_hash
        self.url = new_url

    def to_record(self) -> lock.Record:
        return {
            "type": "GitHub",
            "fetchType": "tarball",
            "frozen": self.frozen,
            "owner": self.owner,
            "repo": self.repo,
            "branch": self.branch,
            "revision": self.revision.value,
            "url": self.url,
            "hash": self.hash,
        }

    @classmethod
    def from_record(cls, record: lock.Record) -> GitHubSource:
        return cls(
            owner=record["owner"],
            repo=record["repo"],
            branch=record["branch"],
            revision=Revision(record["revision"]),
            url=record["url"],
            hash=record["hash"],
            frozen=record.get("frozen", False),
        )


Source: TypeAlias = GitSource | GitHubSource


def github_tarball_url(owner: str, repo: str, revision: str) -> str:
    return f"{GITHUB_URL}/{owner}/{repo}/archive/{revision}.tar.gz"


def github_git_url(owner: str, repo: str) -> str:
    return f"{GITHUB_URL}/{owner}/{repo}.git"


def _update(source: Source, upstream: Upstream) -> UpdateSummary | None:
    """Update a source to the newest revision of its branch.

    Returns:
        Summary of the update, or None if the source is frozen or already up to date
    """
    if source.frozen:
        logger.info("Source is frozen")
        return None

    newest_revision = upstream.find_newest_revision(source.discovery_url, source.branch)
    current_revision = source.revision

    if newest_revision == current_revision:
        logger.info("Already up to date")
        return None

    logger.info(f"Updated revision: {current_revision} → {newest_revision}")
    source._lock(upstream, newest_revision)
    return UpdateSummary(current_revision, newest_revision)


def _modify(source: Source, upstream: Upstream, branch: str | None, revision: str | None) -> None:
    """Change the branch and/or the revision of a source.

    Changing only the branch locks the newest revision of the new branch.
    Changing the revision locks exactly that revision.
    """
    if branch is not None:
        if branch == source.branch:
            logger.info(f"Branch is already {branch}")
        else:
            logger.info(f"Changed branch: {source.branch} → {branch}")
            source.branch = branch
            if revision is None:
                _update(source, upstream)

    if revision is not None:
        if revision == source.revision.value:
            logger.info(f"Revision is already {revision}")
        else:
            logger.info(f"Changed revision: {source.revision} → {revision}")
            source._lock(upstream, Revision(revision))


def source_from_record(record: lock.Record) -> Source:
    match record["type"]:
        case "Git":
            return GitSource.from_record(record)
        case "GitHub":
            return GitHubSource.from_record(record)
        case other:
            raise DecodeError(f"Unknown source type: {other}")


class Sources:
    """All locked sources keyed by name. Iteration is sorted by name."""

    def __init__(self, sources: dict[str, Source] | None = None) -> None:
        self._map: dict[str, Source] = dict(sources or {})

    @classmethod
    def read(cls, directory: Path | str) -> Sources:
        """Read the lock file from a directory.

        Raises:
            DecodeError: The lock file is missing or invalid
        """
        records = lock.read_lock(directory)
        return cls({name: source_from_record(record) for name, record in records.items()})

    def write(self, directory: Path | str) -> Path:
        """Write the sources as a lock file of the current version."""
        return lock.write_lock(self.to_records(), directory)

    def to_records(self) -> dict[str, lock.Record]:
        return {name: self._map[name].to_record() for name in self.names()}

    def add(self, name: str, source: Source) -> None:
        if name in self._map:
            raise SourceExistsError(name)
        self._map[name] = source

    def remove(self, name: str) -> None:
        if name not in self._map:
            raise SourceNotFoundError(name)
        del self._map[name]

    def get(self, name: str) -> Source | None:
        return self._map.get(name)

    def contains(self, name: str) -> bool:
        return name in self._map

    def names(self) -> list[str]:
        return sorted(self._map)

    def copy(self) -> Sources:
        """Return a deep copy whose sources can be modified independently."""
        return copy.deepcopy(self)

    def __contains__(self, name: object) -> bool:
        return name in self._map

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self._map)
