"""lon core: lock model, source update algorithms and commit messages.

- revision: Revision / Commit / RevList
- lock: versioned lon.lock reader and writer
- lon_nix: the generated lon.nix
- hashes: SRI sha256 hash checks
- sources: Git and GitHub sources, registry
- update: update one or all sources
- commit_message: commit message and PR body rendering
"""

from .commit_message import CommitMessage
from .exceptions import LonError
from .revision import Commit, Revision, RevList
from .sources import GitHubSource, GitSource, Source, Sources, UpdateSummary

__all__ = [
    "Commit",
    "CommitMessage",
    "GitHubSource",
    "GitSource",
    "LonError",
    "RevList",
    "Revision",
    "Source",
    "Sources",
    "UpdateSummary",
]
