"""Direct update of one or all sources.

The lock file is written once, after every selected source has been updated.
Any failure aborts the whole batch and nothing is written.
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger

from lon.upstream import Upstream

from .exceptions import LonError, SourceNotFoundError
from .sources import Sources, UpdateSummary


def update_sources(
    directory: Path | str,
    name: str | None = None,
    upstream: Upstream | None = None,
    list_commits: int = 0,
) -> dict[str, UpdateSummary]:
    """Update sources to the newest revision of their branch.

    Args:
        directory: Directory containing lon.lock
        name: Source to update; all sources when None
        upstream: Discovery collaborator
        list_commits: Attach up to this many commits of history to each summary (0 disables)

    Returns:
        Summaries keyed by source name in processing order. Empty if nothing changed,
        in which case the lock file is left untouched.

    Raises:
        SourceNotFoundError: name is not in the lock file
        LonError: Updating a source failed
    """
    upstream = upstream or Upstream()
    sources = Sources.read(directory)

    names = [name] if name is not None else sources.names()
    if not names:
        raise LonError("Lock file doesn't contain any sources")

    summaries: dict[str, UpdateSummary] = {}
    for source_name in names:
        source = sources.get(source_name)
        if source is None:
            raise SourceNotFoundError(source_name)

        logger.info(f"Updating {source_name}...")
        try:
            summary = source.update(upstream)
            if summary is not None and list_commits > 0:
                summary.add_rev_list(source.rev_list(upstream, summary, list_commits))
        except LonError as e:
            raise LonError(f"Failed to update {source_name}") from e

        if summary is not None:
            summaries[source_name] = summary

    if not summaries:
        logger.info("No updates available")
        return summaries

    sources.write(directory)
    logger.info(f"Updated {len(summaries)} of {len(names)} sources")
    return summaries
