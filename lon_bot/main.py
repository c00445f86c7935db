"""Bot: open one pull request per updated source.

For every unfrozen source, in name order:

    checkout base → branch lon/<name> → update → commit → force push → pull request

Each cycle starts from the base ref and from an untouched copy of the sources
read at the start of the run. A failing pull request is logged and the bot
moves on; any other failure aborts the run. The checkout always returns to the
base ref at the end, pushed branches are left as they are.
"""

from __future__ import annotations

import argparse
import sys
from contextlib import closing
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from loguru import logger

from lon.cli import add_global_arguments, configure_logging, render_error, resolve_directory
from lon.core.commit_message import CommitMessage
from lon.core.exceptions import LonError
from lon.core.lock import artifact_paths
from lon.core.lon_nix import update_lon_nix
from lon.core.sources import Sources
from lon.git import User, Worktree
from lon.upstream import Upstream
from lon_bot.config import BotConfig
from lon_bot.publisher import FORGES, Forge, forge_from_env

BRANCH_PREFIX = "lon/"


class CycleStatus(StrEnum):
    FROZEN = "frozen"
    MISSING = "missing"
    UP_TO_DATE = "up-to-date"
    PROPOSED = "proposed"
    REQUEST_FAILED = "request-failed"


@dataclass(frozen=True)
class PullRequestResult:
    """Outcome of the only bot step whose failure does not abort the run."""

    url: str | None = None
    error: LonError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class CycleResult:
    name: str
    status: CycleStatus
    branch: str | None = None
    pull_request_url: str | None = None
    error: str | None = None


def branch_name(name: str) -> str:
    return f"{BRANCH_PREFIX}{name}"


def request_change(forge: Forge, branch: str, name: str, body: str) -> PullRequestResult:
    try:
        url = forge.open_pull_request(branch, name, body)
    except LonError as e:
        return PullRequestResult(error=e)
    return PullRequestResult(url=url)


def _run_cycle(
    name: str,
    sources: Sources,
    worktree: Worktree,
    forge: Forge,
    config: BotConfig,
    upstream: Upstream,
    base_ref: str,
) -> CycleResult:
    logger.debug(f"Checking out base ref {base_ref}...")
    worktree.checkout(base_ref)

    private = sources.copy()
    source = private.get(name)
    if source is None:
        logger.warning(f"Source {name} doesn't exist")
        return CycleResult(name, CycleStatus.MISSING)
    if source.frozen:
        logger.info(f"Source {name} is frozen. Skipping...")
        return CycleResult(name, CycleStatus.FROZEN)

    branch = branch_name(name)
    logger.debug(f"Checking out new branch {branch}...")
    worktree.checkout(branch, create_or_reset=True)

    logger.info(f"Updating {name}...")
    try:
        summary = source.update(upstream)
        if summary is not None and config.list_commits > 0:
            logger.debug(f"Listing up to {config.list_commits} commits...")
            summary.add_rev_list(source.rev_list(upstream, summary, config.list_commits))
    except LonError as e:
        raise LonError(f"Failed to update {name}") from e

    if summary is None:
        logger.info("No updates available")
        return CycleResult(name, CycleStatus.UP_TO_DATE, branch=branch)

    private.write(worktree.directory)
    update_lon_nix(worktree.directory)

    message = CommitMessage()
    message.add_summary(name, summary)

    logger.debug("Committing changes...")
    worktree.commit_files(
        artifact_paths(worktree.directory),
        str(message),
        User(config.user_name, config.user_email),
    )

    # Never log the push URL, it might contain a token
    logger.debug("Force pushing repository...")
    worktree.force_push(branch, config.push_url)

    result = request_change(forge, branch, name, message.body())
    if not result.ok:
        logger.warning(f"Failed to open Pull Request for {name}: {result.error}")
        return CycleResult(name, CycleStatus.REQUEST_FAILED, branch=branch, error=str(result.error))

    logger.info(f"Opened Pull Request: {result.url}")
    return CycleResult(name, CycleStatus.PROPOSED, branch=branch, pull_request_url=result.url)


def run_bot(
    worktree: Worktree,
    forge: Forge,
    config: BotConfig | None = None,
    upstream: Upstream | None = None,
) -> list[CycleResult]:
    """Run one update cycle per source.

    Returns:
        One result per source in name order

    Raises:
        LonError: Updating a source, committing or pushing failed. The checkout
            is back on the base ref in this case too.
    """
    config = config or BotConfig()
    upstream = upstream or Upstream()

    base_ref = worktree.current_rev()
    logger.debug(f"Base ref is {base_ref}")

    results: list[CycleResult] = []
    try:
        sources = Sources.read(worktree.directory)
        for name in sources.names():
            results.append(_run_cycle(name, sources, worktree, forge, config, upstream, base_ref))
    finally:
        logger.debug(f"Returning to base ref {base_ref}...")
        worktree.checkout(base_ref)

    proposed = sum(1 for r in results if r.status is CycleStatus.PROPOSED)
    failed = sum(1 for r in results if r.status is CycleStatus.REQUEST_FAILED)
    logger.info(f"Bot finished: {proposed} pull requests opened, {failed} failed, {len(results)} sources")
    return results


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lon-bot", description="Open pull requests for source updates")
    add_global_arguments(parser)
    parser.add_argument("forge", choices=list(FORGES), help="Forge to open pull requests on")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose, args.quiet)

    directory: Path = resolve_directory(args.directory)
    try:
        config = BotConfig.from_env()
        with closing(forge_from_env(args.forge, labels=config.labels)) as forge:
            run_bot(Worktree(directory), forge, config)
    except LonError as e:
        logger.error(render_error(e, verbose=args.verbose > 0))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
