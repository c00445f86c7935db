"""lon command line: manage the sources in lon.lock."""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from loguru import logger

from lon import __version__
from lon.convert import convert_niv
from lon.core.commit_message import CommitMessage
from lon.core.exceptions import LonError, SourceExistsError, SourceNotFoundError
from lon.core.lock import artifact_paths, lock_path
from lon.core.lon_nix import lon_nix_path, update_lon_nix, write_lon_nix
from lon.core.sources import GitHubSource, GitSource, Sources
from lon.core.update import update_sources
from lon.git import Worktree
from lon.upstream import Upstream


def configure_logging(verbose: int = 0, quiet: bool = False) -> None:
    """Send log messages to stderr.

    INFO by default, DEBUG with -v, TRACE with -vv, errors only with --quiet.
    """
    if quiet:
        level = "ERROR"
    elif verbose >= 2:
        level = "TRACE"
    elif verbose == 1:
        level = "DEBUG"
    else:
        level = "INFO"

    logger.remove()
    logger.add(sys.stderr, level=level, format="{message}")


def render_error(error: BaseException, verbose: bool) -> str:
    """Render an error; with verbose the whole chain of causes is included."""
    if not verbose:
        return str(error)

    messages = []
    current: BaseException | None = error
    while current is not None:
        messages.append(str(current))
        current = current.__cause__
    return ": ".join(messages)


def resolve_directory(directory: Path | None) -> Path:
    """--directory, else $LON_DIRECTORY, else the current directory."""
    if directory is not None:
        return directory
    env_dir = os.environ.get("LON_DIRECTORY")
    if env_dir:
        return Path(env_dir)
    return Path.cwd()


def add_global_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-q", "--quiet", action="store_true", help="Silence all output except errors")
    parser.add_argument(
        "-v", "--verbose", action="count", default=0, help="Verbose mode (-v, -vv, etc.)"
    )
    parser.add_argument(
        "-d",
        "--directory",
        type=Path,
        default=None,
        help="The directory containing lon.lock (default: $LON_DIRECTORY or the current directory)",
    )


def save(sources: Sources, directory: Path) -> None:
    """Write lon.lock and bring lon.nix up to date next to it."""
    sources.write(directory)
    update_lon_nix(directory)


def init(directory: Path, from_niv: Path | None = None, upstream: Upstream | None = None) -> None:
    if lock_path(directory).exists() and from_niv is not None:
        raise LonError(f"{lock_path(directory)} already exists, refusing to convert {from_niv}")

    if lon_nix_path(directory).exists():
        logger.info("lon.nix already exists")
    else:
        logger.info("Writing lon.nix...")
        write_lon_nix(directory)

    if lock_path(directory).exists():
        logger.info("lon.lock already exists")
        return

    if from_niv is not None:
        logger.info(f"Converting {from_niv}...")
        sources = convert_niv(from_niv, upstream)
    else:
        logger.info("Writing empty lon.lock...")
        sources = Sources()
    sources.write(directory)


def add_git(
    directory: Path,
    name: str,
    url: str,
    branch: str,
    revision: str | None = None,
    submodules: bool = False,
    frozen: bool = False,
    upstream: Upstream | None = None,
) -> None:
    sources = Sources.read(directory)
    if name in sources:
        raise SourceExistsError(name)

    logger.info(f"Adding {name}...")
    source = GitSource.new(upstream or Upstream(), url, branch, revision, submodules, frozen)
    sources.add(name, source)
    save(sources, directory)


def parse_identifier(identifier: str) -> tuple[str, str]:
    """Split an {owner}/{repo} identifier."""
    owner, sep, repo = identifier.partition("/")
    if not sep or not owner or not repo or "/" in repo:
        raise LonError(f"Failed to parse identifier {identifier}")
    return owner, repo


def add_github(
    directory: Path,
    identifier: str,
    branch: str,
    name: str | None = None,
    revision: str | None = None,
    frozen: bool = False,
    upstream: Upstream | None = None,
) -> None:
    owner, repo = parse_identifier(identifier)
    name = name or repo

    sources = Sources.read(directory)
    if name in sources:
        raise SourceExistsError(name)

    logger.info(f"Adding {name}...")
    source = GitHubSource.new(upstream or Upstream(), owner, repo, branch, revision, frozen)
    sources.add(name, source)
    save(sources, directory)


def update(
    directory: Path,
    name: str | None = None,
    commit: bool = False,
    list_commits: int = 0,
    upstream: Upstream | None = None,
) -> None:
    summaries = update_sources(directory, name, upstream=upstream, list_commits=list_commits)
    if not summaries:
        raise LonError("No updates available")
    update_lon_nix(directory)

    if commit:
        message = CommitMessage()
        for source_name, summary in summaries.items():
            message.add_summary(source_name, summary)
        logger.debug("Committing changes...")
        Worktree(directory).commit_files(artifact_paths(directory), str(message))


def modify(
    directory: Path,
    name: str,
    branch: str | None = None,
    revision: str | None = None,
    upstream: Upstream | None = None,
) -> None:
    sources = Sources.read(directory)
    source = sources.get(name)
    if source is None:
        raise SourceNotFoundError(name)

    logger.info(f"Modifying {name}...")
    source.modify(upstream or Upstream(), branch=branch, revision=revision)
    save(sources, directory)


def remove(directory: Path, name: str) -> None:
    sources = Sources.read(directory)
    logger.info(f"Removing {name}...")
    sources.remove(name)
    save(sources, directory)


def set_frozen(directory: Path, name: str, frozen: bool) -> None:
    sources = Sources.read(directory)
    source = sources.get(name)
    if source is None:
        raise SourceNotFoundError(name)

    if frozen:
        logger.info(f"Freezing {name}...")
        source.freeze()
    else:
        logger.info(f"Unfreezing {name}...")
        source.unfreeze()
    save(sources, directory)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lon", description="Lock & update Nix dependencies")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    add_global_arguments(parser)
    commands = parser.add_subparsers(dest="command", required=True)

    p_init = commands.add_parser("init", help="Initialize lon.lock")
    p_init.add_argument(
        "--from-niv", type=Path, default=None, help="Convert a niv sources.json instead of starting empty"
    )

    p_add = commands.add_parser("add", help="Add a new source")
    add_commands = p_add.add_subparsers(dest="source_type", required=True)

    p_git = add_commands.add_parser("git", help="Add a git source (fetched by checking out the repository)")
    p_git.add_argument("name", help="Name of the source")
    p_git.add_argument("url", help="URL to the repository")
    p_git.add_argument("branch", help="Branch to track")
    p_git.add_argument("-r", "--revision", default=None, help="Revision to lock")
    p_git.add_argument("--submodules", action="store_true", help="Fetch submodules")
    p_git.add_argument("--frozen", action="store_true", help="Freeze the source")

    p_github = add_commands.add_parser("github", help="Add a GitHub source (fetched as a tarball)")
    p_github.add_argument("identifier", help="{owner}/{repo}, e.g. nixos/nixpkgs")
    p_github.add_argument("branch", help="Branch to track")
    p_github.add_argument("-n", "--name", default=None, help="Name of the source (default: the repository name)")
    p_github.add_argument("-r", "--revision", default=None, help="Revision to lock")
    p_github.add_argument("--frozen", action="store_true", help="Freeze the source")

    p_update = commands.add_parser("update", help="Update sources to the newest revision")
    p_update.add_argument("name", nargs="?", default=None, help="Name of the source (default: all sources)")
    p_update.add_argument("-c", "--commit", action="store_true", help="Commit lon.lock")
    p_update.add_argument(
        "--list-commits",
        type=int,
        default=0,
        help="List up to this many new commits in the commit message (0 disables)",
    )

    p_modify = commands.add_parser(
        "modify",
        help="Modify a source; a new branch alone locks its newest revision, a revision is locked as given",
    )
    p_modify.add_argument("name", help="Name of the source")
    p_modify.add_argument("-b", "--branch", default=None, help="Branch to track")
    p_modify.add_argument("-r", "--revision", default=None, help="Revision to lock")

    for command, help_text in (
        ("remove", "Remove a source"),
        ("freeze", "Freeze a source"),
        ("unfreeze", "Unfreeze a source"),
    ):
        p = commands.add_parser(command, help=help_text)
        p.add_argument("name", help="Name of the source")

    return parser


def run(args: argparse.Namespace) -> None:
    directory = resolve_directory(args.directory)

    match args.command:
        case "init":
            init(directory, from_niv=args.from_niv)
        case "add" if args.source_type == "git":
            add_git(directory, args.name, args.url, args.branch, args.revision, args.submodules, args.frozen)
        case "add":
            add_github(directory, args.identifier, args.branch, args.name, args.revision, args.frozen)
        case "update":
            if args.list_commits < 0:
                raise LonError("--list-commits must not be negative")
            update(directory, args.name, commit=args.commit, list_commits=args.list_commits)
        case "modify":
            modify(directory, args.name, branch=args.branch, revision=args.revision)
        case "remove":
            remove(directory, args.name)
        case "freeze":
            set_frozen(directory, args.name, True)
        case "unfreeze":
            set_frozen(directory, args.name, False)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose, args.quiet)

    try:
        run(args)
    except LonError as e:
        logger.error(render_error(e, verbose=args.verbose > 0))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
