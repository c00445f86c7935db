"""Import a niv lock file (nix/sources.json) as lon sources."""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger

from lon.core.exceptions import DecodeError
from lon.core.sources import GitHubSource, GitSource, Sources
from lon.upstream import Upstream


def load_niv(path: Path) -> dict[str, dict]:
    """Read and validate a niv sources.json.

    Raises:
        DecodeError: The file is missing or a package lacks repo/branch/rev
    """
    try:
        with open(path, encoding="utf-8") as f:
            packages = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise DecodeError(f"Failed to deserialize Niv lock file {path}") from e

    if not isinstance(packages, dict):
        raise DecodeError(f"Niv lock file {path} must contain a JSON object")

    for name, package in packages.items():
        if not isinstance(package, dict):
            raise DecodeError(f"Niv package {name} must be an object")
        for key in ("repo", "branch", "rev"):
            if not isinstance(package.get(key), str):
                raise DecodeError(f"Niv package {name} is missing '{key}'")
    return packages


def convert_niv(path: Path, upstream: Upstream | None = None) -> Sources:
    """Convert every niv package to a source locked to the same revision.

    Packages with an owner become GitHub sources; the others are git sources
    whose repo field is the URL. Hashes are recomputed.
    """
    upstream = upstream or Upstream()
    sources = Sources()

    for name, package in sorted(load_niv(path).items()):
        logger.info(f"Converting {name}...")
        owner = package.get("owner")
        if owner:
            source = GitHubSource.new(
                upstream, owner, package["repo"], package["branch"], revision=package["rev"]
            )
        else:
            source = GitSource.new(upstream, package["repo"], package["branch"], revision=package["rev"])
        sources.add(name, source)

    return sources
