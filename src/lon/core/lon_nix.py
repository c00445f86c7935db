"""lon.nix: the Nix entry point that fetches every source in lon.lock.

    sources = import ./lon.nix;
    pkgs = import sources.nixpkgs { };

The file is a fixed template. It is rewritten whenever its content differs from
the template of this version, so upgrading lon also upgrades lon.nix.
"""

from __future__ import annotations

from pathlib import Path

from loguru import logger

FILENAME = "lon.nix"

TEMPLATE = """\
# Generated by lon. Do not modify!
let

  lock = builtins.fromJSON (builtins.readFile ./lon.lock);

  fetchSource =
    args@{ fetchType, ... }:
    if fetchType == "git" then
      builtins.fetchGit {
        name = "source";
        url = args.url;
        ref = args.branch;
        rev = args.revision;
        narHash = args.hash;
        submodules = args.submodules;
      }
    else if fetchType == "tarball" then
      builtins.fetchTarball {
        name = "source";
        url = args.url;
        sha256 = args.hash;
      }
    else
      builtins.throw "Unsupported source type ${fetchType}";

in
assert lock.version == "1";
builtins.mapAttrs (_: fetchSource) lock.sources
"""


def lon_nix_path(directory: Path | str) -> Path:
    return Path(directory) / FILENAME


def write_lon_nix(directory: Path | str) -> Path:
    path = lon_nix_path(directory)
    path.write_text(TEMPLATE, encoding="utf-8", newline="\n")
    return path


def update_lon_nix(directory: Path | str) -> bool:
    """Write lon.nix unless it already matches the template.

    Returns:
        True if the file was written
    """
    path = lon_nix_path(directory)
    if path.exists() and path.read_text(encoding="utf-8") == TEMPLATE:
        logger.debug(f"{path} is up to date")
        return False

    logger.debug(f"Writing {path}...")
    write_lon_nix(directory)
    return True
