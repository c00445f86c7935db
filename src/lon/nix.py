"""Content hashing via the nix prefetch tools.

Both tools download into the store under the name `source`, the same store path
builtins.fetchGit / builtins.fetchTarball use, so the source is fetched only once.
"""

from __future__ import annotations

import json
import subprocess

from loguru import logger

from lon.core.exceptions import TransportError
from lon.core.hashes import SHA256_SIZE, is_sri_sha256, sri_sha256

NIX32_ALPHABET = "0123456789abcdfghijklmnpqrsvwxyz"


def _run(cmd: list[str], failure: str) -> str:
    logger.trace(f"Running {cmd[0]}")
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise TransportError(f"Failed to execute {cmd[0]}. Most likely it's not on PATH") from e
    if result.returncode != 0:
        raise TransportError(failure, result.stderr.strip())
    return result.stdout


def nix32_to_sri(digest: str) -> str:
    """Convert a nix32 encoded sha256 digest to an SRI hash (sha256-<base64>).

    Raises:
        ValueError: digest is not a valid nix32 sha256 digest
    """
    if len(digest) != 52:
        raise ValueError(f"Invalid nix32 sha256 digest length: {len(digest)}")

    out = bytearray(SHA256_SIZE)
    # nix32 is little endian: the last character holds the lowest bits
    for n, char in enumerate(reversed(digest)):
        try:
            value = NIX32_ALPHABET.index(char)
        except ValueError:
            raise ValueError(f"Invalid nix32 character: {char!r}") from None
        bit = n * 5
        i, j = divmod(bit, 8)
        out[i] |= (value << j) & 0xFF
        carry = value >> (8 - j)
        if i + 1 < SHA256_SIZE:
            out[i + 1] |= carry
        elif carry:
            raise ValueError(f"Invalid nix32 sha256 digest: {digest}")

    return sri_sha256(bytes(out))


def _checked_hash(value: str, tool: str) -> str:
    if not isinstance(value, str) or not is_sri_sha256(value):
        raise TransportError(f"{tool} returned an invalid sha256 hash: {value!r}")
    return value


def prefetch_git(url: str, revision: str, submodules: bool) -> str:
    """Fetch a git source and calculate its hash.

    Returns:
        SRI hash reported by nix-prefetch-git
    """
    cmd = ["nix-prefetch-git"]
    if submodules:
        cmd.append("--fetch-submodules")
    cmd += ["--name", "source", url, revision]

    stdout = _run(cmd, f"Failed to prefetch git from {url}@{revision}")
    try:
        value = json.loads(stdout)["hash"]
    except (json.JSONDecodeError, KeyError, TypeError) as e:
        raise TransportError("Failed to deserialize nix-prefetch-git JSON response") from e
    return _checked_hash(value, "nix-prefetch-git")


def prefetch_tarball(url: str) -> str:
    """Fetch and unpack a tarball and calculate its hash.

    Returns:
        SRI hash of the unpacked tarball
    """
    stdout = _run(
        ["nix-prefetch-url", "--unpack", "--name", "source", "--type", "sha256", url],
        f"Failed to prefetch tarball from {url}",
    )
    digest = stdout.strip()
    if digest.startswith("sha256-"):
        return _checked_hash(digest, "nix-prefetch-url")
    try:
        return nix32_to_sri(digest)
    except ValueError as e:
        raise TransportError(f"Failed to parse nix-prefetch-url output for {url}") from e
