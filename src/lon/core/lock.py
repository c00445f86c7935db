"""The lock file (lon.lock): versioned persisted form of all sources.

Only add a new version when a change is backwards incompatible. Every version
has a reader that returns records in the shape of the current version, so a
lock file read from an older version is migrated on the next write.

Records are plain dicts; lon.core.sources converts them to source objects.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

from loguru import logger

from . import lon_nix
from .exceptions import DecodeError
from .hashes import is_sri_sha256

FILENAME = "lon.lock"
CURRENT_VERSION = "1"

Record = dict[str, Any]


def lock_path(directory: Path | str) -> Path:
    return Path(directory) / FILENAME


def artifact_paths(directory: Path | str) -> list[Path]:
    """Files that are committed together after the lock changed."""
    return [lock_path(directory), lon_nix.lon_nix_path(directory)]


def _require(record: Record, key: str, kind: type, context: str) -> Any:
    if key not in record:
        raise DecodeError(f"{context}: missing field '{key}'")
    value = record[key]
    # bool is a subclass of int, lastModified must not accept it
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise DecodeError(f"{context}: field '{key}' must be of type {kind.__name__}")
    return value


def _require_hash(record: Record, context: str) -> str:
    value = _require(record, "hash", str, context)
    if not is_sri_sha256(value):
        raise DecodeError(f"{context}: field 'hash' is not a sha256 SRI hash: {value!r}")
    return value


def _optional(record: Record, key: str, kind: type, context: str, default: Any = None) -> Any:
    if key not in record:
        return default
    return _require(record, key, kind, context)


def _git_record_v1(record: Record, context: str) -> Record:
    if _require(record, "fetchType", str, context) != "git":
        raise DecodeError(f"{context}: Git sources must use fetchType 'git'")

    out: Record = {"type": "Git", "fetchType": "git"}
    if _optional(record, "frozen", bool, context, False):
        out["frozen"] = True
    for key in ("branch", "revision", "url"):
        out[key] = _require(record, key, str, context)
    out["hash"] = _require_hash(record, context)
    last_modified = _optional(record, "lastModified", int, context)
    if last_modified is not None:
        out["lastModified"] = last_modified
    out["submodules"] = _optional(record, "submodules", bool, context, False)
    return out


def _github_record_v1(record: Record, context: str) -> Record:
    if _require(record, "fetchType", str, context) != "tarball":
        raise DecodeError(f"{context}: GitHub sources must use fetchType 'tarball'")

    out: Record = {"type": "GitHub", "fetchType": "tarball"}
    if _optional(record, "frozen", bool, context, False):
        out["frozen"] = True
    for key in ("owner", "repo", "branch", "revision", "url"):
        out[key] = _require(record, key, str, context)
    out["hash"] = _require_hash(record, context)
    return out


_RECORDS_V1: dict[str, Callable[[Record, str], Record]] = {
    "Git": _git_record_v1,
    "GitHub": _github_record_v1,
}


def _read_v1(document: Record) -> dict[str, Record]:
    sources = _require(document, "sources", dict, "lock")

    records: dict[str, Record] = {}
    for name, record in sources.items():
        context = f"source '{name}'"
        if not isinstance(record, dict):
            raise DecodeError(f"{context}: expected an object")
        source_type = _require(record, "type", str, context)
        normalize = _RECORDS_V1.get(source_type)
        if normalize is None:
            raise DecodeError(f"{context}: unknown type '{source_type}'")
        records[name] = normalize(record, context)
    return records


# version tag -> reader returning records in the current shape
_READERS: dict[str, Callable[[Record], dict[str, Record]]] = {
    "1": _read_v1,
}


def parse_lock(text: str) -> dict[str, Record]:
    """Parse the JSON text of a lock file into records of the current version.

    Raises:
        DecodeError: Invalid JSON, unknown version or schema mismatch
    """
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise DecodeError(f"Failed to deserialize lock file: {e}") from e
    if not isinstance(document, dict):
        raise DecodeError("Failed to deserialize lock file: expected a JSON object")

    version = document.get("version")
    reader = _READERS.get(version) if isinstance(version, str) else None
    if reader is None:
        raise DecodeError(f"Unsupported lock file version: {version!r}")
    return reader(document)


def dump_lock(records: dict[str, Record]) -> str:
    """Serialize records as a lock file of the current version.

    Sources are sorted by name and every record is normalized, so the output is
    byte-identical for equal contents.
    """
    sources = {}
    for name in sorted(records):
        record = records[name]
        sources[name] = _RECORDS_V1[record["type"]](record, f"source '{name}'")

    document = {"version": CURRENT_VERSION, "sources": sources}
    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"


def read_lock(directory: Path | str) -> dict[str, Record]:
    """Read lon.lock from a directory.

    Raises:
        DecodeError: The file is missing, unreadable or invalid
    """
    path = lock_path(directory)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise DecodeError(f"Failed to read {path}") from e

    records = parse_lock(text)
    logger.debug(f"Loaded {len(records)} sources from {path}")
    return records


def write_lock(records: dict[str, Record], directory: Path | str) -> Path:
    path = lock_path(directory)
    path.write_text(dump_lock(records), encoding="utf-8", newline="\n")
    logger.debug(f"Lock file written to {path}")
    return path
