"""Versioned schema migrations for the index document.

Each migration is a pure function taking the document at version N and
returning it at version N+1. ``apply_migrations`` runs the chain from the
document's ``schemaVersion`` (absent means 0, the pre-versioning layout).
"""

from __future__ import annotations

import copy
import logging
import re
from typing import Any, Callable, Iterator

from .errors import CorruptIndexError
from .models.index import KEY_PREFIXES, SCHEMA_VERSION

logger = logging.getLogger(__name__)

Document = dict[str, Any]

COUNTER_DEFAULTS = {name: 1 for name in KEY_PREFIXES}


def _as_mapping(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _migrate_v0_to_v1(doc: Document, root_path: str) -> Document:
    """Coerce the legacy shapes: array archives, missing corbeille, counters."""
    settings = _as_mapping(doc.get("settings"))
    if not isinstance(settings.get("rootPath"), str) or not settings["rootPath"]:
        settings["rootPath"] = root_path
    doc["settings"] = settings

    # archives used to be a bare array of binders
    archives = doc.get("archives")
    if not isinstance(archives, dict):
        archives = {"folders": {}, "classeurs": {}}
    archives["folders"] = _as_mapping(archives.get("folders"))
    archives["classeurs"] = _as_mapping(archives.get("classeurs"))
    doc["archives"] = archives

    corbeille = doc.get("corbeille")
    if isinstance(corbeille, list):
        corbeille = {
            str(entry.get("id") or f"trash_{i}"): entry
            for i, entry in enumerate(corbeille)
            if isinstance(entry, dict)
        }
    doc["corbeille"] = _as_mapping(corbeille)

    doc["mes_classeurs"] = _as_mapping(doc.get("mes_classeurs"))

    next_id = _as_mapping(doc.get("nextId"))
    for name in ("classeurs", "dossiers", "fichiers", "archiveFolders"):
        if not isinstance(next_id.get(name), int):
            next_id[name] = 1
    doc["nextId"] = next_id

    doc["schemaVersion"] = 1
    return doc


def _binder_records(doc: Document) -> Iterator[dict]:
    yield from doc["mes_classeurs"].values()
    yield from doc["archives"]["classeurs"].values()
    for entry in doc["corbeille"].values():
        if isinstance(entry, dict) and entry.get("type") != "classeur_folder":
            yield entry


def _walk_folders(folders: dict) -> Iterator[tuple[str, dict]]:
    for key, folder in folders.items():
        if not isinstance(folder, dict):
            continue
        yield key, folder
        yield from _walk_folders(_as_mapping(folder.get("folders")))


def _unify_files(node: dict, next_id: dict) -> None:
    files = node.get("files")
    if isinstance(files, list):
        unified: dict[str, Any] = {}
        for entry in files:
            if not isinstance(entry, dict):
                continue
            entry = dict(entry)
            key = entry.pop("id", None)
            if not key or key in unified:
                key = f"file_{next_id['fichiers']}"
                next_id["fichiers"] += 1
            unified[str(key)] = entry
        node["files"] = unified
    else:
        node["files"] = _as_mapping(files)
    node["folders"] = _as_mapping(node.get("folders"))


def _max_suffix(keys: Iterator[str], prefix: str) -> int:
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")
    highest = 0
    for key in keys:
        match = pattern.match(str(key))
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


def _file_keys(files: Any) -> list[str]:
    """Keys of a file collection, mapping- or legacy sequence-shaped."""
    if isinstance(files, list):
        return [str(entry["id"]) for entry in files if isinstance(entry, dict) and entry.get("id")]
    return list(_as_mapping(files))


def _repair_counters(doc: Document) -> None:
    """Keep every counter strictly above the highest key already in use."""
    binder_keys = list(doc["mes_classeurs"]) + list(doc["archives"]["classeurs"]) + list(doc["corbeille"])
    folder_keys: list[str] = []
    file_keys: list[str] = []
    for record in _binder_records(doc):
        file_keys.extend(_file_keys(record.get("files")))
        for key, folder in _walk_folders(_as_mapping(record.get("folders"))):
            folder_keys.append(key)
            file_keys.extend(_file_keys(folder.get("files")))
    archive_folder_keys = list(doc["archives"]["folders"]) + list(doc["corbeille"])
    group_keys = list(doc.get("classeur_folders", {})) + list(doc["corbeille"])

    in_use = {
        "classeurs": binder_keys,
        "dossiers": folder_keys,
        "fichiers": file_keys,
        "archiveFolders": archive_folder_keys,
        "classeurFolders": group_keys,
    }
    next_id = doc["nextId"]
    for name, keys in in_use.items():
        floor = _max_suffix(iter(keys), KEY_PREFIXES[name]) + 1
        if next_id.get(name, 1) < floor:
            logger.info(f"Raising counter {name} from {next_id.get(name)} to {floor}")
            next_id[name] = floor


def _migrate_v1_to_v2(doc: Document, root_path: str) -> Document:
    """Unify file collections to mappings and add binder groups."""
    doc["classeur_folders"] = _as_mapping(doc.get("classeur_folders"))
    next_id = doc["nextId"]
    if not isinstance(next_id.get("classeurFolders"), int):
        next_id["classeurFolders"] = 1
    # counters first, so keys minted for id-less legacy files are fresh
    _repair_counters(doc)

    for record in _binder_records(doc):
        _unify_files(record, next_id)
        for _key, folder in _walk_folders(record["folders"]):
            _unify_files(folder, next_id)
    doc["schemaVersion"] = 2
    return doc


MIGRATIONS: list[Callable[[Document, str], Document]] = [
    _migrate_v0_to_v1,
    _migrate_v1_to_v2,
]

assert len(MIGRATIONS) == SCHEMA_VERSION


def apply_migrations(doc: Any, *, root_path: str) -> Document:
    """Bring a raw parsed document up to the current schema version.

    Returns a new document; the input is left untouched.
    """
    if not isinstance(doc, dict):
        raise CorruptIndexError("Index document is not a JSON object")

    migrated = copy.deepcopy(doc)
    version = migrated.get("schemaVersion", 0)
    if not isinstance(version, int) or version < 0:
        raise CorruptIndexError(f"Invalid schemaVersion: {version!r}")
    if version > SCHEMA_VERSION:
        raise CorruptIndexError(
            f"Index schemaVersion {version} is newer than supported version {SCHEMA_VERSION}"
        )

    for step in MIGRATIONS[version:]:
        logger.debug(f"Applying migration {step.__name__}")
        migrated = step(migrated, root_path)
    return migrated
