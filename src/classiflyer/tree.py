"""Helpers over the recursive folder/file tree of a binder."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterator, Optional

from .fsops import guess_mime
from .models import Binder, FileRef, Folder, Index, utc_now

_SEPARATORS = {"/", os.sep}


def replace_prefix(path: str, old_prefix: str, new_prefix: str) -> Optional[str]:
    """Swap ``old_prefix`` for ``new_prefix`` if ``path`` lives under it.

    Matching is per path component: ``/a/b`` is not a prefix of ``/a/bc``.
    Returns None when ``path`` is outside ``old_prefix``.
    """
    if path == old_prefix:
        return new_prefix
    if path.startswith(old_prefix) and path[len(old_prefix)] in _SEPARATORS:
        return new_prefix + path[len(old_prefix):]
    return None


def is_under(path: str, prefix: str) -> bool:
    """True if ``path`` is ``prefix`` or lies inside it."""
    return replace_prefix(path, prefix, prefix) is not None


def rewrite_prefix(
    folders: dict[str, Folder],
    files: dict[str, FileRef],
    old_prefix: str,
    new_prefix: str,
) -> int:
    """Rewrite ``sys_path`` of every descendant under ``old_prefix``.

    Depth-first over nested folders, then files. Returns the number of
    records rewritten; 0 when the prefixes are equal.
    """
    if old_prefix == new_prefix:
        return 0
    rewritten = 0
    for folder in folders.values():
        replaced = replace_prefix(folder.sys_path, old_prefix, new_prefix)
        if replaced is not None:
            folder.sys_path = replaced
            rewritten += 1
        rewritten += rewrite_prefix(folder.folders, folder.files, old_prefix, new_prefix)
    for file_ref in files.values():
        replaced = replace_prefix(file_ref.sys_path, old_prefix, new_prefix)
        if replaced is not None:
            file_ref.sys_path = replaced
            rewritten += 1
    return rewritten


def relocate_binder(binder: Binder, new_sys_path: Path | str) -> None:
    """Point a binder and its whole subtree at a new directory."""
    old = binder.sys_path
    new = str(new_sys_path)
    binder.sys_path = new
    rewrite_prefix(binder.folders, binder.files, old, new)


def find_folder(
    folders: dict[str, Folder], folder_id: str
) -> Optional[tuple[Folder, dict[str, Folder]]]:
    """Find a folder anywhere in the tree; returns it with its owning mapping."""
    if folder_id in folders:
        return folders[folder_id], folders
    for folder in folders.values():
        found = find_folder(folder.folders, folder_id)
        if found is not None:
            return found
    return None


def find_file(
    folders: dict[str, Folder], files: dict[str, FileRef], file_id: str
) -> Optional[FileRef]:
    if file_id in files:
        return files[file_id]
    for folder in folders.values():
        found = find_file(folder.folders, folder.files, file_id)
        if found is not None:
            return found
    return None


def iter_folders(folders: dict[str, Folder]) -> Iterator[tuple[str, Folder]]:
    for key, folder in folders.items():
        yield key, folder
        yield from iter_folders(folder.folders)


def iter_files(
    folders: dict[str, Folder], files: dict[str, FileRef]
) -> Iterator[tuple[str, FileRef]]:
    yield from files.items()
    for folder in folders.values():
        yield from iter_files(folder.folders, folder.files)


def count_content(binder: Binder) -> tuple[int, int]:
    """(folder count, file count) over the whole binder tree."""
    n_folders = sum(1 for _ in iter_folders(binder.folders))
    n_files = sum(1 for _ in iter_files(binder.folders, binder.files))
    return n_folders, n_files


def scan_directory(
    path: Path, index: Index
) -> tuple[dict[str, Folder], dict[str, FileRef]]:
    """Build folder/file records for an existing directory tree.

    Keys are minted from the index counters; entries are visited in name
    order so the resulting keys are deterministic.
    """
    folders: dict[str, Folder] = {}
    files: dict[str, FileRef] = {}
    for entry in sorted(path.iterdir(), key=lambda p: p.name):
        if entry.is_dir():
            key = index.allocate("dossiers")
            sub_folders, sub_files = scan_directory(entry, index)
            folders[key] = Folder(
                name=entry.name,
                sys_path=str(entry),
                folders=sub_folders,
                files=sub_files,
                created_at=utc_now(),
            )
        elif entry.is_file():
            files[index.allocate("fichiers")] = FileRef(
                name=entry.name,
                sys_path=str(entry),
                mime=guess_mime(entry.name),
            )
    return folders, files
