"""Orphan reconciliation for archived binders.

A binder directory can exist under ``archives/`` without an index record,
typically when the process died between the physical move and the index
save. Every load adopts such directories back into the archived zone.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .models import Binder, Index, Zone, utc_now
from .paths import StorePaths
from .tree import relocate_binder, replace_prefix, rewrite_prefix, scan_directory

logger = logging.getLogger(__name__)

ORPHAN_PRIMARY_COLOR = "#ffffff"
ORPHAN_SECONDARY_COLOR = "#3b82f6"
ORPHAN_TERTIARY_COLOR = "#0b1220"


def _recover_active(index: Index, name: str) -> Optional[str]:
    """Key of an active binder with this name whose directory has vanished."""
    for key, binder in index.binders_in(Zone.ACTIVE):
        if binder.name == name and not Path(binder.sys_path).is_dir():
            return key
    return None


def _adopt(index: Index, paths: StorePaths, directory: Path, folder_id: Optional[str]) -> str:
    archive_folder = index.archive_folders.get(folder_id) if folder_id else None
    now = utc_now()

    key = _recover_active(index, directory.name)
    if key is not None:
        binder = index.binders[key]
        relocate_binder(binder, directory)
        logger.info(f"Recovered binder {key} ({binder.name}) found under archives")
    else:
        key = index.allocate("classeurs")
        folders, files = scan_directory(directory, index)
        binder = Binder(
            name=directory.name,
            sys_path=str(directory),
            app_path="",
            primary_color=ORPHAN_PRIMARY_COLOR,
            secondary_color=ORPHAN_SECONDARY_COLOR,
            tertiary_color=ORPHAN_TERTIARY_COLOR,
            folders=folders,
            files=files,
            created_at=now,
        )
        index.binders[key] = binder
        logger.info(f"Adopted orphan binder directory {directory} as {key}")

    binder.app_path = paths.archived_app_path(binder.name, archive_folder)
    binder.zone = Zone.ARCHIVED
    binder.archived = True
    binder.archived_at = now
    binder.updated_at = now
    binder.archive_folder_id = folder_id
    binder.classeur_folder_id = None
    return key


def rebase_root(index: Index, root: Path) -> bool:
    """Point every recorded path at ``root`` after the store was relocated.

    Paths under the previous ``settings.root_path`` get the new root as
    prefix; ``settings.root_path`` then mirrors the active root. Returns
    True if anything changed.
    """
    old_root, new_root = index.settings.root_path, str(root)
    if old_root == new_root:
        return False

    for _key, binder in index.binders.items():
        moved = replace_prefix(binder.sys_path, old_root, new_root)
        if moved is not None:
            binder.sys_path = moved
        rewrite_prefix(binder.folders, binder.files, old_root, new_root)
    archive_folders = list(index.archive_folders.values())
    for group in index.trash_groups.values():
        if group.sys_path:
            group.sys_path = replace_prefix(group.sys_path, old_root, new_root) or group.sys_path
        archive_folders.extend(group.folders.values())
    for folder in archive_folders:
        folder.sys_path = replace_prefix(folder.sys_path, old_root, new_root) or folder.sys_path

    index.settings.root_path = new_root
    logger.info(f"Rebased index paths from {old_root} to {new_root}")
    return True


def reconcile_orphans(index: Index, paths: StorePaths) -> list[str]:
    """Adopt archive directories that have no index record.

    Scans the archives root and the directory of every known archive folder.
    A directory is known when its path, or its name within the same
    container, matches an archive folder or an archived binder; archive
    folder directories are never taken for binders. Returns the keys of the
    binders created or recovered.
    """
    if not paths.archives.is_dir():
        logger.debug(f"No archives directory at {paths.archives}, skipping reconciliation")
        return []

    known_paths = {folder.sys_path for folder in index.archive_folders.values()}
    known_paths.update(binder.sys_path for _key, binder in index.binders_in(Zone.ARCHIVED))
    # (containing archive folder id, directory name)
    known_names = {(folder.parent_id, folder.name) for folder in index.archive_folders.values()}
    known_names.update(
        (binder.archive_folder_id, binder.name) for _key, binder in index.binders_in(Zone.ARCHIVED)
    )

    containers: list[tuple[Path, Optional[str]]] = [(paths.archives, None)]
    for folder_id, folder in index.archive_folders.items():
        if Path(folder.sys_path).is_dir():
            containers.append((Path(folder.sys_path), folder_id))

    healed: list[str] = []
    for container, folder_id in containers:
        for entry in sorted(container.iterdir(), key=lambda p: p.name):
            if not entry.is_dir():
                continue
            if str(entry) in known_paths or (folder_id, entry.name) in known_names:
                continue
            healed.append(_adopt(index, paths, entry, folder_id))
            known_paths.add(str(entry))
            known_names.add((folder_id, entry.name))
    return healed
