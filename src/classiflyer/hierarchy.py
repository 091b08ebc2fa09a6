"""Hierarchy engine: binders, their folder/file trees and binder groups.

Every operation validates its input before touching the disk, performs the
filesystem work, then updates the index inside ``IndexStore.mutation()``.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Optional, Union

from .errors import NotFoundError, StoreFilesystemError, StoreValidationError
from .fsops import (
    copy_file,
    copy_tree,
    guess_mime,
    make_dir,
    read_bytes,
    remove_tree,
    rename_dir,
)
from .index_store import IndexStore
from .models import Binder, BinderGroup, FileRef, Folder, Index, Zone, utc_now
from .tree import find_file, find_folder, relocate_binder, rewrite_prefix, scan_directory

logger = logging.getLogger(__name__)

UploadSource = Union[str, Path, dict]


def require_name(name: Optional[str], what: str = "name") -> str:
    """Reject empty names and names that would escape their parent directory."""
    if not isinstance(name, str) or not name.strip():
        raise StoreValidationError(f"A {what} is required")
    if name in {".", ".."} or "/" in name or os.sep in name:
        raise StoreValidationError(f"Invalid {what}: {name!r}", context={"name": name})
    return name


def require_binder(index: Index, key: str, *zones: Zone) -> Binder:
    """Look up a binder and check it sits in one of ``zones``."""
    if not key:
        raise StoreValidationError("A binder id is required")
    binder = index.binders.get(key)
    if binder is None:
        raise NotFoundError(f"Binder not found: {key}", context={"id": key})
    if zones and binder.zone not in zones:
        raise StoreValidationError(
            f"Binder {key} is {binder.zone.value}", context={"id": key, "zone": binder.zone.value}
        )
    return binder


def _require_free(path: Path) -> None:
    if path.exists():
        raise StoreFilesystemError(f"Destination already exists: {path}", context={"path": str(path)})


class HierarchyEngine:
    """Create, read, update and delete binders and their contents."""

    def __init__(self, store: IndexStore):
        self.store = store
        self.paths = store.paths

    # Binders

    def create_binder(
        self,
        name: str,
        primary_color: Optional[str] = None,
        secondary_color: Optional[str] = None,
        tertiary_color: Optional[str] = None,
    ) -> tuple[str, Binder]:
        """Create an empty active binder under classeurs/<name>."""
        require_name(name, "binder name")
        with self.store.mutation() as index:
            target = self.paths.binder_path(name)
            _require_free(target)
            make_dir(target)

            key = index.allocate("classeurs")
            binder = Binder(
                name=name,
                sys_path=str(target),
                app_path=self.paths.binder_app_path(name),
            )
            binder.set_colors(primary_color, secondary_color, tertiary_color)
            index.binders[key] = binder

        logger.info(f"Created binder {key} ({name})")
        self.store.journal("BINDER_CREATED", key, {"name": name})
        return key, binder

    def create_binder_from_folder(
        self,
        source_path: Union[str, Path],
        name: Optional[str] = None,
        primary_color: Optional[str] = None,
        secondary_color: Optional[str] = None,
        tertiary_color: Optional[str] = None,
    ) -> tuple[str, Binder]:
        """Import an external directory as a new binder.

        The source tree is copied, then scanned to mint folder and file keys.
        The binder name defaults to the source directory name.
        """
        source = Path(source_path).expanduser()
        if not source.is_dir():
            raise StoreValidationError(
                f"Source folder not found: {source}", context={"path": str(source)}
            )
        name = require_name(name or source.name, "binder name")

        with self.store.mutation() as index:
            target = self.paths.binder_path(name)
            copy_tree(source, target)

            key = index.allocate("classeurs")
            folders, files = scan_directory(target, index)
            binder = Binder(
                name=name,
                sys_path=str(target),
                app_path=self.paths.binder_app_path(name),
                folders=folders,
                files=files,
            )
            binder.set_colors(primary_color, secondary_color, tertiary_color)
            index.binders[key] = binder

        logger.info(f"Imported {source} as binder {key} ({name})")
        self.store.journal("BINDER_CREATED", key, {"name": name, "source": str(source)})
        return key, binder

    def get_binder(self, key: str) -> Binder:
        """An active or archived binder with its full tree."""
        index = self.store.snapshot()
        return require_binder(index, key, Zone.ACTIVE, Zone.ARCHIVED)

    def list_binders(self) -> list[tuple[str, Binder]]:
        return list(self.store.snapshot().binders_in(Zone.ACTIVE))

    def update_binder(
        self,
        key: str,
        name: Optional[str] = None,
        primary_color: Optional[str] = None,
        secondary_color: Optional[str] = None,
        tertiary_color: Optional[str] = None,
    ) -> Binder:
        """Rename and/or recolor a binder, active or archived.

        A rename is one directory rename inside the binder's current location;
        on failure nothing in the index changes.
        """
        if name is not None:
            require_name(name, "binder name")

        with self.store.mutation() as index:
            binder = require_binder(index, key, Zone.ACTIVE, Zone.ARCHIVED)
            old_name = binder.name
            if name is not None and name != binder.name:
                new_path = Path(binder.sys_path).parent / name
                rename_dir(Path(binder.sys_path), new_path, what="binder")
                relocate_binder(binder, new_path)
                binder.name = name
                if binder.zone == Zone.ACTIVE:
                    binder.app_path = self.paths.binder_app_path(name)
                else:
                    folder = index.archive_folders.get(binder.archive_folder_id or "")
                    binder.app_path = self.paths.archived_app_path(name, folder)
            binder.set_colors(primary_color, secondary_color, tertiary_color)
            binder.touch()

        self.store.journal("BINDER_UPDATED", key, {"old_name": old_name, "name": binder.name})
        return binder

    def delete_binder(self, key: str) -> bool:
        """Permanently delete a binder and its directory.

        Returns False for an unknown id. Directory removal errors are logged
        and the record is dropped anyway.
        """
        with self.store.mutation() as index:
            binder = index.binders.get(key)
            if binder is None or binder.zone == Zone.TRASHED:
                return False
            try:
                remove_tree(Path(binder.sys_path))
            except StoreFilesystemError as e:
                logger.warning(f"Could not remove directory of binder {key}: {e.message}")
            del index.binders[key]

        logger.info(f"Deleted binder {key} ({binder.name})")
        self.store.journal("BINDER_DELETED", key, {"name": binder.name})
        return True

    # Folders

    def create_folder(
        self, binder_key: str, name: str, parent_folder_id: Optional[str] = None
    ) -> tuple[str, Folder]:
        """Create a folder in a binder, or inside one of its folders."""
        require_name(name, "folder name")
        with self.store.mutation() as index:
            binder = require_binder(index, binder_key, Zone.ACTIVE)
            if parent_folder_id:
                found = find_folder(binder.folders, parent_folder_id)
                if found is None:
                    raise NotFoundError(
                        f"Folder not found: {parent_folder_id}", context={"id": parent_folder_id}
                    )
                parent_path, siblings = found[0].sys_path, found[0].folders
            else:
                parent_path, siblings = binder.sys_path, binder.folders

            target = self.paths.child_path(parent_path, name)
            _require_free(target)
            make_dir(target)

            key = index.allocate("dossiers")
            folder = Folder(name=name, sys_path=str(target), created_at=utc_now())
            siblings[key] = folder
            binder.touch()

        self.store.journal("FOLDER_CREATED", key, {"binder": binder_key, "name": name})
        return key, folder

    def rename_folder(self, binder_key: str, folder_id: str, new_name: str) -> Folder:
        require_name(new_name, "folder name")
        with self.store.mutation() as index:
            binder = require_binder(index, binder_key, Zone.ACTIVE)
            found = find_folder(binder.folders, folder_id)
            if found is None:
                raise NotFoundError(f"Folder not found: {folder_id}", context={"id": folder_id})
            folder = found[0]
            if new_name == folder.name:
                return folder

            old_path = folder.sys_path
            new_path = Path(old_path).parent / new_name
            rename_dir(Path(old_path), new_path, what="folder")
            folder.name = new_name
            folder.sys_path = str(new_path)
            rewrite_prefix(folder.folders, folder.files, old_path, str(new_path))
            binder.touch()

        self.store.journal("FOLDER_RENAMED", folder_id, {"binder": binder_key, "name": new_name})
        return folder

    def delete_folder(self, binder_key: str, folder_id: str) -> bool:
        """Remove a folder directory and its whole index subtree."""
        with self.store.mutation() as index:
            binder = require_binder(index, binder_key, Zone.ACTIVE)
            found = find_folder(binder.folders, folder_id)
            if found is None:
                raise NotFoundError(f"Folder not found: {folder_id}", context={"id": folder_id})
            folder, owner = found
            remove_tree(Path(folder.sys_path))
            del owner[folder_id]
            binder.touch()

        self.store.journal("FOLDER_DELETED", folder_id, {"binder": binder_key, "name": folder.name})
        return True

    # Files

    def upload_files(
        self,
        binder_key: str,
        sources: Iterable[UploadSource],
        target_folder_id: Optional[str] = None,
    ) -> list[tuple[str, FileRef]]:
        """Copy user files into a binder or one of its folders.

        Each source is a path or a ``{"path": ..., "mime": ...}`` mapping.
        A file that fails to copy is logged and skipped; the saved subset is
        returned. Re-uploading a name replaces the existing record in place.
        """
        saved: list[tuple[str, FileRef]] = []
        with self.store.mutation() as index:
            binder = require_binder(index, binder_key, Zone.ACTIVE)
            if target_folder_id:
                found = find_folder(binder.folders, target_folder_id)
                if found is None:
                    raise NotFoundError(
                        f"Folder not found: {target_folder_id}", context={"id": target_folder_id}
                    )
                dest_dir, files = Path(found[0].sys_path), found[0].files
            else:
                dest_dir, files = Path(binder.sys_path), binder.files
            make_dir(dest_dir)

            by_path = {ref.sys_path: key for key, ref in files.items()}
            for source in sources:
                if isinstance(source, dict):
                    src, mime = Path(source.get("path", "")), source.get("mime")
                else:
                    src, mime = Path(source), None
                try:
                    dest = copy_file(src, dest_dir)
                except StoreFilesystemError as e:
                    logger.warning(f"Skipping upload of {src}: {e.message}")
                    continue

                key = by_path.get(str(dest)) or index.allocate("fichiers")
                file_ref = FileRef(
                    name=dest.name,
                    sys_path=str(dest),
                    mime=mime or guess_mime(dest.name),
                )
                files[key] = file_ref
                by_path[str(dest)] = key
                saved.append((key, file_ref))
            binder.touch()

        if saved:
            self.store.journal(
                "FILES_UPLOADED", binder_key, {"files": [key for key, _ in saved]}
            )
        return saved

    def read_file_bytes(self, binder_key: str, file_id: str) -> tuple[FileRef, bytes]:
        """Raw content of a stored file, for previews."""
        index = self.store.snapshot()
        binder = require_binder(index, binder_key, Zone.ACTIVE, Zone.ARCHIVED)
        file_ref = find_file(binder.folders, binder.files, file_id)
        if file_ref is None:
            raise NotFoundError(f"File not found: {file_id}", context={"id": file_id})
        return file_ref, read_bytes(Path(file_ref.sys_path))

    # Binder groups

    def create_binder_group(self, name: str) -> BinderGroup:
        require_name(name, "group name")
        with self.store.mutation() as index:
            key = index.allocate("classeurFolders")
            group = BinderGroup(id=key, name=name)
            index.binder_groups[key] = group

        self.store.journal("BINDER_GROUP_CREATED", key, {"name": name})
        return group

    def rename_binder_group(self, group_id: str, name: str) -> BinderGroup:
        require_name(name, "group name")
        with self.store.mutation() as index:
            group = index.binder_groups.get(group_id)
            if group is None:
                raise NotFoundError(f"Binder group not found: {group_id}", context={"id": group_id})
            group.name = name
            group.updated_at = utc_now()

        self.store.journal("BINDER_GROUP_RENAMED", group_id, {"name": name})
        return group

    def move_binder_to_group(self, binder_key: str, group_id: Optional[str]) -> Binder:
        """Assign an active binder to a group, or take it out with None."""
        with self.store.mutation() as index:
            binder = require_binder(index, binder_key, Zone.ACTIVE)
            if group_id and group_id not in index.binder_groups:
                raise NotFoundError(f"Binder group not found: {group_id}", context={"id": group_id})
            binder.classeur_folder_id = group_id or None
            binder.touch()

        self.store.journal("BINDER_MOVED", binder_key, {"group": group_id})
        return binder

    def list_binder_groups(self) -> list[tuple[BinderGroup, list[str]]]:
        """Each group with the keys of its active member binders."""
        index = self.store.snapshot()
        return [
            (
                group,
                [key for key, b in index.binders_in(Zone.ACTIVE) if b.classeur_folder_id == group_id],
            )
            for group_id, group in index.binder_groups.items()
        ]
