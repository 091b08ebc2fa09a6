"""Lifecycle coordinator: zone transitions and the archive-folder tree.

A binder is Active, Archived (optionally inside an archive folder) or
Trashed (remembering where it came from). Every transition moves the
directory first and only then updates and saves the index, so a crash in
between leaves a directory that the next load can reconcile.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .errors import NotFoundError, StoreFilesystemError, StoreValidationError
from .fsops import make_dir, move_dir, remove_tree, rename_dir
from .hierarchy import require_binder, require_name
from .index_store import IndexStore
from .models import ArchiveFolder, Binder, BinderGroup, Index, TrashGroup, Zone, utc_now
from .tree import is_under, relocate_binder, replace_prefix

logger = logging.getLogger(__name__)

ORIGIN_ZONES = {"mes": Zone.ACTIVE, "archives": Zone.ARCHIVED}
ROOT_FOLDER = "root"


def _move_all(moves: list[tuple[Path, Path]]) -> None:
    """Move several directories; undo the completed ones if any move fails."""
    done: list[tuple[Path, Path]] = []
    try:
        for src, dst in moves:
            move_dir(src, dst)
            done.append((src, dst))
    except StoreFilesystemError:
        for src, dst in reversed(done):
            try:
                move_dir(dst, src)
            except StoreFilesystemError as e:
                logger.error(f"Could not roll back move {src} -> {dst}: {e.message}")
        raise


def _subtree_ids(index: Index, folder_id: str) -> list[str]:
    """The archive folder and all its descendants, parents first."""
    ids = [folder_id]
    for fid in ids:
        ids.extend(key for key, f in index.archive_folders.items() if f.parent_id == fid)
    return ids


def _clear_trash_fields(binder: Binder) -> None:
    binder.deleted_from = None
    binder.deleted_at = None
    binder.trash_group_id = None


class LifecycleCoordinator:
    """Archive, trash, restore and purge binders and groups of binders."""

    def __init__(self, store: IndexStore):
        self.store = store
        self.paths = store.paths

    def _archive_folder(self, index: Index, folder_id: Optional[str]) -> Optional[ArchiveFolder]:
        if not folder_id or folder_id == ROOT_FOLDER:
            return None
        folder = index.archive_folders.get(folder_id)
        if folder is None:
            raise NotFoundError(f"Archive folder not found: {folder_id}", context={"id": folder_id})
        return folder

    def _refresh_app_paths(self, index: Index, folder_id: str) -> None:
        """Recompute app paths of an archive folder subtree and the binders in it."""
        for fid in _subtree_ids(index, folder_id):
            folder = index.archive_folders[fid]
            parent = index.archive_folders.get(folder.parent_id or "")
            folder.app_path = self.paths.archive_folder_app_path(folder.name, parent)
            for _key, binder in index.binders_in(Zone.ARCHIVED):
                if binder.archive_folder_id == fid:
                    binder.app_path = self.paths.archived_app_path(binder.name, folder)

    # Archive

    def archive(self, key: str, archive_folder_id: Optional[str] = None) -> Binder:
        """Move an active binder into the archives, optionally into a folder."""
        with self.store.mutation() as index:
            binder = require_binder(index, key, Zone.ACTIVE)
            folder = self._archive_folder(index, archive_folder_id)
            target = self.paths.archived_binder_path(binder.name, folder)
            move_dir(Path(binder.sys_path), target)

            relocate_binder(binder, target)
            binder.app_path = self.paths.archived_app_path(binder.name, folder)
            binder.zone = Zone.ARCHIVED
            binder.archived = True
            binder.archived_at = utc_now()
            binder.archive_folder_id = folder.id if folder else None
            binder.classeur_folder_id = None
            binder.touch()

        logger.info(f"Archived binder {key} to {target}")
        self.store.journal("BINDER_ARCHIVED", key, {"archive_folder": binder.archive_folder_id})
        return binder

    def unarchive(self, key: str) -> Binder:
        with self.store.mutation() as index:
            binder = require_binder(index, key, Zone.ARCHIVED)
            target = self.paths.binder_path(binder.name)
            move_dir(Path(binder.sys_path), target)

            relocate_binder(binder, target)
            binder.app_path = self.paths.binder_app_path(binder.name)
            binder.zone = Zone.ACTIVE
            binder.archived = False
            binder.archived_at = None
            binder.archive_folder_id = None
            binder.touch()

        logger.info(f"Unarchived binder {key}")
        self.store.journal("BINDER_UNARCHIVED", key, {"name": binder.name})
        return binder

    def move_to_archive_folder(self, key: str, target_folder_id: Optional[str] = None) -> Binder:
        """Move an archived binder to another archive folder ("root" or None for the root)."""
        with self.store.mutation() as index:
            binder = require_binder(index, key, Zone.ARCHIVED)
            folder = self._archive_folder(index, target_folder_id)
            target = self.paths.archived_binder_path(binder.name, folder)
            if str(target) != binder.sys_path:
                move_dir(Path(binder.sys_path), target)
                relocate_binder(binder, target)
            binder.app_path = self.paths.archived_app_path(binder.name, folder)
            binder.archive_folder_id = folder.id if folder else None
            binder.touch()

        self.store.journal("BINDER_MOVED", key, {"archive_folder": binder.archive_folder_id})
        return binder

    def list_archives(self, folder_id: Optional[str] = None) -> list[tuple[str, Binder]]:
        """Archived binders; all of them, or those directly in one folder."""
        binders = self.store.snapshot().binders_in(Zone.ARCHIVED)
        if folder_id is None:
            return list(binders)
        wanted = None if folder_id == ROOT_FOLDER else folder_id
        return [(key, b) for key, b in binders if b.archive_folder_id == wanted]

    # Trash

    def trash(self, key: str, origin: str) -> Binder:
        """Send a binder to the trash from its origin zone ("mes" or "archives")."""
        zone = ORIGIN_ZONES.get(origin)
        if zone is None:
            raise StoreValidationError(
                f"Invalid trash origin: {origin!r} (expected 'mes' or 'archives')",
                context={"origin": origin},
            )
        with self.store.mutation() as index:
            binder = require_binder(index, key, zone)
            target = self.paths.trash_path(key)
            move_dir(Path(binder.sys_path), target)

            relocate_binder(binder, target)
            binder.app_path = self.paths.trash_app_path(binder.name)
            binder.zone = Zone.TRASHED
            binder.archived = False
            binder.deleted_from = origin
            binder.deleted_at = utc_now()

        logger.info(f"Moved binder {key} to trash (from {origin})")
        self.store.journal("BINDER_TRASHED", key, {"origin": origin, "name": binder.name})
        return binder

    def _restore_target(self, index: Index, binder: Binder) -> tuple[Path, str]:
        """Where a trashed binder goes back to; updates its archive folder link."""
        if binder.deleted_from == "archives":
            folder = index.archive_folders.get(binder.archive_folder_id or "")
            binder.archive_folder_id = folder.id if folder else None
            return (
                self.paths.archived_binder_path(binder.name, folder),
                self.paths.archived_app_path(binder.name, folder),
            )
        return self.paths.binder_path(binder.name), self.paths.binder_app_path(binder.name)

    def _reinstate(self, binder: Binder, target: Path, app_path: str) -> None:
        relocate_binder(binder, target)
        binder.app_path = app_path
        binder.zone = Zone.ARCHIVED if binder.deleted_from == "archives" else Zone.ACTIVE
        binder.archived = binder.zone == Zone.ARCHIVED
        _clear_trash_fields(binder)
        binder.touch()

    def restore(self, key: str) -> Binder:
        """Return a trashed binder to the zone it was trashed from.

        Archived binders go back into their archive folder if it still
        exists, else into the archives root.
        """
        with self.store.mutation() as index:
            binder = require_binder(index, key, Zone.TRASHED)
            if binder.trash_group_id:
                raise StoreValidationError(
                    f"Binder {key} was trashed with group {binder.trash_group_id}; restore the group",
                    context={"id": key, "group": binder.trash_group_id},
                )
            target, app_path = self._restore_target(index, binder)
            move_dir(Path(binder.sys_path), target)
            if binder.classeur_folder_id not in index.binder_groups:
                binder.classeur_folder_id = None
            self._reinstate(binder, target, app_path)

        logger.info(f"Restored binder {key} to {binder.zone.value}")
        self.store.journal("BINDER_RESTORED", key, {"zone": binder.zone.value})
        return binder

    def purge_one(self, key: str) -> bool:
        """Permanently delete a trashed binder."""
        with self.store.mutation() as index:
            binder = require_binder(index, key, Zone.TRASHED)
            remove_tree(Path(binder.sys_path))
            del index.binders[key]
            group = index.trash_groups.get(binder.trash_group_id or "")
            if group is not None and key in group.classeurs:
                group.classeurs.remove(key)

        logger.info(f"Purged binder {key} ({binder.name})")
        self.store.journal("BINDER_PURGED", key, {"name": binder.name})
        return True

    def purge_all(self) -> int:
        """Empty the trash. Entries whose removal fails stay in the trash.

        Returns:
            Number of binders and groups purged
        """
        purged: list[str] = []
        with self.store.mutation() as index:
            for key, group in list(index.trash_groups.items()):
                if self._purge_group_in(index, key, group):
                    purged.append(key)
            for key, binder in list(index.binders_in(Zone.TRASHED)):
                if binder.trash_group_id in index.trash_groups:
                    # stays with its group
                    continue
                try:
                    remove_tree(Path(binder.sys_path))
                except StoreFilesystemError as e:
                    logger.warning(f"Keeping {key} in trash: {e.message}")
                    continue
                del index.binders[key]
                purged.append(key)

        logger.info(f"Emptied trash: {len(purged)} entries purged")
        for key in purged:
            self.store.journal("BINDER_PURGED", key, {"purge_all": True})
        return len(purged)

    def list_trash(self) -> tuple[list[tuple[str, Binder]], list[TrashGroup]]:
        """Individually trashed binders and trashed groups."""
        index = self.store.snapshot()
        binders = [
            (key, b) for key, b in index.binders_in(Zone.TRASHED) if not b.trash_group_id
        ]
        return binders, list(index.trash_groups.values())

    # Group units

    def trash_binder_group(self, group_id: str) -> TrashGroup:
        """Trash a binder group together with all its active binders."""
        with self.store.mutation() as index:
            group = index.binder_groups.get(group_id)
            if group is None:
                raise NotFoundError(f"Binder group not found: {group_id}", context={"id": group_id})
            members = [
                (key, b) for key, b in index.binders_in(Zone.ACTIVE) if b.classeur_folder_id == group_id
            ]
            _move_all([(Path(b.sys_path), self.paths.trash_path(key)) for key, b in members])

            now = utc_now()
            for key, binder in members:
                relocate_binder(binder, self.paths.trash_path(key))
                binder.app_path = self.paths.trash_app_path(binder.name)
                binder.zone = Zone.TRASHED
                binder.deleted_from = "mes"
                binder.deleted_at = now
                binder.trash_group_id = group_id
            trash_group = TrashGroup(
                id=group_id,
                kind="binder_group",
                name=group.name,
                deleted_from="mes",
                deleted_at=now,
                classeurs=[key for key, _ in members],
                group=group,
            )
            index.trash_groups[group_id] = trash_group
            del index.binder_groups[group_id]

        logger.info(f"Moved binder group {group_id} and {len(members)} binders to trash")
        self.store.journal("GROUP_TRASHED", group_id, {"kind": "binder_group", "binders": trash_group.classeurs})
        return trash_group

    def trash_archive_folder(self, folder_id: str) -> TrashGroup:
        """Trash an archive folder with its sub-folders and archived binders."""
        with self.store.mutation() as index:
            folder = self._archive_folder(index, folder_id)
            if folder is None:
                raise StoreValidationError("The archives root cannot be trashed")
            old_path = folder.sys_path
            target = self.paths.trash_path(folder_id)
            move_dir(Path(old_path), target)

            now = utc_now()
            subtree = _subtree_ids(index, folder_id)
            removed: dict[str, ArchiveFolder] = {}
            for fid in subtree:
                record = index.archive_folders.pop(fid)
                record.sys_path = replace_prefix(record.sys_path, old_path, str(target)) or record.sys_path
                removed[fid] = record

            members: list[str] = []
            for key, binder in index.binders_in(Zone.ARCHIVED):
                new_path = replace_prefix(binder.sys_path, old_path, str(target))
                if new_path is None:
                    continue
                relocate_binder(binder, new_path)
                binder.app_path = self.paths.trash_app_path(binder.name)
                binder.zone = Zone.TRASHED
                binder.archived = False
                binder.deleted_from = "archives"
                binder.deleted_at = now
                binder.trash_group_id = folder_id
                members.append(key)

            trash_group = TrashGroup(
                id=folder_id,
                kind="archive_folder",
                name=folder.name,
                deleted_from="archives",
                deleted_at=now,
                classeurs=members,
                sys_path=str(target),
                original_parent_id=folder.parent_id,
                folders=removed,
            )
            index.trash_groups[folder_id] = trash_group

        logger.info(f"Moved archive folder {folder_id} and {len(members)} binders to trash")
        self.store.journal("GROUP_TRASHED", folder_id, {"kind": "archive_folder", "binders": members})
        return trash_group

    def restore_group(self, group_key: str) -> TrashGroup:
        """Restore a trashed binder group or archive folder as a unit."""
        with self.store.mutation() as index:
            trash_group = index.trash_groups.get(group_key)
            if trash_group is None:
                raise NotFoundError(f"Trash group not found: {group_key}", context={"id": group_key})
            members = [
                (key, index.binders[key])
                for key in trash_group.classeurs
                if key in index.binders and index.binders[key].trash_group_id == group_key
            ]
            if trash_group.kind == "binder_group":
                self._restore_binder_group(index, trash_group, members)
            else:
                self._restore_archive_folder(index, trash_group, members)
            del index.trash_groups[group_key]

        logger.info(f"Restored {trash_group.kind} {group_key} with {len(members)} binders")
        self.store.journal("GROUP_RESTORED", group_key, {"kind": trash_group.kind})
        return trash_group

    def _restore_binder_group(
        self, index: Index, trash_group: TrashGroup, members: list[tuple[str, Binder]]
    ) -> None:
        _move_all(
            [(Path(b.sys_path), self.paths.binder_path(b.name)) for _key, b in members]
        )
        group = trash_group.group or BinderGroup(id=trash_group.id, name=trash_group.name)
        group.updated_at = utc_now()
        index.binder_groups[trash_group.id] = group
        for _key, binder in members:
            self._reinstate(
                binder, self.paths.binder_path(binder.name), self.paths.binder_app_path(binder.name)
            )
            binder.classeur_folder_id = trash_group.id

    def _restore_archive_folder(
        self, index: Index, trash_group: TrashGroup, members: list[tuple[str, Binder]]
    ) -> None:
        parent = index.archive_folders.get(trash_group.original_parent_id or "")
        target = self.paths.archive_folder_path(trash_group.name, parent)
        old_path = trash_group.sys_path or str(self.paths.trash_path(trash_group.id))
        move_dir(Path(old_path), target)

        for fid, record in trash_group.folders.items():
            record.sys_path = replace_prefix(record.sys_path, old_path, str(target)) or record.sys_path
            if fid == trash_group.id:
                record.parent_id = parent.id if parent else None
            record.updated_at = utc_now()
            index.archive_folders[fid] = record
        for _key, binder in members:
            new_path = replace_prefix(binder.sys_path, old_path, str(target))
            if new_path is not None:
                relocate_binder(binder, new_path)
            binder.zone = Zone.ARCHIVED
            binder.archived = True
            _clear_trash_fields(binder)
            binder.touch()
        if trash_group.id in index.archive_folders:
            self._refresh_app_paths(index, trash_group.id)

    def _purge_group_in(
        self, index: Index, key: str, trash_group: TrashGroup, strict: bool = False
    ) -> bool:
        members = [k for k in trash_group.classeurs if k in index.binders]
        try:
            if trash_group.sys_path:
                remove_tree(Path(trash_group.sys_path))
            for member in members:
                remove_tree(Path(index.binders[member].sys_path))
        except StoreFilesystemError as e:
            if strict:
                raise
            logger.warning(f"Keeping group {key} in trash: {e.message}")
            return False
        for member in members:
            del index.binders[member]
        del index.trash_groups[key]
        return True

    def purge_group(self, group_key: str) -> bool:
        """Permanently delete a trashed group and its binders."""
        with self.store.mutation() as index:
            trash_group = index.trash_groups.get(group_key)
            if trash_group is None:
                raise NotFoundError(f"Trash group not found: {group_key}", context={"id": group_key})
            self._purge_group_in(index, group_key, trash_group, strict=True)

        logger.info(f"Purged {trash_group.kind} {group_key}")
        self.store.journal("GROUP_PURGED", group_key, {"binders": trash_group.classeurs})
        return True

    # Archive folders

    def create_archive_folder(self, name: str, parent_id: Optional[str] = None) -> ArchiveFolder:
        require_name(name, "archive folder name")
        with self.store.mutation() as index:
            parent = self._archive_folder(index, parent_id)
            target = self.paths.archive_folder_path(name, parent)
            if target.exists():
                raise StoreFilesystemError(
                    f"Destination already exists: {target}", context={"path": str(target)}
                )
            make_dir(target)

            key = index.allocate("archiveFolders")
            folder = ArchiveFolder(
                id=key,
                name=name,
                sys_path=str(target),
                app_path=self.paths.archive_folder_app_path(name, parent),
                parent_id=parent.id if parent else None,
            )
            index.archive_folders[key] = folder

        logger.info(f"Created archive folder {key} ({name})")
        self.store.journal("ARCHIVE_FOLDER_CREATED", key, {"name": name, "parent": folder.parent_id})
        return folder

    def list_archive_folders(self) -> list[ArchiveFolder]:
        return list(self.store.snapshot().archive_folders.values())

    def rename_archive_folder(self, folder_id: str, new_name: str) -> ArchiveFolder:
        """Rename an archive folder; sub-folders and binders inside follow."""
        require_name(new_name, "archive folder name")
        with self.store.mutation() as index:
            folder = self._archive_folder(index, folder_id)
            if folder is None:
                raise StoreValidationError("The archives root cannot be renamed")
            if new_name == folder.name:
                return folder
            old_path = folder.sys_path
            new_path = Path(old_path).parent / new_name
            rename_dir(Path(old_path), new_path, what="archive folder")

            folder.name = new_name
            for fid in _subtree_ids(index, folder_id):
                record = index.archive_folders[fid]
                record.sys_path = replace_prefix(record.sys_path, old_path, str(new_path)) or record.sys_path
            for _key, binder in index.binders_in(Zone.ARCHIVED):
                moved = replace_prefix(binder.sys_path, old_path, str(new_path))
                if moved is not None:
                    relocate_binder(binder, moved)
            self._refresh_app_paths(index, folder_id)
            folder.updated_at = utc_now()

        self.store.journal("ARCHIVE_FOLDER_RENAMED", folder_id, {"name": new_name})
        return folder

    def delete_archive_folder(self, folder_id: str) -> bool:
        """Delete an archive folder directory and its record.

        Only direct child folder records are removed with it. Archived
        binders whose directories were inside are dropped from the index.
        """
        with self.store.mutation() as index:
            folder = self._archive_folder(index, folder_id)
            if folder is None:
                raise StoreValidationError("The archives root cannot be deleted")
            remove_tree(Path(folder.sys_path))

            del index.archive_folders[folder_id]
            for key in [k for k, f in index.archive_folders.items() if f.parent_id == folder_id]:
                del index.archive_folders[key]
            dropped = [
                key
                for key, binder in index.binders_in(Zone.ARCHIVED)
                if is_under(binder.sys_path, folder.sys_path)
            ]
            for key in dropped:
                del index.binders[key]

        logger.info(f"Deleted archive folder {folder_id} ({folder.name}), dropped {len(dropped)} binders")
        self.store.journal("ARCHIVE_FOLDER_DELETED", folder_id, {"name": folder.name, "binders": dropped})
        return True
