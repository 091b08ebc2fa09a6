"""Async request/response facade over the store.

Each coroutine takes plain data, runs the synchronous operation in a worker
thread and returns plain dicts/lists/booleans ready for a UI layer. Errors
propagate as ``ClassiflyerError`` subclasses.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, TypeVar

from .config import ClassiflyerConfig
from .errors import ConfigError
from .hierarchy import HierarchyEngine, UploadSource
from .index_store import IndexStore
from .ledger import LedgerWriter
from .lifecycle import LifecycleCoordinator
from .models import record_dict
from .paths import StorePaths

logger = logging.getLogger(__name__)

T = TypeVar("T")

PREVIEW_IMAGE_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".avif": "image/avif",
    ".bmp": "image/bmp",
    ".svg": "image/svg+xml",
}


def build_store(config: ClassiflyerConfig) -> IndexStore:
    """Wire paths, journal and index store for a configured root."""
    paths = StorePaths.from_config(config)
    ledger = LedgerWriter(paths.journal_file) if config.journal_enabled else None
    return IndexStore(paths, ledger=ledger)


class ClassiflyerService:
    """One store root exposed as coroutines."""

    def __init__(self, config: Optional[ClassiflyerConfig] = None):
        self.config = config or ClassiflyerConfig.from_env()
        self._bind(build_store(self.config))

    def _bind(self, store: IndexStore) -> None:
        self.store = store
        self.engine = HierarchyEngine(store)
        self.lifecycle = LifecycleCoordinator(store)

    async def _run(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        return await asyncio.to_thread(fn, *args, **kwargs)

    # Root configuration

    async def bootstrap(self) -> bool:
        return await self._run(self.store.bootstrap)

    async def get_root(self) -> dict[str, Any]:
        return {"rootPath": str(self.store.paths.root)}

    async def set_root(self, root_path: str) -> dict[str, Any]:
        """Switch to another root: bootstrap it, persist it, then rebind."""

        def _switch() -> IndexStore:
            if root_path is None or not str(root_path).strip():
                raise ConfigError("Invalid path: the root directory cannot be empty")
            new_root = Path(str(root_path).strip()).expanduser().resolve()
            candidate = self.config.model_copy(update={"root_path": new_root})
            store = build_store(candidate)
            store.bootstrap()
            self.config.config_store().set_root(new_root)
            self.config = candidate
            return store

        self._bind(await self._run(_switch))
        logger.info(f"Service now bound to {self.store.paths.root}")
        return await self.get_root()

    # Binders

    async def list_binders(self) -> list[dict[str, Any]]:
        binders = await self._run(self.engine.list_binders)
        return [record_dict(key, b) for key, b in binders]

    async def get_binder(self, binder_id: str) -> dict[str, Any]:
        binder = await self._run(self.engine.get_binder, binder_id)
        return record_dict(binder_id, binder)

    async def create_binder(self, payload: dict[str, Any]) -> dict[str, Any]:
        key, binder = await self._run(
            self.engine.create_binder,
            payload.get("name"),
            payload.get("primaryColor"),
            payload.get("secondaryColor"),
            payload.get("tertiaryColor"),
        )
        return record_dict(key, binder)

    async def create_binder_from_folder(self, payload: dict[str, Any]) -> dict[str, Any]:
        key, binder = await self._run(
            self.engine.create_binder_from_folder,
            payload.get("sourcePath") or "",
            payload.get("name"),
            payload.get("primaryColor"),
            payload.get("secondaryColor"),
            payload.get("tertiaryColor"),
        )
        return record_dict(key, binder)

    async def update_binder(self, binder_id: str, updates: dict[str, Any]) -> dict[str, Any]:
        binder = await self._run(
            self.engine.update_binder,
            binder_id,
            updates.get("name"),
            updates.get("primaryColor"),
            updates.get("secondaryColor"),
            updates.get("tertiaryColor"),
        )
        return record_dict(binder_id, binder)

    async def delete_binder(self, binder_id: str) -> bool:
        return await self._run(self.engine.delete_binder, binder_id)

    # Folders and files

    async def create_folder(
        self, binder_id: str, name: str, parent_folder_id: Optional[str] = None
    ) -> dict[str, Any]:
        key, folder = await self._run(self.engine.create_folder, binder_id, name, parent_folder_id)
        return record_dict(key, folder)

    async def rename_folder(self, binder_id: str, folder_id: str, name: str) -> dict[str, Any]:
        folder = await self._run(self.engine.rename_folder, binder_id, folder_id, name)
        return record_dict(folder_id, folder)

    async def delete_folder(self, binder_id: str, folder_id: str) -> bool:
        return await self._run(self.engine.delete_folder, binder_id, folder_id)

    async def upload_files(
        self,
        binder_id: str,
        target_folder_id: Optional[str],
        files: Iterable[UploadSource],
    ) -> list[dict[str, Any]]:
        saved = await self._run(self.engine.upload_files, binder_id, list(files), target_folder_id)
        return [record_dict(key, ref) for key, ref in saved]

    async def read_file_bytes(self, binder_id: str, file_id: str) -> bytes:
        _ref, data = await self._run(self.engine.read_file_bytes, binder_id, file_id)
        return data

    async def file_to_data_url(self, binder_id: str, file_id: str) -> str:
        """A ``data:`` URL for previews; non-image files use a generic type."""
        ref, data = await self._run(self.engine.read_file_bytes, binder_id, file_id)
        mime = PREVIEW_IMAGE_TYPES.get(Path(ref.name).suffix.lower(), "application/octet-stream")
        return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"

    # Binder groups

    async def list_binder_groups(self) -> list[dict[str, Any]]:
        groups = await self._run(self.engine.list_binder_groups)
        result = []
        for group, members in groups:
            data = record_dict(group.id, group)
            data["classeurs"] = members
            result.append(data)
        return result

    async def create_binder_group(self, name: str) -> dict[str, Any]:
        group = await self._run(self.engine.create_binder_group, name)
        return record_dict(group.id, group)

    async def rename_binder_group(self, group_id: str, name: str) -> dict[str, Any]:
        group = await self._run(self.engine.rename_binder_group, group_id, name)
        return record_dict(group.id, group)

    async def move_binder_to_group(self, binder_id: str, group_id: Optional[str]) -> dict[str, Any]:
        binder = await self._run(self.engine.move_binder_to_group, binder_id, group_id)
        return record_dict(binder_id, binder)

    # Archives

    async def archive(self, binder_id: str, archive_folder_id: Optional[str] = None) -> dict[str, Any]:
        binder = await self._run(self.lifecycle.archive, binder_id, archive_folder_id)
        return record_dict(binder_id, binder)

    async def unarchive(self, binder_id: str) -> dict[str, Any]:
        binder = await self._run(self.lifecycle.unarchive, binder_id)
        return record_dict(binder_id, binder)

    async def move_to_archive_folder(
        self, binder_id: str, target_folder_id: Optional[str] = None
    ) -> dict[str, Any]:
        binder = await self._run(self.lifecycle.move_to_archive_folder, binder_id, target_folder_id)
        return record_dict(binder_id, binder)

    async def list_archives(self, folder_id: Optional[str] = None) -> list[dict[str, Any]]:
        binders = await self._run(self.lifecycle.list_archives, folder_id)
        return [record_dict(key, b) for key, b in binders]

    async def list_archive_folders(self) -> list[dict[str, Any]]:
        folders = await self._run(self.lifecycle.list_archive_folders)
        return [record_dict(f.id, f) for f in folders]

    async def create_archive_folder(self, name: str, parent_id: Optional[str] = None) -> dict[str, Any]:
        folder = await self._run(self.lifecycle.create_archive_folder, name, parent_id)
        return record_dict(folder.id, folder)

    async def rename_archive_folder(self, folder_id: str, name: str) -> dict[str, Any]:
        folder = await self._run(self.lifecycle.rename_archive_folder, folder_id, name)
        return record_dict(folder.id, folder)

    async def delete_archive_folder(self, folder_id: str) -> bool:
        return await self._run(self.lifecycle.delete_archive_folder, folder_id)

    # Trash

    async def trash(self, binder_id: str, origin: str) -> dict[str, Any]:
        binder = await self._run(self.lifecycle.trash, binder_id, origin)
        return record_dict(binder_id, binder)

    async def restore(self, binder_id: str) -> dict[str, Any]:
        binder = await self._run(self.lifecycle.restore, binder_id)
        return record_dict(binder_id, binder)

    async def purge_one(self, binder_id: str) -> bool:
        return await self._run(self.lifecycle.purge_one, binder_id)

    async def purge_all(self) -> int:
        return await self._run(self.lifecycle.purge_all)

    async def trash_binder_group(self, group_id: str) -> dict[str, Any]:
        group = await self._run(self.lifecycle.trash_binder_group, group_id)
        return record_dict(group.id, group)

    async def trash_archive_folder(self, folder_id: str) -> dict[str, Any]:
        group = await self._run(self.lifecycle.trash_archive_folder, folder_id)
        return record_dict(group.id, group)

    async def restore_group(self, group_key: str) -> dict[str, Any]:
        group = await self._run(self.lifecycle.restore_group, group_key)
        return record_dict(group.id, group)

    async def purge_group(self, group_key: str) -> bool:
        return await self._run(self.lifecycle.purge_group, group_key)

    async def list_trash(self) -> list[dict[str, Any]]:
        """Trashed binders followed by trashed groups."""
        binders, groups = await self._run(self.lifecycle.list_trash)
        return [record_dict(key, b) for key, b in binders] + [
            record_dict(g.id, g) for g in groups
        ]
