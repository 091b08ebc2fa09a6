"""Path management and on-disk layout for a Classiflyer root."""

from pathlib import Path
from typing import Optional

from .config import ClassiflyerConfig
from .models import ArchiveFolder

ACTIVE_APP_ROOT = "/mes_classeurs"
ARCHIVE_APP_ROOT = "/archives"
TRASH_APP_ROOT = "/corbeille"


class StorePaths:
    """Computes canonical locations inside a Classiflyer root.

    Pure: nothing here touches the filesystem except ``get_all_directories``
    callers that choose to create them. Child locations are always derived
    from the parent's ``sys_path`` so a parent move only rewrites prefixes.
    """

    def __init__(self, root: Path):
        """Initialize store paths from root directory.

        Args:
            root: Root directory holding the index and managed directories
        """
        self.root = root

        # Standard subdirectories
        self.classeurs = root / "classeurs"
        self.archives = root / "archives"
        self.corbeille = root / "corbeille"
        self.uploads = root / "uploads"

        # Files
        self.db_file = root / "db.json"
        self.journal_file = root / "journal.jsonl"

    @classmethod
    def from_config(cls, config: ClassiflyerConfig) -> "StorePaths":
        """Create StorePaths from a ClassiflyerConfig."""
        return cls(config.root_path)

    def get_all_directories(self) -> list[Path]:
        """Get list of all directories that must exist before any operation."""
        return [
            self.root,
            self.classeurs,
            self.archives,
            self.corbeille,
            self.uploads,
        ]

    def binder_path(self, name: str) -> Path:
        """Directory of an active binder."""
        return self.classeurs / name

    def archived_binder_path(self, name: str, archive_folder: Optional[ArchiveFolder] = None) -> Path:
        """Directory of an archived binder, inside its archive folder if any."""
        if archive_folder is not None:
            return Path(archive_folder.sys_path) / name
        return self.archives / name

    def archive_folder_path(self, name: str, parent: Optional[ArchiveFolder] = None) -> Path:
        if parent is not None:
            return Path(parent.sys_path) / name
        return self.archives / name

    def trash_path(self, key: str) -> Path:
        """Trash location, keyed by entity key so equal names never collide."""
        return self.corbeille / key

    @staticmethod
    def child_path(parent_sys_path: str, name: str) -> Path:
        return Path(parent_sys_path) / name

    @staticmethod
    def binder_app_path(name: str) -> str:
        return f"{ACTIVE_APP_ROOT}/{name}"

    @staticmethod
    def archived_app_path(name: str, archive_folder: Optional[ArchiveFolder] = None) -> str:
        if archive_folder is not None:
            return f"{archive_folder.app_path}/{name}"
        return f"{ARCHIVE_APP_ROOT}/{name}"

    @staticmethod
    def archive_folder_app_path(name: str, parent: Optional[ArchiveFolder] = None) -> str:
        if parent is not None:
            return f"{parent.app_path}/{name}"
        return f"{ARCHIVE_APP_ROOT}/{name}"

    @staticmethod
    def trash_app_path(name: str) -> str:
        return f"{TRASH_APP_ROOT}/{name}"
