"""In-memory index model and its persisted projection."""

from typing import Any, Iterator

from pydantic import BaseModel, Field

from .archive import ArchiveFolder, BinderGroup, TrashGroup
from .hierarchy import Binder, Zone

SCHEMA_VERSION = 2

# counter name -> key prefix
KEY_PREFIXES = {
    "classeurs": "classeur_",
    "dossiers": "dossier_",
    "fichiers": "file_",
    "archiveFolders": "archive_folder_",
    "classeurFolders": "classeur_folder_",
}


class NextId(BaseModel):
    """Per-kind monotonic counters. Never decremented, never reused."""

    classeurs: int = 1
    dossiers: int = 1
    fichiers: int = 1
    archive_folders: int = Field(default=1, alias="archiveFolders")
    classeur_folders: int = Field(default=1, alias="classeurFolders")

    model_config = {"populate_by_name": True, "extra": "allow"}


class IndexSettings(BaseModel):
    root_path: str = Field(alias="rootPath")

    model_config = {"populate_by_name": True, "extra": "allow"}


class Index(BaseModel):
    """Authoritative logical state of the hierarchy.

    All binders sit in one table tagged with their zone. The legacy
    ``mes_classeurs`` / ``archives.classeurs`` / ``corbeille`` mappings only
    exist in the persisted document (see ``to_document``).
    """

    schema_version: int = Field(default=SCHEMA_VERSION)
    settings: IndexSettings
    next_id: NextId = Field(default_factory=NextId)
    binders: dict[str, Binder] = Field(default_factory=dict)
    archive_folders: dict[str, ArchiveFolder] = Field(default_factory=dict)
    binder_groups: dict[str, BinderGroup] = Field(default_factory=dict)
    trash_groups: dict[str, TrashGroup] = Field(default_factory=dict)

    @classmethod
    def empty(cls, root_path: str) -> "Index":
        return cls(settings=IndexSettings(root_path=root_path))

    def allocate(self, counter: str) -> str:
        """Return the next key for ``counter`` and advance it (post-increment)."""
        field_name = {
            "archiveFolders": "archive_folders",
            "classeurFolders": "classeur_folders",
        }.get(counter, counter)
        current = getattr(self.next_id, field_name)
        setattr(self.next_id, field_name, current + 1)
        return f"{KEY_PREFIXES[counter]}{current}"

    def binders_in(self, zone: Zone) -> Iterator[tuple[str, Binder]]:
        for key, binder in self.binders.items():
            if binder.zone == zone:
                yield key, binder

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "Index":
        """Fold a migrated persisted document into the in-memory model."""
        binders: dict[str, Binder] = {}
        for key, raw in (doc.get("mes_classeurs") or {}).items():
            binder = Binder.model_validate(raw)
            binder.zone = Zone.ACTIVE
            binder.archived = False
            binders[key] = binder
        for key, raw in ((doc.get("archives") or {}).get("classeurs") or {}).items():
            binder = Binder.model_validate(raw)
            binder.zone = Zone.ARCHIVED
            binder.archived = True
            binders[key] = binder

        trash_groups: dict[str, TrashGroup] = {}
        for key, raw in (doc.get("corbeille") or {}).items():
            if isinstance(raw, dict) and raw.get("type") == "classeur_folder":
                trash_groups[key] = TrashGroup.model_validate(raw)
                continue
            binder = Binder.model_validate(raw)
            binder.zone = Zone.TRASHED
            binders[key] = binder

        return cls(
            schema_version=int(doc.get("schemaVersion", SCHEMA_VERSION)),
            settings=IndexSettings.model_validate(doc.get("settings") or {}),
            next_id=NextId.model_validate(doc.get("nextId") or {}),
            binders=binders,
            archive_folders={
                key: ArchiveFolder.model_validate(raw)
                for key, raw in ((doc.get("archives") or {}).get("folders") or {}).items()
            },
            binder_groups={
                key: BinderGroup.model_validate(raw)
                for key, raw in (doc.get("classeur_folders") or {}).items()
            },
            trash_groups=trash_groups,
        )

    def to_document(self) -> dict[str, Any]:
        """Project the index into the persisted JSON shape."""
        mes: dict[str, Any] = {}
        archived: dict[str, Any] = {}
        corbeille: dict[str, Any] = {}
        for key, binder in self.binders.items():
            binder.archived = binder.zone == Zone.ARCHIVED
            data = binder.model_dump(mode="json", by_alias=True)
            if binder.zone == Zone.ACTIVE:
                mes[key] = data
            elif binder.zone == Zone.ARCHIVED:
                archived[key] = data
            else:
                corbeille[key] = data
        for key, group in self.trash_groups.items():
            corbeille[key] = group.model_dump(mode="json", by_alias=True)

        return {
            "schemaVersion": self.schema_version,
            "settings": self.settings.model_dump(mode="json", by_alias=True),
            "nextId": self.next_id.model_dump(mode="json", by_alias=True),
            "mes_classeurs": mes,
            "archives": {
                "folders": {
                    key: folder.model_dump(mode="json", by_alias=True)
                    for key, folder in self.archive_folders.items()
                },
                "classeurs": archived,
            },
            "classeur_folders": {
                key: group.model_dump(mode="json", by_alias=True)
                for key, group in self.binder_groups.items()
            },
            "corbeille": corbeille,
        }
