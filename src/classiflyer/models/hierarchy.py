"""Pydantic models for binders, folders and file references."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

DEFAULT_PRIMARY_COLOR = "#0ea5e9"
DEFAULT_SECONDARY_COLOR = "#38bdf8"
DEFAULT_TERTIARY_COLOR = "#0b1220"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Zone(str, Enum):
    """Mutually exclusive lifecycle zone of a binder."""

    ACTIVE = "active"
    ARCHIVED = "archived"
    TRASHED = "trashed"


TrashOrigin = Literal["mes", "archives"]


class FileRef(BaseModel):
    """A file stored inside a binder or folder directory."""

    name: str = Field(description="File name on disk")
    sys_path: str = Field(description="Absolute path of the file")
    mime: Optional[str] = Field(default=None, description="MIME type if known")
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")

    model_config = {"populate_by_name": True, "extra": "allow"}


class Folder(BaseModel):
    """A folder nested inside a binder, arbitrarily deep.

    Invariant: ``sys_path`` is always ``parent.sys_path / name``.
    """

    name: str
    sys_path: str
    folders: dict[str, "Folder"] = Field(default_factory=dict)
    files: dict[str, FileRef] = Field(default_factory=dict)
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    model_config = {"populate_by_name": True, "extra": "allow"}


Folder.model_rebuild()


class Binder(BaseModel):
    """A binder (classeur): top-level unit mapped 1:1 to a managed directory.

    ``sys_path`` always reflects the current physical location; it is
    rewritten together with the whole subtree on every move or rename.
    """

    name: str
    sys_path: str
    app_path: str
    primary_color: str = Field(default=DEFAULT_PRIMARY_COLOR, alias="primaryColor")
    secondary_color: str = Field(default=DEFAULT_SECONDARY_COLOR, alias="secondaryColor")
    tertiary_color: str = Field(default=DEFAULT_TERTIARY_COLOR, alias="tertiaryColor")
    folders: dict[str, Folder] = Field(default_factory=dict)
    files: dict[str, FileRef] = Field(default_factory=dict)

    zone: Zone = Field(default=Zone.ACTIVE)
    archived: bool = Field(default=False)
    archive_folder_id: Optional[str] = Field(default=None, alias="archiveFolderId")
    classeur_folder_id: Optional[str] = Field(default=None, alias="classeurFolderId")

    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    updated_at: datetime = Field(default_factory=utc_now, alias="updatedAt")
    archived_at: Optional[datetime] = Field(default=None, alias="archivedAt")

    deleted_from: Optional[TrashOrigin] = Field(default=None, alias="deletedFrom")
    deleted_at: Optional[datetime] = Field(default=None, alias="deletedAt")
    trash_group_id: Optional[str] = Field(default=None, alias="trashGroupId")

    model_config = {"populate_by_name": True, "extra": "allow"}

    def touch(self) -> None:
        self.updated_at = utc_now()

    def set_colors(
        self,
        primary: Optional[str] = None,
        secondary: Optional[str] = None,
        tertiary: Optional[str] = None,
    ) -> None:
        if primary:
            self.primary_color = primary
        if secondary:
            self.secondary_color = secondary
        if tertiary:
            self.tertiary_color = tertiary


def record_dict(key: str, record: BaseModel) -> dict[str, Any]:
    """Plain-data view of a record, as handed to the UI layer."""
    data = record.model_dump(mode="json", by_alias=True)
    data["id"] = key
    return data
