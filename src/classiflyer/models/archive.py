"""Pydantic models for archive folders, binder groups and trash groups."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from .hierarchy import TrashOrigin, utc_now


class ArchiveFolder(BaseModel):
    """Organizational folder for archived binders.

    Stored as a flat table; ``parent_id`` links the entries into a tree.
    Each archive folder owns a real directory under ``archives/``.
    """

    id: str
    name: str
    sys_path: str
    app_path: str
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    updated_at: datetime = Field(default_factory=utc_now, alias="updatedAt")

    model_config = {"populate_by_name": True, "extra": "allow"}


class BinderGroup(BaseModel):
    """Logical grouping of active binders (a "classeur folder").

    Groups have no directory: member binders stay under ``classeurs/``.
    """

    id: str
    name: str
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    updated_at: datetime = Field(default_factory=utc_now, alias="updatedAt")

    model_config = {"populate_by_name": True, "extra": "allow"}


class TrashGroup(BaseModel):
    """A binder group or an archive folder sent to the trash as one unit."""

    id: str
    type: Literal["classeur_folder"] = Field(default="classeur_folder")
    kind: Literal["binder_group", "archive_folder"]
    name: str
    deleted_from: TrashOrigin = Field(alias="deletedFrom")
    deleted_at: datetime = Field(default_factory=utc_now, alias="deletedAt")
    classeurs: list[str] = Field(default_factory=list, description="Member binder keys")
    sys_path: Optional[str] = Field(
        default=None, description="Trash location of an archive folder directory"
    )
    original_parent_id: Optional[str] = Field(default=None, alias="originalParentId")
    folders: dict[str, ArchiveFolder] = Field(
        default_factory=dict, description="Archive folder records removed with the group"
    )
    group: Optional[BinderGroup] = Field(default=None)

    model_config = {"populate_by_name": True, "extra": "allow"}
