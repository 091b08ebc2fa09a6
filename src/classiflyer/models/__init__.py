"""Pydantic models for Classiflyer."""

from .archive import ArchiveFolder, BinderGroup, TrashGroup
from .hierarchy import (
    DEFAULT_PRIMARY_COLOR,
    DEFAULT_SECONDARY_COLOR,
    DEFAULT_TERTIARY_COLOR,
    Binder,
    FileRef,
    Folder,
    TrashOrigin,
    Zone,
    record_dict,
    utc_now,
)
from .index import SCHEMA_VERSION, Index, IndexSettings, NextId
from .ledger import LedgerEvent

__all__ = [
    # Hierarchy
    "Zone",
    "TrashOrigin",
    "FileRef",
    "Folder",
    "Binder",
    "DEFAULT_PRIMARY_COLOR",
    "DEFAULT_SECONDARY_COLOR",
    "DEFAULT_TERTIARY_COLOR",
    "record_dict",
    "utc_now",
    # Archive tree and trash
    "ArchiveFolder",
    "BinderGroup",
    "TrashGroup",
    # Index
    "SCHEMA_VERSION",
    "Index",
    "IndexSettings",
    "NextId",
    # Journal
    "LedgerEvent",
]
