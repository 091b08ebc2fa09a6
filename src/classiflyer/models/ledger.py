"""Pydantic models for journal events."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

EventType = Literal[
    "BINDER_CREATED",
    "BINDER_UPDATED",
    "BINDER_DELETED",
    "FOLDER_CREATED",
    "FOLDER_RENAMED",
    "FOLDER_DELETED",
    "FILES_UPLOADED",
    "BINDER_ARCHIVED",
    "BINDER_UNARCHIVED",
    "BINDER_MOVED",
    "BINDER_TRASHED",
    "BINDER_RESTORED",
    "BINDER_PURGED",
    "GROUP_TRASHED",
    "GROUP_RESTORED",
    "GROUP_PURGED",
    "ARCHIVE_FOLDER_CREATED",
    "ARCHIVE_FOLDER_RENAMED",
    "ARCHIVE_FOLDER_DELETED",
    "BINDER_GROUP_CREATED",
    "BINDER_GROUP_RENAMED",
    "INDEX_HEALED",
]


class LedgerEvent(BaseModel):
    """Append-only journal record.

    Written as JSONL to <root>/journal.jsonl after the index save succeeded.
    Never mutate or delete; only append.
    """

    event_id: str = Field(description="Unique event identifier (uuid4)")
    run_id: str = Field(description="Run/session identifier (uuid4)")
    ts: datetime = Field(description="Event timestamp (ISO8601 UTC)")
    event_type: EventType = Field(description="Event type")
    entity_id: str | None = Field(default=None, description="Binder, folder or group key")
    payload: dict = Field(default_factory=dict, description="Event-specific data")

    model_config = {"frozen": True}
