"""Error taxonomy for the Classiflyer store."""

from typing import Any, Optional


class ClassiflyerError(Exception):
    """Base error carrying a human-readable message and an error kind.

    The kind lets callers at the boundary tell validation, not-found,
    filesystem and fatal failures apart without parsing messages.
    """

    kind = "error"

    def __init__(self, message: str, *, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = dict(context or {})

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message, "context": self.context}


class StoreValidationError(ClassiflyerError):
    """Missing or invalid input, rejected before any I/O."""

    kind = "validation"


class NotFoundError(ClassiflyerError):
    """Unknown binder, folder, file, archive folder or group id."""

    kind = "not_found"


class StoreFilesystemError(ClassiflyerError):
    """A filesystem call failed (permission, collision, disk full...)."""

    kind = "filesystem"


class RenameFailedError(StoreFilesystemError):
    """Renaming a binder, folder or archive folder directory failed."""

    kind = "rename_failed"


class CorruptIndexError(ClassiflyerError):
    """The index file is missing or cannot be parsed."""

    kind = "fatal"


class ConfigError(ClassiflyerError):
    """Invalid root configuration."""

    kind = "config"
