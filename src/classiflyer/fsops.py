"""Filesystem primitives used by the hierarchy engine and lifecycle.

Every helper either completes or raises ``StoreFilesystemError``; none of
them touches the index. Destinations are checked explicitly because a POSIX
rename silently replaces an empty directory.
"""

from __future__ import annotations

import errno
import logging
import mimetypes
import shutil
from pathlib import Path

from .errors import RenameFailedError, StoreFilesystemError

logger = logging.getLogger(__name__)


def make_dir(path: Path) -> Path:
    """Recursive, idempotent mkdir."""
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StoreFilesystemError(
            f"Cannot create directory {path}: {exc}", context={"path": str(path)}
        ) from exc
    return path


def move_dir(src: Path, dst: Path) -> Path:
    """Move a directory to ``dst``; fails if ``dst`` already exists.

    Falls back to ``shutil.move`` for cross-device moves.
    """
    if not src.is_dir():
        raise StoreFilesystemError(
            f"Source directory not found: {src}", context={"src": str(src), "dst": str(dst)}
        )
    if src == dst:
        return dst
    if dst.exists():
        raise StoreFilesystemError(
            f"Destination already exists: {dst}", context={"src": str(src), "dst": str(dst)}
        )

    make_dir(dst.parent)
    try:
        src.rename(dst)
    except OSError as exc:
        if getattr(exc, "errno", None) != errno.EXDEV:
            raise StoreFilesystemError(
                f"Move failed {src} -> {dst}: {exc}",
                context={"src": str(src), "dst": str(dst)},
            ) from exc
        try:
            shutil.move(str(src), str(dst))
        except OSError as move_exc:
            raise StoreFilesystemError(
                f"Move failed {src} -> {dst}: {move_exc}",
                context={"src": str(src), "dst": str(dst)},
            ) from move_exc
    logger.debug(f"Moved {src} -> {dst}")
    return dst


def rename_dir(src: Path, dst: Path, *, what: str = "directory") -> Path:
    """Single rename of a managed directory; any failure is a RenameFailedError."""
    try:
        return move_dir(src, dst)
    except StoreFilesystemError as exc:
        raise RenameFailedError(
            f"Failed to rename {what}: {exc.message}", context=exc.context
        ) from exc


def remove_tree(path: Path) -> None:
    """Recursive delete. A missing path is not an error."""
    if not path.exists():
        return
    try:
        if path.is_dir():
            shutil.rmtree(path)
        else:
            path.unlink()
    except OSError as exc:
        raise StoreFilesystemError(
            f"Cannot remove {path}: {exc}", context={"path": str(path)}
        ) from exc
    logger.debug(f"Removed {path}")


def copy_tree(src: Path, dst: Path) -> Path:
    """Recursive copy of an external directory into a managed location."""
    if not src.is_dir():
        raise StoreFilesystemError(f"Source directory not found: {src}", context={"src": str(src)})
    if dst.exists():
        raise StoreFilesystemError(f"Destination already exists: {dst}", context={"dst": str(dst)})
    try:
        shutil.copytree(src, dst)
    except (OSError, shutil.Error) as exc:
        raise StoreFilesystemError(
            f"Copy failed {src} -> {dst}: {exc}", context={"src": str(src), "dst": str(dst)}
        ) from exc
    return dst


def copy_file(src: Path, dst_dir: Path) -> Path:
    """Copy (never move) a user file into ``dst_dir``, keeping its name."""
    if not src.is_file():
        raise StoreFilesystemError(f"Source file not found: {src}", context={"src": str(src)})
    dst = dst_dir / src.name
    if dst.exists() and not dst.is_file():
        raise StoreFilesystemError(
            f"Destination exists and is not a file: {dst}", context={"src": str(src), "dst": str(dst)}
        )
    try:
        make_dir(dst_dir)
        shutil.copy2(src, dst)
    except OSError as exc:
        raise StoreFilesystemError(
            f"Copy failed {src} -> {dst}: {exc}", context={"src": str(src), "dst": str(dst)}
        ) from exc
    return dst


def guess_mime(name: str) -> str | None:
    mime, _ = mimetypes.guess_type(name)
    return mime


def read_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise StoreFilesystemError(
            f"Cannot read file: {exc}", context={"path": str(path)}
        ) from exc
