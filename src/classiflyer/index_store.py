"""Persistence of the index document (db.json).

``IndexStore`` is the only reader and writer of ``db.json``. Every load runs
the migration chain and orphan reconciliation and writes the corrected
document back when either changed something.
"""

from __future__ import annotations

import json
import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from pydantic import ValidationError

from .errors import CorruptIndexError
from .fsops import make_dir
from .ledger import LedgerWriter
from .migrations import apply_migrations
from .models import Index
from .models.ledger import EventType
from .paths import StorePaths
from .reconcile import rebase_root, reconcile_orphans

logger = logging.getLogger(__name__)


class IndexStore:
    """Load/save cycle of the index, serialized by a single-writer lock."""

    def __init__(self, paths: StorePaths, ledger: Optional[LedgerWriter] = None):
        self.paths = paths
        self.ledger = ledger
        self._lock = threading.Lock()

    def bootstrap(self) -> bool:
        """Create the root layout and an empty index if none exists yet.

        Returns:
            True if a new db.json was written
        """
        for directory in self.paths.get_all_directories():
            make_dir(directory)
        if self.paths.db_file.exists():
            return False
        self._write(Index.empty(str(self.paths.root)).to_document())
        logger.info(f"Initialized index at {self.paths.db_file}")
        return True

    def _read_raw(self) -> Any:
        db_file = self.paths.db_file
        if not db_file.exists():
            raise CorruptIndexError(
                f"Index file not found: {db_file} (run init first)",
                context={"path": str(db_file)},
            )
        try:
            with open(db_file, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise CorruptIndexError(
                f"Cannot parse index file {db_file}: {e}", context={"path": str(db_file)}
            ) from e

    def load(self) -> Index:
        """Read, migrate and reconcile the index; persist it if it was healed."""
        raw = self._read_raw()
        doc = apply_migrations(raw, root_path=str(self.paths.root))
        try:
            index = Index.from_document(doc)
        except ValidationError as e:
            raise CorruptIndexError(
                f"Index file {self.paths.db_file} has invalid records: {e}",
                context={"path": str(self.paths.db_file)},
            ) from e

        old_root = index.settings.root_path
        rebased = rebase_root(index, self.paths.root)
        healed = reconcile_orphans(index, self.paths)
        healed_doc = index.to_document()
        if healed_doc != raw:
            logger.info(f"Index at {self.paths.db_file} was migrated or healed, saving")
            self._write(healed_doc)
            if healed or rebased:
                payload: dict[str, Any] = {"binders": healed}
                if rebased:
                    payload["rebased_from"] = old_root
                self.journal("INDEX_HEALED", None, payload)
        return index

    def save(self, index: Index) -> None:
        self._write(index.to_document())

    def _write(self, doc: dict[str, Any]) -> None:
        """Atomic write: temp file then replace."""
        db_file = self.paths.db_file
        temp_file = db_file.with_suffix(".json.tmp")
        try:
            make_dir(db_file.parent)
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(doc, f, indent=2, ensure_ascii=False)
            temp_file.replace(db_file)
        except OSError as e:
            raise CorruptIndexError(
                f"Cannot write index file {db_file}: {e}", context={"path": str(db_file)}
            ) from e
        logger.debug(f"Saved index to {db_file}")

    @contextmanager
    def mutation(self) -> Iterator[Index]:
        """Load-mutate-save under the writer lock.

        The index is saved only if the block exits normally.
        """
        with self._lock:
            index = self.load()
            yield index
            self.save(index)

    def snapshot(self) -> Index:
        """Lock-protected load for read-only queries."""
        with self._lock:
            return self.load()

    def journal(self, event_type: EventType, entity_id: Optional[str], payload: dict) -> None:
        """Record a completed mutation. Failures are logged, never raised."""
        if self.ledger is None:
            return
        try:
            self.ledger.append_event(event_type, payload, entity_id=entity_id)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to append {event_type} to journal: {e}")
