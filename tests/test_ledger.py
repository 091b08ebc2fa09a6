"""Tests for the mutation journal."""

import json
from datetime import datetime

import pytest

from classiflyer.errors import StoreFilesystemError
from classiflyer.index_store import IndexStore
from classiflyer.hierarchy import HierarchyEngine
from classiflyer.ledger import LedgerWriter, read_ledger_tail


def test_journal_append_creates_file(temp_root):
    """Appending to the journal creates the file if it doesn't exist."""
    journal_path = temp_root / "journal.jsonl"
    assert not journal_path.exists()

    writer = LedgerWriter(journal_path)
    event = writer.append_event(
        event_type="BINDER_CREATED",
        payload={"name": "Invoices"},
        entity_id="classeur_1",
    )

    assert journal_path.exists()
    assert event.event_id
    assert event.run_id
    assert event.event_type == "BINDER_CREATED"
    assert event.entity_id == "classeur_1"
    assert event.payload == {"name": "Invoices"}


def test_journal_events_share_run_id(store_paths):
    writer = LedgerWriter(store_paths.journal_file)

    events = [writer.append_event(event_type="FOLDER_CREATED", payload={"index": i}) for i in range(3)]

    assert len({e.run_id for e in events}) == 1
    assert len({e.event_id for e in events}) == 3
    lines = store_paths.journal_file.read_text(encoding="utf-8").strip().split("\n")
    assert len(lines) == 3
    for line in lines:
        data = json.loads(line)
        assert {"event_id", "run_id", "ts", "event_type", "entity_id", "payload"} <= set(data)


def test_journal_tail_reads_last_n(store_paths):
    writer = LedgerWriter(store_paths.journal_file)
    for i in range(10):
        writer.append_event(event_type="BINDER_UPDATED", payload={"index": i})

    events = read_ledger_tail(store_paths.journal_file, n=5)

    assert [e.payload["index"] for e in events] == [5, 6, 7, 8, 9]


def test_journal_tail_filters_by_type(store_paths):
    writer = LedgerWriter(store_paths.journal_file)
    for i in range(6):
        event_type = "BINDER_ARCHIVED" if i % 2 else "BINDER_CREATED"
        writer.append_event(event_type=event_type, payload={"index": i})

    events = read_ledger_tail(store_paths.journal_file, n=2, event_type="BINDER_ARCHIVED")

    assert [e.payload["index"] for e in events] == [3, 5]


def test_journal_tail_handles_malformed(store_paths):
    """Malformed lines are skipped, valid ones kept."""
    writer = LedgerWriter(store_paths.journal_file)
    writer.append_event(event_type="BINDER_CREATED", payload={"index": 1})
    writer.append_event(event_type="BINDER_CREATED", payload={"index": 2})
    with open(store_paths.journal_file, "a", encoding="utf-8") as f:
        f.write("this is not json\n")
        f.write("{\"incomplete\": \n")
        f.write("{\"event_type\": \"NOT_A_TYPE\"}\n")
    writer.append_event(event_type="BINDER_CREATED", payload={"index": 3})

    events = read_ledger_tail(store_paths.journal_file, n=10)

    assert [e.payload["index"] for e in events] == [1, 2, 3]


def test_journal_tail_nonexistent_file(temp_root):
    assert read_ledger_tail(temp_root / "nonexistent.jsonl", n=10) == []


def test_journal_timestamp_is_utc(store_paths):
    writer = LedgerWriter(store_paths.journal_file)
    writer.append_event(event_type="BINDER_PURGED", payload={})

    data = json.loads(store_paths.journal_file.read_text(encoding="utf-8").strip())

    assert data["ts"].endswith("Z"), f"Timestamp should end with Z: {data['ts']}"
    parsed = datetime.fromisoformat(data["ts"].replace("Z", "+00:00"))
    assert parsed.tzinfo is not None


def test_mutations_are_journaled_after_save(engine, lifecycle, store_paths):
    key, _ = engine.create_binder("Invoices")
    lifecycle.archive(key)
    lifecycle.trash(key, "archives")

    events = read_ledger_tail(store_paths.journal_file, n=10)

    assert [e.event_type for e in events] == ["BINDER_CREATED", "BINDER_ARCHIVED", "BINDER_TRASHED"]
    assert all(e.entity_id == key for e in events)


def test_failed_mutation_is_not_journaled(engine, store_paths):
    engine.create_binder("Invoices")
    with pytest.raises(StoreFilesystemError):
        engine.create_binder("Invoices")

    events = read_ledger_tail(store_paths.journal_file, n=10)

    assert len(events) == 1


def test_journal_failure_does_not_fail_operation(store_paths):
    """A journal that cannot be written is logged and ignored."""
    store_paths.journal_file.mkdir(parents=True)
    store = IndexStore(store_paths, ledger=LedgerWriter(store_paths.journal_file))
    store.bootstrap()

    key, binder = HierarchyEngine(store).create_binder("Invoices")

    assert key == "classeur_1"
    assert key in store.snapshot().binders


def test_journal_disabled(store_paths):
    store = IndexStore(store_paths)
    store.bootstrap()

    HierarchyEngine(store).create_binder("Invoices")

    assert not store_paths.journal_file.exists()
