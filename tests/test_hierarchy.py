"""Tests for HierarchyEngine: binders, folders, files and binder groups."""

import json
from pathlib import Path

import pytest

from classiflyer.errors import (
    NotFoundError,
    RenameFailedError,
    StoreFilesystemError,
    StoreValidationError,
)
from classiflyer.models import DEFAULT_PRIMARY_COLOR, DEFAULT_SECONDARY_COLOR, DEFAULT_TERTIARY_COLOR, Zone

from conftest import assert_tree_on_disk, binder_paths


def _doc(store_paths) -> dict:
    return json.loads(store_paths.db_file.read_text(encoding="utf-8"))


def test_create_binder_with_default_colors(engine, store_paths):
    key, binder = engine.create_binder("Invoices")

    doc = _doc(store_paths)
    assert key == "classeur_1"
    assert list(doc["mes_classeurs"]) == ["classeur_1"]
    assert doc["nextId"]["classeurs"] == 2
    assert (store_paths.root / "classeurs" / "Invoices").is_dir()
    record = doc["mes_classeurs"]["classeur_1"]
    assert record["app_path"] == "/mes_classeurs/Invoices"
    assert record["primaryColor"] == DEFAULT_PRIMARY_COLOR
    assert record["secondaryColor"] == DEFAULT_SECONDARY_COLOR
    assert record["tertiaryColor"] == DEFAULT_TERTIARY_COLOR
    assert record["archived"] is False


def test_create_binder_with_custom_colors(engine):
    _key, binder = engine.create_binder("Taxes", "#111111", None, "#333333")

    assert binder.primary_color == "#111111"
    assert binder.secondary_color == DEFAULT_SECONDARY_COLOR
    assert binder.tertiary_color == "#333333"


@pytest.mark.parametrize("name", ["", "   ", None, "a/b", "..", "."])
def test_create_binder_rejects_bad_names_before_io(engine, store_paths, name):
    with pytest.raises(StoreValidationError) as excinfo:
        engine.create_binder(name)

    assert excinfo.value.kind == "validation"
    assert list(store_paths.classeurs.iterdir()) == []
    assert _doc(store_paths)["nextId"]["classeurs"] == 1


def test_create_binder_name_collision(engine, store_paths):
    engine.create_binder("Invoices")

    with pytest.raises(StoreFilesystemError):
        engine.create_binder("Invoices")

    assert list(_doc(store_paths)["mes_classeurs"]) == ["classeur_1"]


def test_ids_are_never_reused(engine, store_paths):
    key1, _ = engine.create_binder("A")
    engine.delete_binder(key1)
    key2, _ = engine.create_binder("A")

    assert key1 == "classeur_1"
    assert key2 == "classeur_2"
    assert _doc(store_paths)["nextId"]["classeurs"] == 3


def test_create_folder_and_upload(engine, store_paths, source_files):
    key, _ = engine.create_binder("Invoices")
    folder_key, folder = engine.create_folder(key, "2024")

    saved = engine.upload_files(key, [source_files["jan.pdf"]], folder_key)

    folder_dir = store_paths.root / "classeurs" / "Invoices" / "2024"
    assert folder_dir.is_dir()
    assert folder.sys_path == str(folder_dir)
    assert (folder_dir / "jan.pdf").is_file()
    file_key, ref = saved[0]
    assert ref.sys_path == str(folder_dir / "jan.pdf")
    assert ref.mime == "application/pdf"
    # copied, never moved
    assert source_files["jan.pdf"].exists()

    binder = engine.get_binder(key)
    assert binder.folders[folder_key].files[file_key].sys_path == str(folder_dir / "jan.pdf")


def test_nested_folders(engine):
    key, binder = engine.create_binder("Invoices")
    outer_key, outer = engine.create_folder(key, "2024")
    inner_key, inner = engine.create_folder(key, "Q1", outer_key)

    assert inner.sys_path == str(Path(outer.sys_path) / "Q1")
    binder = engine.get_binder(key)
    assert inner_key in binder.folders[outer_key].folders
    assert_tree_on_disk(binder)


def test_create_folder_unknown_parent(engine):
    key, _ = engine.create_binder("Invoices")

    with pytest.raises(NotFoundError):
        engine.create_folder(key, "2024", "dossier_99")


def test_unknown_binder(engine):
    with pytest.raises(NotFoundError) as excinfo:
        engine.get_binder("classeur_42")
    assert excinfo.value.kind == "not_found"

    with pytest.raises(NotFoundError):
        engine.create_folder("classeur_42", "x")


def test_upload_is_fail_soft(engine, source_files, tmp_path):
    key, _ = engine.create_binder("Invoices")
    sources = [
        source_files["jan.pdf"],
        tmp_path / "does_not_exist.pdf",
        {"path": str(source_files["logo.png"]), "mime": "image/x-custom"},
    ]

    saved = engine.upload_files(key, sources)

    assert [ref.name for _, ref in saved] == ["jan.pdf", "logo.png"]
    assert saved[1][1].mime == "image/x-custom"
    binder = engine.get_binder(key)
    assert [ref.name for ref in binder.files.values()] == ["jan.pdf", "logo.png"]


def test_upload_onto_folder_name_is_skipped(engine, tmp_path, source_files):
    key, _ = engine.create_binder("Invoices")
    _folder_key, folder = engine.create_folder(key, "2024")
    clash = tmp_path / "outside" / "2024"
    clash.write_bytes(b"not a folder")

    saved = engine.upload_files(key, [clash, source_files["jan.pdf"]])

    assert [ref.name for _, ref in saved] == ["jan.pdf"]
    assert list(Path(folder.sys_path).iterdir()) == []
    binder = engine.get_binder(key)
    assert [ref.name for ref in binder.files.values()] == ["jan.pdf"]
    assert_tree_on_disk(binder)


def test_reupload_replaces_record(engine, source_files):
    key, _ = engine.create_binder("Invoices")
    first = engine.upload_files(key, [source_files["jan.pdf"]])
    second = engine.upload_files(key, [source_files["jan.pdf"]])

    assert first[0][0] == second[0][0]
    assert len(engine.get_binder(key).files) == 1


def test_create_binder_from_folder(engine, tmp_path, store_paths):
    source = tmp_path / "Scans"
    (source / "sub").mkdir(parents=True)
    (source / "sub" / "inner.txt").write_text("inner")
    (source / "top.txt").write_text("top")

    key, binder = engine.create_binder_from_folder(source)

    assert key == "classeur_1"
    assert binder.name == "Scans"
    assert binder.sys_path == str(store_paths.classeurs / "Scans")
    assert list(binder.folders) == ["dossier_1"]
    assert list(binder.folders["dossier_1"].files) == ["file_1"]
    assert list(binder.files) == ["file_2"]
    assert_tree_on_disk(binder)
    assert (source / "top.txt").exists()


def test_create_binder_from_missing_folder(engine, tmp_path):
    with pytest.raises(StoreValidationError):
        engine.create_binder_from_folder(tmp_path / "nope")


def test_rename_binder_rewrites_subtree(engine, store_paths, source_files):
    key, _ = engine.create_binder("Invoices")
    folder_key, _ = engine.create_folder(key, "2024")
    engine.upload_files(key, [source_files["jan.pdf"]], folder_key)

    binder = engine.update_binder(key, name="Bills")

    assert binder.sys_path == str(store_paths.classeurs / "Bills")
    assert binder.app_path == "/mes_classeurs/Bills"
    assert not (store_paths.classeurs / "Invoices").exists()
    assert all(p.startswith(str(store_paths.classeurs / "Bills")) for p in binder_paths(binder))
    assert_tree_on_disk(engine.get_binder(key))


def test_rename_binder_same_name_is_noop(engine, store_paths):
    key, before = engine.create_binder("Invoices")

    after = engine.update_binder(key, name="Invoices", primary_color="#123456")

    assert after.sys_path == before.sys_path
    assert after.primary_color == "#123456"


def test_rename_binder_failure_leaves_state(engine, store_paths):
    key, _ = engine.create_binder("Invoices")
    engine.create_binder("Bills")

    with pytest.raises(RenameFailedError) as excinfo:
        engine.update_binder(key, name="Bills")

    assert excinfo.value.kind == "rename_failed"
    binder = engine.get_binder(key)
    assert binder.name == "Invoices"
    assert binder.sys_path == str(store_paths.classeurs / "Invoices")


def test_rename_archived_binder_in_place(engine, lifecycle, store_paths):
    folder = lifecycle.create_archive_folder("Closed")
    key, _ = engine.create_binder("Invoices")
    lifecycle.archive(key, folder.id)

    binder = engine.update_binder(key, name="Bills")

    assert binder.zone == Zone.ARCHIVED
    assert binder.sys_path == str(store_paths.archives / "Closed" / "Bills")
    assert binder.app_path == "/archives/Closed/Bills"


def test_delete_binder(engine, store_paths):
    key, binder = engine.create_binder("Invoices")

    assert engine.delete_binder(key) is True
    assert not Path(binder.sys_path).exists()
    assert _doc(store_paths)["mes_classeurs"] == {}
    assert engine.delete_binder(key) is False


def test_delete_binder_with_missing_directory(engine, store_paths):
    key, binder = engine.create_binder("Invoices")
    Path(binder.sys_path).rmdir()

    assert engine.delete_binder(key) is True
    assert _doc(store_paths)["mes_classeurs"] == {}


def test_rename_folder_rewrites_descendants(engine, source_files):
    key, _ = engine.create_binder("Invoices")
    outer_key, _ = engine.create_folder(key, "2024")
    engine.create_folder(key, "Q1", outer_key)
    engine.upload_files(key, [source_files["jan.pdf"]], outer_key)

    folder = engine.rename_folder(key, outer_key, "2025")

    assert folder.sys_path.endswith("2025")
    binder = engine.get_binder(key)
    assert all("2024" not in p for p in binder_paths(binder))
    assert_tree_on_disk(binder)


def test_delete_folder_removes_subtree(engine, source_files):
    key, _ = engine.create_binder("Invoices")
    outer_key, outer = engine.create_folder(key, "2024")
    inner_key, _ = engine.create_folder(key, "Q1", outer_key)
    engine.upload_files(key, [source_files["jan.pdf"]], inner_key)

    assert engine.delete_folder(key, inner_key) is True

    binder = engine.get_binder(key)
    assert binder.folders[outer_key].folders == {}
    assert not (Path(outer.sys_path) / "Q1").exists()

    with pytest.raises(NotFoundError):
        engine.delete_folder(key, inner_key)


def test_read_file_bytes(engine, source_files):
    key, _ = engine.create_binder("Invoices")
    [(file_key, _)] = engine.upload_files(key, [source_files["jan.pdf"]])

    ref, data = engine.read_file_bytes(key, file_key)

    assert ref.name == "jan.pdf"
    assert data == b"%PDF-1.4 jan"
    with pytest.raises(NotFoundError):
        engine.read_file_bytes(key, "file_99")


def test_archived_binder_content_is_read_only(engine, lifecycle):
    key, _ = engine.create_binder("Invoices")
    lifecycle.archive(key)

    with pytest.raises(StoreValidationError):
        engine.create_folder(key, "2024")


# Binder groups


def test_binder_groups(engine, store_paths):
    group = engine.create_binder_group("Work")
    key_a, _ = engine.create_binder("A")
    key_b, _ = engine.create_binder("B")

    engine.move_binder_to_group(key_a, group.id)

    assert group.id == "classeur_folder_1"
    [(listed, members)] = engine.list_binder_groups()
    assert listed.name == "Work"
    assert members == [key_a]
    doc = _doc(store_paths)
    assert doc["classeur_folders"][group.id]["name"] == "Work"
    assert doc["mes_classeurs"][key_a]["classeurFolderId"] == group.id
    assert doc["nextId"]["classeurFolders"] == 2
    # the binder directory does not move
    assert engine.get_binder(key_a).sys_path == str(store_paths.classeurs / "A")

    engine.move_binder_to_group(key_a, None)
    assert engine.list_binder_groups()[0][1] == []


def test_rename_binder_group(engine):
    group = engine.create_binder_group("Work")

    renamed = engine.rename_binder_group(group.id, "Job")

    assert renamed.name == "Job"
    with pytest.raises(NotFoundError):
        engine.rename_binder_group("classeur_folder_9", "x")


def test_move_binder_to_unknown_group(engine):
    key, _ = engine.create_binder("A")

    with pytest.raises(NotFoundError):
        engine.move_binder_to_group(key, "classeur_folder_9")
