"""Pytest fixtures for Classiflyer tests."""

from pathlib import Path

import pytest

from classiflyer.config import ClassiflyerConfig
from classiflyer.hierarchy import HierarchyEngine
from classiflyer.index_store import IndexStore
from classiflyer.ledger import LedgerWriter
from classiflyer.lifecycle import LifecycleCoordinator
from classiflyer.paths import StorePaths


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep tests away from the real config directory and root."""
    monkeypatch.setenv("CLASSIFLYER_CONFIG_DIR", str(tmp_path / "appdata"))
    monkeypatch.delenv("CLASSIFLYER_ROOT", raising=False)
    monkeypatch.delenv("CLASSIFLYER_JOURNAL_ENABLED", raising=False)


@pytest.fixture
def temp_root(tmp_path):
    """Create a temporary root directory for testing.

    Args:
        tmp_path: pytest's built-in temporary directory fixture

    Returns:
        Path to temporary root
    """
    root = tmp_path / "root"
    root.mkdir()
    return root


@pytest.fixture
def root_config(temp_root, tmp_path):
    """ClassiflyerConfig pointing at the temporary root."""
    return ClassiflyerConfig(root_path=temp_root, config_dir=tmp_path / "appdata")


@pytest.fixture
def store_paths(root_config):
    """StorePaths for the temporary root."""
    return StorePaths.from_config(root_config)


@pytest.fixture
def index_store(store_paths):
    """A bootstrapped IndexStore with the journal enabled."""
    store = IndexStore(store_paths, ledger=LedgerWriter(store_paths.journal_file))
    store.bootstrap()
    return store


@pytest.fixture
def engine(index_store):
    return HierarchyEngine(index_store)


@pytest.fixture
def lifecycle(index_store):
    return LifecycleCoordinator(index_store)


@pytest.fixture
def source_files(tmp_path):
    """A few user files outside the root, ready to upload."""
    outside = tmp_path / "outside"
    outside.mkdir()
    files = {}
    for name, content in [("jan.pdf", b"%PDF-1.4 jan"), ("feb.pdf", b"%PDF-1.4 feb"), ("logo.png", b"\x89PNG")]:
        path = outside / name
        path.write_bytes(content)
        files[name] = path
    return files


def binder_paths(binder) -> list[str]:
    """Every sys_path in a binder tree, root first."""
    result = [binder.sys_path]

    def walk(folders, files):
        for folder in folders.values():
            result.append(folder.sys_path)
            walk(folder.folders, folder.files)
        result.extend(ref.sys_path for ref in files.values())

    walk(binder.folders, binder.files)
    return result


def assert_tree_on_disk(binder) -> None:
    """Binder and folders are directories on disk; file refs are regular files."""
    assert Path(binder.sys_path).is_dir(), binder.sys_path

    def walk(folders, files):
        for folder in folders.values():
            assert Path(folder.sys_path).is_dir(), folder.sys_path
            walk(folder.folders, folder.files)
        for ref in files.values():
            assert Path(ref.sys_path).is_file(), ref.sys_path

    walk(binder.folders, binder.files)
