"""Tests for the async ClassiflyerService facade."""

import asyncio
import base64
import json

import pytest

from classiflyer.config import ConfigStore
from classiflyer.errors import ConfigError, NotFoundError, StoreValidationError
from classiflyer.service import ClassiflyerService


@pytest.fixture
def service(root_config):
    svc = ClassiflyerService(root_config)
    asyncio.run(svc.bootstrap())
    return svc


def test_create_and_list_binders(service):
    created = asyncio.run(service.create_binder({"name": "Invoices", "primaryColor": "#101010"}))

    assert created["id"] == "classeur_1"
    assert created["primaryColor"] == "#101010"
    assert created["app_path"] == "/mes_classeurs/Invoices"

    listed = asyncio.run(service.list_binders())
    assert [b["id"] for b in listed] == ["classeur_1"]


def test_concurrent_creates_lose_no_updates(service, store_paths):
    async def create_many():
        return await asyncio.gather(
            *(service.create_binder({"name": f"Binder {i}"}) for i in range(10))
        )

    results = asyncio.run(create_many())

    keys = {r["id"] for r in results}
    assert len(keys) == 10
    doc = json.loads(store_paths.db_file.read_text(encoding="utf-8"))
    assert set(doc["mes_classeurs"]) == keys
    assert doc["nextId"]["classeurs"] == 11


def test_errors_propagate(service):
    with pytest.raises(StoreValidationError):
        asyncio.run(service.create_binder({}))
    with pytest.raises(NotFoundError) as excinfo:
        asyncio.run(service.get_binder("classeur_9"))
    assert excinfo.value.to_dict()["kind"] == "not_found"


def test_upload_and_preview(service, source_files):
    async def scenario():
        binder = await service.create_binder({"name": "Invoices"})
        folder = await service.create_folder(binder["id"], "2024")
        saved = await service.upload_files(
            binder["id"], folder["id"], [source_files["logo.png"], source_files["jan.pdf"]]
        )
        image = await service.file_to_data_url(binder["id"], saved[0]["id"])
        other = await service.file_to_data_url(binder["id"], saved[1]["id"])
        return saved, image, other

    saved, image, other = asyncio.run(scenario())

    assert [f["name"] for f in saved] == ["logo.png", "jan.pdf"]
    assert image == "data:image/png;base64," + base64.b64encode(b"\x89PNG").decode("ascii")
    assert other.startswith("data:application/octet-stream;base64,")


def test_lifecycle_round_trip(service):
    async def scenario():
        binder = await service.create_binder({"name": "Invoices"})
        folder = await service.create_archive_folder("Closed")
        archived = await service.archive(binder["id"], folder["id"])
        trashed = await service.trash(binder["id"], "archives")
        trash = await service.list_trash()
        restored = await service.restore(binder["id"])
        return archived, trashed, trash, restored

    archived, trashed, trash, restored = asyncio.run(scenario())

    assert archived["archived"] is True
    assert trashed["deletedFrom"] == "archives"
    assert [entry["id"] for entry in trash] == ["classeur_1"]
    assert restored["archiveFolderId"] == "archive_folder_1"


def test_list_binder_groups_includes_members(service):
    async def scenario():
        group = await service.create_binder_group("Work")
        binder = await service.create_binder({"name": "A"})
        await service.move_binder_to_group(binder["id"], group["id"])
        return await service.list_binder_groups()

    [group] = asyncio.run(scenario())

    assert group["name"] == "Work"
    assert group["classeurs"] == ["classeur_1"]


def test_set_root_switches_and_persists(service, tmp_path):
    asyncio.run(service.create_binder({"name": "Invoices"}))
    other = tmp_path / "other"

    result = asyncio.run(service.set_root(str(other)))

    assert result == {"rootPath": str(other.resolve())}
    assert (other / "db.json").is_file()
    assert (other / "classeurs").is_dir()
    assert asyncio.run(service.list_binders()) == []
    assert ConfigStore(tmp_path / "appdata").get_root() == other.resolve()


def test_set_root_rejects_empty(service, store_paths):
    with pytest.raises(ConfigError):
        asyncio.run(service.set_root("  "))

    assert asyncio.run(service.get_root()) == {"rootPath": str(store_paths.root)}
