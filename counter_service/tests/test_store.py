"""Tests for the JSON document store."""

import json

import pytest

from counter_service.schemas import InventoryRecord, Order, OrderItem, Products
from counter_service.store import DocumentStore, StaleDocumentError


@pytest.mark.asyncio
async def test_missing_file_bootstraps_defaults(store, data_file):
    document = await store.load()

    assert {record.flavor: record.quantity for record in document.inventory} == {
        "Carne": 20,
        "Frango": 20,
        "Queijo": 20,
        "Calabresa": 20,
    }
    assert document.orders == []
    assert document.version == 1
    assert data_file.exists()


@pytest.mark.asyncio
async def test_file_uses_camel_case_keys(seed, store, manager, data_file):
    seed({"Carne": 5})
    await manager.create_order("Ana", [{"type": "skewer", "flavor": "Carne", "qty": 1}])

    raw = json.loads(data_file.read_text(encoding="utf-8"))

    assert set(raw) >= {"orders", "inventory", "products", "lastSync", "version"}
    assert raw["orders"][0]["customerName"] == "Ana"
    assert raw["orders"][0]["items"][0]["deliveredQty"] == 0
    assert raw["lastSync"] is not None


@pytest.mark.asyncio
async def test_changes_survive_reload(seed, manager, data_file):
    seed({"Carne": 5})
    await manager.create_order("Ana", [{"type": "skewer", "flavor": "Carne", "qty": 2}])

    reopened = DocumentStore(data_file)
    document = await reopened.load()

    assert document.inventory[0].quantity == 3
    assert document.orders[0].customer_name == "Ana"


@pytest.mark.asyncio
async def test_read_returns_copies(store):
    document = await store.read()
    document.inventory.clear()

    assert len((await store.read()).inventory) == 4


@pytest.mark.asyncio
async def test_unwritten_changes_are_discarded(store):
    async with store.locked() as document:
        document.inventory[0].quantity = 0

    assert (await store.read()).inventory[0].quantity == 20


@pytest.mark.asyncio
async def test_write_bumps_version_and_last_sync(store):
    async with store.locked() as document:
        before = document.version
        await store.write(document)
        assert document.version == before + 1
        assert document.last_sync is not None
        await store.write(document)

    assert (await store.read()).version == before + 2


@pytest.mark.asyncio
async def test_stale_write_is_rejected(store):
    stale = await store.read()
    async with store.locked() as document:
        await store.write(document)

    stale.inventory[0].quantity = 0
    with pytest.raises(StaleDocumentError):
        await store.write(stale)
    assert (await store.read()).inventory[0].quantity == 20


@pytest.mark.asyncio
async def test_invalidate_rereads_file(seed, store):
    seed({"Carne": 5})
    await store.load()
    seed({"Carne": 9})

    assert (await store.read()).inventory[0].quantity == 5
    store.invalidate()
    assert (await store.read()).inventory[0].quantity == 9


@pytest.mark.asyncio
async def test_bootstrap_from_remote(data_file, mock_adapter):
    remote_order = Order(
        id="ext-2", customer_name="Ana", source="external", items=[OrderItem(type="skewer", flavor="Kafta", qty=1)]
    )
    mock_adapter.fetch_inventory.return_value = [InventoryRecord(flavor="Kafta", quantity=8)]
    mock_adapter.fetch_orders.return_value = [remote_order]
    store = DocumentStore(data_file, adapter=mock_adapter)

    document = await store.load()

    assert [record.flavor for record in document.inventory] == ["Kafta"]
    assert document.products.flavors == ["Kafta"]
    assert [order.id for order in document.orders] == ["ext-2"]
    mock_adapter.fetch_orders.assert_awaited_once_with(["Kafta"])


@pytest.mark.asyncio
async def test_bootstrap_prefers_remote_catalog(data_file, mock_adapter):
    mock_adapter.fetch_products.return_value = Products(flavors=["Carne", "Bacon"], beverages=["Mate"])
    store = DocumentStore(data_file, adapter=mock_adapter)

    document = await store.load()

    assert document.products.beverages == ["Mate"]
    assert len(document.inventory) == 4
    mock_adapter.fetch_orders.assert_awaited_once_with(["Carne", "Bacon"])
