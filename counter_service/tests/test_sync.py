"""Tests for pull syncs and background pushes."""

import pytest
from loguru import logger

from counter_service.orders import OrderManager
from counter_service.schemas import InventoryRecord, Order, OrderItem, Products
from counter_service.sync import ReconciliationCoordinator


def _order(order_id, customer, **fields):
    return Order(id=order_id, customer_name=customer, items=[OrderItem(type="skewer", flavor="Carne", qty=1)], **fields)


@pytest.fixture
def coordinator(store, mock_adapter):
    return ReconciliationCoordinator(store, mock_adapter)


@pytest.mark.asyncio
async def test_pull_orders_overwrites_local_edits(seed, store, coordinator, mock_adapter):
    """A pull replaces the order list wholesale; unpushed local edits are lost."""
    seed({"Carne": 5}, orders=[_order("ext-1", "Ana", source="external", remote_row=1)])
    manager = OrderManager(store)
    await manager.update_order("ext-1", {"customerName": "Ana (edited)"})
    mock_adapter.fetch_orders.return_value = [_order("ext-2", "Bea", source="external", remote_row=2)]

    assert await coordinator.pull_orders() is True

    orders = (await store.read()).orders
    assert [(order.id, order.customer_name) for order in orders] == [("ext-2", "Bea")]
    mock_adapter.fetch_orders.assert_awaited_once_with(["Carne"], force=False)


@pytest.mark.asyncio
async def test_pull_orders_accepts_empty_sheet(seed, store, coordinator, mock_adapter):
    seed({"Carne": 5}, orders=[_order("local", "Ana")])
    mock_adapter.fetch_orders.return_value = []

    assert await coordinator.pull_orders() is True
    assert (await store.read()).orders == []


@pytest.mark.asyncio
async def test_failed_pulls_keep_local_state(seed, store, coordinator):
    seed({"Carne": 5}, orders=[_order("local", "Ana")])
    before = await store.read()

    assert await coordinator.pull_orders() is False
    assert await coordinator.pull_inventory() is False
    assert await coordinator.pull_products() is False

    after = await store.read()
    assert after.orders == before.orders
    assert after.inventory == before.inventory
    assert after.version == before.version


@pytest.mark.asyncio
async def test_pull_inventory_replaces_stock(seed, store, coordinator, mock_adapter):
    seed({"Carne": 5, "Frango": 5})
    mock_adapter.fetch_inventory.return_value = [InventoryRecord(flavor="Carne", quantity=11)]

    assert await coordinator.pull_inventory(realtime=True) is True

    document = await store.read()
    assert [(record.flavor, record.quantity) for record in document.inventory] == [("Carne", 11)]
    assert document.products.flavors == ["Carne"]
    mock_adapter.fetch_inventory.assert_awaited_once_with(force=False, realtime=True)


@pytest.mark.asyncio
async def test_pull_products(seed, store, coordinator, mock_adapter):
    seed({"Carne": 5})
    mock_adapter.fetch_products.return_value = Products(flavors=["Carne"], beverages=["Mate"])

    assert await coordinator.pull_products(force=True) is True
    assert (await store.read()).products.beverages == ["Mate"]


@pytest.mark.asyncio
async def test_pull_all_invalidates_cache(seed, coordinator, mock_adapter):
    seed({"Carne": 5})
    mock_adapter.fetch_inventory.return_value = [InventoryRecord(flavor="Carne", quantity=3)]

    result = await coordinator.pull_all()

    assert result == {"inventory": True, "orders": False}
    mock_adapter.invalidate_cache.assert_called_once()


@pytest.mark.asyncio
async def test_push_failures_never_reach_caller(coordinator, mock_adapter):
    mock_adapter.push_order_created.side_effect = RuntimeError("sheet exploded")
    mock_adapter.push_inventory.return_value = False

    created = coordinator.push_order_created(_order("o1", "Ana"))
    inventory = coordinator.push_inventory({"Carne": 2})
    await coordinator.drain()

    assert created.result() is False
    assert inventory.result() is False


@pytest.mark.asyncio
async def test_push_failure_with_braces_in_message_is_absorbed(coordinator, mock_adapter):
    mock_adapter.push_order_created.side_effect = RuntimeError("bad payload {'row_number': 3}")

    task = coordinator.push_order_created(_order("o1", "Ana"))
    await coordinator.drain()

    assert task.exception() is None
    assert task.result() is False


@pytest.mark.asyncio
async def test_push_failure_is_logged_with_traceback(coordinator, mock_adapter):
    messages = []
    sink = logger.add(messages.append, level="ERROR", format="{message}")
    mock_adapter.push_inventory.side_effect = ValueError("sheet {locked}")
    try:
        await coordinator.push_inventory({"Carne": 1})
    finally:
        logger.remove(sink)

    assert len(messages) == 1
    assert "Push of inventory failed: sheet {locked}" in messages[0]
    assert messages[0].record["exception"].type is ValueError


@pytest.mark.asyncio
async def test_push_sends_snapshot_of_order(coordinator, mock_adapter):
    order = _order("o1", "Ana", remote_row=3)

    task = coordinator.push_order_updated(order)
    order.customer_name = "changed later"
    await task

    pushed = mock_adapter.push_order_updated.await_args.args[0]
    assert pushed.customer_name == "Ana"
    assert task.result() is True


@pytest.mark.asyncio
async def test_order_changes_are_pushed(seed, store, coordinator, mock_adapter):
    seed({"Carne": 5})
    manager = OrderManager(store, coordinator=coordinator)

    order = (await manager.create_order("Ana", [{"type": "skewer", "flavor": "Carne", "qty": 1}])).order
    await manager.delete_order(order.id)
    await coordinator.drain()

    mock_adapter.push_order_created.assert_awaited_once()
    mock_adapter.push_order_deleted.assert_awaited_once()
