"""Test fixtures for the counter service tests."""

import pytest

from counter_service.config import Settings
from counter_service.inventory import InventoryLedger
from counter_service.orders import OrderManager
from counter_service.schemas import InventoryRecord, StoreDocument
from counter_service.store import DocumentStore


@pytest.fixture
def data_file(tmp_path):
    """Location of the JSON document for one test."""
    return tmp_path / "db.json"


@pytest.fixture
def seed(data_file):
    """Write a document with the given stock before the store loads it.

    Returns:
        Callable: ``seed({"Carne": 5}, orders=[...])``
    """

    def _seed(stock: dict[str, int], orders=None) -> StoreDocument:
        document = StoreDocument(
            inventory=[
                InventoryRecord(flavor=flavor, quantity=qty, initial_quantity=qty) for flavor, qty in stock.items()
            ],
            orders=orders or [],
        )
        document.products.flavors = list(stock)
        data_file.write_text(document.model_dump_json(by_alias=True), encoding="utf-8")
        return document

    return _seed


@pytest.fixture
def settings(data_file):
    """Settings with every remote endpoint configured."""
    return Settings(
        data_file=data_file,
        external_inventory_url="https://sheet.test/inventory",
        external_orders_url="https://sheet.test/orders",
        external_order_create_url="https://sheet.test/orders/create",
        external_order_update_url="https://sheet.test/orders/update",
        external_order_delete_url="https://sheet.test/orders/delete",
        external_inventory_update_url="https://sheet.test/inventory/update",
        external_api_key="secret-key",
        webhook_url="https://hooks.test/counter",
        webhook_secret="hook-secret",
    )


@pytest.fixture
def store(data_file):
    """Store without a remote adapter; a missing file bootstraps defaults."""
    return DocumentStore(data_file)


@pytest.fixture
def ledger(store):
    return InventoryLedger(store)


@pytest.fixture
def manager(store):
    """Order manager with no pushes and no webhooks."""
    return OrderManager(store)


@pytest.fixture
def mock_adapter(mocker):
    """Remote adapter whose calls all report success with no data."""
    adapter = mocker.MagicMock()
    adapter.fetch_inventory = mocker.AsyncMock(return_value=None)
    adapter.fetch_products = mocker.AsyncMock(return_value=None)
    adapter.fetch_orders = mocker.AsyncMock(return_value=None)
    adapter.push_order_created = mocker.AsyncMock(return_value=True)
    adapter.push_order_updated = mocker.AsyncMock(return_value=True)
    adapter.push_order_deleted = mocker.AsyncMock(return_value=True)
    adapter.push_inventory = mocker.AsyncMock(return_value=True)
    return adapter
