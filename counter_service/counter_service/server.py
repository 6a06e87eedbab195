"""FastAPI server implementation for the Counter Service."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Response
from pydantic import BaseModel

from .config import Settings
from .external import ExternalDataAdapter
from .inventory import InventoryLedger
from .logger import logger
from .orders import OrderManager
from .schemas import InventoryRecord, NewOrder, OperationResult, Order, OrderItemUpdate, OrderStatus, OrderUpdate
from .store import DocumentStore
from .sync import ReconciliationCoordinator
from .webhook import WebhookNotifier, inventory_payload


class InventoryUpdate(BaseModel):
    """Body of a manual stock edit: absolute quantity per flavor."""

    updates: dict[str, int]


class StatusChange(BaseModel):
    status: OrderStatus


class CounterState:
    """Class to manage counter service state."""

    def __init__(self):
        """Initialize counter state."""
        self.settings: Optional[Settings] = None
        self.store: Optional[DocumentStore] = None
        self.adapter: Optional[ExternalDataAdapter] = None
        self.ledger: Optional[InventoryLedger] = None
        self.coordinator: Optional[ReconciliationCoordinator] = None
        self.notifier: Optional[WebhookNotifier] = None
        self.orders: Optional[OrderManager] = None

    def configure(self, settings: Settings) -> None:
        """Wire every component from ``settings``.

        Args:
            settings: The service configuration
        """
        self.settings = settings
        self.adapter = ExternalDataAdapter(settings)
        self.store = DocumentStore(settings.data_file, adapter=self.adapter)
        self.ledger = InventoryLedger(self.store)
        self.coordinator = ReconciliationCoordinator(self.store, self.adapter, self.ledger)
        self.notifier = WebhookNotifier(settings)
        self.orders = OrderManager(self.store, coordinator=self.coordinator, notifier=self.notifier)

    async def shutdown(self) -> None:
        """Let in-flight pushes and webhooks finish."""
        if self.coordinator:
            await self.coordinator.drain()
        if self.notifier:
            await self.notifier.drain()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage the lifecycle of the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    if state.store is None:
        state.configure(Settings.from_env())
    document = await state.store.load()
    logger.info(
        f"Counter service ready: {len(document.orders)} orders, {len(document.inventory)} flavors, "
        f"external sources {state.settings.is_external_configured()}"
    )

    yield

    logger.info("Shutting down counter service...")
    await state.shutdown()
    logger.info("Shutdown complete")


# Initialize FastAPI app and state
app = FastAPI(title="Counter Service", lifespan=lifespan)
state = CounterState()


def _raise_for(result: OperationResult) -> None:
    if result.success:
        return
    status_code = 404 if result.reason == "not_found" else 400
    raise HTTPException(status_code=status_code, detail=result.message)


@app.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy"}


@app.get("/orders", response_model=list[Order])
async def list_orders():
    """List every order known locally."""
    return await state.orders.list_orders()


@app.get("/orders/{order_id}", response_model=Order)
async def get_order(order_id: str):
    """Get a specific order by ID.

    Raises:
        HTTPException: If the order is not found
    """
    order = await state.orders.get_order(order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@app.post("/orders", response_model=Order, status_code=201)
async def create_order(body: NewOrder):
    """Create an order, reserving stock for its skewers."""
    result = await state.orders.create_order(body.customer_name, body.items)
    _raise_for(result)
    return result.order


@app.put("/orders/{order_id}", response_model=Order)
async def update_order(order_id: str, body: OrderUpdate):
    """Edit an order's customer, items or status."""
    result = await state.orders.update_order(order_id, body)
    _raise_for(result)
    return result.order


@app.patch("/orders/{order_id}", response_model=Order)
async def change_status(order_id: str, body: StatusChange):
    """Move an order to another board column."""
    result = await state.orders.update_order(order_id, OrderUpdate(status=body.status))
    _raise_for(result)
    return result.order


@app.delete("/orders/{order_id}", status_code=204)
async def delete_order(order_id: str):
    result = await state.orders.delete_order(order_id)
    _raise_for(result)
    return Response(status_code=204)


@app.patch("/orders/{order_id}/items/{item_id}")
async def update_order_item(order_id: str, item_id: str, body: OrderItemUpdate):
    """Change an item's ordered or delivered quantity."""
    result = await state.orders.update_order_item(order_id, item_id, body)
    _raise_for(result)
    return result.item.model_dump(mode="json", by_alias=True)


@app.delete("/orders/{order_id}/items/{item_id}", status_code=204)
async def delete_order_item(order_id: str, item_id: str):
    result = await state.orders.delete_order_item(order_id, item_id)
    _raise_for(result)
    return Response(status_code=204)


@app.get("/inventory", response_model=list[InventoryRecord])
async def get_inventory():
    return await state.ledger.get_all()


@app.patch("/inventory", response_model=list[InventoryRecord])
async def update_inventory(body: InventoryUpdate):
    """Set stock levels by hand and propagate them."""
    applied = await state.ledger.set_quantities(body.updates)
    if applied:
        state.coordinator.push_inventory(applied)
        state.notifier.notify(inventory_payload(applied))
    return await state.ledger.get_all()


@app.get("/inventory/realtime")
async def reload_inventory():
    """Pull the remote inventory, falling back to local stock."""
    synced = await state.coordinator.pull_inventory(realtime=True)
    inventory = await state.ledger.get_all()
    return {
        "inventory": [record.model_dump(mode="json", by_alias=True) for record in inventory],
        "source": "external-reloaded" if synced else "local",
    }


@app.get("/products")
async def get_products():
    """Flavor and beverage catalog with the time of the last write."""
    document = await state.store.read()
    return {
        "flavors": document.products.flavors,
        "beverages": document.products.beverages,
        "lastSync": document.last_sync.isoformat() if document.last_sync else None,
    }


@app.post("/revalidate")
async def revalidate():
    """Pull inventory and orders from the remote sheet, overwriting local data."""
    synced = await state.coordinator.pull_all(force=True)
    document = await state.store.read()
    return {
        "success": True,
        "synced": synced,
        "lastSync": document.last_sync.isoformat() if document.last_sync else None,
    }
