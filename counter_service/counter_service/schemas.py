"""Pydantic models for orders, inventory and the persisted document."""

import uuid
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

KanbanStatus = Literal["todo", "in_progress", "done", "canceled"]
LegacyStatus = Literal["em_preparo", "entregue"]
OrderStatus = Literal["todo", "in_progress", "done", "canceled", "em_preparo", "entregue"]
ItemType = Literal["skewer", "beverage"]
OrderSource = Literal["local", "external"]
WebhookEvent = Literal["order.created", "order.updated", "order.deleted", "inventory.updated"]
FailureReason = Literal["invalid", "not_found", "insufficient_stock"]

KANBAN_STATUSES: tuple[str, ...] = ("todo", "in_progress", "done", "canceled")

DEFAULT_FLAVORS = ["Carne", "Frango", "Queijo", "Calabresa"]
DEFAULT_BEVERAGES = ["Coca-Cola", "Guaraná", "Água", "Suco"]
DEFAULT_STOCK = 20


def new_id() -> str:
    """Generate a short random identifier for orders and items."""
    return uuid.uuid4().hex[:9]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys, like the persisted document."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InventoryRecord(CamelModel):
    """Stock count for one skewer flavor.

    Attributes:
        flavor (str): Free-form flavor name, the record identity.
        quantity (int): Units in stock, never negative.
        initial_quantity (int | None): Baseline used to draw stock bars.
    """

    flavor: str = Field(..., min_length=1)
    quantity: int = Field(0, ge=0)
    initial_quantity: int | None = Field(None, ge=0)


class ItemSpec(CamelModel):
    """An item as requested by a caller, before it gets an id.

    Attributes:
        type (str): ``skewer`` or ``beverage``.
        flavor (str | None): Required for skewers, dropped for beverages.
        beverage (str | None): Required for beverages, dropped for skewers.
        qty (int): Units ordered, at least 1.
    """

    type: ItemType
    flavor: str | None = None
    beverage: str | None = None
    qty: int = Field(..., ge=1)

    @model_validator(mode="after")
    def check_kind(self):
        """Keep exactly one of ``flavor``/``beverage``, matching ``type``."""
        if self.type == "skewer":
            if not self.flavor or not self.flavor.strip():
                raise ValueError("Skewer items require a flavor")
            self.beverage = None
        else:
            if not self.beverage or not self.beverage.strip():
                raise ValueError("Beverage items require a beverage")
            self.flavor = None
        return self

    def fields(self) -> dict[str, Any]:
        """The requested fields only, without order-specific state."""
        return self.model_dump(include={"type", "flavor", "beverage", "qty"})

    def identity(self) -> tuple[str, str | None, str | None]:
        """Return the ``(type, flavor, beverage)`` triple used to match items."""
        return (self.type, self.flavor, self.beverage)

    @property
    def name(self) -> str:
        return self.flavor if self.type == "skewer" else self.beverage


class OrderItem(ItemSpec):
    """A line of an order.

    Attributes:
        id (str): Item identifier, stable across order edits.
        delivered_qty (int): Units already handed out, ``0 <= delivered_qty <= qty``.
        status (str | None): Optional fine-grained item status.
    """

    id: str = Field(default_factory=new_id)
    delivered_qty: int = Field(0, ge=0)
    status: str | None = None

    @model_validator(mode="after")
    def check_delivered(self):
        if self.delivered_qty > self.qty:
            raise ValueError("Delivered quantity cannot exceed ordered quantity")
        return self

    @property
    def fully_delivered(self) -> bool:
        return self.delivered_qty >= self.qty


class Order(CamelModel):
    """An order placed at the counter or mirrored from the remote sheet.

    Attributes:
        id (str): Order identifier.
        customer_name (str): Who the order is for.
        items (list[OrderItem]): At least one item.
        status (str): Kanban status; legacy values are normalized on read.
        created_at (datetime): Creation timestamp.
        source (str): ``local`` when created here, ``external`` when pulled.
        modified (bool): Set once an external order is edited locally.
        remote_row (int | None): Row number of the order in the remote sheet.
    """

    id: str = Field(default_factory=new_id)
    customer_name: str = Field(..., min_length=1)
    items: list[OrderItem] = Field(..., min_length=1)
    status: OrderStatus = "todo"
    created_at: datetime = Field(default_factory=utcnow)
    source: OrderSource = "local"
    modified: bool = False
    remote_row: int | None = None

    def find_item(self, item_id: str) -> OrderItem | None:
        return next((item for item in self.items if item.id == item_id), None)

    @property
    def total_items(self) -> int:
        return sum(item.qty for item in self.items)

    @property
    def delivered_items(self) -> int:
        return sum(item.delivered_qty for item in self.items)


class Products(CamelModel):
    """Catalog offered at the counter."""

    flavors: list[str] = Field(default_factory=lambda: list(DEFAULT_FLAVORS))
    beverages: list[str] = Field(default_factory=lambda: list(DEFAULT_BEVERAGES))


class StoreDocument(CamelModel):
    """The single JSON document persisted by the store.

    Attributes:
        orders (list[Order]): Every known order.
        inventory (list[InventoryRecord]): Stock per flavor.
        products (Products): Flavor and beverage catalog.
        last_sync (datetime | None): Time of the most recent write.
        version (int): Incremented on every write, used to reject stale writes.
    """

    orders: list[Order] = Field(default_factory=list)
    inventory: list[InventoryRecord] = Field(default_factory=list)
    products: Products = Field(default_factory=Products)
    last_sync: datetime | None = None
    version: int = Field(0, ge=0)

    def find_order(self, order_id: str) -> Order | None:
        return next((order for order in self.orders if order.id == order_id), None)


class OrderUpdate(CamelModel):
    """Fields accepted when editing an order; ``None`` means unchanged."""

    customer_name: str | None = None
    items: list[ItemSpec] | None = None
    status: OrderStatus | None = None


class OrderItemUpdate(CamelModel):
    """Fields accepted when editing a single item; ``None`` means unchanged."""

    qty: int | None = Field(None, ge=1)
    delivered_qty: int | None = Field(None, ge=0)


class NewOrder(CamelModel):
    """Body of an order creation request."""

    customer_name: str
    items: list[ItemSpec]


class OperationResult(CamelModel):
    """Outcome of a business operation.

    Business-rule violations are reported here with ``success=False`` instead of
    being raised; callers must check ``success``.
    """

    success: bool
    message: str | None = None
    reason: FailureReason | None = None
    order: Order | None = None
    item: OrderItem | None = None

    @classmethod
    def ok(cls, order: Order | None = None, item: OrderItem | None = None, message: str | None = None):
        return cls(success=True, message=message, order=order, item=item)

    @classmethod
    def fail(cls, message: str, reason: FailureReason = "invalid"):
        return cls(success=False, message=message, reason=reason)


class RemoteInventoryRecord(BaseModel):
    """One row of the remote inventory sheet."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    row_number: int | None = Field(None, validation_alias=AliasChoices("row_number", "rowId"))
    flavor_name: str = Field(..., validation_alias=AliasChoices("Espetinhos", "flavorName", "name"))
    initial_stock: int | None = Field(
        None, validation_alias=AliasChoices("Quantidade Inicial", "initialStock")
    )
    current_stock: int = Field(..., validation_alias=AliasChoices("Estoque", "currentStock", "stock"))


class RemoteOrderRecord(BaseModel):
    """One row of the remote orders sheet; items and status are free text."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    row_number: int | None = Field(None, validation_alias=AliasChoices("row_number", "rowId"))
    customer_name: str = Field(
        "", validation_alias=AliasChoices("cliente", "Cliente", "customerName")
    )
    items_text: str = Field("", validation_alias=AliasChoices("itens", "Itens", "itemsFreeText"))
    status_text: str = Field(
        "", validation_alias=AliasChoices("situacao", "Situação", "Situacao", "statusFreeText")
    )


class RemoteProducts(BaseModel):
    """Catalog published by the remote products endpoint."""

    model_config = ConfigDict(extra="ignore")

    skewer_flavors: list[Any] = Field(
        default_factory=list, validation_alias=AliasChoices("skewerFlavors", "flavors")
    )
    beverages: list[Any] = Field(default_factory=list)


class WebhookPayload(BaseModel):
    """Event delivered to the configured webhook endpoint."""

    event: WebhookEvent
    timestamp: datetime = Field(default_factory=utcnow)
    data: dict[str, Any]
    metadata: dict[str, str] = Field(
        default_factory=lambda: {"source": "counter-service", "version": "0.1.0"}
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "event": "order.created",
                "data": {"order": {"id": "a1b2c3d4e", "customerName": "Ana"}},
            }
        }
    )
