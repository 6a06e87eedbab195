"""Order lifecycle: creation, edits, deletion and stock reservation.

Every operation checks out the document under the store lock, validates and
applies its whole change to that copy, and writes once. A rejected operation
returns before writing, so stock and orders stay exactly as they were.
"""

from collections import defaultdict
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from .inventory import adjust_stock, apply_deltas
from .logger import logger
from .schemas import ItemSpec, OperationResult, Order, OrderItem, OrderItemUpdate, OrderUpdate
from .status import normalize_status, resolve_status
from .webhook import order_payload


def _first_error(error: ValidationError) -> str:
    detail = error.errors()[0]
    location = ".".join(str(part) for part in detail.get("loc", ()))
    return f"{location}: {detail['msg']}" if location else detail["msg"]


def skewer_totals(items: Iterable[ItemSpec]) -> dict[str, int]:
    """Units per flavor over the skewer items of ``items``."""
    totals: dict[str, int] = defaultdict(int)
    for item in items:
        if item.type == "skewer":
            totals[item.flavor] += item.qty
    return dict(totals)


def net_deltas(old_items: Iterable[ItemSpec], new_items: Iterable[ItemSpec]) -> dict[str, int]:
    """Stock to reserve per flavor when ``old_items`` are replaced by ``new_items``.

    Negative values give stock back.
    """
    deltas: dict[str, int] = defaultdict(int)
    for flavor, qty in skewer_totals(old_items).items():
        deltas[flavor] -= qty
    for flavor, qty in skewer_totals(new_items).items():
        deltas[flavor] += qty
    return {flavor: delta for flavor, delta in deltas.items() if delta}


def rematch_items(old_items: list[OrderItem], new_items: Iterable[ItemSpec]) -> list[OrderItem]:
    """Build the replacement item list, keeping ids of items that survive.

    Each new item takes over the first unused old item with the same
    ``(type, flavor, beverage)``, inheriting its id, status and delivered
    quantity (capped at the new quantity). Other new items start undelivered.
    Matching ignores quantities.
    """
    used: set[str] = set()
    items: list[OrderItem] = []
    for spec in new_items:
        match = next(
            (old for old in old_items if old.id not in used and old.identity() == spec.identity()),
            None,
        )
        if match is None:
            items.append(OrderItem(**spec.fields()))
            continue
        used.add(match.id)
        items.append(
            OrderItem(
                **spec.fields(),
                id=match.id,
                delivered_qty=min(match.delivered_qty, spec.qty),
                status=match.status,
            )
        )
    return items


class OrderManager:
    """Creates, edits and deletes orders against the document store.

    After a successful write the change is pushed to the remote sheet and
    announced to the webhook, both in the background.

    Attributes:
        _store: Document store holding orders and inventory.
        _coordinator: Optional reconciliation coordinator used for pushes.
        _notifier: Optional webhook notifier.
    """

    def __init__(self, store, coordinator=None, notifier=None):
        self._store = store
        self._coordinator = coordinator
        self._notifier = notifier

    async def list_orders(self) -> list[Order]:
        """Return every order with its status normalized."""
        document = await self._store.read()
        for order in document.orders:
            order.status = normalize_status(order.status, order.items)
        return document.orders

    async def get_order(self, order_id: str) -> Order | None:
        document = await self._store.read()
        order = document.find_order(order_id)
        if order is not None:
            order.status = normalize_status(order.status, order.items)
        return order

    async def create_order(self, customer_name: str, items: Iterable[ItemSpec | Mapping[str, Any]]) -> OperationResult:
        """Create an order and reserve stock for its skewers.

        Reservation is all-or-nothing: if any flavor lacks stock, nothing is
        reserved and nothing is written.

        Args:
            customer_name: Who the order is for.
            items: Requested items.

        Returns:
            OperationResult: The new order on success.
        """
        customer_name = (customer_name or "").strip()
        if not customer_name:
            return OperationResult.fail("Customer name is required")
        try:
            specs = [ItemSpec.model_validate(item) for item in items or []]
        except ValidationError as e:
            return OperationResult.fail(f"Invalid item: {_first_error(e)}")
        if not specs:
            return OperationResult.fail("At least one item is required")

        async with self._store.locked() as document:
            result = apply_deltas(document.inventory, skewer_totals(specs))
            if not result.success:
                logger.warning(f"Order for {customer_name} rejected: {result.message}")
                return result

            order = Order(
                customer_name=customer_name,
                items=[OrderItem(**spec.fields()) for spec in specs],
                status="todo",
                source="local",
            )
            document.orders.append(order)
            await self._store.write(document)

        logger.info(f"Order {order.id} created for {customer_name} with {order.total_items} units")
        self._announce("order.created", order)
        return OperationResult.ok(order=order)

    async def update_order(self, order_id: str, changes: OrderUpdate | Mapping[str, Any]) -> OperationResult:
        """Edit an order's customer, items and/or status.

        Replacing items re-reserves stock by the net change per flavor; if any
        flavor cannot cover its increase, the order and the stock are left
        untouched. An explicit status is stored as given; otherwise the status
        is resolved again from the new items.
        """
        try:
            changes = OrderUpdate.model_validate(changes)
        except ValidationError as e:
            return OperationResult.fail(f"Invalid update: {_first_error(e)}")

        async with self._store.locked() as document:
            order = document.find_order(order_id)
            if order is None:
                return OperationResult.fail("Order not found", reason="not_found")

            customer_name = None
            if changes.customer_name is not None:
                customer_name = changes.customer_name.strip()
                if not customer_name:
                    return OperationResult.fail("Customer name is required")

            if changes.items is not None:
                if not changes.items:
                    return OperationResult.fail("At least one item is required")
                result = apply_deltas(document.inventory, net_deltas(order.items, changes.items))
                if not result.success:
                    logger.warning(f"Update of order {order_id} rejected: {result.message}")
                    return result
                order.items = rematch_items(order.items, changes.items)

            if customer_name:
                order.customer_name = customer_name
            order.status = resolve_status(order.status, order.items, changes.status)
            if order.source == "external":
                order.modified = True
            await self._store.write(document)

        logger.info(f"Order {order_id} updated (status {order.status})")
        self._announce("order.updated", order)
        return OperationResult.ok(order=order)

    async def update_order_item(
        self, order_id: str, item_id: str, changes: OrderItemUpdate | Mapping[str, Any]
    ) -> OperationResult:
        """Change an item's ordered and/or delivered quantity.

        A new skewer quantity reserves or returns the difference. The delivered
        quantity may never exceed the ordered one.
        """
        try:
            changes = OrderItemUpdate.model_validate(changes)
        except ValidationError as e:
            return OperationResult.fail(f"Invalid update: {_first_error(e)}")

        async with self._store.locked() as document:
            order = document.find_order(order_id)
            if order is None:
                return OperationResult.fail("Order not found", reason="not_found")
            item = order.find_item(item_id)
            if item is None:
                return OperationResult.fail("Item not found", reason="not_found")

            qty = item.qty if changes.qty is None else changes.qty
            delivered_qty = item.delivered_qty if changes.delivered_qty is None else changes.delivered_qty
            if delivered_qty > qty:
                return OperationResult.fail(f"Delivered quantity must be between 0 and {qty}")

            if item.type == "skewer" and qty != item.qty:
                result = adjust_stock(document.inventory, item.flavor, qty - item.qty)
                if not result.success:
                    logger.warning(f"Update of item {item_id} rejected: {result.message}")
                    return result

            item.qty = qty
            item.delivered_qty = delivered_qty
            order.status = resolve_status(order.status, order.items)
            if order.source == "external":
                order.modified = True
            await self._store.write(document)

        logger.info(f"Item {item_id} of order {order_id} updated: {delivered_qty}/{qty} delivered")
        self._announce("order.updated", order)
        return OperationResult.ok(order=order, item=item)

    async def delete_order_item(self, order_id: str, item_id: str) -> OperationResult:
        """Remove one item, returning skewer stock to the inventory.

        The last item of an order cannot be deleted. Failing to return the
        stock (the flavor left the inventory) is logged and does not block the
        deletion.
        """
        async with self._store.locked() as document:
            order = document.find_order(order_id)
            if order is None:
                return OperationResult.fail("Order not found", reason="not_found")
            item = order.find_item(item_id)
            if item is None:
                return OperationResult.fail("Item not found", reason="not_found")
            if len(order.items) <= 1:
                return OperationResult.fail("Cannot delete the last item of an order")

            order.items = [other for other in order.items if other.id != item_id]
            if item.type == "skewer":
                returned = adjust_stock(document.inventory, item.flavor, -item.qty)
                if not returned.success:
                    logger.warning(f"Could not return {item.qty} {item.flavor} to stock: {returned.message}")

            order.status = resolve_status(order.status, order.items)
            if order.source == "external":
                order.modified = True
            await self._store.write(document)

        logger.info(f"Item {item_id} removed from order {order_id}")
        self._announce("order.updated", order)
        return OperationResult.ok(order=order, item=item)

    async def delete_order(self, order_id: str) -> OperationResult:
        """Remove an order. Stock reserved by its items stays reserved."""
        async with self._store.locked() as document:
            order = document.find_order(order_id)
            if order is None:
                return OperationResult.fail("Order not found", reason="not_found")
            document.orders = [other for other in document.orders if other.id != order_id]
            await self._store.write(document)

        logger.info(f"Order {order_id} deleted")
        self._announce("order.deleted", order)
        return OperationResult.ok(order=order)

    def _announce(self, event: str, order: Order) -> None:
        if self._coordinator is not None:
            if event == "order.created":
                self._coordinator.push_order_created(order)
            elif event == "order.deleted":
                self._coordinator.push_order_deleted(order)
            else:
                self._coordinator.push_order_updated(order)
        if self._notifier is not None:
            self._notifier.notify(order_payload(event, order))
