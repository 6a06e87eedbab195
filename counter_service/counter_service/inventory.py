"""Per-flavor stock ledger.

The module-level functions work on the inventory list of a document already
checked out from the store, so they can be composed inside a larger change.
:class:`InventoryLedger` wraps them in their own store transaction.
"""

from collections.abc import Iterable, Mapping

from .logger import logger
from .schemas import InventoryRecord, OperationResult


def insufficient_stock_message(flavor: str, available: int, requested: int) -> str:
    return f"Insufficient stock for {flavor}. Available: {available}, requested: {requested}"


def find_record(inventory: Iterable[InventoryRecord], flavor: str) -> InventoryRecord | None:
    return next((record for record in inventory if record.flavor == flavor), None)


def _check(record: InventoryRecord | None, flavor: str, delta: int) -> OperationResult | None:
    if record is None:
        message = f"Insufficient stock for {flavor}: flavor is not in the inventory"
    elif record.quantity - delta < 0:
        message = insufficient_stock_message(flavor, record.quantity, delta)
    else:
        return None
    return OperationResult.fail(message, reason="insufficient_stock")


def adjust_stock(inventory: list[InventoryRecord], flavor: str, delta: int) -> OperationResult:
    """Take ``delta`` units of ``flavor`` out of stock.

    A negative ``delta`` puts units back. Fails without touching the record when
    the flavor is unknown or the result would be negative.

    Args:
        inventory: Inventory list of a checked-out document, modified in place.
        flavor: Flavor to adjust.
        delta: Units to remove.

    Returns:
        OperationResult: ``success`` is False on insufficient stock.
    """
    record = find_record(inventory, flavor)
    failure = _check(record, flavor, delta)
    if failure:
        return failure
    record.quantity -= delta
    return OperationResult.ok()


def apply_deltas(inventory: list[InventoryRecord], deltas: Mapping[str, int]) -> OperationResult:
    """Apply several per-flavor adjustments, all of them or none.

    Every delta is checked against the current stock before any is applied, so a
    failure leaves ``inventory`` exactly as it was.
    """
    for flavor, delta in deltas.items():
        if delta == 0:
            continue
        failure = _check(find_record(inventory, flavor), flavor, delta)
        if failure:
            return failure

    for flavor, delta in deltas.items():
        if delta:
            find_record(inventory, flavor).quantity -= delta
    return OperationResult.ok()


def flavors_from(records: Iterable[InventoryRecord]) -> list[str]:
    """Unique flavor names in first-seen order."""
    return list(dict.fromkeys(record.flavor for record in records))


class InventoryLedger:
    """Stock operations that commit straight to the document store.

    Attributes:
        _store: The :class:`~counter_service.store.DocumentStore` holding the inventory.
    """

    def __init__(self, store):
        self._store = store

    async def get_all(self) -> list[InventoryRecord]:
        """Return a snapshot copy of every inventory record."""
        document = await self._store.read()
        return document.inventory

    async def adjust(self, flavor: str, delta: int) -> OperationResult:
        """Adjust one flavor and persist the change.

        Args:
            flavor: Flavor to adjust.
            delta: Units to remove; negative to return stock.
        """
        async with self._store.locked() as document:
            result = adjust_stock(document.inventory, flavor, delta)
            if not result.success:
                logger.warning(f"Stock adjustment rejected: {result.message}")
                return result
            await self._store.write(document)
        return result

    async def replace_all(self, records: Iterable[InventoryRecord]) -> list[InventoryRecord]:
        """Overwrite the whole inventory and rebuild the flavor catalog from it.

        Only the sync path calls this.
        """
        records = [record.model_copy() for record in records]
        async with self._store.locked() as document:
            document.inventory = records
            document.products.flavors = flavors_from(records)
            await self._store.write(document)
        logger.info(f"Inventory replaced: {len(records)} flavors")
        return [record.model_copy() for record in records]

    async def set_quantities(self, updates: Mapping[str, int]) -> dict[str, int]:
        """Set absolute stock for known flavors, clamping at zero.

        Unknown flavors are ignored.

        Returns:
            dict[str, int]: The quantities actually stored, keyed by flavor.
        """
        applied: dict[str, int] = {}
        async with self._store.locked() as document:
            for flavor, quantity in updates.items():
                record = find_record(document.inventory, flavor)
                if record is None:
                    logger.warning(f"Ignoring stock update for unknown flavor: {flavor}")
                    continue
                record.quantity = max(0, int(quantity))
                applied[flavor] = record.quantity
            if applied:
                await self._store.write(document)
        return applied
