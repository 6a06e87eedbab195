"""Reconciliation between the local document and the remote sheet.

Pulls treat the remote sheet as the source of truth and overwrite the local
arrays wholesale; nothing is merged. Pushes run in the background after a local
change has been written: their failures are logged and never reach the caller,
and nothing is retried.
"""

import asyncio
from collections.abc import Awaitable, Mapping

from .inventory import InventoryLedger
from .logger import sync_logger as logger
from .schemas import Order


class ReconciliationCoordinator:
    """Runs pull syncs and schedules fire-and-forget pushes.

    Attributes:
        _store: Document store receiving pulled data.
        _adapter: Remote API client.
        _ledger: Inventory ledger used to replace stock on pull.
    """

    def __init__(self, store, adapter, ledger: InventoryLedger | None = None):
        self._store = store
        self._adapter = adapter
        self._ledger = ledger or InventoryLedger(store)
        self._tasks: set[asyncio.Task] = set()

    async def pull_inventory(self, force: bool = False, realtime: bool = False) -> bool:
        """Replace the local inventory with the remote one.

        Returns:
            bool: False when the remote inventory was unavailable and local
            stock was kept.
        """
        records = await self._adapter.fetch_inventory(force=force, realtime=realtime)
        if records is None:
            logger.info("Inventory pull skipped, keeping local inventory")
            return False
        await self._ledger.replace_all(records)
        return True

    async def pull_products(self, force: bool = False) -> bool:
        products = await self._adapter.fetch_products(force=force)
        if products is None:
            logger.info("Products pull skipped, keeping local catalog")
            return False
        async with self._store.locked() as document:
            document.products = products
            await self._store.write(document)
        return True

    async def pull_orders(self, force: bool = False) -> bool:
        """Replace the local order list with the remote one.

        Local orders and unpushed local edits that the remote sheet does not
        reflect are lost.
        """
        catalog = (await self._store.read()).products.flavors
        orders = await self._adapter.fetch_orders(catalog, force=force)
        if orders is None:
            logger.info("Orders pull skipped, keeping local orders")
            return False

        async with self._store.locked() as document:
            remote_ids = {order.id for order in orders}
            dropped = [
                order.id
                for order in document.orders
                if order.id not in remote_ids or order.modified
            ]
            if dropped:
                logger.warning(f"Orders pull overwrites {len(dropped)} local orders or edits: {dropped}")
            document.orders = orders
            await self._store.write(document)
        logger.info(f"Orders replaced: {len(orders)} remote orders")
        return True

    async def pull_all(self, force: bool = True) -> dict[str, bool]:
        """Refresh inventory and orders together, bypassing the cache by default."""
        if force:
            self._adapter.invalidate_cache()
        inventory_ok, orders_ok = await asyncio.gather(
            self.pull_inventory(force=force),
            self.pull_orders(force=force),
        )
        return {"inventory": inventory_ok, "orders": orders_ok}

    async def _run_push(self, push: Awaitable[bool], what: str) -> bool:
        try:
            ok = await push
        except Exception as e:
            logger.opt(exception=e).error(f"Push of {what} failed: {e}")
            return False
        if not ok:
            logger.warning(f"Push of {what} was not delivered")
        return ok

    def _schedule(self, push: Awaitable[bool], what: str) -> asyncio.Task:
        task = asyncio.create_task(self._run_push(push, what))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def push_order_created(self, order: Order) -> asyncio.Task:
        order = order.model_copy(deep=True)
        return self._schedule(self._adapter.push_order_created(order), f"order {order.id} creation")

    def push_order_updated(self, order: Order) -> asyncio.Task:
        order = order.model_copy(deep=True)
        return self._schedule(self._adapter.push_order_updated(order), f"order {order.id} update")

    def push_order_deleted(self, order: Order) -> asyncio.Task:
        order = order.model_copy(deep=True)
        return self._schedule(self._adapter.push_order_deleted(order), f"order {order.id} deletion")

    def push_inventory(self, updates: Mapping[str, int]) -> asyncio.Task:
        return self._schedule(self._adapter.push_inventory(dict(updates)), "inventory")

    async def drain(self) -> None:
        """Wait for every push still in flight."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
