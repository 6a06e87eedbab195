"""Client for the remote spreadsheet API that is the system of record.

Pulls normalize the sheet's loosely structured rows into the service models.
Any failure (missing URL, network error, non-2xx, unreadable body) is logged and
reported as ``None``, meaning "keep the local state". Pushes report ``False``
the same way. Nothing in this module raises on remote trouble.
"""

import asyncio
import time
from collections.abc import Callable, Iterable
from typing import Any

import requests
from pydantic import ValidationError

from .config import Settings
from .logger import sync_logger as logger
from .parsing import fold, format_items_text, normalize_flavor_name, parse_remote_order, remote_status_label
from .schemas import (
    DEFAULT_BEVERAGES,
    DEFAULT_FLAVORS,
    InventoryRecord,
    Order,
    Products,
    RemoteInventoryRecord,
    RemoteOrderRecord,
    RemoteProducts,
)


def normalize_inventory(rows: Any) -> list[InventoryRecord] | None:
    """Turn remote inventory rows into inventory records.

    Rows are grouped by normalized flavor name and duplicates are summed.
    Negative stock counts as zero. Invalid rows are skipped.

    Returns:
        list[InventoryRecord] | None: ``None`` when no usable row is found.
    """
    if not isinstance(rows, list):
        logger.error(f"Inventory response has unexpected format: {type(rows).__name__}")
        return None

    totals: dict[str, dict[str, Any]] = {}
    for row in rows:
        try:
            record = RemoteInventoryRecord.model_validate(row)
        except ValidationError as e:
            logger.warning(f"Skipping invalid inventory row {row!r}: {e.error_count()} errors")
            continue
        flavor = normalize_flavor_name(record.flavor_name)
        if not flavor:
            continue
        entry = totals.setdefault(fold(flavor), {"flavor": flavor, "quantity": 0, "initial": 0})
        entry["quantity"] += max(0, record.current_stock)
        entry["initial"] += max(0, record.initial_stock or 0)

    if not totals:
        logger.warning("Inventory response contained no usable rows")
        return None
    return [
        InventoryRecord(flavor=entry["flavor"], quantity=entry["quantity"], initial_quantity=entry["initial"])
        for entry in totals.values()
    ]


def normalize_products(payload: Any) -> Products | None:
    """Read the explicit catalog, falling back to defaults for empty lists."""
    try:
        remote = RemoteProducts.model_validate(payload)
    except ValidationError as e:
        logger.error(f"Products response has unexpected format: {e.error_count()} errors")
        return None

    flavors = list(
        dict.fromkeys(
            normalize_flavor_name(flavor) for flavor in remote.skewer_flavors if isinstance(flavor, str) and flavor.strip()
        )
    )
    beverages = [beverage.strip() for beverage in remote.beverages if isinstance(beverage, str) and beverage.strip()]
    return Products(
        flavors=flavors or list(DEFAULT_FLAVORS),
        beverages=beverages or list(DEFAULT_BEVERAGES),
    )


def normalize_orders(rows: Any, known_flavors: Iterable[str]) -> list[Order] | None:
    """Parse remote order rows; rows without any recognizable item are skipped."""
    if not isinstance(rows, list):
        logger.error(f"Orders response has unexpected format: {type(rows).__name__}")
        return None

    known_flavors = list(known_flavors)
    orders: list[Order] = []
    for row in rows:
        try:
            record = RemoteOrderRecord.model_validate(row)
        except ValidationError as e:
            logger.warning(f"Skipping invalid order row {row!r}: {e.error_count()} errors")
            continue
        order = parse_remote_order(record, known_flavors)
        if order is None:
            logger.warning(f"Skipping order row {record.row_number}: no items in {record.items_text!r}")
            continue
        orders.append(order)
    return orders


class ExternalDataAdapter:
    """Pull and push calls against the remote sheet API.

    Successful GET responses are cached per URL and reused while fresher than
    the requested window, so several pulls in a burst cost one request.

    Attributes:
        settings: Endpoints, credentials and timeouts.
    """

    def __init__(
        self,
        settings: Settings,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the adapter.

        Args:
            settings: Service settings.
            clock: Monotonic clock used for the cache window.
        """
        self.settings = settings
        self._clock = clock
        self._cache: dict[str, tuple[float, Any]] = {}

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.settings.user_agent,
        }
        if self.settings.external_api_key:
            headers["Authorization"] = f"Bearer {self.settings.external_api_key}"
        return headers

    def invalidate_cache(self) -> None:
        """Forget cached responses; the next pull hits the remote API."""
        self._cache.clear()

    def _get_json(self, url: str) -> Any | None:
        try:
            response = requests.get(url, headers=self._headers(), timeout=self.settings.pull_timeout)
        except requests.RequestException as e:
            logger.error(f"GET {url} failed: {e}")
            return None
        if not response.ok:
            logger.error(f"GET {url} returned {response.status_code} {response.reason}")
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"GET {url} returned an unreadable body: {e}")
            return None

    async def _pull(self, url: str, max_age: float, force: bool = False) -> Any | None:
        cached = self._cache.get(url)
        if not force and cached is not None and self._clock() - cached[0] < max_age:
            logger.debug(f"Serving {url} from cache")
            return cached[1]

        data = await asyncio.to_thread(self._get_json, url)
        if data is not None:
            self._cache[url] = (self._clock(), data)
        return data

    async def fetch_inventory(self, force: bool = False, realtime: bool = False) -> list[InventoryRecord] | None:
        """Fetch and normalize the remote inventory.

        Args:
            force: Skip the cache window.
            realtime: Use the short realtime cache window.

        Returns:
            list[InventoryRecord] | None: ``None`` means keep the local inventory.
        """
        url = self.settings.external_inventory_url
        if not url:
            logger.info("EXTERNAL_INVENTORY_URL not configured, keeping local inventory")
            return None

        max_age = self.settings.realtime_cache_seconds if realtime else self.settings.pull_cache_seconds
        rows = await self._pull(url, max_age, force)
        if rows is None:
            return None
        if not rows:
            logger.warning("Remote inventory is empty, keeping local inventory")
            return None
        records = normalize_inventory(rows)
        if records:
            logger.info(f"Fetched remote inventory: {len(records)} flavors")
        return records

    async def fetch_products(self, force: bool = False) -> Products | None:
        """Fetch the catalog, or derive it from the inventory sheet.

        Without a products endpoint, flavors are the distinct normalized names
        of the inventory rows and beverages are the default list.
        """
        url = self.settings.external_products_url
        if url:
            payload = await self._pull(url, self.settings.pull_cache_seconds, force)
            return normalize_products(payload) if payload is not None else None

        if not self.settings.external_inventory_url:
            logger.info("No products or inventory URL configured, keeping local catalog")
            return None

        rows = await self._pull(self.settings.external_inventory_url, self.settings.pull_cache_seconds, force)
        if not isinstance(rows, list):
            return None
        flavors: dict[str, str] = {}
        for row in rows:
            try:
                name = normalize_flavor_name(RemoteInventoryRecord.model_validate(row).flavor_name)
            except ValidationError:
                continue
            if name:
                flavors.setdefault(fold(name), name)
        if not flavors:
            return None
        logger.info(f"Derived {len(flavors)} flavors from the inventory sheet")
        return Products(flavors=list(flavors.values()), beverages=list(DEFAULT_BEVERAGES))

    async def fetch_orders(self, known_flavors: Iterable[str], force: bool = False) -> list[Order] | None:
        """Fetch remote orders and parse their free-text columns.

        Args:
            known_flavors: Catalog used to recognize flavors in item text.
            force: Skip the cache window.

        Returns:
            list[Order] | None: ``None`` means keep the local orders; an empty
            list means the sheet has no orders.
        """
        url = self.settings.external_orders_url
        if not url:
            logger.info("EXTERNAL_ORDERS_URL not configured, keeping local orders")
            return None

        rows = await self._pull(url, self.settings.pull_cache_seconds, force)
        if rows is None:
            return None
        orders = normalize_orders(rows, known_flavors)
        if orders is not None:
            logger.info(f"Fetched {len(orders)} remote orders")
        return orders

    def _send(self, method: str, url: str, payload: Any) -> bool:
        try:
            response = requests.request(
                method, url, json=payload, headers=self._headers(), timeout=self.settings.push_timeout
            )
        except requests.Timeout:
            logger.error(f"{method} {url} timed out after {self.settings.push_timeout}s")
            return False
        except requests.RequestException as e:
            logger.error(f"{method} {url} failed: {e}")
            return False
        if not response.ok:
            logger.error(f"{method} {url} returned {response.status_code} {response.reason}: {response.text[:200]}")
            return False
        return True

    async def _push(self, method: str, url: str | None, payload: Any, what: str) -> bool:
        if not url:
            logger.debug(f"No remote endpoint configured for {what}, skipping push")
            return False
        ok = await asyncio.to_thread(self._send, method, url, payload)
        if ok:
            logger.info(f"Pushed {what}")
        return ok

    @staticmethod
    def order_row(order: Order) -> dict[str, Any]:
        """Serialize an order into the remote sheet's column layout."""
        row = {
            "cliente": order.customer_name,
            "itens": format_items_text(order.items),
            "situacao": remote_status_label(order.status),
        }
        if order.remote_row is not None:
            row["row_number"] = order.remote_row
        return row

    async def push_order_created(self, order: Order) -> bool:
        return await self._push(
            "POST", self.settings.external_order_create_url, [self.order_row(order)], f"order {order.id} creation"
        )

    async def push_order_updated(self, order: Order) -> bool:
        """Send an order's current state; orders without a remote row are skipped."""
        if order.remote_row is None:
            logger.debug(f"Order {order.id} has no remote row, skipping update push")
            return False
        return await self._push(
            "PUT", self.settings.external_order_update_url, [self.order_row(order)], f"order {order.id} update"
        )

    async def push_order_deleted(self, order: Order) -> bool:
        if order.remote_row is None:
            logger.debug(f"Order {order.id} has no remote row, skipping delete push")
            return False
        return await self._push(
            "POST",
            self.settings.external_order_delete_url,
            {"row_number": order.remote_row},
            f"order {order.id} deletion",
        )

    async def push_inventory(self, updates: dict[str, int]) -> bool:
        payload = [{"Espetinhos": flavor, "Estoque": stock} for flavor, stock in updates.items()]
        return await self._push(
            "PUT", self.settings.external_inventory_update_url, payload, f"inventory for {len(payload)} flavors"
        )
