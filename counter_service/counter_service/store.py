"""JSON document store holding orders, inventory and the product catalog."""

import asyncio
import os
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path

from .inventory import flavors_from
from .logger import logger
from .schemas import DEFAULT_FLAVORS, DEFAULT_STOCK, InventoryRecord, StoreDocument, utcnow


class StaleDocumentError(RuntimeError):
    """Raised when a write is based on an older version of the document."""


def default_document() -> StoreDocument:
    """Document used when neither a file nor the remote sheet is available."""
    return StoreDocument(
        inventory=[
            InventoryRecord(flavor=flavor, quantity=DEFAULT_STOCK, initial_quantity=DEFAULT_STOCK)
            for flavor in DEFAULT_FLAVORS
        ]
    )


class DocumentStore:
    """Single JSON document cached in memory and rewritten on every change.

    Lifecycle: :meth:`load` (read the file, or bootstrap from the remote
    system when there is none), then :meth:`read` or :meth:`locked` plus
    :meth:`write`. Every read hands out a deep copy; nothing outside the store
    holds the cached document.

    Read-modify-write sequences must run inside :meth:`locked`. :meth:`write`
    also compares versions, so a change computed from an outdated copy is
    rejected with :class:`StaleDocumentError` instead of silently overwriting
    a newer one.

    Attributes:
        path: Location of the JSON file.
    """

    def __init__(self, path: Path | str, adapter=None):
        """Initialize the store.

        Args:
            path: Location of the JSON file.
            adapter: Optional :class:`~counter_service.external.ExternalDataAdapter`
                used to bootstrap a missing document.
        """
        self.path = Path(path)
        self._adapter = adapter
        self._document: StoreDocument | None = None
        self._lock = asyncio.Lock()
        self._load_lock = asyncio.Lock()

    @property
    def loaded(self) -> bool:
        return self._document is not None

    async def load(self) -> StoreDocument:
        """Populate the cache on first use and return a copy of the document."""
        if self._document is None:
            async with self._load_lock:
                if self._document is None:
                    if await asyncio.to_thread(self.path.exists):
                        self._document = await asyncio.to_thread(self._read_file)
                        logger.info(f"Loaded document from {self.path} (version {self._document.version})")
                    else:
                        logger.info(f"No document at {self.path}, bootstrapping")
                        await self._write(await self._bootstrap())
        return self._document.model_copy(deep=True)

    async def read(self) -> StoreDocument:
        """Return a deep copy of the current document."""
        return await self.load()

    @asynccontextmanager
    async def locked(self):
        """Check out a working copy of the document for a read-modify-write.

        Changes to the yielded copy are discarded unless passed to :meth:`write`
        before the block exits.
        """
        async with self._lock:
            yield await self.load()

    async def write(self, document: StoreDocument) -> StoreDocument:
        """Persist ``document`` wholesale.

        Stamps ``last_sync`` and bumps ``version`` on ``document`` itself, so the
        caller may keep editing and write again.

        Raises:
            StaleDocumentError: If ``document`` was read before another write.
            OSError: If the file cannot be written.
        """
        if self._document is not None and document.version != self._document.version:
            raise StaleDocumentError(
                f"Document version {document.version} is stale (current: {self._document.version})"
            )
        return await self._write(document)

    def invalidate(self) -> None:
        """Drop the cache; the next read goes back to the file."""
        self._document = None

    async def _write(self, document: StoreDocument) -> StoreDocument:
        document.version = (self._document.version if self._document else document.version) + 1
        document.last_sync = utcnow()
        snapshot = document.model_copy(deep=True)
        await asyncio.to_thread(self._write_file, snapshot)
        self._document = snapshot
        logger.debug(f"Document written (version {snapshot.version})")
        return document

    async def _bootstrap(self) -> StoreDocument:
        document = default_document()
        if self._adapter is None:
            return document

        inventory = await self._adapter.fetch_inventory()
        if inventory:
            document.inventory = inventory
            document.products.flavors = flavors_from(inventory)

        products = await self._adapter.fetch_products()
        if products:
            document.products = products

        orders = await self._adapter.fetch_orders(document.products.flavors)
        if orders is not None:
            document.orders = orders

        logger.info(
            f"Bootstrapped document: {len(document.inventory)} flavors, {len(document.orders)} orders"
        )
        return document

    def _read_file(self) -> StoreDocument:
        return StoreDocument.model_validate_json(self.path.read_text(encoding="utf-8"))

    def _write_file(self, document: StoreDocument) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(document.model_dump_json(by_alias=True, indent=2))
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
