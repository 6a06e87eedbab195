"""Runtime settings for the counter service, read from the environment."""

import os
from pathlib import Path

from pydantic import BaseModel, Field


def _env(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None


class Settings(BaseModel):
    """Service configuration.

    Attributes:
        data_file: Path of the JSON document holding orders, inventory and products.
        external_*_url: Endpoints of the remote system of record. Unset means
            "not configured" and the matching pull or push is skipped.
        external_api_key: Bearer token sent to the remote system.
        webhook_url: Endpoint receiving order/inventory events.
        webhook_secret: Shared secret sent in ``X-Webhook-Secret``.
        webhook_timeout: Seconds before a webhook call is abandoned.
        pull_timeout: Seconds before a pull from the remote system is abandoned.
        push_timeout: Seconds before a push to the remote system is abandoned.
        pull_cache_seconds: Window during which a successful pull is reused.
        realtime_cache_seconds: Shorter window used by the realtime inventory pull.
    """

    data_file: Path = Path("data/db.json")

    external_inventory_url: str | None = None
    external_products_url: str | None = None
    external_orders_url: str | None = None
    external_order_create_url: str | None = None
    external_order_update_url: str | None = None
    external_order_delete_url: str | None = None
    external_inventory_update_url: str | None = None
    external_api_key: str | None = None

    webhook_url: str | None = None
    webhook_secret: str | None = None
    webhook_timeout: float = Field(5.0, gt=0)

    pull_timeout: float = Field(10.0, gt=0)
    push_timeout: float = Field(5.0, gt=0)
    pull_cache_seconds: int = Field(300, ge=0)
    realtime_cache_seconds: int = Field(30, ge=0)

    user_agent: str = "counter-service/0.1.0"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables.

        ``WEBHOOK_TIMEOUT`` is given in milliseconds, like the remote deployment
        scripts expect; every other duration is in seconds.
        """
        return cls(
            data_file=Path(os.getenv("COUNTER_DATA_FILE", "data/db.json")),
            external_inventory_url=_env("EXTERNAL_INVENTORY_URL"),
            external_products_url=_env("EXTERNAL_PRODUCTS_URL"),
            external_orders_url=_env("EXTERNAL_ORDERS_URL"),
            external_order_create_url=_env("EXTERNAL_ORDER_CREATE_URL"),
            external_order_update_url=_env("EXTERNAL_ORDER_UPDATE_URL"),
            external_order_delete_url=_env("EXTERNAL_ORDER_DELETE_URL"),
            external_inventory_update_url=_env("EXTERNAL_INVENTORY_UPDATE_URL"),
            external_api_key=_env("EXTERNAL_API_KEY"),
            webhook_url=_env("WEBHOOK_URL"),
            webhook_secret=_env("WEBHOOK_SECRET"),
            webhook_timeout=int(os.getenv("WEBHOOK_TIMEOUT", "5000")) / 1000,
            pull_timeout=float(os.getenv("PULL_TIMEOUT", "10")),
            push_timeout=float(os.getenv("PUSH_TIMEOUT", "5")),
            pull_cache_seconds=int(os.getenv("PULL_CACHE_SECONDS", "300")),
            realtime_cache_seconds=int(os.getenv("REALTIME_CACHE_SECONDS", "30")),
        )

    def is_external_configured(self) -> dict[str, bool]:
        """Report which remote sources are configured."""
        return {
            "inventory": bool(self.external_inventory_url),
            "products": bool(self.external_products_url),
            "orders": bool(self.external_orders_url),
            "has_api_key": bool(self.external_api_key),
        }
