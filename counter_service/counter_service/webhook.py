"""Webhook notifications for order and inventory events."""

import asyncio
from collections.abc import Mapping

import requests

from .config import Settings
from .logger import logger
from .schemas import Order, WebhookPayload


def order_payload(event: str, order: Order) -> WebhookPayload:
    """Build the payload for an ``order.*`` event."""
    return WebhookPayload(
        event=event,
        data={
            "order": {
                **order.model_dump(
                    mode="json",
                    by_alias=True,
                    include={"id", "customer_name", "items", "status", "created_at", "source"},
                ),
                "totalItems": order.total_items,
                "deliveredItems": order.delivered_items,
            }
        },
    )


def inventory_payload(updates: Mapping[str, int]) -> WebhookPayload:
    """Build the payload for an ``inventory.updated`` event."""
    return WebhookPayload(
        event="inventory.updated",
        data={
            "inventory": dict(updates),
            "updatedFlavors": list(updates),
            "totalStock": sum(updates.values()),
        },
    )


class WebhookNotifier:
    """Posts event payloads to the configured webhook endpoint.

    Delivery is best effort: a failed call is logged and dropped.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._tasks: set[asyncio.Task] = set()

    def send(self, payload: WebhookPayload) -> bool:
        """Deliver one payload.

        Args:
            payload: The event to deliver

        Returns:
            bool: True if the endpoint accepted it, False otherwise
        """
        if not self.settings.webhook_url:
            logger.warning(f"WEBHOOK_URL not configured, skipping {payload.event} webhook")
            return False

        headers = {"Content-Type": "application/json", "User-Agent": self.settings.user_agent}
        if self.settings.webhook_secret:
            headers["X-Webhook-Secret"] = self.settings.webhook_secret

        try:
            response = requests.post(
                self.settings.webhook_url,
                data=payload.model_dump_json(),
                headers=headers,
                timeout=self.settings.webhook_timeout,
            )
            response.raise_for_status()
        except requests.Timeout:
            logger.error(f"Webhook {payload.event} timed out")
            return False
        except requests.RequestException as e:
            logger.error(f"Failed to send {payload.event} webhook: {e}")
            return False

        logger.info(f"Webhook sent successfully: {payload.event}")
        return True

    def notify(self, payload: WebhookPayload) -> asyncio.Task:
        """Deliver ``payload`` in the background without waiting for it."""
        task = asyncio.create_task(asyncio.to_thread(self.send, payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every webhook still in flight."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
