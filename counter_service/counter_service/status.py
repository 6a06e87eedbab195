"""Order status resolution.

Statuses map to the kanban columns ``todo``, ``in_progress``, ``done`` and
``canceled``. Older documents carry ``em_preparo`` and ``entregue``; both are
accepted and normalized.

Precedence, highest first:

1. an explicit status requested by the caller (board drag-and-drop), any state
   reachable from any state;
2. ``todo`` and ``canceled`` already on the order, which only an explicit request
   moves;
3. the status derived from delivery: ``done`` once every item is fully
   delivered, ``in_progress`` otherwise.
"""

from collections.abc import Iterable

from .schemas import OrderItem

STICKY_STATUSES = frozenset({"todo", "canceled"})
LEGACY_STATUSES = {"em_preparo": None, "entregue": "done"}


def derive_status(items: Iterable[OrderItem]) -> str:
    """Return ``done`` when every item is fully delivered, else ``in_progress``."""
    items = list(items)
    if items and all(item.fully_delivered for item in items):
        return "done"
    return "in_progress"


def normalize_status(status: str | None, items: Iterable[OrderItem]) -> str:
    """Map legacy values onto the kanban states.

    ``em_preparo`` had no fixed column: it becomes whatever delivery says.
    """
    if status in LEGACY_STATUSES:
        return LEGACY_STATUSES[status] or derive_status(items)
    if status is None:
        return derive_status(items)
    return status


def resolve_status(current: str | None, items: Iterable[OrderItem], requested: str | None = None) -> str:
    """Compute the status an order should hold after a change.

    Args:
        current: Status stored on the order before the change.
        items: The order's items after the change.
        requested: Status explicitly asked for by the caller, if any.

    Returns:
        str: One of the kanban states.
    """
    items = list(items)
    if requested is not None:
        return normalize_status(requested, items)

    current = normalize_status(current, items)
    if current in STICKY_STATUSES:
        return current
    return derive_status(items)
